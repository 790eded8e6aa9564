"""OpenSky state-vector endpoints.

Endpoints:
  - /states/all?lamin=..&lamax=..&lomin=..&lomax=..&extended=1 (bbox)
  - /states/all?icao24=..&extended=1 (single aircraft, global)
"""

from __future__ import annotations

import logging

from pyaeris._transport import Transport
from pyaeris.config import AerisConfig
from pyaeris.exceptions import AerisRateLimitError
from pyaeris.ingestion.normalize import normalize_icao24
from pyaeris.ingestion.opensky import parse_states
from pyaeris.models.region import BoundingBox
from pyaeris.models.results import FetchResult, FlightLookupResult

_logger = logging.getLogger(__name__)

_STATES_ENDPOINT = "/states/all"


async def fetch_flights_by_bbox(config: AerisConfig, transport: Transport, bbox: BoundingBox) -> FetchResult:
    """Fetch every airborne aircraft inside *bbox*.

    A 429 answer is returned as ``rate_limited=True``; every other failure
    propagates as :class:`~pyaeris.exceptions.AerisTransportError`.
    """
    box = bbox.normalized()
    params = {
        "lamin": str(box.lamin),
        "lamax": str(box.lamax),
        "lomin": str(box.lomin),
        "lomax": str(box.lomax),
        "extended": "1",
    }
    try:
        response = await transport.get_json(_STATES_ENDPOINT, params)
    except AerisRateLimitError as exc:
        _logger.debug("Bbox query rate limited (retry after %s s)", exc.retry_after_seconds)
        return FetchResult(
            rate_limited=True,
            credits_remaining=exc.credits_remaining,
            retry_after_seconds=exc.retry_after_seconds,
        )

    flights = parse_states(response.data, include_ground=config.include_ground)
    return FetchResult(
        flights=tuple(flights),
        credits_remaining=response.rate_limit.credits_remaining,
    )


async def fetch_flight_by_icao24(config: AerisConfig, transport: Transport, icao24: str) -> FlightLookupResult:
    """Look up one aircraft globally (costs more credits than a bbox query).

    Invalid addresses and rate limiting both yield an empty result.
    """
    normalized = normalize_icao24(icao24)
    if normalized is None:
        return FlightLookupResult()

    try:
        response = await transport.get_json(_STATES_ENDPOINT, {"icao24": normalized, "extended": "1"})
    except AerisRateLimitError as exc:
        return FlightLookupResult(credits_remaining=exc.credits_remaining)

    flights = parse_states(response.data, include_ground=True, require_baro_altitude=False)
    match = next((f for f in flights if f.icao24 == normalized), None)
    return FlightLookupResult(flight=match, credits_remaining=response.rate_limit.credits_remaining)
