"""OpenSky historical track endpoints.

Endpoints:
  - /tracks/all?icao24=..&time=.. (primary)
  - /tracks?icao24=..&time=.. (fallback, some deployments only expose this)

``time=0`` asks for the ongoing flight.  When OpenSky does not consider the
flight ongoing both endpoints answer 404, in which case the lookup is
retried once with the current timestamp.
"""

from __future__ import annotations

import logging
import math
import time

from pyaeris._transport import Transport
from pyaeris.exceptions import AerisRateLimitError, AerisTransportError
from pyaeris.ingestion.normalize import normalize_icao24
from pyaeris.ingestion.opensky import parse_flight_track
from pyaeris.models.results import TrackFetchResult

_logger = logging.getLogger(__name__)

_PRIMARY_ENDPOINT = "/tracks/all"
_FALLBACK_ENDPOINT = "/tracks"


async def _attempt(transport: Transport, endpoint: str, icao24: str, at: int) -> tuple[TrackFetchResult, int | None]:
    try:
        response = await transport.get_json(endpoint, {"icao24": icao24, "time": str(at)})
    except AerisRateLimitError as exc:
        return (
            TrackFetchResult(
                rate_limited=True,
                credits_remaining=exc.credits_remaining,
                retry_after_seconds=exc.retry_after_seconds,
            ),
            429,
        )
    except AerisTransportError as exc:
        if exc.status_code is None:
            raise
        _logger.debug("%s answered %s for %s", endpoint, exc.status_code, icao24)
        return TrackFetchResult(), exc.status_code

    return (
        TrackFetchResult(
            track=parse_flight_track(icao24, response.data),
            credits_remaining=response.rate_limit.credits_remaining,
        ),
        200,
    )


async def _fetch_at(transport: Transport, icao24: str, at: int) -> TrackFetchResult:
    primary, status = await _attempt(transport, _PRIMARY_ENDPOINT, icao24, at)
    if primary.track is not None or primary.rate_limited or status != 404:
        return primary
    # Only fall back when the primary endpoint is missing, not on auth failures.
    fallback, fallback_status = await _attempt(transport, _FALLBACK_ENDPOINT, icao24, at)
    if fallback_status == 404:
        return fallback.model_copy(update={"not_found": True})
    return fallback


async def fetch_track_by_icao24(
    transport: Transport,
    icao24: str,
    at: float = 0,
    *,
    now_s: float | None = None,
) -> TrackFetchResult:
    """Fetch the trajectory of *icao24*.

    Parameters
    ----------
    at : float
        Any epoch second inside the wanted flight, or ``0`` for the live one.
    now_s : float or None
        Clock used for the ``time=0`` retry; defaults to the wall clock.
    """
    normalized = normalize_icao24(icao24)
    if normalized is None:
        return TrackFetchResult()

    safe_at = max(0, math.floor(at)) if math.isfinite(at) else 0
    result = await _fetch_at(transport, normalized, safe_at)
    if result.track is not None or result.rate_limited or safe_at != 0 or not result.not_found:
        return result

    retry_at = math.floor(now_s if now_s is not None else time.time())
    if retry_at <= 0:
        return result
    _logger.debug("No live track for %s, retrying at t=%d", normalized, retry_at)
    return await _fetch_at(transport, normalized, retry_at)
