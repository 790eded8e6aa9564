"""ADS-B.fi v3 radial endpoint.

Endpoint: /lat/{lat}/lon/{lon}/dist/{dist_nm}

The public API is keyless and reports no quota headers; a 429 carries no
retry hint, so a fixed 10 s hint is substituted.
"""

from __future__ import annotations

from pyaeris._transport import Transport
from pyaeris.config import AerisConfig
from pyaeris.exceptions import AerisRateLimitError
from pyaeris.ingestion.adsbfi import bbox_to_radial_query, parse_aircraft_list
from pyaeris.models.region import BoundingBox
from pyaeris.models.results import FetchResult

_RATE_LIMIT_RETRY_S = 10


async def fetch_flights_by_bbox(config: AerisConfig, transport: Transport, bbox: BoundingBox) -> FetchResult:
    box = bbox.normalized()
    lat, lon, radius_nm = bbox_to_radial_query(box)
    endpoint = f"/lat/{lat:.5f}/lon/{lon:.5f}/dist/{radius_nm}"
    try:
        response = await transport.get_json(endpoint, {})
    except AerisRateLimitError:
        return FetchResult(rate_limited=True, retry_after_seconds=_RATE_LIMIT_RETRY_S)

    flights = parse_aircraft_list(response.data, box, include_ground=config.include_ground)
    return FetchResult(flights=tuple(flights))
