"""Data models for upstream payloads and query regions."""

from pyaeris.models._base import AerisBaseModel
from pyaeris.models.flight import FlightState, with_position
from pyaeris.models.region import BoundingBox, Region
from pyaeris.models.results import FetchResult, FlightLookupResult, RateLimitInfo, TrackFetchResult
from pyaeris.models.track import FlightTrack, TrackWaypoint

__all__ = [
    "AerisBaseModel",
    "BoundingBox",
    "FetchResult",
    "FlightLookupResult",
    "FlightState",
    "FlightTrack",
    "RateLimitInfo",
    "Region",
    "TrackFetchResult",
    "TrackWaypoint",
    "with_position",
]
