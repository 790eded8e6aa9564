"""Result envelopes returned by the endpoint modules."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict

from pyaeris.models.flight import FlightState
from pyaeris.models.track import FlightTrack


class RateLimitInfo(BaseModel):
    """Quota information carried in response headers."""

    model_config = ConfigDict(frozen=True)

    credits_remaining: int | None = None
    retry_after_seconds: int | None = None


class FetchResult(BaseModel):
    """Outcome of a bbox poll.

    ``rate_limited`` is a state, not an error: the batch is empty and the
    caller is expected to wait ``retry_after_seconds`` (when known).
    """

    model_config = ConfigDict(frozen=True)

    flights: tuple[FlightState, ...] = ()
    rate_limited: bool = False
    credits_remaining: int | None = None
    retry_after_seconds: int | None = None


class FlightLookupResult(BaseModel):
    """Outcome of a single-aircraft state lookup."""

    model_config = ConfigDict(frozen=True)

    flight: FlightState | None = None
    credits_remaining: int | None = None


class TrackFetchResult(BaseModel):
    """Outcome of a historical-track request.

    ``not_found`` is only set when every endpoint variant answered 404.
    """

    model_config = ConfigDict(frozen=True)

    track: FlightTrack | None = None
    rate_limited: bool = False
    credits_remaining: int | None = None
    retry_after_seconds: int | None = None
    not_found: bool = False
