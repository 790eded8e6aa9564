"""Historical track (trajectory) models."""

from __future__ import annotations

from pyaeris.models._base import AerisBaseModel


class TrackWaypoint(AerisBaseModel):
    """A single point of a historical track."""

    time: float
    """Epoch seconds."""
    latitude: float | None = None
    longitude: float | None = None
    baro_altitude: float | None = None
    true_track: float | None = None
    on_ground: bool = False


class FlightTrack(AerisBaseModel):
    """Sparse authoritative path of one aircraft, ordered by time.

    Instances are read-only inputs to the reconciler and are never mutated.
    """

    icao24: str
    start_time: float = 0.0
    end_time: float = 0.0
    callsign: str | None = None
    path: tuple[TrackWaypoint, ...] = ()

    @property
    def last_time(self) -> float | None:
        if not self.path:
            return None
        return self.path[-1].time
