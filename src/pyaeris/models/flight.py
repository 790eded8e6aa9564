"""Live aircraft state model."""

from __future__ import annotations

from pydantic import field_validator

from pyaeris.ingestion.normalize import normalize_icao24
from pyaeris.models._base import AerisBaseModel


class FlightState(AerisBaseModel):
    """One aircraft as reported by a single bbox poll.

    Units follow the OpenSky convention regardless of provider: metres,
    metres per second and degrees clockwise from north.  Positional and
    kinematic fields are ``None`` when the upstream did not report them.
    """

    icao24: str
    """24-bit ICAO transponder address, lower-case hex."""
    callsign: str | None = None
    origin_country: str = "Unknown"
    longitude: float | None = None
    latitude: float | None = None
    baro_altitude: float | None = None
    """Barometric altitude in metres."""
    on_ground: bool = False
    velocity: float | None = None
    """Ground speed in m/s."""
    true_track: float | None = None
    """Heading in degrees, 0 = north."""
    vertical_rate: float | None = None
    geo_altitude: float | None = None
    squawk: str | None = None
    spi: bool = False
    position_source: int = 0
    category: int | None = None

    @field_validator("icao24", mode="before")
    @classmethod
    def _normalize_icao24(cls, value: object) -> str:
        icao24 = normalize_icao24(value)
        if icao24 is None:
            raise ValueError(f"icao24 must be 6 hex digits, got {value!r}")
        return icao24

    @field_validator("callsign", mode="before")
    @classmethod
    def _strip_callsign(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip() or None
        return value

    @property
    def has_position(self) -> bool:
        return self.longitude is not None and self.latitude is not None

    @property
    def position(self) -> tuple[float, float] | None:
        if self.longitude is None or self.latitude is None:
            return None
        return (self.longitude, self.latitude)


def with_position(flights: list[FlightState]) -> list[FlightState]:
    """Drop samples without a geolocation fix."""
    return [f for f in flights if f.has_position]
