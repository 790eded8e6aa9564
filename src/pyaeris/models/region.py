"""Query regions."""

from __future__ import annotations

import math

from pydantic import BaseModel, ConfigDict, Field

from pyaeris.geo import clamp


def _normalize_bounds(lower: float, upper: float, low: float, high: float) -> tuple[float, float]:
    if not math.isfinite(lower) or not math.isfinite(upper):
        raise ValueError("Invalid bounding box coordinates")
    lo = clamp(lower, low, high)
    hi = clamp(upper, low, high)
    return (lo, hi) if lo <= hi else (hi, lo)


class BoundingBox(BaseModel):
    """Latitude/longitude rectangle, degrees."""

    model_config = ConfigDict(frozen=True)

    lamin: float
    lamax: float
    lomin: float
    lomax: float

    @classmethod
    def from_center(cls, lng: float, lat: float, radius_deg: float, *, max_radius_deg: float) -> BoundingBox:
        """Square box around a point.

        A bogus radius falls back to *max_radius_deg*, and every radius is
        capped there so the query stays in the cheapest credit tier.
        """
        safe = radius_deg if math.isfinite(radius_deg) and radius_deg > 0 else max_radius_deg
        safe = min(safe, max_radius_deg)
        return cls(lamin=lat - safe, lamax=lat + safe, lomin=lng - safe, lomax=lng + safe)

    def normalized(self) -> BoundingBox:
        """Clamp to valid coordinates and order each pair."""
        la0, la1 = _normalize_bounds(self.lamin, self.lamax, -90.0, 90.0)
        lo0, lo1 = _normalize_bounds(self.lomin, self.lomax, -180.0, 180.0)
        return BoundingBox(lamin=la0, lamax=la1, lomin=lo0, lomax=lo1)

    @property
    def center(self) -> tuple[float, float]:
        return ((self.lomin + self.lomax) / 2.0, (self.lamin + self.lamax) / 2.0)

    def contains(self, lng: float, lat: float) -> bool:
        return self.lamin <= lat <= self.lamax and self.lomin <= lng <= self.lomax


class Region(BaseModel):
    """A named wide polling area (typically a city)."""

    model_config = ConfigDict(frozen=True)

    name: str = ""
    longitude: float
    latitude: float
    radius_deg: float = Field(default=2.0, gt=0)

    def bbox(self, max_radius_deg: float) -> BoundingBox:
        return BoundingBox.from_center(self.longitude, self.latitude, self.radius_deg, max_radius_deg=max_radius_deg)
