"""Planar geometry helpers in degree space.

Positions are ``(lng, lat)`` tuples.  Distances are plain euclidean
degrees, which is what every threshold in the engine is expressed in.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Sequence

Position = tuple[float, float]

# Keeps east-west dead reckoning finite near the poles.
_MIN_COS_LAT = 0.2


def clamp(value: float, low: float, high: float) -> float:
    return min(max(value, low), high)


def normalize_lng(lng: float) -> float:
    """Map a longitude into ``[-180, 180)``."""
    if not math.isfinite(lng):
        return lng
    return ((lng + 180.0) % 360.0) - 180.0


def snap_lng_to_reference(lng: float, ref_lng: float) -> float:
    """Shift *lng* by whole turns so it lies within 180° of *ref_lng*."""
    if not math.isfinite(lng) or not math.isfinite(ref_lng):
        return lng
    x = lng
    while x - ref_lng > 180.0:
        x -= 360.0
    while x - ref_lng < -180.0:
        x += 360.0
    return x


def unwrap_lng_path(path: Sequence[Position]) -> list[Position]:
    """Remove antimeridian discontinuities from a path.

    Every point is snapped relative to the previous (already snapped)
    point, so ``[(179, 0), (-179, 0)]`` becomes ``[(179, 0), (181, 0)]``.
    """
    if len(path) < 2:
        return [(float(p[0]), float(p[1])) for p in path]
    first_lng, first_lat = path[0]
    out: list[Position] = [(first_lng, first_lat)]
    ref_lng = first_lng
    for lng, lat in path[1:]:
        next_lng = snap_lng_to_reference(lng, ref_lng)
        out.append((next_lng, lat))
        ref_lng = next_lng
    return out


def unwrap_from(path: Iterable[Position], ref_lng: float) -> list[Position]:
    """Like :func:`unwrap_lng_path` but continuing from an external reference."""
    out: list[Position] = []
    for lng, lat in path:
        next_lng = snap_lng_to_reference(lng, ref_lng)
        out.append((next_lng, lat))
        ref_lng = next_lng
    return out


def distance_sq(a: Position, b: Position) -> float:
    dx = a[0] - b[0]
    dy = a[1] - b[1]
    return dx * dx + dy * dy


def wrapped_distance_sq(a: Position, b: Position) -> float:
    """Squared distance taking the short way around the antimeridian."""
    dx = snap_lng_to_reference(b[0], a[0]) - a[0]
    dy = b[1] - a[1]
    return dx * dx + dy * dy


def smoothstep(t: float) -> float:
    t = clamp(t, 0.0, 1.0)
    return t * t * (3.0 - 2.0 * t)


def lerp(a: float, b: float, t: float) -> float:
    return a + (b - a) * t


def lerp_angle(a: float, b: float, t: float) -> float:
    """Blend two headings along the shorter arc; result in ``[0, 360)``."""
    delta = ((b - a + 540.0) % 360.0) - 180.0
    return (a + delta * t) % 360.0


def dead_reckon(lng: float, lat: float, heading_deg: float, distance_deg: float) -> Position:
    """Move *distance_deg* along *heading_deg* (0 = north, clockwise)."""
    rad = math.radians(heading_deg)
    cos_lat = max(math.cos(math.radians(lat)), _MIN_COS_LAT)
    return (
        lng + math.sin(rad) * distance_deg / cos_lat,
        lat + math.cos(rad) * distance_deg,
    )
