"""ADS-B.fi v3 payload parsing.

ADS-B.fi reports imperial units and uses ``alt_baro == "ground"`` for
aircraft on the ground.  Everything is converted to the OpenSky
conventions used by :class:`~pyaeris.models.flight.FlightState`.
"""

from __future__ import annotations

import math
from typing import Any

from pyaeris._constants import CATEGORY_CODES, FEET_TO_METERS, FPM_PER_MPS, KNOTS_TO_MPS, NM_PER_DEGREE_LAT
from pyaeris.ingestion.normalize import finite_number, normalize_icao24, safe_str
from pyaeris.models.flight import FlightState
from pyaeris.models.region import BoundingBox

#: Largest radius the public endpoint accepts.
MAX_RADIUS_NM = 250


def parse_aircraft(raw: Any) -> FlightState | None:
    """Parse one ``ac`` entry; ``None`` without a valid address or position."""
    if not isinstance(raw, dict):
        return None
    icao24 = normalize_icao24(raw.get("hex"))
    if icao24 is None:
        return None

    latitude = finite_number(raw.get("lat"))
    longitude = finite_number(raw.get("lon"))
    if latitude is None or longitude is None:
        return None

    alt_baro = raw.get("alt_baro")
    on_ground = alt_baro == "ground"
    alt_baro_ft = None if on_ground else finite_number(alt_baro)
    alt_geom_ft = finite_number(raw.get("alt_geom"))
    ground_speed_kt = finite_number(raw.get("gs"))
    baro_rate_fpm = finite_number(raw.get("baro_rate"))

    registration = raw.get("r")
    category_code = raw.get("category")

    return FlightState(
        icao24=icao24,
        callsign=safe_str(raw.get("flight")),
        # No country field; the registration prefix is the best hint available.
        origin_country=registration[:2] if isinstance(registration, str) and registration else "??",
        longitude=longitude,
        latitude=latitude,
        baro_altitude=alt_baro_ft * FEET_TO_METERS if alt_baro_ft is not None else None,
        on_ground=on_ground,
        velocity=ground_speed_kt * KNOTS_TO_MPS if ground_speed_kt is not None else None,
        true_track=finite_number(raw.get("track")),
        vertical_rate=baro_rate_fpm / FPM_PER_MPS if baro_rate_fpm is not None else None,
        geo_altitude=alt_geom_ft * FEET_TO_METERS if alt_geom_ft is not None else None,
        squawk=safe_str(raw.get("squawk")),
        category=CATEGORY_CODES.get(category_code) if isinstance(category_code, str) else None,
    )


def bbox_to_radial_query(bbox: BoundingBox) -> tuple[float, float, int]:
    """Centre and a conservative radius (NM) covering *bbox*."""
    center_lng, center_lat = bbox.center
    half_lat = abs(bbox.lamax - bbox.lamin) / 2.0 * NM_PER_DEGREE_LAT
    half_lng = abs(bbox.lomax - bbox.lomin) / 2.0 * NM_PER_DEGREE_LAT
    radius_nm = min(MAX_RADIUS_NM, math.ceil(max(half_lat, half_lng) * 1.05))
    return center_lat, center_lng, radius_nm


def parse_aircraft_list(payload: Any, bbox: BoundingBox, *, include_ground: bool = False) -> list[FlightState]:
    """Parse a radial response and clip it back to *bbox*."""
    if not isinstance(payload, dict):
        return []
    aircraft = payload.get("ac")
    if not isinstance(aircraft, list):
        return []

    flights: list[FlightState] = []
    for raw in aircraft:
        flight = parse_aircraft(raw)
        if flight is None or flight.longitude is None or flight.latitude is None:
            continue
        if flight.on_ground and not include_ground:
            continue
        if not flight.on_ground and flight.baro_altitude is None:
            continue
        if not bbox.contains(flight.longitude, flight.latitude):
            continue
        flights.append(flight)
    return flights
