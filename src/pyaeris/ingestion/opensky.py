"""OpenSky payload parsing.

State vectors arrive as positional arrays::

    [icao24, callsign, origin_country, time_position, last_contact,
     longitude, latitude, baro_altitude, on_ground, velocity, true_track,
     vertical_rate, sensors, geo_altitude, squawk, spi, position_source,
     category]

``category`` is only present with ``extended=1``.
"""

from __future__ import annotations

import logging
from typing import Any

from pyaeris.ingestion.normalize import finite_number, normalize_icao24, safe_str
from pyaeris.models.flight import FlightState
from pyaeris.models.track import FlightTrack, TrackWaypoint

_logger = logging.getLogger(__name__)

_MIN_STATE_FIELDS = 17
_MIN_WAYPOINT_FIELDS = 6


def parse_state_row(row: Any) -> FlightState | None:
    """Parse one state vector; ``None`` when the row is unusable."""
    if not isinstance(row, (list, tuple)) or len(row) < _MIN_STATE_FIELDS:
        return None
    icao24 = normalize_icao24(row[0])
    if icao24 is None:
        return None

    category = finite_number(row[17]) if len(row) > 17 else None
    position_source = finite_number(row[16])
    return FlightState(
        icao24=icao24,
        callsign=safe_str(row[1]),
        origin_country=row[2] if isinstance(row[2], str) else "Unknown",
        longitude=finite_number(row[5]),
        latitude=finite_number(row[6]),
        baro_altitude=finite_number(row[7]),
        on_ground=row[8] is True,
        velocity=finite_number(row[9]),
        true_track=finite_number(row[10]),
        vertical_rate=finite_number(row[11]),
        geo_altitude=finite_number(row[13]),
        squawk=row[14] if isinstance(row[14], str) else None,
        spi=row[15] is True,
        position_source=int(position_source) if position_source is not None else 0,
        category=int(category) if category is not None else None,
    )


def parse_states(
    payload: Any,
    *,
    include_ground: bool = False,
    require_baro_altitude: bool = True,
) -> list[FlightState]:
    """Parse a ``/states/all`` response into renderable flights.

    Rows without a position are always dropped; on-ground rows and rows
    without barometric altitude are dropped unless asked otherwise.
    """
    if not isinstance(payload, dict):
        return []
    states = payload.get("states")
    if not isinstance(states, list):
        return []

    flights: list[FlightState] = []
    for row in states:
        flight = parse_state_row(row)
        if flight is None or not flight.has_position:
            continue
        if flight.on_ground and not include_ground:
            continue
        if require_baro_altitude and flight.baro_altitude is None:
            continue
        flights.append(flight)
    if len(flights) != len(states):
        _logger.debug("Dropped %d of %d state vectors", len(states) - len(flights), len(states))
    return flights


def _parse_waypoint(raw: Any) -> TrackWaypoint | None:
    if not isinstance(raw, (list, tuple)) or len(raw) < _MIN_WAYPOINT_FIELDS:
        return None
    time = finite_number(raw[0])
    if time is None:
        return None
    return TrackWaypoint(
        time=time,
        latitude=finite_number(raw[1]),
        longitude=finite_number(raw[2]),
        baro_altitude=finite_number(raw[3]),
        true_track=finite_number(raw[4]),
        on_ground=raw[5] is True,
    )


def parse_flight_track(icao24: str, payload: Any) -> FlightTrack | None:
    """Parse a ``/tracks`` response.

    Waypoints without a position are dropped, the rest are sorted by time
    and consecutive duplicates removed.  Fewer than two points is treated
    as no track at all.
    """
    if not isinstance(payload, dict):
        return None

    start_time = finite_number(payload.get("startTime")) or 0.0
    end_time = finite_number(payload.get("endTime")) or 0.0
    # Some responses carry the misspelled key.
    callsign = safe_str(payload.get("callsign")) or safe_str(payload.get("calllsign"))

    raw_path = payload.get("path")
    parsed = [wp for wp in map(_parse_waypoint, raw_path if isinstance(raw_path, list) else []) if wp is not None]
    parsed = [wp for wp in parsed if wp.latitude is not None and wp.longitude is not None]
    parsed.sort(key=lambda wp: wp.time)

    path: list[TrackWaypoint] = []
    for wp in parsed:
        if path and path[-1].longitude == wp.longitude and path[-1].latitude == wp.latitude:
            continue
        path.append(wp)

    if len(path) < 2:
        return None

    return FlightTrack(
        icao24=icao24,
        start_time=start_time,
        end_time=end_time,
        callsign=callsign,
        path=tuple(path),
    )
