"""Merge a fetched historical track with the live trail of one aircraft.

The historical track is sparse, lagging and occasionally belongs to the
wrong flight; the live trail is dense but short.  Reconciliation splices
the two into one polyline that ends exactly at the aircraft, or gives up
and returns the live trail untouched.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Sequence

from pyaeris._constants import METERS_PER_DEGREE
from pyaeris.config import ReconcileTuning
from pyaeris.geo import Position, dead_reckon, distance_sq, lerp, snap_lng_to_reference, unwrap_from, unwrap_lng_path
from pyaeris.models.flight import FlightState
from pyaeris.models.track import FlightTrack
from pyaeris.state.trails import TrailEntry

_logger = logging.getLogger(__name__)

# Corners turning more than this are treated as data reversals, not turns.
_MAX_SMOOTH_TURN_DEG = 170.0
_CUT_FRACTION = 0.25


class ReconcileRejected(Exception):
    """Historical track cannot be merged with the live data."""


def _lerp_altitude(a: float | None, b: float | None, t: float) -> float | None:
    if a is None and b is None:
        return None
    a0 = a if a is not None else b
    a1 = b if b is not None else a0
    assert a0 is not None and a1 is not None  # noqa: S101
    return lerp(a0, a1, t)


def _turn_deg(a: Position, p: Position, b: Position) -> tuple[float, float, float]:
    """Turn angle at *p* plus the lengths of both adjacent segments."""
    v1 = (p[0] - a[0], p[1] - a[1])
    v2 = (b[0] - p[0], b[1] - p[1])
    len1 = math.hypot(*v1)
    len2 = math.hypot(*v2)
    if len1 == 0.0 or len2 == 0.0:
        return 0.0, len1, len2
    cos_turn = (v1[0] * v2[0] + v1[1] * v2[1]) / (len1 * len2)
    return math.degrees(math.acos(max(-1.0, min(1.0, cos_turn)))), len1, len2


def smooth_path(
    path: Sequence[Position],
    altitudes: Sequence[float | None],
    tuning: ReconcileTuning,
) -> tuple[list[Position], list[float | None]]:
    """Cut sharp corners until none is left.

    Every corner sharper than ``smooth_min_turn_deg`` is replaced by two
    points at equal distance on either side of it, which halves the turn.
    Passes repeat until nothing changes, so applying the function to its
    own output is a no-op.  The first and last points never move.
    """
    points = list(path)
    alts = list(altitudes)
    for _ in range(tuning.smooth_max_passes):
        if len(points) < 3:
            break
        out: list[Position] = [points[0]]
        out_alts: list[float | None] = [alts[0]]
        changed = False
        for i in range(1, len(points) - 1):
            a, p, b = points[i - 1], points[i], points[i + 1]
            turn, len1, len2 = _turn_deg(a, p, b)
            if (
                turn <= tuning.smooth_min_turn_deg
                or turn > _MAX_SMOOTH_TURN_DEG
                or min(len1, len2) < tuning.smooth_min_segment_deg
            ):
                out.append(p)
                out_alts.append(alts[i])
                continue
            cut = _CUT_FRACTION * min(len1, len2)
            t1 = cut / len1
            t2 = cut / len2
            out.append((lerp(p[0], a[0], t1), lerp(p[1], a[1], t1)))
            out_alts.append(_lerp_altitude(alts[i], alts[i - 1], t1))
            out.append((lerp(p[0], b[0], t2), lerp(p[1], b[1], t2)))
            out_alts.append(_lerp_altitude(alts[i], alts[i + 1], t2))
            changed = True
        out.append(points[-1])
        out_alts.append(alts[-1])
        points, alts = out, out_alts
        if not changed:
            break
    return points, alts


def trim_ahead(
    path: list[Position],
    altitudes: list[float | None],
    tip: Position,
    heading: float | None,
) -> None:
    """Drop trailing points that lie ahead of *tip* along the direction of travel.

    Mutates both lists in place.  Without a heading the direction of the
    last segment is used.
    """
    if heading is not None:
        ahead = dead_reckon(tip[0], tip[1], heading, 1.0)
        direction = (ahead[0] - tip[0], ahead[1] - tip[1])
    elif len(path) >= 2:
        direction = (path[-1][0] - path[-2][0], path[-1][1] - path[-2][1])
    else:
        return
    if direction == (0.0, 0.0):
        return
    while path:
        last = path[-1]
        if (last[0] - tip[0]) * direction[0] + (last[1] - tip[1]) * direction[1] <= 0.0:
            break
        path.pop()
        altitudes.pop()


def _dedupe(path: list[Position], altitudes: list[float | None]) -> tuple[list[Position], list[float | None]]:
    out: list[Position] = []
    out_alts: list[float | None] = []
    for point, alt in zip(path, altitudes, strict=True):
        if out and out[-1] == point:
            continue
        out.append(point)
        out_alts.append(alt)
    return out, out_alts


class TrackReconciler:
    """Splices a historical track onto the live trail of the selected aircraft."""

    def __init__(self, tuning: ReconcileTuning | None = None) -> None:
        self._tuning = tuning or ReconcileTuning()

    def reconcile(
        self,
        track: FlightTrack,
        live_trail: TrailEntry | None,
        *,
        flight: FlightState | None = None,
        position: Position | None = None,
        heading: float | None = None,
        fetched_at_ms: float = 0.0,
    ) -> TrailEntry | None:
        """Return the merged trail, or *live_trail* when merging is not safe.

        *position* is the interpolated on-screen position of the aircraft
        and becomes the tip of the merged path; when omitted the raw
        position of *flight* is used.
        """
        try:
            return self._merge(track, live_trail, flight, position, heading, fetched_at_ms)
        except (ReconcileRejected, ArithmeticError, ValueError, IndexError) as exc:
            _logger.debug("Using live trail for %s: %s", track.icao24, exc)
            return live_trail

    def _waypoint_age_s(self, track: FlightTrack, fetched_at_ms: float) -> float:
        last_time = track.last_time
        if last_time is None or fetched_at_ms <= 0:
            return 0.0
        return max(0.0, math.floor(fetched_at_ms / 1000.0) - last_time)

    def _check_plausible(
        self,
        history: list[Position],
        live: Position,
        flight: FlightState | None,
        age_s: float,
    ) -> None:
        tuning = self._tuning
        speed = tuning.guard_fallback_speed_mps
        if flight is not None and flight.velocity is not None and flight.velocity > tuning.guard_min_speed_mps:
            speed = flight.velocity
        expected_deg = speed * age_s / METERS_PER_DEGREE

        low = flight is not None and flight.baro_altitude is not None and flight.baro_altitude < tuning.low_altitude_m
        floor = tuning.guard_floor_low_deg if low else tuning.guard_floor_deg
        cap = tuning.guard_cap_low_deg if low else tuning.guard_cap_deg
        allowed = min(cap, max(floor, expected_deg * tuning.guard_scale + tuning.guard_margin_deg))

        window = history[-tuning.search_window :]
        best = min(distance_sq(p, live) for p in window)
        if best > allowed * allowed:
            raise ReconcileRejected(f"live position {math.sqrt(best):.3f} deg off track (allowed {allowed:.3f})")

    def _splice(
        self,
        history: list[Position],
        history_alts: list[float | None],
        live_trail: TrailEntry,
        flight: FlightState | None,
        age_s: float,
    ) -> None:
        """Append the live tail to *history* in place."""
        tuning = self._tuning
        start = max(0, len(live_trail.path) - tuning.tail_points)
        ref_lng = history[-1][0] if history else live_trail.path[start][0]
        tail = unwrap_from(live_trail.path[start:], ref_lng)
        tail_alts = list(live_trail.altitudes[start:])
        first = tail[0]

        window_start = max(0, len(history) - tuning.search_window)
        best_index = -1
        best_dist_sq = math.inf
        for i in range(window_start, len(history)):
            d2 = distance_sq(history[i], first)
            if d2 < best_dist_sq:
                best_dist_sq = d2
                best_index = i

        if best_index >= 0 and best_dist_sq <= tuning.merge_snap_deg * tuning.merge_snap_deg:
            del history[best_index + 1 :]
            del history_alts[best_index + 1 :]
            tail[0] = history[-1]
            tail_alts[0] = history_alts[-1] if history_alts[-1] is not None else tail_alts[0]
        elif history:
            last = history[-1]
            last_alt = history_alts[-1]
            gap = math.sqrt(distance_sq(last, first))
            disconnect = (
                gap > tuning.disconnect_gap_deg
                or (age_s > tuning.very_stale_age_s and gap > tuning.very_stale_gap_deg)
                or (age_s > tuning.stale_age_s and gap > tuning.stale_gap_deg)
            )
            if disconnect:
                _logger.debug("Disconnecting stale history for %s (gap %.3f deg)", live_trail.icao24, gap)
                history[:] = tail
                history_alts[:] = tail_alts
                return

            low = (
                flight is not None
                and flight.baro_altitude is not None
                and flight.baro_altitude < tuning.low_altitude_m
            )
            max_gap = tuning.max_connect_gap_low_deg if low else tuning.max_connect_gap_deg
            if gap > max_gap:
                return
            if gap > tuning.connect_bridge_deg:
                steps = max(tuning.bridge_min_steps, min(tuning.bridge_max_steps, math.ceil(gap / tuning.bridge_step_deg)))
                for s in range(1, steps):
                    t = s / steps
                    history.append((lerp(last[0], first[0], t), lerp(last[1], first[1], t)))
                    history_alts.append(_lerp_altitude(last_alt, tail_alts[0], t))
            else:
                tail[0] = last
                tail_alts[0] = last_alt if last_alt is not None else tail_alts[0]

        for point, alt in zip(tail, tail_alts, strict=True):
            if history and history[-1] == point:
                continue
            history.append(point)
            history_alts.append(alt)

    def _merge(
        self,
        track: FlightTrack,
        live_trail: TrailEntry | None,
        flight: FlightState | None,
        position: Position | None,
        heading: float | None,
        fetched_at_ms: float,
    ) -> TrailEntry | None:
        tuning = self._tuning
        if flight is not None and flight.icao24 != track.icao24:
            raise ReconcileRejected(f"track belongs to {track.icao24}, not {flight.icao24}")
        if live_trail is not None and live_trail.icao24 != track.icao24:
            raise ReconcileRejected(f"live trail belongs to {live_trail.icao24}")

        raw: list[Position] = []
        alts: list[float | None] = []
        for waypoint in track.path:
            if waypoint.longitude is None or waypoint.latitude is None:
                continue
            raw.append((waypoint.longitude, waypoint.latitude))
            alts.append(waypoint.baro_altitude)
        history = unwrap_lng_path(raw)

        live = position if position is not None else (flight.position if flight is not None else None)
        if live is not None and history:
            live = (snap_lng_to_reference(live[0], history[-1][0]), live[1])

        age_s = self._waypoint_age_s(track, fetched_at_ms)
        if live is not None and len(history) >= 2:
            self._check_plausible(history, live, flight, age_s)

        if live_trail is not None and len(live_trail.path) >= 2:
            self._splice(history, alts, live_trail, flight, age_s)

        if live is not None:
            if heading is None and flight is not None:
                heading = flight.true_track
            trim_ahead(history, alts, live, heading)
            if not history or history[-1] != live:
                history.append(live)
                alts.append(flight.baro_altitude if flight is not None else None)

        history, alts = _dedupe(history, alts)
        if tuning.smoothing_enabled:
            history, alts = smooth_path(history, alts, tuning)
        if len(history) < 2:
            raise ReconcileRejected("merged path has fewer than two points")

        latest = alts[-1]
        if latest is None and live_trail is not None:
            latest = live_trail.latest_altitude
        return TrailEntry(
            icao24=track.icao24,
            path=tuple(history),
            altitudes=tuple(alts),
            latest_altitude=latest,
            full_history=True,
        )
