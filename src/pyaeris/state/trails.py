"""Bounded per-object path history with robust altitude filtering."""

from __future__ import annotations

import logging
import statistics
from collections import deque
from collections.abc import Iterable
from dataclasses import dataclass, field

from pyaeris._constants import METERS_PER_DEGREE
from pyaeris.config import TrailTuning
from pyaeris.geo import Position, dead_reckon, snap_lng_to_reference
from pyaeris.models.flight import FlightState
from pyaeris.state.arena import Arena

_logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class TrailEntry:
    """Immutable trail snapshot handed to renderers.

    ``full_history`` marks trails that were reconciled with a historical
    track rather than built from live polls alone.
    """

    icao24: str
    path: tuple[Position, ...]
    altitudes: tuple[float | None, ...]
    latest_altitude: float | None
    full_history: bool = False


@dataclass
class AltitudeFilterState:
    filtered: float | None = None
    recent: deque[float] = field(default_factory=deque)
    outlier_streak: int = 0


class AltitudeFilter:
    """Median/MAD outlier guard followed by clamped exponential smoothing.

    Barometric altitude occasionally jumps by thousands of metres for a
    single sample.  A reading far from the median of the recently filtered
    values is an outlier: it may only move the output by a small clamped
    step.  When outliers persist for ``altitude_trusted_streak`` samples
    the aircraft is assumed to be genuinely climbing or descending and the
    reading is trusted again.
    """

    def __init__(self, tuning: TrailTuning) -> None:
        self._tuning = tuning

    def new_state(self) -> AltitudeFilterState:
        return AltitudeFilterState(recent=deque(maxlen=self._tuning.altitude_window))

    def update(self, state: AltitudeFilterState, raw: float | None) -> float | None:
        if raw is None:
            return None
        tuning = self._tuning

        if state.filtered is None:
            state.filtered = raw
            state.recent.append(raw)
            return raw

        med = statistics.median(state.recent)
        mad = statistics.median(abs(x - med) for x in state.recent)
        threshold = tuning.altitude_outlier_base_m + tuning.altitude_outlier_scale * max(
            tuning.altitude_mad_floor_m, mad
        )

        is_outlier = abs(raw - med) > threshold
        state.outlier_streak = state.outlier_streak + 1 if is_outlier else 0
        trusted = not is_outlier or state.outlier_streak >= tuning.altitude_trusted_streak
        max_step = tuning.altitude_hard_step_m if trusted else tuning.altitude_soft_step_m
        alpha = tuning.altitude_alpha_trusted if trusted else tuning.altitude_alpha_guarded

        delta = max(-max_step, min(max_step, raw - state.filtered))
        state.filtered = state.filtered + delta * alpha
        state.recent.append(state.filtered)
        return state.filtered


@dataclass
class _Trail:
    points: deque[Position]
    altitudes: deque[float | None]
    filter_state: AltitudeFilterState


class TrailStore:
    """Ordered, length-bounded position history per object.

    Consecutive accepted positions further apart than the jump threshold
    clear the trail first, so a bad fix never draws a long spurious
    segment.  Longitudes are stored unwrapped relative to the previous
    point.
    """

    def __init__(self, tuning: TrailTuning | None = None) -> None:
        self._tuning = tuning or TrailTuning()
        self._altitude = AltitudeFilter(self._tuning)
        self._arena: Arena[_Trail] = Arena()
        self._order: list[str] = []
        self._bootstrap_remaining = self._tuning.bootstrap_updates

    def __len__(self) -> int:
        return len(self._arena)

    @property
    def bootstrapping(self) -> bool:
        return self._bootstrap_remaining > 0

    def _new_trail(self) -> _Trail:
        cap = self._tuning.max_points
        return _Trail(
            points=deque(maxlen=cap),
            altitudes=deque(maxlen=cap),
            filter_state=self._altitude.new_state(),
        )

    def _bootstrap_tail(self, flight: FlightState) -> list[Position]:
        """Dead-reckoned positions leading up to the first fix, oldest first."""
        assert flight.longitude is not None and flight.latitude is not None  # noqa: S101
        tuning = self._tuning
        heading = flight.true_track if flight.true_track is not None else 0.0
        speed = flight.velocity if flight.velocity is not None else tuning.default_speed_mps
        deg_per_second = speed / METERS_PER_DEGREE

        polls: list[Position] = []
        for i in range(tuning.bootstrap_polls, 0, -1):
            decay = 1.0 - (tuning.bootstrap_polls - i) * tuning.bootstrap_decay
            distance = min(deg_per_second * tuning.bootstrap_step_s * i * decay, tuning.bootstrap_max_deg)
            polls.append(dead_reckon(flight.longitude, flight.latitude, heading + 180.0, distance))
        return polls

    def update(self, flights: Iterable[FlightState]) -> list[TrailEntry]:
        """Grow trails from one poll batch and return the renderable ones."""
        tuning = self._tuning
        batch: list[FlightState] = [f for f in flights if f.has_position]
        present: set[str] = set()

        for flight in batch:
            assert flight.longitude is not None and flight.latitude is not None  # noqa: S101
            icao24 = flight.icao24
            present.add(icao24)

            trail = self._arena.get(icao24)
            if trail is None:
                trail = self._new_trail()
                self._arena.insert(icao24, trail)
                altitude = self._altitude.update(trail.filter_state, flight.baro_altitude)
                if self.bootstrapping:
                    for point in self._bootstrap_tail(flight):
                        trail.points.append(point)
                        trail.altitudes.append(altitude)
            else:
                altitude = self._altitude.update(trail.filter_state, flight.baro_altitude)

            lng, lat = flight.longitude, flight.latitude
            if trail.points:
                last_lng, last_lat = trail.points[-1]
                lng = snap_lng_to_reference(lng, last_lng)
                dx = lng - last_lng
                dy = lat - last_lat
                if dx * dx + dy * dy > tuning.jump_threshold_deg * tuning.jump_threshold_deg:
                    _logger.debug("Trail jump for %s, clearing %d points", icao24, len(trail.points))
                    trail.points.clear()
                    trail.altitudes.clear()
                    lng = flight.longitude

            trail.points.append((lng, lat))
            trail.altitudes.append(altitude)

        evicted = self._arena.retain_only(present)
        if evicted:
            _logger.debug("Evicted %d trails", len(evicted))

        if self._bootstrap_remaining > 0 and batch:
            self._bootstrap_remaining -= 1

        self._order = [f.icao24 for f in batch]
        return self.entries()

    def get(self, icao24: str) -> TrailEntry | None:
        """Snapshot of one trail, or ``None`` when it has fewer than two points."""
        trail = self._arena.get(icao24)
        if trail is None or len(trail.points) < 2:
            return None
        altitudes = tuple(trail.altitudes)
        return TrailEntry(
            icao24=icao24,
            path=tuple(trail.points),
            altitudes=altitudes,
            latest_altitude=altitudes[-1],
        )

    def entries(self) -> list[TrailEntry]:
        """Renderable trails in batch order."""
        seen: set[str] = set()
        out: list[TrailEntry] = []
        for icao24 in self._order:
            if icao24 in seen:
                continue
            seen.add(icao24)
            entry = self.get(icao24)
            if entry is not None:
                out.append(entry)
        return out

    def clear(self) -> None:
        self._arena.clear()
        self._order = []
        self._bootstrap_remaining = self._tuning.bootstrap_updates
