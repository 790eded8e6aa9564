"""Per-object interpolation / extrapolation engine.

Polls arrive at irregular intervals; this store turns each pair of
consecutive samples into a continuous position function of wall-clock
time.  On every poll (a *tick*) the position currently on screen becomes
the new ``prev`` and the fresh sample becomes ``curr``; the per-frame read
then moves from one to the other over an animation window that tracks the
observed polling cadence.

At any instant an object is in exactly one of three motion regimes, see
:class:`MotionKind`.  Each regime is a pure evaluator in ``_EVALUATORS``.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from enum import StrEnum

from pyaeris._constants import METERS_PER_DEGREE
from pyaeris.config import MotionTuning
from pyaeris.geo import (
    clamp,
    dead_reckon,
    lerp,
    lerp_angle,
    normalize_lng,
    smoothstep,
    snap_lng_to_reference,
    wrapped_distance_sq,
)
from pyaeris.models.flight import FlightState
from pyaeris.state.arena import Arena

_logger = logging.getLogger(__name__)


class MotionKind(StrEnum):
    INTERPOLATE = "interpolate"
    """Inside the animation window, moving ``prev`` -> ``curr``."""
    SNAP = "snap"
    """Last sample jumped beyond the teleport threshold; shown as-is."""
    EXTRAPOLATE = "extrapolate"
    """Next sample is late; dead reckoning from ``curr``."""


@dataclass(frozen=True, slots=True)
class Snapshot:
    lng: float
    lat: float
    alt: float
    track: float


@dataclass(frozen=True, slots=True)
class AnimationState:
    """Motion of one object between two ticks.

    ``curr.lng`` is stored unwrapped relative to ``prev.lng`` so the
    interpolation always takes the short way across the antimeridian.
    """

    icao24: str
    prev: Snapshot
    curr: Snapshot
    data_timestamp: float
    anim_duration_ms: float
    speed_mps: float
    snapped: bool = False


@dataclass(frozen=True, slots=True)
class AnimatedPosition:
    """Render-ready position of one object at one instant."""

    icao24: str
    lng: float
    lat: float
    alt: float
    track: float
    motion: MotionKind
    flight: FlightState


def classify_motion(state: AnimationState, now_ms: float) -> MotionKind:
    if now_ms - state.data_timestamp > state.anim_duration_ms:
        return MotionKind.EXTRAPOLATE
    if state.snapped:
        return MotionKind.SNAP
    return MotionKind.INTERPOLATE


def _interpolate(state: AnimationState, now_ms: float, tuning: MotionTuning) -> Snapshot:
    t = clamp((now_ms - state.data_timestamp) / state.anim_duration_ms, 0.0, 1.0)
    prev, curr = state.prev, state.curr
    heading_t = smoothstep(smoothstep(smoothstep(t)))
    return Snapshot(
        lng=lerp(prev.lng, curr.lng, t),
        lat=lerp(prev.lat, curr.lat, t),
        alt=lerp(prev.alt, curr.alt, t),
        track=lerp_angle(prev.track, curr.track, heading_t),
    )


def _snap(state: AnimationState, now_ms: float, tuning: MotionTuning) -> Snapshot:
    return state.curr


def _extrapolate(state: AnimationState, now_ms: float, tuning: MotionTuning) -> Snapshot:
    curr = state.curr
    late_s = (now_ms - state.data_timestamp - state.anim_duration_ms) / 1000.0
    distance = min(state.speed_mps * late_s / METERS_PER_DEGREE, tuning.max_extrapolation_deg)
    lng, lat = dead_reckon(curr.lng, curr.lat, curr.track, distance)
    return Snapshot(lng=lng, lat=lat, alt=curr.alt, track=curr.track)


_EVALUATORS: dict[MotionKind, Callable[[AnimationState, float, MotionTuning], Snapshot]] = {
    MotionKind.INTERPOLATE: _interpolate,
    MotionKind.SNAP: _snap,
    MotionKind.EXTRAPOLATE: _extrapolate,
}


def evaluate(state: AnimationState, now_ms: float, tuning: MotionTuning) -> tuple[MotionKind, Snapshot]:
    """Position of *state* at *now_ms*, in the state's unwrapped frame."""
    kind = classify_motion(state, now_ms)
    return kind, _EVALUATORS[kind](state, now_ms, tuning)


class ObjectStateStore:
    """Continuous per-object motion from discrete polls."""

    def __init__(self, tuning: MotionTuning | None = None) -> None:
        self._tuning = tuning or MotionTuning()
        self._arena: Arena[AnimationState] = Arena()
        self._flights: dict[str, FlightState] = {}
        self._last_tick_at: float | None = None
        self._anim_duration_ms = self._tuning.default_anim_duration_ms

    def __len__(self) -> int:
        return len(self._arena)

    @property
    def anim_duration_ms(self) -> float:
        """Animation window applied at the latest tick."""
        return self._anim_duration_ms

    def _observe_cadence(self, now_ms: float) -> float:
        tuning = self._tuning
        if self._last_tick_at is not None and now_ms > self._last_tick_at:
            spacing = now_ms - self._last_tick_at
            self._anim_duration_ms = clamp(
                spacing * tuning.cadence_scale,
                tuning.min_anim_duration_ms,
                tuning.max_anim_duration_ms,
            )
        self._last_tick_at = now_ms
        return self._anim_duration_ms

    def _virtual_prev(self, curr: Snapshot, speed_mps: float, duration_ms: float) -> Snapshot:
        step = min(speed_mps * (duration_ms / 1000.0) / METERS_PER_DEGREE, self._tuning.virtual_prev_max_deg)
        lng, lat = dead_reckon(curr.lng, curr.lat, curr.track + 180.0, step)
        return Snapshot(lng=lng, lat=lat, alt=curr.alt, track=curr.track)

    def _advance(
        self,
        existing: AnimationState | None,
        flight: FlightState,
        now_ms: float,
        duration_ms: float,
    ) -> AnimationState:
        assert flight.longitude is not None and flight.latitude is not None  # noqa: S101
        tuning = self._tuning

        if existing is None:
            speed = flight.velocity if flight.velocity is not None else tuning.default_speed_mps
            curr = Snapshot(
                lng=flight.longitude,
                lat=flight.latitude,
                alt=flight.baro_altitude if flight.baro_altitude is not None else 0.0,
                track=flight.true_track if flight.true_track is not None else 0.0,
            )
            return AnimationState(
                icao24=flight.icao24,
                prev=self._virtual_prev(curr, speed, duration_ms),
                curr=curr,
                data_timestamp=now_ms,
                anim_duration_ms=duration_ms,
                speed_mps=speed,
            )

        last = existing.curr
        raw_lng = snap_lng_to_reference(flight.longitude, last.lng)
        if raw_lng == last.lng and flight.latitude == last.lat:
            # Upstream repeated the last fix; keep the running animation.
            return existing

        speed = flight.velocity if flight.velocity is not None else existing.speed_mps
        alt = flight.baro_altitude if flight.baro_altitude is not None else last.alt
        jump_sq = wrapped_distance_sq((last.lng, last.lat), (flight.longitude, flight.latitude))
        threshold = tuning.teleport_threshold_deg
        if jump_sq > threshold * threshold:
            _logger.debug("Teleport of %s by %.3f deg, snapping", flight.icao24, jump_sq**0.5)
            fix = Snapshot(
                lng=normalize_lng(flight.longitude),
                lat=flight.latitude,
                alt=alt,
                track=flight.true_track if flight.true_track is not None else last.track,
            )
            return AnimationState(
                icao24=flight.icao24,
                prev=fix,
                curr=fix,
                data_timestamp=now_ms,
                anim_duration_ms=duration_ms,
                speed_mps=speed,
                snapped=True,
            )

        _, shown = evaluate(existing, now_ms, tuning)
        shift = normalize_lng(shown.lng) - shown.lng
        prev = Snapshot(lng=shown.lng + shift, lat=shown.lat, alt=shown.alt, track=shown.track)
        track = last.track
        if flight.true_track is not None:
            track = lerp_angle(last.track, flight.true_track, tuning.heading_damping)
        curr = Snapshot(
            lng=snap_lng_to_reference(flight.longitude, prev.lng),
            lat=flight.latitude,
            alt=alt,
            track=track,
        )
        return AnimationState(
            icao24=flight.icao24,
            prev=prev,
            curr=curr,
            data_timestamp=now_ms,
            anim_duration_ms=duration_ms,
            speed_mps=speed,
        )

    def ingest(self, flights: Iterable[FlightState], now_ms: float) -> None:
        """Apply one poll batch (a tick).

        Objects absent from the batch are evicted immediately.  The new
        generation of states replaces the old one in a single assignment.
        """
        duration = self._observe_cadence(now_ms)
        slots: dict[str, AnimationState] = {}
        latest: dict[str, FlightState] = {}
        for flight in flights:
            if not flight.has_position:
                continue
            previous = slots.get(flight.icao24) or self._arena.get(flight.icao24)
            slots[flight.icao24] = self._advance(previous, flight, now_ms, duration)
            latest[flight.icao24] = flight
        evicted = len([key for key in self._arena if key not in slots])
        self._arena.replace_all(slots)
        self._flights = latest
        if evicted:
            _logger.debug("Evicted %d animation states", evicted)

    def state(self, icao24: str) -> AnimationState | None:
        return self._arena.get(icao24)

    def position(self, icao24: str, now_ms: float) -> AnimatedPosition | None:
        state = self._arena.get(icao24)
        flight = self._flights.get(icao24)
        if state is None or flight is None:
            return None
        kind, snap = evaluate(state, now_ms, self._tuning)
        return AnimatedPosition(
            icao24=icao24,
            lng=normalize_lng(snap.lng),
            lat=snap.lat,
            alt=snap.alt,
            track=snap.track,
            motion=kind,
            flight=flight,
        )

    def read(self, now_ms: float) -> list[AnimatedPosition]:
        """Positions of every tracked object, in batch order."""
        out: list[AnimatedPosition] = []
        for icao24 in self._flights:
            position = self.position(icao24, now_ms)
            if position is not None:
                out.append(position)
        return out

    def clear(self) -> None:
        self._arena.clear()
        self._flights = {}
        self._last_tick_at = None
        self._anim_duration_ms = self._tuning.default_anim_duration_ms
