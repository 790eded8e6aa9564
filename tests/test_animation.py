from __future__ import annotations

import math

import pytest

from pyaeris.config import MotionTuning
from pyaeris.models.flight import FlightState
from pyaeris.state.animation import (
    AnimationState,
    MotionKind,
    ObjectStateStore,
    Snapshot,
    classify_motion,
)

ICAO = "abc123"


def _flight(lng: float | None, lat: float | None, *, track: float = 90.0, velocity: float = 200.0, **kwargs) -> FlightState:
    return FlightState(
        icao24=kwargs.pop("icao24", ICAO),
        longitude=lng,
        latitude=lat,
        baro_altitude=kwargs.pop("baro_altitude", 10_000.0),
        true_track=track,
        velocity=velocity,
        **kwargs,
    )


def _two_ticks(store: ObjectStateStore, second: FlightState) -> None:
    store.ingest([_flight(10.0, 50.0)], 0)
    store.ingest([second], 30_000)


def test_read_at_window_start_equals_prev_and_at_end_equals_curr() -> None:
    store = ObjectStateStore()
    _two_ticks(store, _flight(10.05, 50.02))
    state = store.state(ICAO)
    assert state is not None

    start = store.position(ICAO, 30_000)
    end = store.position(ICAO, 30_000 + state.anim_duration_ms)
    assert start is not None and end is not None

    assert (start.lng, start.lat) == (pytest.approx(state.prev.lng), pytest.approx(state.prev.lat))
    assert (end.lng, end.lat) == (pytest.approx(state.curr.lng), pytest.approx(state.curr.lat))
    assert end.lng == pytest.approx(10.05)
    assert end.lat == pytest.approx(50.02)
    assert start.motion is MotionKind.INTERPOLATE


def test_prev_is_the_position_on_screen_at_tick_time() -> None:
    store = ObjectStateStore()
    store.ingest([_flight(10.0, 50.0)], 0)
    store.ingest([_flight(10.04, 50.0)], 30_000)
    mid_window = 30_000 + 10_000
    shown = store.position(ICAO, mid_window)
    assert shown is not None

    store.ingest([_flight(10.08, 50.0)], mid_window)
    state = store.state(ICAO)
    assert state is not None

    assert state.prev.lng == pytest.approx(shown.lng)
    assert state.prev.lat == pytest.approx(shown.lat)


def test_interpolation_is_linear_in_position() -> None:
    store = ObjectStateStore()
    _two_ticks(store, _flight(10.1, 50.0))
    state = store.state(ICAO)
    assert state is not None

    half = store.position(ICAO, 30_000 + state.anim_duration_ms / 2)
    assert half is not None
    assert half.lng == pytest.approx((state.prev.lng + state.curr.lng) / 2)


def test_teleport_snaps_without_in_between_frame() -> None:
    store = ObjectStateStore()
    _two_ticks(store, _flight(11.0, 50.0))

    shown = store.position(ICAO, 30_001)
    assert shown is not None
    assert shown.motion is MotionKind.SNAP
    assert (shown.lng, shown.lat) == (11.0, 50.0)


def test_late_data_extrapolates_with_capped_distance() -> None:
    tuning = MotionTuning()
    store = ObjectStateStore(tuning)
    store.ingest([_flight(10.0, 50.0, track=90.0)], 0)
    state = store.state(ICAO)
    assert state is not None

    far_future = store.position(ICAO, 10 * 60_000)
    assert far_future is not None
    assert far_future.motion is MotionKind.EXTRAPOLATE
    expected = state.curr.lng + tuning.max_extrapolation_deg / math.cos(math.radians(50.0))
    assert far_future.lng == pytest.approx(expected)
    assert far_future.lat == pytest.approx(50.0)


def test_extrapolation_grows_with_lateness_before_cap() -> None:
    store = ObjectStateStore()
    store.ingest([_flight(10.0, 50.0, track=0.0, velocity=100.0)], 0)

    one_second_late = store.position(ICAO, 30_000 + 1_000)
    assert one_second_late is not None
    assert one_second_late.lat == pytest.approx(50.0 + 100.0 / 111_320.0)


def test_new_object_glides_in_from_virtual_prev() -> None:
    tuning = MotionTuning()
    store = ObjectStateStore(tuning)
    store.ingest([_flight(10.0, 50.0, track=90.0)], 0)
    state = store.state(ICAO)
    assert state is not None

    assert state.prev.lng < state.curr.lng
    assert state.prev.lat == pytest.approx(state.curr.lat)
    step = (state.curr.lng - state.prev.lng) * math.cos(math.radians(50.0))
    assert step == pytest.approx(tuning.virtual_prev_max_deg)


def test_heading_is_damped_toward_raw_heading() -> None:
    store = ObjectStateStore(MotionTuning(heading_damping=0.6))
    store.ingest([_flight(10.0, 50.0, track=0.0)], 0)
    store.ingest([_flight(10.0, 50.01, track=100.0)], 30_000)
    state = store.state(ICAO)
    assert state is not None

    assert state.curr.track == pytest.approx(60.0)


@pytest.mark.parametrize(
    ("spacing_ms", "expected_ms"),
    [(10_000, 9_000), (100_000, 45_000), (5_000, 8_000)],
)
def test_animation_window_tracks_poll_cadence(spacing_ms: int, expected_ms: float) -> None:
    store = ObjectStateStore()
    assert store.anim_duration_ms == 30_000

    store.ingest([_flight(10.0, 50.0)], 0)
    store.ingest([_flight(10.01, 50.0)], spacing_ms)

    assert store.anim_duration_ms == pytest.approx(expected_ms)


def test_repeated_sample_keeps_running_animation() -> None:
    store = ObjectStateStore()
    _two_ticks(store, _flight(10.05, 50.0))
    before = store.state(ICAO)

    store.ingest([_flight(10.05, 50.0)], 40_000)

    assert store.state(ICAO) is before


def test_absent_objects_are_evicted_immediately() -> None:
    store = ObjectStateStore()
    store.ingest([_flight(10.0, 50.0), _flight(11.0, 51.0, icao24="def456")], 0)
    store.ingest([_flight(11.0, 51.0, icao24="def456")], 30_000)

    assert store.state(ICAO) is None
    assert len(store) == 1
    assert [p.icao24 for p in store.read(30_000)] == ["def456"]


def test_samples_without_position_never_reach_the_store() -> None:
    store = ObjectStateStore()
    store.ingest([_flight(None, 50.0)], 0)

    assert len(store) == 0
    assert store.read(0) == []


def test_antimeridian_interpolation_takes_short_way() -> None:
    store = ObjectStateStore()
    store.ingest([_flight(179.99, 0.0)], 0)
    store.ingest([_flight(-179.99, 0.0)], 30_000)
    state = store.state(ICAO)
    assert state is not None
    assert not state.snapped
    assert abs(state.curr.lng - state.prev.lng) < 1.0

    for step in range(11):
        shown = store.position(ICAO, 30_000 + state.anim_duration_ms * step / 10)
        assert shown is not None
        assert -180.0 <= shown.lng < 180.0


def test_read_returns_batch_order() -> None:
    store = ObjectStateStore()
    store.ingest([_flight(11.0, 51.0, icao24="def456"), _flight(10.0, 50.0)], 0)

    assert [p.icao24 for p in store.read(0)] == ["def456", ICAO]


def test_classify_motion_covers_every_branch() -> None:
    snap = Snapshot(lng=0.0, lat=0.0, alt=0.0, track=0.0)
    state = AnimationState(
        icao24=ICAO, prev=snap, curr=snap, data_timestamp=0.0, anim_duration_ms=1_000.0, speed_mps=100.0
    )
    snapped = AnimationState(
        icao24=ICAO,
        prev=snap,
        curr=snap,
        data_timestamp=0.0,
        anim_duration_ms=1_000.0,
        speed_mps=100.0,
        snapped=True,
    )

    assert classify_motion(state, 500) is MotionKind.INTERPOLATE
    assert classify_motion(snapped, 500) is MotionKind.SNAP
    assert classify_motion(state, 1_001) is MotionKind.EXTRAPOLATE
    assert classify_motion(snapped, 1_001) is MotionKind.EXTRAPOLATE
