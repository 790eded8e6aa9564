"""High-level live tracker wiring the poller to the stores."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from pyaeris._clock import AsyncioScheduler, Scheduler
from pyaeris.config import AerisConfig
from pyaeris.exceptions import AerisError
from pyaeris.geo import Position
from pyaeris.models.flight import FlightState, with_position
from pyaeris.models.region import Region
from pyaeris.poller import BboxFetcher, PollBatch, PollerStatus, PollScheduler
from pyaeris.session import SessionContext
from pyaeris.state.animation import AnimatedPosition, ObjectStateStore
from pyaeris.state.reconcile import TrackReconciler
from pyaeris.state.track_cache import SelectedTrackLoader, TrackFetcher
from pyaeris.state.trails import TrailEntry, TrailStore

_logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class TrackerStatus:
    poller: PollerStatus
    retry_in: int = 0
    last_error: str | None = None
    credits_remaining: int | None = None
    selected: str | None = None
    chasing: str | None = None
    track_loading: bool = False


@dataclass(frozen=True, slots=True)
class Frame:
    """Everything a renderer needs for one instant."""

    flights: tuple[AnimatedPosition, ...]
    trails: tuple[TrailEntry, ...]
    status: TrackerStatus


class LiveTracker:
    """Polls a region and turns the batches into per-frame render data.

    Usage::

        async with AerisClient() as client:
            tracker = LiveTracker(client.fetch_flights, client.fetch_track)
            tracker.set_region(Region(name="Zurich", longitude=8.55, latitude=47.45))
            ...
            frame = tracker.frame()

    Parameters
    ----------
    fetch_flights : BboxFetcher
        Bbox query coroutine function.
    fetch_track : TrackFetcher or None
        Historical-track coroutine function; without it selected aircraft
        only show their live trail.
    config : AerisConfig or None
        Tuning; defaults to ``AerisConfig()``.
    scheduler : Scheduler or None
        Clock and timers; defaults to the running asyncio loop.
    session : SessionContext or None
        Budgets and caches shared with other trackers of the same session.
    """

    def __init__(
        self,
        fetch_flights: BboxFetcher,
        fetch_track: TrackFetcher | None = None,
        *,
        config: AerisConfig | None = None,
        scheduler: Scheduler | None = None,
        session: SessionContext | None = None,
    ) -> None:
        self._config = config or AerisConfig()
        self._scheduler = scheduler or AsyncioScheduler()
        self.session = session or SessionContext(self._config)

        self.objects = ObjectStateStore(self._config.motion)
        self.trails = TrailStore(self._config.trail)
        self.reconciler = TrackReconciler(self._config.reconcile)
        self.poller = PollScheduler(
            fetch_flights,
            scheduler=self._scheduler,
            budget=self.session.poll_budget,
            tuning=self._config.poll,
            on_batch=self._on_batch,
            on_error=self._on_error,
        )
        self.track_loader: SelectedTrackLoader | None = None
        if fetch_track is not None:
            self.track_loader = SelectedTrackLoader(
                fetch_track,
                self.session.track_cache,
                scheduler=self._scheduler,
                tuning=self._config.track_cache,
            )

        self._flights: dict[str, FlightState] = {}
        self._selected: str | None = None
        self._selected_missing_since: float | None = None
        self._chase_misses = 0

    @property
    def selected(self) -> str | None:
        return self._selected

    @property
    def chasing(self) -> str | None:
        return self.poller.chase_icao24

    # ------------------------------------------------------------------
    # Control
    # ------------------------------------------------------------------

    def set_region(self, region: Region | None) -> None:
        """Watch a new region; live stores and the selection start over."""
        self.objects.clear()
        self.trails.clear()
        self._flights = {}
        self.select(None)
        self.poller.set_region(region)

    def select(self, icao24: str | None) -> None:
        key = icao24.strip().lower() if icao24 else None
        self._selected = key
        self._selected_missing_since = None
        self._refresh_track_loader()

    def chase(self, icao24: str, seed: Position | None = None) -> None:
        """Follow one aircraft with a narrow query box."""
        key = icao24.strip().lower()
        if seed is None:
            flight = self._flights.get(key)
            seed = flight.position if flight is not None else None
        self._chase_misses = 0
        self.poller.chase(key, seed)
        self._refresh_track_loader()

    def exit_chase(self) -> None:
        self._chase_misses = 0
        self.poller.exit_chase()
        self._refresh_track_loader()

    def set_visible(self, visible: bool) -> None:
        self.poller.set_visible(visible)

    def reset(self) -> None:
        """Forget budgets and cached tracks (e.g. after switching upstream account)."""
        self.session.reset()

    def stop(self) -> None:
        self.poller.stop()
        if self.track_loader is not None:
            self.track_loader.cancel()

    # ------------------------------------------------------------------
    # Batch handling
    # ------------------------------------------------------------------

    def _refresh_track_loader(self) -> None:
        if self.track_loader is None:
            return
        if self._selected is None:
            self.track_loader.select(None)
            return
        flight = self._flights.get(self._selected)
        on_ground = flight is not None and flight.on_ground
        enabled = self.poller.chase_icao24 is None and not on_ground
        self.track_loader.select(self._selected, enabled=enabled)

    def _on_error(self, exc: AerisError) -> None:
        _logger.debug("Tracker keeps the previous batch after error: %s", exc)

    def _on_batch(self, batch: PollBatch) -> None:
        flights = with_position(list(batch.flights))
        self._flights = {f.icao24: f for f in flights}
        self.objects.ingest(flights, batch.received_at)
        self.trails.update(flights)

        if batch.chase_icao24 is not None and batch.chase_icao24 == self.poller.chase_icao24:
            chased = self._flights.get(batch.chase_icao24)
            if chased is None:
                self._chase_misses += 1
            else:
                self._chase_misses = 0
            if chased is not None and chased.on_ground:
                _logger.info("Chased aircraft %s landed, leaving chase mode", batch.chase_icao24)
                self.exit_chase()
            elif self._chase_misses >= self._config.chase_max_misses:
                _logger.info("Lost chased aircraft %s, leaving chase mode", batch.chase_icao24)
                self.exit_chase()

        self._check_selection(batch.received_at)
        if self._selected is not None:
            self._refresh_track_loader()

    def _check_selection(self, now_ms: float) -> None:
        if self._selected is None:
            return
        if self._selected in self._flights:
            self._selected_missing_since = None
            return
        if self._selected_missing_since is None:
            self._selected_missing_since = now_ms
        elif now_ms - self._selected_missing_since >= self._config.selection_missing_timeout_ms:
            _logger.debug("Selected aircraft %s gone, clearing selection", self._selected)
            self.select(None)

    # ------------------------------------------------------------------
    # Per-frame read
    # ------------------------------------------------------------------

    def _selected_trail(self, positions: list[AnimatedPosition]) -> TrailEntry | None:
        assert self._selected is not None  # noqa: S101
        live_trail = self.trails.get(self._selected)
        loader = self.track_loader
        if loader is None or loader.icao24 != self._selected or loader.track is None:
            return live_trail

        animated = next((p for p in positions if p.icao24 == self._selected), None)
        return self.reconciler.reconcile(
            loader.track,
            live_trail,
            flight=self._flights.get(self._selected),
            position=(animated.lng, animated.lat) if animated is not None else None,
            heading=animated.track if animated is not None else None,
            fetched_at_ms=loader.fetched_at_ms,
        )

    def frame(self, now_ms: float | None = None) -> Frame:
        """Render-ready snapshot of every tracked aircraft at *now_ms*."""
        now = self._scheduler.now() if now_ms is None else now_ms
        self._check_selection(now)
        positions = self.objects.read(now)
        trails = self.trails.entries()

        if self._selected is not None:
            merged = self._selected_trail(positions)
            index = next((i for i, t in enumerate(trails) if t.icao24 == self._selected), None)
            if index is not None:
                if merged is None:
                    del trails[index]
                else:
                    trails[index] = merged
            elif merged is not None:
                trails.append(merged)

        poller = self.poller
        return Frame(
            flights=tuple(positions),
            trails=tuple(trails),
            status=TrackerStatus(
                poller=poller.status,
                retry_in=poller.retry_in,
                last_error=str(poller.last_error) if poller.last_error is not None else None,
                credits_remaining=poller.budget.credits_remaining,
                selected=self._selected,
                chasing=poller.chase_icao24,
                track_loading=self.track_loader.loading if self.track_loader is not None else False,
            ),
        )
