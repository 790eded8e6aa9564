"""Bbox poll loop under a shared rate-limit budget."""

from __future__ import annotations

import asyncio
import logging
import math
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import StrEnum

from pyaeris._clock import CancelToken, Scheduler
from pyaeris.config import PollTuning
from pyaeris.exceptions import AerisError, AerisTimeoutError, AerisTransportError
from pyaeris.geo import Position
from pyaeris.models.flight import FlightState
from pyaeris.models.region import BoundingBox, Region
from pyaeris.models.results import FetchResult
from pyaeris.state.budget import BackoffPolicy, RateBudget

_logger = logging.getLogger(__name__)

BboxFetcher = Callable[[BoundingBox], Awaitable[FetchResult]]


def adaptive_interval(credits_remaining: int | None) -> int:
    """Delay in ms before the next poll, stepped by the remaining quota."""
    if credits_remaining is None or credits_remaining >= 2000:
        return 30_000
    if credits_remaining >= 800:
        return 60_000
    if credits_remaining >= 200:
        return 120_000
    return 300_000


class PollerStatus(StrEnum):
    IDLE = "idle"
    POLLING = "polling"
    OK = "ok"
    RATE_LIMITED = "rate_limited"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class PollBatch:
    """One successful poll."""

    flights: tuple[FlightState, ...]
    received_at: float
    bbox: BoundingBox
    chase_icao24: str | None = None
    credits_remaining: int | None = None


BatchListener = Callable[[PollBatch], None]
ErrorListener = Callable[[AerisError], None]


class PollScheduler:
    """Runs at most one poll at a time for the active region or chased aircraft.

    Every start of a poll cancels the poll still in flight and the pending
    timer, so a region or mode change never lets an older answer through.
    Rate limiting is a status with its own countdown (:attr:`retry_in`);
    failures are reported through ``on_error`` and retried after a fixed
    delay.  Nothing here raises into the caller.

    Parameters
    ----------
    fetch : BboxFetcher
        Coroutine function performing one bbox query.
    scheduler : Scheduler
        Clock and timers.
    budget : RateBudget or None
        Shared poll budget; a fixed-delay budget is created when omitted.
    tuning : PollTuning or None
        Timing parameters.
    on_batch, on_error
        Listeners for successful batches and failed polls.
    """

    def __init__(
        self,
        fetch: BboxFetcher,
        *,
        scheduler: Scheduler,
        budget: RateBudget | None = None,
        tuning: PollTuning | None = None,
        on_batch: BatchListener | None = None,
        on_error: ErrorListener | None = None,
    ) -> None:
        self._fetch = fetch
        self._scheduler = scheduler
        self._tuning = tuning or PollTuning()
        self._budget = budget or RateBudget(BackoffPolicy(initial_ms=self._tuning.rate_limit_fallback_ms))
        self._on_batch = on_batch
        self._on_error = on_error

        self._region: Region | None = None
        self._chase_icao24: str | None = None
        self._chase_center: Position | None = None

        self._status = PollerStatus.IDLE
        self._visible = True
        self._timer: CancelToken | None = None
        self._task: asyncio.Task[None] | None = None
        self._last_success_at: float | None = None
        self._next_poll_at: float | None = None
        self._retry_at: float | None = None
        self._last_error: AerisError | None = None

    # ------------------------------------------------------------------
    # Read-only state
    # ------------------------------------------------------------------

    @property
    def status(self) -> PollerStatus:
        return self._status

    @property
    def region(self) -> Region | None:
        return self._region

    @property
    def chase_icao24(self) -> str | None:
        return self._chase_icao24

    @property
    def chase_center(self) -> Position | None:
        return self._chase_center

    @property
    def visible(self) -> bool:
        return self._visible

    @property
    def budget(self) -> RateBudget:
        return self._budget

    @property
    def last_error(self) -> AerisError | None:
        return self._last_error

    @property
    def last_success_at(self) -> float | None:
        return self._last_success_at

    @property
    def next_poll_at(self) -> float | None:
        return self._next_poll_at

    @property
    def retry_in(self) -> int:
        """Whole seconds until the rate-limit penalty ends, 0 when not limited."""
        if self._status is not PollerStatus.RATE_LIMITED or self._retry_at is None:
            return 0
        return max(0, math.ceil((self._retry_at - self._scheduler.now()) / 1000.0))

    def current_bbox(self) -> BoundingBox | None:
        """Area the next poll will query."""
        tuning = self._tuning
        if self._chase_icao24 is not None and self._chase_center is not None:
            lng, lat = self._chase_center
            return BoundingBox.from_center(lng, lat, tuning.chase_radius_deg, max_radius_deg=tuning.max_region_radius_deg)
        if self._region is None:
            return None
        return self._region.bbox(tuning.max_region_radius_deg)

    # ------------------------------------------------------------------
    # Control
    # ------------------------------------------------------------------

    def set_region(self, region: Region | None) -> None:
        """Switch the wide query area and poll it right away.

        ``None`` stops polling.
        """
        self._region = region
        self._retry_at = None
        if region is None and self._chase_icao24 is None:
            self.stop()
            return
        self.poll_now()

    def chase(self, icao24: str, seed: Position | None = None) -> None:
        """Narrow polling to a small box around one aircraft.

        *seed* centres the box until a batch confirms the aircraft's
        position; every later batch containing it re-centres the box.
        """
        key = icao24.strip().lower()
        if key != self._chase_icao24:
            self._chase_center = None
        self._chase_icao24 = key
        if seed is not None and self._chase_center is None:
            self._chase_center = seed
        self.poll_now()

    def exit_chase(self) -> None:
        if self._chase_icao24 is None:
            return
        self._chase_icao24 = None
        self._chase_center = None
        if self._region is None:
            self.stop()
            return
        self.poll_now()

    def poll_now(self) -> None:
        """Cancel whatever is pending and start a poll immediately."""
        self._cancel()
        if self.current_bbox() is None:
            return
        self._task = asyncio.get_running_loop().create_task(self._poll())

    def set_visible(self, visible: bool) -> None:
        """Pause scheduling while hidden; resume or catch up when shown again."""
        if visible == self._visible:
            return
        self._visible = visible
        if not visible:
            self._cancel_timer()
            return

        if self.current_bbox() is None:
            return
        now = self._scheduler.now()
        if self._last_success_at is None or now - self._last_success_at > self._tuning.stale_resume_ms:
            _logger.debug("Resuming with stale data, polling now")
            self.poll_now()
            return
        if self._task is not None and not self._task.done():
            return
        remaining = (self._next_poll_at or now) - now
        self._arm(max(float(self._tuning.min_resume_delay_ms), remaining))

    def stop(self) -> None:
        """Cancel the timer and any poll in flight."""
        self._cancel()
        self._status = PollerStatus.IDLE
        self._next_poll_at = None
        self._retry_at = None

    async def wait(self) -> None:
        """Wait until the poll in flight (if any) has finished."""
        task = self._task
        if task is not None and not task.done():
            await asyncio.gather(task, return_exceptions=True)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _cancel(self) -> None:
        self._cancel_timer()
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    def _arm(self, delay_ms: float) -> None:
        self._cancel_timer()
        self._timer = self._scheduler.schedule_after(delay_ms, self._on_timer)

    def _schedule_next(self, delay_ms: float) -> None:
        self._next_poll_at = self._scheduler.now() + delay_ms
        if self._visible:
            self._arm(delay_ms)

    def _on_timer(self) -> None:
        self._timer = None
        self.poll_now()

    async def _poll(self) -> None:
        bbox = self.current_bbox()
        if bbox is None:
            return
        chase_icao24 = self._chase_icao24
        now = self._scheduler.now()

        if self._budget.is_blocked(now):
            remaining = self._budget.remaining_ms(now)
            self._status = PollerStatus.RATE_LIMITED
            self._retry_at = self._budget.next_allowed_at
            self._schedule_next(remaining)
            return

        self._status = PollerStatus.POLLING
        try:
            result = await asyncio.wait_for(self._fetch(bbox), timeout=self._tuning.request_timeout_s)
        except TimeoutError:
            self._fail(AerisTimeoutError(f"Poll timed out after {self._tuning.request_timeout_s:g} s"))
            return
        except AerisError as exc:
            self._fail(exc)
            return
        except Exception as exc:
            error = AerisTransportError(f"Poll failed unexpectedly: {exc!r}")
            error.__cause__ = exc
            self._fail(error)
            return

        now = self._scheduler.now()
        if result.rate_limited:
            delay = self._budget.record_rate_limit(now, result.retry_after_seconds, result.credits_remaining)
            self._status = PollerStatus.RATE_LIMITED
            self._retry_at = now + delay
            _logger.info("Rate limited, retrying in %.0f s", delay / 1000.0)
            self._schedule_next(delay)
            return

        self._budget.record_credits(result.credits_remaining)
        self._status = PollerStatus.OK
        self._retry_at = None
        self._last_error = None
        self._last_success_at = now

        if chase_icao24 is not None:
            match = next((f for f in result.flights if f.icao24 == chase_icao24 and f.has_position), None)
            if match is not None:
                self._chase_center = match.position

        batch = PollBatch(
            flights=result.flights,
            received_at=now,
            bbox=bbox,
            chase_icao24=chase_icao24,
            credits_remaining=self._budget.credits_remaining,
        )
        self._schedule_next(adaptive_interval(self._budget.credits_remaining))
        if self._on_batch is not None:
            self._on_batch(batch)

    def _fail(self, exc: AerisError) -> None:
        _logger.warning("Poll failed: %s", exc)
        self._status = PollerStatus.ERROR
        self._last_error = exc
        self._schedule_next(self._tuning.error_retry_ms)
        if self._on_error is not None:
            self._on_error(exc)
