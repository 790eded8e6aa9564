"""Client-side cache and loader for historical tracks.

The track endpoint is expensive and heavily rate limited, so tracks are
cached aggressively (positive and negative results with separate
lifetimes) and every 429 pushes back one global deadline shared by all
aircraft.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from pyaeris._clock import CancelToken, Scheduler
from pyaeris.config import TrackCacheTuning
from pyaeris.exceptions import AerisError
from pyaeris.models.results import TrackFetchResult
from pyaeris.models.track import FlightTrack
from pyaeris.state.budget import BackoffPolicy, RateBudget

_logger = logging.getLogger(__name__)

TrackFetcher = Callable[[str], Awaitable[TrackFetchResult]]


def track_backoff_policy(tuning: TrackCacheTuning) -> BackoffPolicy:
    return BackoffPolicy(
        initial_ms=tuning.backoff_initial_ms,
        multiplier=tuning.backoff_multiplier,
        min_ms=tuning.backoff_min_ms,
        max_ms=tuning.backoff_max_ms,
    )


@dataclass(frozen=True, slots=True)
class TrackCacheEntry:
    fetched_at: float
    next_allowed_at: float
    track: FlightTrack | None


class TrackCache:
    """Per-aircraft track cache plus the global track backoff budget."""

    def __init__(self, tuning: TrackCacheTuning | None = None, budget: RateBudget | None = None) -> None:
        self._tuning = tuning or TrackCacheTuning()
        self.budget = budget or RateBudget(track_backoff_policy(self._tuning))
        self._entries: dict[str, TrackCacheEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, icao24: str) -> TrackCacheEntry | None:
        return self._entries.get(icao24)

    def ttl_ms(self, track: FlightTrack | None) -> int:
        return self._tuning.positive_ttl_ms if track is not None else self._tuning.negative_ttl_ms

    def is_fresh(self, icao24: str, now_ms: float) -> bool:
        entry = self._entries.get(icao24)
        return entry is not None and now_ms - entry.fetched_at <= self.ttl_ms(entry.track)

    def should_fetch(self, icao24: str, now_ms: float) -> bool:
        """Whether a request for *icao24* is both needed and allowed now."""
        if self.budget.is_blocked(now_ms):
            return False
        entry = self._entries.get(icao24)
        if entry is None:
            return True
        if now_ms < entry.next_allowed_at:
            return False
        return not self.is_fresh(icao24, now_ms)

    def record(self, icao24: str, result: TrackFetchResult, now_ms: float) -> TrackCacheEntry:
        """Store a fetch outcome.

        A previously cached track survives rate-limited and empty answers
        (stale-while-revalidate).
        """
        next_allowed_at = now_ms
        if result.rate_limited:
            delay = self.budget.record_rate_limit(now_ms, result.retry_after_seconds, result.credits_remaining)
            next_allowed_at = now_ms + delay
            _logger.info("Track requests rate limited, backing off %.0f s", delay / 1000.0)
        else:
            self.budget.record_credits(result.credits_remaining)

        self._prune(icao24, now_ms)
        previous = self._entries.get(icao24)
        track = result.track if result.track is not None else (previous.track if previous else None)
        entry = TrackCacheEntry(fetched_at=now_ms, next_allowed_at=next_allowed_at, track=track)
        self._entries[icao24] = entry
        return entry

    def _prune(self, keep: str, now_ms: float) -> None:
        """Forget other aircraft whose entries are past the positive TTL."""
        ttl = self._tuning.positive_ttl_ms
        expired = [
            key
            for key, entry in self._entries.items()
            if key != keep and now_ms - entry.fetched_at > ttl and now_ms >= entry.next_allowed_at
        ]
        for key in expired:
            del self._entries[key]

    def clear(self) -> None:
        self._entries.clear()


class SelectedTrackLoader:
    """Loads the historical track of the currently selected aircraft.

    A selection change waits ``selection_debounce_ms`` before fetching so
    rapid clicking through aircraft does not burn track credits, and any
    fetch still running for the previous selection is cancelled.
    """

    def __init__(
        self,
        fetch: TrackFetcher,
        cache: TrackCache,
        *,
        scheduler: Scheduler,
        tuning: TrackCacheTuning | None = None,
    ) -> None:
        self._fetch = fetch
        self._cache = cache
        self._scheduler = scheduler
        self._tuning = tuning or TrackCacheTuning()
        self._icao24: str | None = None
        self._track: FlightTrack | None = None
        self._fetched_at: float = 0.0
        self._timer: CancelToken | None = None
        self._task: asyncio.Task[None] | None = None

    @property
    def icao24(self) -> str | None:
        return self._icao24

    @property
    def track(self) -> FlightTrack | None:
        return self._track

    @property
    def fetched_at_ms(self) -> float:
        """When the current track was fetched; 0 when there is none."""
        return self._fetched_at

    @property
    def loading(self) -> bool:
        return self._task is not None and not self._task.done()

    def select(self, icao24: str | None, *, enabled: bool = True) -> None:
        """Follow a new selection (or refresh the current one).

        With ``enabled=False`` cached data stays visible but nothing is
        fetched; the tracker disables fetching in chase mode and for
        aircraft on the ground.
        """
        key = icao24.strip().lower() if icao24 else None
        key_changed = key != self._icao24
        if not key_changed and enabled and (self.loading or self._timer is not None):
            return
        self._cancel_pending()
        self._icao24 = key

        if key is None:
            self._track = None
            self._fetched_at = 0.0
            return

        entry = self._cache.get(key)
        if entry is not None and entry.track is not None:
            self._track = entry.track
            self._fetched_at = entry.fetched_at
        elif key_changed:
            self._track = None
            self._fetched_at = 0.0

        if not enabled:
            return

        delay = self._tuning.selection_debounce_ms if key_changed else 0
        self._timer = self._scheduler.schedule_after(delay, lambda: self._start(key))

    def _start(self, icao24: str) -> None:
        self._timer = None
        if icao24 != self._icao24:
            return
        self._task = asyncio.get_running_loop().create_task(self._load(icao24))

    async def _load(self, icao24: str) -> None:
        if not self._cache.should_fetch(icao24, self._scheduler.now()):
            return
        try:
            result = await self._fetch(icao24)
        except AerisError as exc:
            _logger.warning("Failed to fetch track for %s: %s", icao24, exc)
            return
        except Exception:
            _logger.warning("Unexpected error fetching track for %s", icao24, exc_info=True)
            return
        if icao24 != self._icao24:
            return

        entry = self._cache.record(icao24, result, self._scheduler.now())
        self._track = entry.track
        self._fetched_at = entry.fetched_at

    async def wait(self) -> None:
        """Wait for the fetch in flight, if any."""
        task = self._task
        if task is not None and not task.done():
            await asyncio.gather(task, return_exceptions=True)

    def _cancel_pending(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    def cancel(self) -> None:
        """Cancel the debounce timer and any fetch in flight."""
        self._cancel_pending()
