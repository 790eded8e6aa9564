"""Injected time capability.

The poll loop, the track loader and the per-frame read never touch the
event loop clock directly.  They receive a :class:`Scheduler` so the same
code runs against the asyncio loop in production and against a
:class:`VirtualScheduler` in tests.  All times are epoch milliseconds.
"""

from __future__ import annotations

import asyncio
import heapq
import itertools
import time
from collections.abc import Callable
from typing import Protocol


class CancelToken(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """Clock plus one-shot timers."""

    def now(self) -> float: ...

    def schedule_after(self, delay_ms: float, callback: Callable[[], None]) -> CancelToken: ...


class AsyncioScheduler:
    """Scheduler backed by the running asyncio loop and the wall clock."""

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop

    def now(self) -> float:
        return time.time() * 1000.0

    def schedule_after(self, delay_ms: float, callback: Callable[[], None]) -> CancelToken:
        loop = self._loop or asyncio.get_running_loop()
        return loop.call_later(max(0.0, delay_ms) / 1000.0, callback)


class _VirtualTimer:
    __slots__ = ("cancelled",)

    def __init__(self) -> None:
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class VirtualScheduler:
    """Deterministic scheduler; time only moves when :meth:`advance` is called."""

    def __init__(self, start_ms: float = 0.0) -> None:
        self._now = float(start_ms)
        self._queue: list[tuple[float, int, _VirtualTimer, Callable[[], None]]] = []
        self._seq = itertools.count()

    def now(self) -> float:
        return self._now

    def schedule_after(self, delay_ms: float, callback: Callable[[], None]) -> CancelToken:
        timer = _VirtualTimer()
        due = self._now + max(0.0, delay_ms)
        heapq.heappush(self._queue, (due, next(self._seq), timer, callback))
        return timer

    @property
    def pending(self) -> list[float]:
        """Due times of the timers that are still armed."""
        return sorted(due for due, _, timer, _ in self._queue if not timer.cancelled)

    def advance(self, delta_ms: float) -> None:
        """Move the clock forward, firing every timer that falls due."""
        target = self._now + delta_ms
        while self._queue and self._queue[0][0] <= target:
            due, _, timer, callback = heapq.heappop(self._queue)
            if timer.cancelled:
                continue
            self._now = due
            callback()
        self._now = target
