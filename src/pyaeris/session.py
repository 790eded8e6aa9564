"""Session-scoped rate-limit and cache state."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict

from pyaeris.config import AerisConfig
from pyaeris.state.budget import BackoffPolicy, BudgetSnapshot, RateBudget
from pyaeris.state.track_cache import TrackCache, track_backoff_policy


class SessionSnapshot(BaseModel):
    """Persistable view of a :class:`SessionContext`.

    Only the budgets are persisted; cached tracks are cheap to lose.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    poll: BudgetSnapshot = BudgetSnapshot()
    tracks: BudgetSnapshot = BudgetSnapshot()


class SessionContext:
    """Owns every piece of mutable state that outlives a single poll.

    One context is created per session and passed to the poller and the
    track loader.  Call :meth:`reset` when the region or the upstream
    account changes.

    Parameters
    ----------
    config : AerisConfig
        Source of the backoff parameters.
    """

    def __init__(self, config: AerisConfig | None = None) -> None:
        self._config = config or AerisConfig()
        poll = self._config.poll
        self.poll_budget = RateBudget(BackoffPolicy(initial_ms=poll.rate_limit_fallback_ms))
        self.track_budget = RateBudget(track_backoff_policy(self._config.track_cache))
        self.track_cache = TrackCache(self._config.track_cache, self.track_budget)

    def reset(self) -> None:
        self.poll_budget.reset()
        self.track_budget.reset()
        self.track_cache.clear()

    def dump(self) -> SessionSnapshot:
        return SessionSnapshot(poll=self.poll_budget.snapshot(), tracks=self.track_budget.snapshot())

    def restore(self, snapshot: SessionSnapshot) -> None:
        """Merge a persisted snapshot; active penalties are never shortened."""
        self.poll_budget.restore(snapshot.poll)
        self.track_budget.restore(snapshot.tracks)
