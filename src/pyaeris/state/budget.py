"""Shared rate-limit budget."""

from __future__ import annotations

import math
from dataclasses import dataclass, field

from pydantic import BaseModel, ConfigDict


@dataclass(frozen=True, slots=True)
class BackoffPolicy:
    """How the penalty delay evolves across consecutive rate-limit answers.

    A ``multiplier`` of 1 gives a fixed delay.
    """

    initial_ms: float
    multiplier: float = 1.0
    min_ms: float = 0.0
    max_ms: float = math.inf


class BudgetSnapshot(BaseModel):
    """Persistable view of a :class:`RateBudget`."""

    model_config = ConfigDict(frozen=True)

    credits_remaining: int | None = None
    next_allowed_at: float = 0.0
    backoff_ms: float | None = None


@dataclass
class RateBudget:
    """Credits, penalty deadline and escalating backoff for one endpoint family.

    ``next_allowed_at`` never moves backwards while a penalty is active.
    """

    policy: BackoffPolicy
    credits_remaining: int | None = None
    next_allowed_at: float = 0.0
    backoff_ms: float = field(init=False)

    def __post_init__(self) -> None:
        self.backoff_ms = self.policy.initial_ms

    def is_blocked(self, now_ms: float) -> bool:
        return now_ms < self.next_allowed_at

    def remaining_ms(self, now_ms: float) -> float:
        return max(0.0, self.next_allowed_at - now_ms)

    def record_credits(self, credits_remaining: int | None) -> None:
        if credits_remaining is not None:
            self.credits_remaining = credits_remaining

    def record_rate_limit(
        self,
        now_ms: float,
        retry_after_seconds: float | None = None,
        credits_remaining: int | None = None,
    ) -> float:
        """Apply a 429 answer and return the delay until the next attempt.

        A positive server hint wins over the current backoff; the backoff
        escalates either way.
        """
        self.record_credits(credits_remaining)
        if retry_after_seconds is not None and retry_after_seconds > 0:
            delay = max(1.0, float(retry_after_seconds)) * 1000.0
        else:
            delay = self.backoff_ms
        self.next_allowed_at = max(self.next_allowed_at, now_ms + delay)
        escalated = math.floor(self.backoff_ms * self.policy.multiplier)
        self.backoff_ms = min(self.policy.max_ms, max(self.policy.min_ms, escalated))
        return delay

    def reset(self) -> None:
        self.credits_remaining = None
        self.next_allowed_at = 0.0
        self.backoff_ms = self.policy.initial_ms

    def snapshot(self) -> BudgetSnapshot:
        return BudgetSnapshot(
            credits_remaining=self.credits_remaining,
            next_allowed_at=self.next_allowed_at,
            backoff_ms=self.backoff_ms,
        )

    def restore(self, snapshot: BudgetSnapshot) -> None:
        """Merge a persisted snapshot; an active penalty is never shortened."""
        if snapshot.credits_remaining is not None:
            self.credits_remaining = snapshot.credits_remaining
        if snapshot.next_allowed_at > 0:
            self.next_allowed_at = max(self.next_allowed_at, snapshot.next_allowed_at)
        if snapshot.backoff_ms is not None and snapshot.backoff_ms > 0:
            self.backoff_ms = min(self.policy.max_ms, max(self.policy.min_ms, snapshot.backoff_ms))
