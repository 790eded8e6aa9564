"""Per-object storage keyed by icao24.

Entries are inserted explicitly and evicted as a unit whenever their id
leaves the latest batch, so no per-object state outlives its aircraft.
"""

from __future__ import annotations

from collections.abc import Collection, Iterator
from typing import Generic, TypeVar

T = TypeVar("T")


class Arena(Generic[T]):
    def __init__(self) -> None:
        self._slots: dict[str, T] = {}

    def __len__(self) -> int:
        return len(self._slots)

    def __contains__(self, key: object) -> bool:
        return key in self._slots

    def __iter__(self) -> Iterator[str]:
        return iter(self._slots)

    def get(self, key: str) -> T | None:
        return self._slots.get(key)

    def insert(self, key: str, value: T) -> None:
        self._slots[key] = value

    def retain_only(self, keys: Collection[str]) -> list[str]:
        """Evict every entry whose id is not in *keys*; returns the evicted ids."""
        evicted = [key for key in self._slots if key not in keys]
        for key in evicted:
            del self._slots[key]
        return evicted

    def replace_all(self, slots: dict[str, T]) -> None:
        """Swap in a fully built generation of entries in one assignment."""
        self._slots = slots

    def clear(self) -> None:
        self._slots = {}
