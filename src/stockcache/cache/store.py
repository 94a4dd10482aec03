"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Bounded in-memory TTL store with FIFO-by-write eviction.
"""

from __future__ import annotations

import re
from collections.abc import Iterator
from typing import Generic, TypeVar

from ..clock import Clock, MonotonicClock
from ..errors import CacheConfigError
from .types import CacheEntry

T = TypeVar("T")


class TTLCacheStore(Generic[T]):
    """
    Key -> `CacheEntry` mapping capped at `max_size` rows.

    Every `set` re-inserts its key at the tail of an insertion-ordered dict,
    so the head is always the entry with the oldest write time. Reads never
    reorder rows: eviction is FIFO by write, not LRU.
    """

    def __init__(
        self,
        *,
        max_size: int = 500,
        default_ttl_s: float = 60.0,
        clock: Clock | None = None,
    ) -> None:
        if max_size < 1:
            raise CacheConfigError("max_size must be >= 1")
        if default_ttl_s <= 0:
            raise CacheConfigError("default_ttl_s must be > 0")
        self._rows: dict[str, CacheEntry[T]] = {}
        self._max_size = max_size
        self._default_ttl_s = default_ttl_s
        self._clock: Clock = clock or MonotonicClock()

    @property
    def max_size(self) -> int:
        return self._max_size

    @property
    def default_ttl_s(self) -> float:
        return self._default_ttl_s

    def lookup(self, key: str) -> CacheEntry[T] | None:
        """Return the valid entry for `key`, dropping it if it has expired."""
        row = self._rows.get(key)
        if row is None:
            return None
        if not row.is_valid(self._clock.now()):
            self._rows.pop(key, None)
            return None
        return row

    def get(self, key: str) -> T | None:
        row = self.lookup(key)
        return None if row is None else row.data

    def set(self, key: str, data: T, ttl_s: float | None = None) -> str | None:
        """
        Insert or overwrite `key`.

        A missing or non-positive `ttl_s` falls back to the default TTL.
        Returns the key evicted to make room, if any.
        """
        ttl = ttl_s if ttl_s is not None and ttl_s > 0 else self._default_ttl_s

        evicted: str | None = None
        existing = self._rows.pop(key, None)
        if existing is None and len(self._rows) >= self._max_size:
            evicted = self.evict_oldest()

        now = self._clock.now()
        self._rows[key] = CacheEntry(data=data, written_at_s=now, expires_at_s=now + ttl)
        return evicted

    def evict_oldest(self) -> str | None:
        """Drop the single entry with the oldest write time."""
        oldest = next(iter(self._rows), None)
        if oldest is not None:
            del self._rows[oldest]
        return oldest

    def delete(self, key: str) -> bool:
        return self._rows.pop(key, None) is not None

    def delete_matching(self, pattern: re.Pattern[str]) -> int:
        doomed = [key for key in self._rows if pattern.search(key)]
        for key in doomed:
            del self._rows[key]
        return len(doomed)

    def purge_expired(self) -> int:
        """Remove every expired row; returns how many were dropped."""
        now = self._clock.now()
        expired = [key for key, row in self._rows.items() if not row.is_valid(now)]
        for key in expired:
            del self._rows[key]
        return len(expired)

    def clear(self) -> None:
        self._rows.clear()

    def keys(self) -> Iterator[str]:
        """Stored keys in write order, expired rows included."""
        return iter(list(self._rows))

    def __len__(self) -> int:
        return len(self._rows)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.lookup(key) is not None
