"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Registry of in-flight fetches, one shared future per key.
"""

from __future__ import annotations

import asyncio
import re
from typing import Any

from ..clock import Clock, MonotonicClock
from .types import PendingRequest


class PendingRequestRegistry:
    """Holds at most one unsettled fetch per key."""

    def __init__(self, *, clock: Clock | None = None) -> None:
        self._rows: dict[str, PendingRequest] = {}
        self._clock: Clock = clock or MonotonicClock()

    def get(self, key: str) -> PendingRequest | None:
        return self._rows.get(key)

    def register(self, key: str, future: asyncio.Future[Any]) -> PendingRequest:
        existing = self._rows.get(key)
        if existing is not None and existing.future is not future:
            raise RuntimeError(f"Fetch already pending for key '{key}'")
        row = PendingRequest(future=future, started_at_s=self._clock.now())
        self._rows[key] = row
        return row

    def discard(self, key: str, future: asyncio.Future[Any] | None = None) -> bool:
        """
        Remove the entry for `key`.

        When `future` is given, only an entry holding that exact future is
        removed; a newer fetch registered under the same key is left alone.
        """
        row = self._rows.get(key)
        if row is None:
            return False
        if future is not None and row.future is not future:
            return False
        del self._rows[key]
        return True

    def delete_matching(self, pattern: re.Pattern[str]) -> int:
        doomed = [key for key in self._rows if pattern.search(key)]
        for key in doomed:
            del self._rows[key]
        return len(doomed)

    def purge_stale(self, max_age_s: float) -> int:
        """Forget entries older than `max_age_s`. The fetches keep running."""
        now = self._clock.now()
        stale = [
            key for key, row in self._rows.items() if now - row.started_at_s > max_age_s
        ]
        for key in stale:
            del self._rows[key]
        return len(stale)

    def clear(self) -> None:
        self._rows.clear()

    def __len__(self) -> int:
        return len(self._rows)

    def __contains__(self, key: object) -> bool:
        return key in self._rows
