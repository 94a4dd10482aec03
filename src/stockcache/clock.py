"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Time sources and deferred-callback scheduling shared by caches and batchers.
"""

from __future__ import annotations

import asyncio
import heapq
import itertools
import time
from collections.abc import Callable
from typing import Protocol


class TimerHandle(Protocol):
    """Handle returned by `Clock.call_later`."""

    def cancel(self) -> None: ...


class Clock(Protocol):
    """Monotonic time plus one-shot deferred callbacks."""

    def now(self) -> float: ...

    def call_later(self, delay_s: float, callback: Callable[[], None]) -> TimerHandle: ...


class MonotonicClock:
    """Production clock backed by `time.monotonic` and the running event loop."""

    def now(self) -> float:
        return time.monotonic()

    def call_later(self, delay_s: float, callback: Callable[[], None]) -> TimerHandle:
        loop = asyncio.get_running_loop()
        return loop.call_later(max(0.0, delay_s), callback)


class _ManualTimer:
    """Timer registered on a `ManualClock`."""

    __slots__ = ("due_s", "callback", "cancelled")

    def __init__(self, due_s: float, callback: Callable[[], None]) -> None:
        self.due_s = due_s
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualClock:
    """
    Deterministic clock for tests and local debugging.

    Time only moves when `advance()` is called. Callbacks whose due time is
    reached fire in due order (ties in scheduling order) with `now()` set to
    their due time.
    """

    def __init__(self, start_s: float = 0.0) -> None:
        self._now = start_s
        self._timers: list[tuple[float, int, _ManualTimer]] = []
        self._seq = itertools.count()

    def now(self) -> float:
        return self._now

    def call_later(self, delay_s: float, callback: Callable[[], None]) -> TimerHandle:
        timer = _ManualTimer(self._now + max(0.0, delay_s), callback)
        heapq.heappush(self._timers, (timer.due_s, next(self._seq), timer))
        return timer

    def advance(self, seconds: float) -> None:
        """Move time forward by `seconds`, firing every timer that comes due."""
        if seconds < 0:
            raise ValueError("ManualClock cannot move backwards")
        target = self._now + seconds
        while self._timers and self._timers[0][0] <= target:
            due_s, _, timer = heapq.heappop(self._timers)
            if timer.cancelled:
                continue
            self._now = due_s
            timer.callback()
        self._now = target

    @property
    def scheduled_count(self) -> int:
        """Number of live (not cancelled, not yet fired) timers."""
        return sum(1 for _, _, timer in self._timers if not timer.cancelled)
