"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

TTL cache facade with in-flight request deduplication.
"""

from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Awaitable, Callable
from typing import Generic, TypeVar

from ..clock import Clock, MonotonicClock, TimerHandle
from ..errors import CacheConfigError
from ..metrics import CacheMetrics, NoOpCacheMetrics
from .pending import PendingRequestRegistry
from .store import TTLCacheStore
from .types import CacheStats

T = TypeVar("T")

logger = logging.getLogger("stockcache.cache")


class CoalescingCache(Generic[T]):
    """
    Memory-resident TTL cache where concurrent misses share one fetch.

    Lookup order for `get_or_fetch`: valid cached row, then the in-flight
    fetch for the key, then a new fetch. The pending check and the
    registration of a new fetch run without an intervening `await`, so two
    callers can never both start a fetch for the same key.

    Failed fetches are never cached. Retry policy belongs to the fetcher.
    """

    def __init__(
        self,
        *,
        name: str = "default",
        max_size: int = 500,
        default_ttl_s: float = 60.0,
        sweep_interval_s: float = 300.0,
        pending_stale_after_s: float = 30.0,
        clock: Clock | None = None,
        metrics: CacheMetrics | None = None,
    ) -> None:
        if sweep_interval_s <= 0:
            raise CacheConfigError("sweep_interval_s must be > 0")
        if pending_stale_after_s <= 0:
            raise CacheConfigError("pending_stale_after_s must be > 0")
        self._name = name
        self._clock: Clock = clock or MonotonicClock()
        self._store: TTLCacheStore[T] = TTLCacheStore(
            max_size=max_size,
            default_ttl_s=default_ttl_s,
            clock=self._clock,
        )
        self._pending = PendingRequestRegistry(clock=self._clock)
        self._sweep_interval_s = sweep_interval_s
        self._pending_stale_after_s = pending_stale_after_s
        self._metrics: CacheMetrics = metrics or NoOpCacheMetrics()
        self._tags = {"cache": name}
        self._sweep_timer: TimerHandle | None = None
        self._hits = 0
        self._misses = 0
        self._coalesced = 0
        self._evictions = 0

    @property
    def name(self) -> str:
        return self._name

    @property
    def is_running(self) -> bool:
        """Whether the periodic sweep is scheduled."""
        return self._sweep_timer is not None

    async def get_or_fetch(
        self,
        key: str,
        fetcher: Callable[[], Awaitable[T]],
        ttl_s: float | None = None,
    ) -> T:
        """
        Return the cached value for `key`, joining or starting a fetch on miss.

        Every caller arriving while a fetch is outstanding awaits the same
        task and observes the same value or exception. Cancelling one waiter
        does not cancel the shared fetch.
        """

        row = self._store.lookup(key)
        if row is not None:
            self._hits += 1
            self._metrics.incr("cache_hits_total", tags=self._tags)
            return row.data

        pending = self._pending.get(key)
        if pending is not None:
            self._coalesced += 1
            self._metrics.incr("cache_coalesced_total", tags=self._tags)
            logger.debug("Deduplicating request for %s (cache=%s)", key, self._name)
            return await asyncio.shield(pending.future)

        self._misses += 1
        self._metrics.incr("cache_misses_total", tags=self._tags)
        task = asyncio.ensure_future(self._settle(key, fetcher(), ttl_s))
        self._pending.register(key, task)
        return await asyncio.shield(task)

    async def _settle(self, key: str, awaitable: Awaitable[T], ttl_s: float | None) -> T:
        task = asyncio.current_task()
        try:
            data = await awaitable
            self.set(key, data, ttl_s)
            return data
        except Exception:
            self._metrics.incr("cache_fetch_failures_total", tags=self._tags)
            raise
        finally:
            self._pending.discard(key, task)

    def get(self, key: str) -> T | None:
        """Valid cached value or `None`. Expired rows are dropped on read."""
        return self._store.get(key)

    def set(self, key: str, data: T, ttl_s: float | None = None) -> None:
        evicted = self._store.set(key, data, ttl_s)
        if evicted is not None:
            self._evictions += 1
            self._metrics.incr("cache_evictions_total", tags=self._tags)
            logger.debug("Evicted %s to make room for %s (cache=%s)", evicted, key, self._name)

    def invalidate(self, key: str) -> None:
        """Drop `key` from both the store and the in-flight registry."""
        self._store.delete(key)
        self._pending.discard(key)

    def invalidate_pattern(self, pattern: str | re.Pattern[str]) -> int:
        """
        Drop every cached and in-flight key the regular expression matches.

        Matching uses `re.search`, so an unanchored pattern matches anywhere
        in the key. A malformed pattern raises `re.error`.
        """
        regex = re.compile(pattern) if isinstance(pattern, str) else pattern
        return self._store.delete_matching(regex) + self._pending.delete_matching(regex)

    def clear(self) -> None:
        self._store.clear()
        self._pending.clear()

    def get_stats(self) -> CacheStats:
        return CacheStats(
            size=len(self._store),
            pending=len(self._pending),
            max_size=self._store.max_size,
            hits=self._hits,
            misses=self._misses,
            coalesced=self._coalesced,
            evictions=self._evictions,
        )

    def sweep(self) -> int:
        """
        Reclaim expired rows and forget fetches pending longer than the
        staleness bound. Forgotten fetches keep running; if one settles
        successfully its value is still written under its key.
        """
        cleaned = self._store.purge_expired()
        cleaned += self._pending.purge_stale(self._pending_stale_after_s)
        if cleaned > 0:
            self._metrics.incr("cache_swept_total", cleaned, tags=self._tags)
            logger.debug("Cleaned %d expired entries (cache=%s)", cleaned, self._name)
        return cleaned

    def start(self) -> None:
        """
        Schedule the periodic sweep on this cache's clock.

        With the default clock this must be called from a running event loop.
        """
        if self._sweep_timer is not None:
            return
        self._schedule_sweep()
        logger.info(
            "Cache %s sweep started (interval=%.1fs, max_size=%d)",
            self._name,
            self._sweep_interval_s,
            self._store.max_size,
        )

    async def close(self) -> None:
        """Cancel the periodic sweep. Cached rows are kept."""
        timer = self._sweep_timer
        self._sweep_timer = None
        if timer is not None:
            timer.cancel()
            logger.info("Cache %s sweep stopped", self._name)

    def _schedule_sweep(self) -> None:
        self._sweep_timer = self._clock.call_later(self._sweep_interval_s, self._on_sweep_timer)

    def _on_sweep_timer(self) -> None:
        if self._sweep_timer is None:
            return
        try:
            self.sweep()
        except Exception:  # noqa: BLE001
            logger.exception("Cache sweep failed (cache=%s)", self._name)
        self._schedule_sweep()
