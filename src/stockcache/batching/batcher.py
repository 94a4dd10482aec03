"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Request batcher: merges single-item calls into one bulk upstream call.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Hashable, Mapping
from dataclasses import dataclass
from typing import Generic, TypeVar

from ..clock import Clock, MonotonicClock, TimerHandle
from ..errors import BatcherClosedError, CacheConfigError
from ..metrics import CacheMetrics, NoOpCacheMetrics

TItem = TypeVar("TItem", bound=Hashable)
TResult = TypeVar("TResult")

BatchFn = Callable[[list[TItem]], Awaitable[Mapping[TItem, TResult]]]

logger = logging.getLogger("stockcache.batching")


@dataclass(slots=True)
class _Resolver(Generic[TItem, TResult]):
    """One submitted item and the future its caller is waiting on."""

    item: TItem
    future: asyncio.Future[TResult | None]


class RequestBatcher(Generic[TItem, TResult]):
    """
    Accumulates items and flushes them as one call to `batch_fn`.

    A batch runs when it reaches `max_batch_size` items or `batch_delay_s`
    after its first item, whichever comes first. The queue is cleared before
    `batch_fn` is awaited, so the next batch starts accumulating at once and
    any number of batches may be in flight together.

    Duplicate items are passed through as submitted; de-duplicating inputs
    is the batch function's job.
    """

    def __init__(
        self,
        batch_fn: BatchFn[TItem, TResult],
        *,
        max_batch_size: int = 50,
        batch_delay_s: float = 0.05,
        name: str = "batcher",
        clock: Clock | None = None,
        metrics: CacheMetrics | None = None,
    ) -> None:
        if max_batch_size < 1:
            raise CacheConfigError("max_batch_size must be >= 1")
        if batch_delay_s < 0:
            raise CacheConfigError("batch_delay_s must be >= 0")
        self._batch_fn = batch_fn
        self._max_batch_size = max_batch_size
        self._batch_delay_s = batch_delay_s
        self._name = name
        self._clock: Clock = clock or MonotonicClock()
        self._metrics: CacheMetrics = metrics or NoOpCacheMetrics()
        self._tags = {"batcher": name}
        self._queue: list[_Resolver[TItem, TResult]] = []
        self._timer: TimerHandle | None = None
        self._inflight: set[asyncio.Task[None]] = set()
        self._closed = False

    @property
    def pending_count(self) -> int:
        """Items waiting for the next batch."""
        return len(self._queue)

    @property
    def inflight_batches(self) -> int:
        """Batches whose `batch_fn` call has not settled yet."""
        return len(self._inflight)

    async def add(self, item: TItem) -> TResult | None:
        """
        Submit one item and wait for its batch.

        Resolves to the batch function's result for `item`, or `None` when
        the batch function returned nothing for it. If the batch function
        raises, every item of that batch receives the same exception.
        """
        if self._closed:
            raise BatcherClosedError(f"Batcher '{self._name}' is closed")
        future: asyncio.Future[TResult | None] = asyncio.get_running_loop().create_future()
        self._queue.append(_Resolver(item=item, future=future))

        if len(self._queue) >= self._max_batch_size:
            self._execute_batch()
        elif self._timer is None:
            self._timer = self._clock.call_later(self._batch_delay_s, self._execute_batch)
        return await future

    async def flush(self) -> None:
        """Run the queued items now and wait for every in-flight batch."""
        self._execute_batch()
        if self._inflight:
            await asyncio.gather(*self._inflight, return_exceptions=True)

    async def close(self) -> None:
        """Flush what is queued, wait for in-flight batches, and refuse new items."""
        self._closed = True
        await self.flush()

    def _execute_batch(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

        if not self._queue:
            return

        resolvers = self._queue
        self._queue = []

        task = asyncio.ensure_future(self._run_batch(resolvers))
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)

    async def _run_batch(self, resolvers: list[_Resolver[TItem, TResult]]) -> None:
        items = [resolver.item for resolver in resolvers]
        self._metrics.incr("batcher_batches_total", tags=self._tags)
        self._metrics.incr("batcher_items_total", len(items), tags=self._tags)
        logger.debug("Executing batch of %d items (batcher=%s)", len(items), self._name)
        try:
            results = await self._batch_fn(items)
            values = [results.get(resolver.item) for resolver in resolvers]
        except asyncio.CancelledError:
            for resolver in resolvers:
                if not resolver.future.done():
                    resolver.future.cancel()
            raise
        except Exception as exc:  # noqa: BLE001
            self._metrics.incr("batcher_failures_total", tags=self._tags)
            logger.debug("Batch of %d items failed (batcher=%s): %s", len(items), self._name, exc)
            for resolver in resolvers:
                if not resolver.future.done():
                    resolver.future.set_exception(exc)
            return

        for resolver, value in zip(resolvers, values):
            if not resolver.future.done():
                resolver.future.set_result(value)
