from __future__ import annotations

import asyncio
import time

import pytest

from stockcache import (
    BatcherClosedError,
    CacheConfigError,
    InMemoryCacheMetrics,
    ManualClock,
    RequestBatcher,
)


def run_async(coro):
    return asyncio.run(coro)


class _RecordingBatchFn:
    def __init__(self, *, fail_with: BaseException | None = None) -> None:
        self.calls: list[list[str]] = []
        self.fail_with = fail_with
        self.gate: asyncio.Event | None = None

    async def __call__(self, items: list[str]) -> dict[str, str]:
        self.calls.append(list(items))
        if self.gate is not None:
            await self.gate.wait()
        if self.fail_with is not None:
            raise self.fail_with
        return {item: item.lower() for item in items if item != "MISSING"}


def test_full_batch_flushes_without_waiting_for_timer():
    async def scenario() -> None:
        clock = ManualClock()
        batch_fn = _RecordingBatchFn()
        batcher = RequestBatcher(batch_fn, max_batch_size=3, batch_delay_s=0.05, clock=clock)

        results = await asyncio.gather(
            batcher.add("AAPL"),
            batcher.add("MSFT"),
            batcher.add("NVDA"),
        )

        assert batch_fn.calls == [["AAPL", "MSFT", "NVDA"]]
        assert results == ["aapl", "msft", "nvda"]
        assert clock.now() == 0
        assert clock.scheduled_count == 0

    run_async(scenario())


def test_partial_batch_flushes_after_delay():
    async def scenario() -> None:
        clock = ManualClock()
        batch_fn = _RecordingBatchFn()
        batcher = RequestBatcher(batch_fn, max_batch_size=50, batch_delay_s=0.05, clock=clock)

        pending = asyncio.ensure_future(batcher.add("AAPL"))
        await asyncio.sleep(0)
        assert batcher.pending_count == 1

        clock.advance(0.049)
        await asyncio.sleep(0)
        assert batch_fn.calls == []

        clock.advance(0.001)
        assert await pending == "aapl"
        assert batch_fn.calls == [["AAPL"]]
        assert batcher.pending_count == 0

    run_async(scenario())


def test_partial_batch_flushes_after_real_delay():
    async def scenario() -> None:
        batch_fn = _RecordingBatchFn()
        batcher = RequestBatcher(batch_fn, max_batch_size=50, batch_delay_s=0.05)

        started = time.monotonic()
        assert await batcher.add("AAPL") == "aapl"
        elapsed = time.monotonic() - started

        assert batch_fn.calls == [["AAPL"]]
        assert elapsed >= 0.04

    run_async(scenario())


def test_missing_result_resolves_to_none():
    async def scenario() -> None:
        batcher = RequestBatcher(_RecordingBatchFn(), max_batch_size=2, clock=ManualClock())
        results = await asyncio.gather(batcher.add("AAPL"), batcher.add("MISSING"))
        assert results == ["aapl", None]

    run_async(scenario())


def test_duplicates_are_passed_through():
    async def scenario() -> None:
        batch_fn = _RecordingBatchFn()
        batcher = RequestBatcher(batch_fn, max_batch_size=2, clock=ManualClock())
        results = await asyncio.gather(batcher.add("AAPL"), batcher.add("AAPL"))
        assert batch_fn.calls == [["AAPL", "AAPL"]]
        assert results == ["aapl", "aapl"]

    run_async(scenario())


def test_failure_fans_out_and_batcher_keeps_accepting():
    async def scenario() -> None:
        boom = RuntimeError("quote provider down")
        batch_fn = _RecordingBatchFn(fail_with=boom)
        metrics = InMemoryCacheMetrics()
        batcher = RequestBatcher(
            batch_fn, max_batch_size=2, name="prices", clock=ManualClock(), metrics=metrics
        )

        results = await asyncio.gather(
            batcher.add("AAPL"), batcher.add("MSFT"), return_exceptions=True
        )
        assert results == [boom, boom]
        assert all(result is boom for result in results)
        assert metrics.total("batcher_failures_total", batcher="prices") == 1

        batch_fn.fail_with = None
        results = await asyncio.gather(batcher.add("TSLA"), batcher.add("AMZN"))
        assert results == ["tsla", "amzn"]
        assert metrics.total("batcher_batches_total") == 2
        assert metrics.total("batcher_items_total") == 4

    run_async(scenario())


def test_next_batch_accumulates_while_previous_in_flight():
    async def scenario() -> None:
        batch_fn = _RecordingBatchFn()
        batch_fn.gate = asyncio.Event()
        batcher = RequestBatcher(batch_fn, max_batch_size=2, clock=ManualClock())

        waiters = [asyncio.ensure_future(batcher.add(symbol)) for symbol in ("A", "B", "C", "D")]
        await asyncio.sleep(0)
        await asyncio.sleep(0)

        assert batcher.inflight_batches == 2
        assert batch_fn.calls == [["A", "B"], ["C", "D"]]

        batch_fn.gate.set()
        assert await asyncio.gather(*waiters) == ["a", "b", "c", "d"]
        await asyncio.sleep(0)
        assert batcher.inflight_batches == 0

    run_async(scenario())


def test_flush_and_close():
    async def scenario() -> None:
        clock = ManualClock()
        batch_fn = _RecordingBatchFn()
        batcher = RequestBatcher(batch_fn, max_batch_size=50, clock=clock)

        pending = asyncio.ensure_future(batcher.add("AAPL"))
        await asyncio.sleep(0)
        await batcher.close()

        assert await pending == "aapl"
        assert batch_fn.calls == [["AAPL"]]
        assert clock.scheduled_count == 0

        with pytest.raises(BatcherClosedError):
            await batcher.add("MSFT")

    run_async(scenario())


def test_invalid_configuration_rejected():
    async def noop(items: list[str]) -> dict[str, str]:
        return {}

    with pytest.raises(CacheConfigError):
        RequestBatcher(noop, max_batch_size=0)
    with pytest.raises(CacheConfigError):
        RequestBatcher(noop, batch_delay_s=-0.1)


def test_cancelled_batch_cancels_its_callers():
    async def scenario() -> None:
        async def cancelled_fn(items: list[str]) -> dict[str, str]:
            raise asyncio.CancelledError()

        batcher = RequestBatcher(cancelled_fn, max_batch_size=2, clock=ManualClock())
        waiters = [asyncio.ensure_future(batcher.add(s)) for s in ("AAPL", "MSFT")]

        done, pending = await asyncio.wait(waiters, timeout=1)
        assert not pending
        assert all(waiter.cancelled() for waiter in done)
        assert batcher.inflight_batches == 0

    run_async(scenario())


def test_batch_task_cancelled_mid_flight_cancels_its_callers():
    async def scenario() -> None:
        batch_fn = _RecordingBatchFn()
        batch_fn.gate = asyncio.Event()
        batcher = RequestBatcher(batch_fn, max_batch_size=1, clock=ManualClock())

        waiter = asyncio.ensure_future(batcher.add("AAPL"))
        await asyncio.sleep(0)
        await asyncio.sleep(0)
        assert batch_fn.calls == [["AAPL"]]

        for task in list(batcher._inflight):  # noqa: SLF001
            task.cancel()

        done, pending = await asyncio.wait({waiter}, timeout=1)
        assert not pending
        assert waiter.cancelled()

    run_async(scenario())


def test_non_mapping_result_rejects_every_caller():
    async def list_fn(items: list[str]) -> list[tuple[str, int]]:
        return [(item, 1) for item in items]

    async def scenario() -> None:
        batcher = RequestBatcher(list_fn, max_batch_size=2, clock=ManualClock())
        results = await asyncio.wait_for(
            asyncio.gather(batcher.add("AAPL"), batcher.add("MSFT"), return_exceptions=True),
            timeout=1,
        )
        assert all(isinstance(result, AttributeError) for result in results)
        assert results[0] is results[1]

    run_async(scenario())
