"""Tests for the bounded-concurrency limiter."""

import asyncio

import pytest

from ravenview.concurrency.limiter import (
    ConcurrencyLimiter,
    TaskResult,
    capture_errors,
    run_with_concurrency,
)
from ravenview.errors.exceptions import (
    BatchCancelledError,
    InvalidArgumentError,
    TaskFailure,
)


def _tracking_processor(delays: dict[int, float] | None = None):
    """Processor doubling its input while recording peak parallelism."""
    state = {"active": 0, "peak": 0, "calls": []}

    async def processor(item: int) -> int:
        state["active"] += 1
        state["peak"] = max(state["peak"], state["active"])
        state["calls"].append(item)
        await asyncio.sleep((delays or {}).get(item, 0.01))
        state["active"] -= 1
        return item * 2

    return processor, state


class TestOrdering:
    @pytest.mark.parametrize("concurrency", [1, 2, 3, 7, 10])
    async def test_output_matches_input_order(self, concurrency):
        items = list(range(7))
        # Earlier items are slower, so completion order is reversed
        delays = {i: 0.002 * (len(items) - i) for i in items}
        processor, _ = _tracking_processor(delays)

        results = await run_with_concurrency(items, processor, concurrency)

        assert results == [i * 2 for i in items]

    async def test_sequential_when_concurrency_is_one(self):
        processor, state = _tracking_processor()
        await run_with_concurrency([3, 1, 2], processor, 1)
        assert state["calls"] == [3, 1, 2]
        assert state["peak"] == 1


class TestConcurrencyBound:
    async def test_never_exceeds_limit(self):
        processor, state = _tracking_processor()
        await run_with_concurrency(list(range(20)), processor, 4)
        assert state["peak"] <= 4

    async def test_reaches_limit_under_load(self):
        processor, state = _tracking_processor()
        await run_with_concurrency(list(range(20)), processor, 4)
        assert state["peak"] == 4

    async def test_limit_above_item_count_runs_all_at_once(self):
        processor, state = _tracking_processor()
        await run_with_concurrency([1, 2, 3], processor, 10)
        assert state["peak"] == 3


class TestFailFast:
    async def test_first_error_propagates_unchanged(self):
        boom = ValueError("bad row")

        async def processor(item: int) -> int:
            await asyncio.sleep(0.001)
            if item == 2:
                raise boom
            return item

        with pytest.raises(ValueError) as exc_info:
            await run_with_concurrency([0, 1, 2, 3, 4], processor, 2)
        assert exc_info.value is boom

    async def test_no_items_claimed_after_failure(self):
        started: list[int] = []

        async def processor(item: int) -> int:
            started.append(item)
            if item == 0:
                raise RuntimeError("first item fails")
            await asyncio.sleep(0.01)
            return item

        with pytest.raises(RuntimeError):
            await run_with_concurrency(list(range(10)), processor, 1)
        assert started == [0]

    async def test_in_flight_sibling_is_not_cancelled(self):
        finished: list[int] = []

        async def processor(item: int) -> int:
            if item == 0:
                await asyncio.sleep(0.001)
                raise RuntimeError("fail")
            await asyncio.sleep(0.02)
            finished.append(item)
            return item

        with pytest.raises(RuntimeError):
            await run_with_concurrency([0, 1], processor, 2)
        await asyncio.sleep(0.05)
        assert finished == [1]


class TestEdgeCases:
    async def test_empty_input_never_calls_processor(self):
        calls = 0

        async def processor(item):
            nonlocal calls
            calls += 1
            return item

        assert await run_with_concurrency([], processor, 5) == []
        assert calls == 0

    @pytest.mark.parametrize("bad", [0, -1])
    async def test_non_positive_concurrency_rejected(self, bad):
        async def processor(item):
            return item

        with pytest.raises(InvalidArgumentError):
            await run_with_concurrency([1, 2], processor, bad)

    @pytest.mark.parametrize("bad", [1.5, "3", True])
    def test_non_integer_concurrency_rejected(self, bad):
        with pytest.raises(InvalidArgumentError):
            ConcurrencyLimiter(bad)

    def test_invalid_argument_is_value_error(self):
        with pytest.raises(ValueError):
            ConcurrencyLimiter(0)

    async def test_accepts_any_sequence(self):
        async def processor(item: str) -> str:
            return item.upper()

        assert await ConcurrencyLimiter(2).run(("a", "b", "c"), processor) == ["A", "B", "C"]


class TestCancellation:
    async def test_preset_event_cancels_before_work(self):
        event = asyncio.Event()
        event.set()
        processor, state = _tracking_processor()

        with pytest.raises(BatchCancelledError) as exc_info:
            await run_with_concurrency([1, 2, 3], processor, 2, cancel_event=event)
        assert state["calls"] == []
        assert exc_info.value.completed == 0
        assert exc_info.value.total == 3

    async def test_event_set_mid_batch_stops_claiming(self):
        event = asyncio.Event()

        async def processor(item: int) -> int:
            if item == 1:
                event.set()
            await asyncio.sleep(0.001)
            return item

        with pytest.raises(BatchCancelledError) as exc_info:
            await run_with_concurrency(list(range(10)), processor, 1, cancel_event=event)
        assert exc_info.value.completed == 2

    async def test_unset_event_has_no_effect(self):
        processor, _ = _tracking_processor()
        results = await run_with_concurrency([1, 2], processor, 2, cancel_event=asyncio.Event())
        assert results == [2, 4]


class TestPartialSuccess:
    async def test_capture_errors_keeps_batch_alive(self):
        async def processor(item: int) -> int:
            if item % 2:
                raise ValueError(f"odd {item}")
            return item

        results = await run_with_concurrency([0, 1, 2, 3], capture_errors(processor), 2)

        assert [r.ok for r in results] == [True, False, True, False]
        assert results[0].value == 0
        assert str(results[1].error) == "odd 1"

    async def test_results_are_tagged_with_index(self):
        async def processor(item: str) -> str:
            return item

        results = await run_with_concurrency(["a", "b", "c"], capture_errors(processor), 3)
        assert [r.index for r in results] == [0, 1, 2]

    def test_unwrap_success(self):
        assert TaskResult.success(42).unwrap() == 42

    def test_unwrap_failure_raises_task_failure(self):
        original = KeyError("missing")
        result = TaskResult.failure(original, index=3)

        with pytest.raises(TaskFailure) as exc_info:
            result.unwrap()
        assert exc_info.value.index == 3
        assert exc_info.value.original is original
        assert exc_info.value.__cause__ is original
