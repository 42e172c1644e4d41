"""Bounded-concurrency task runner that preserves input order."""

from __future__ import annotations

import asyncio
import functools
import logging
from collections.abc import Awaitable, Callable, Sequence
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict

from ravenview.errors.exceptions import (
    BatchCancelledError,
    InvalidArgumentError,
    TaskFailure,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")

Processor = Callable[[T], Awaitable[R]]


class TaskResult(BaseModel, Generic[R]):
    """Tagged success/failure value for partial-success batches.

    A processor that should not abort its batch returns one of these instead
    of raising. The limiter fills in ``index`` when it stores the result.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    index: int | None = None
    value: R | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: R, index: int | None = None) -> TaskResult[R]:
        return cls(index=index, value=value)

    @classmethod
    def failure(cls, error: Exception, index: int | None = None) -> TaskResult[R]:
        return cls(index=index, error=error)

    def unwrap(self) -> R:
        """Return the value, or raise TaskFailure for a captured error."""
        if self.error is not None:
            raise TaskFailure(
                f"Item at index {self.index} failed: {self.error}",
                index=self.index,
                original=self.error,
            ) from self.error
        return self.value  # type: ignore[return-value]


def capture_errors(processor: Processor[T, R]) -> Processor[T, TaskResult[R]]:
    """Wrap *processor* so exceptions become failed TaskResults."""

    @functools.wraps(processor)
    async def wrapper(item: T) -> TaskResult[R]:
        try:
            return TaskResult.success(await processor(item))
        except Exception as exc:
            logger.debug("Captured failure for %r: %s", item, exc)
            return TaskResult.failure(exc)

    return wrapper


class ConcurrencyLimiter:
    """Runs an async processor over items with a fixed pool of workers.

    Workers share one cursor into the input; each claims the next index
    between awaits, so no lock is needed on the event loop. Results land in
    the slot of their input index regardless of completion order.

    Failure policy is fail-fast: the first processor exception is re-raised
    unchanged and no further items are claimed. Items already in flight run
    to completion and their results are discarded.
    """

    def __init__(self, concurrency: int) -> None:
        if isinstance(concurrency, bool) or not isinstance(concurrency, int):
            raise InvalidArgumentError(
                f"concurrency must be an integer, got {type(concurrency).__name__}"
            )
        if concurrency <= 0:
            raise InvalidArgumentError(f"concurrency must be > 0, got {concurrency}")
        self._concurrency = concurrency

    @property
    def concurrency(self) -> int:
        return self._concurrency

    async def run(
        self,
        items: Sequence[T],
        processor: Processor[T, R],
        *,
        cancel_event: asyncio.Event | None = None,
    ) -> list[R]:
        """Process every item, at most ``concurrency`` at a time.

        Args:
            items: Work items; any length, including empty.
            processor: Async callable applied to each item.
            cancel_event: When set, workers stop claiming new items and
                BatchCancelledError is raised once in-flight items settle.

        Returns list of results, one per item, in input order.
        """
        items = list(items)
        total = len(items)
        if total == 0:
            return []

        results: list[Any] = [None] * total
        cursor = 0
        completed = 0
        failed = False
        worker_count = min(self._concurrency, total)

        logger.debug("Processing %d items with %d workers", total, worker_count)

        async def worker() -> None:
            nonlocal cursor, completed, failed
            while cursor < total and not failed:
                if cancel_event is not None and cancel_event.is_set():
                    return
                index = cursor
                cursor += 1
                try:
                    result = await processor(items[index])
                except Exception as exc:
                    failed = True
                    logger.error("Error processing item at index %d: %s", index, exc)
                    raise
                if isinstance(result, TaskResult) and result.index is None:
                    result.index = index
                results[index] = result
                completed += 1

        await asyncio.gather(*(worker() for _ in range(worker_count)))

        if completed < total:
            logger.warning("Batch cancelled after %d/%d items", completed, total)
            raise BatchCancelledError(
                f"Batch cancelled after {completed} of {total} items",
                completed=completed,
                total=total,
            )

        return results


async def run_with_concurrency(
    items: Sequence[T],
    processor: Processor[T, R],
    concurrency: int,
    *,
    cancel_event: asyncio.Event | None = None,
) -> list[R]:
    """Functional form of ``ConcurrencyLimiter(concurrency).run(...)``."""
    limiter = ConcurrencyLimiter(concurrency)
    return await limiter.run(items, processor, cancel_event=cancel_event)
