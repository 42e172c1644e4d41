"""Concurrency — bounded worker pool for batch API calls."""

from ravenview.concurrency.limiter import (
    ConcurrencyLimiter,
    TaskResult,
    capture_errors,
    run_with_concurrency,
)

__all__ = ["ConcurrencyLimiter", "TaskResult", "capture_errors", "run_with_concurrency"]
