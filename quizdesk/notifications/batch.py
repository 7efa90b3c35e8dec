"""
Bounded-concurrency batch runner.

Items are split into fixed-size batches. Calls inside a batch run
concurrently and every call is allowed to settle, success or failure,
before the next batch starts. A failing call never cancels or retries its
siblings.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from loguru import logger

T = TypeVar("T")

DEFAULT_BATCH_SIZE = 10


@dataclass
class BatchFailure(Generic[T]):
    item: T
    error: str


@dataclass
class BatchReport(Generic[T]):
    """Tally of a batched run."""

    success_count: int = 0
    error_count: int = 0
    batches: int = 0
    failures: list[BatchFailure[T]] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.success_count + self.error_count


def chunked(items: Sequence[T], size: int) -> list[list[T]]:
    """Split items into consecutive chunks of at most size elements."""
    if size < 1:
        raise ValueError(f"Batch size must be at least 1, got {size}")
    return [list(items[i:i + size]) for i in range(0, len(items), size)]


async def run_in_batches(
    items: Sequence[T],
    worker: Callable[[T], Awaitable[Any]],
    batch_size: int = DEFAULT_BATCH_SIZE,
    classify: Callable[[Any], str | None] | None = None,
) -> BatchReport[T]:
    """
    Run worker(item) for every item, at most batch_size at a time.

    Args:
        items: Work items
        worker: Coroutine function called once per item
        batch_size: Maximum in-flight calls
        classify: Inspects a returned value and gives an error message when
            the call completed but reported a failure, or None on success

    Returns:
        BatchReport with success/error counts across all batches
    """
    report: BatchReport[T] = BatchReport()

    for batch in chunked(items, batch_size):
        report.batches += 1
        outcomes = await asyncio.gather(
            *(worker(item) for item in batch),
            return_exceptions=True,
        )

        for item, outcome in zip(batch, outcomes):
            if isinstance(outcome, asyncio.CancelledError):
                raise outcome
            if isinstance(outcome, BaseException):
                error = str(outcome) or type(outcome).__name__
            else:
                error = classify(outcome) if classify else None

            if error is None:
                report.success_count += 1
            else:
                report.error_count += 1
                report.failures.append(BatchFailure(item=item, error=error))

        logger.debug(
            "Batch {} settled: {} ok, {} failed so far",
            report.batches,
            report.success_count,
            report.error_count,
        )

    return report
