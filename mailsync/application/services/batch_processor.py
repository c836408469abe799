"""Bounded-concurrency batch runner with per-item failure isolation.

Items run in sequential chunks; inside a chunk a semaphore keeps up to
``concurrency`` processor calls in flight, admitting the next item as soon as
any call finishes. The processor closure is responsible for rate limiting and
retries.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import Generic, TypeVar

from mailsync.shared.telemetry.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")
R = TypeVar("R")


@dataclass(frozen=True)
class BatchOptions:
    batch_size: int = 10
    concurrency: int = 5
    delay_between_batches: float = 0.1


@dataclass(frozen=True)
class BatchItemResult(Generic[T, R]):
    """Outcome for one input item: result on success, error on failure."""

    item: T
    result: R | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class BatchStats:
    total: int
    successful: int
    failed: int
    success_rate: int


class BatchProcessor:
    def __init__(
        self,
        defaults: BatchOptions | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.defaults = defaults or BatchOptions()
        self._sleep = sleep

    async def process_batch(
        self,
        items: Sequence[T],
        processor: Callable[[T], Awaitable[R]],
        options: BatchOptions | None = None,
    ) -> list[BatchItemResult[T, R]]:
        """Run processor over items; one result per item, in input order.

        Never raises for item failures; each is captured on its result.
        """
        opts = options or self.defaults
        batch_size = max(1, opts.batch_size)
        chunks = [list(items[i : i + batch_size]) for i in range(0, len(items), batch_size)]
        results: list[BatchItemResult[T, R]] = []
        for index, chunk in enumerate(chunks):
            logger.debug(
                "Processing batch %s/%s (%s items)", index + 1, len(chunks), len(chunk)
            )
            results.extend(await self._process_concurrent(chunk, processor, opts.concurrency))
            if index < len(chunks) - 1 and opts.delay_between_batches > 0:
                await self._sleep(opts.delay_between_batches)
        return results

    async def _process_concurrent(
        self,
        items: list[T],
        processor: Callable[[T], Awaitable[R]],
        concurrency: int,
    ) -> list[BatchItemResult[T, R]]:
        semaphore = asyncio.Semaphore(max(1, concurrency))

        async def run(item: T) -> BatchItemResult[T, R]:
            async with semaphore:
                try:
                    return BatchItemResult(item=item, result=await processor(item))
                except Exception as e:
                    return BatchItemResult(item=item, error=e)

        return list(await asyncio.gather(*(run(item) for item in items)))

    @staticmethod
    def get_stats(results: Sequence[BatchItemResult]) -> BatchStats:
        total = len(results)
        successful = sum(1 for r in results if r.ok)
        return BatchStats(
            total=total,
            successful=successful,
            failed=total - successful,
            success_rate=round(successful / total * 100) if total else 0,
        )
