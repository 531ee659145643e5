"""Bounded async fan-out used by batch aggregation."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager, suppress
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Generic, TypeVar

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Awaitable, Callable, Sequence

T = TypeVar("T")


class BoundedSemaphore:
    """``asyncio.Semaphore`` that tracks how many permits are held."""

    def __init__(self, limit: int) -> None:
        if limit <= 0:
            raise ValueError("limit must be > 0")
        self._limit = limit
        self._semaphore = asyncio.Semaphore(limit)
        self._in_use = 0
        self._peak = 0

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def in_use(self) -> int:
        return self._in_use

    @property
    def peak(self) -> int:
        return self._peak

    @asynccontextmanager
    async def permit(self) -> AsyncIterator[None]:
        await self._semaphore.acquire()
        self._in_use += 1
        self._peak = max(self._peak, self._in_use)
        try:
            yield
        finally:
            self._in_use -= 1
            self._semaphore.release()


@dataclass(slots=True)
class WorkerPool(Generic[T]):
    """
    Run awaitable factories with bounded concurrency.

    ``run`` yields ``(index, result)`` pairs as work finishes. ``gather`` is a barrier:
    it returns every result in submission order, or raises the first failure after
    cancelling whatever is still in flight.
    """

    max_concurrency: int
    _semaphore: BoundedSemaphore = field(init=False, repr=False)

    def __post_init__(self) -> None:
        if self.max_concurrency <= 0:
            raise ValueError("max_concurrency must be > 0")
        self._semaphore = BoundedSemaphore(self.max_concurrency)

    @property
    def peak_concurrency(self) -> int:
        return self._semaphore.peak

    async def run(
        self, factories: Sequence[Callable[[], Awaitable[T]]]
    ) -> AsyncIterator[tuple[int, T]]:
        tasks: dict[asyncio.Task[T], int] = {
            asyncio.create_task(self._run_one(factory)): index
            for index, factory in enumerate(factories)
        }
        pending: set[asyncio.Task[T]] = set(tasks)
        try:
            while pending:
                done, pending = await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)
                for task in sorted(done, key=tasks.__getitem__):
                    exc = task.exception()
                    if exc is not None:
                        await self._cancel_all(pending)
                        raise exc
                    yield tasks[task], task.result()
        except asyncio.CancelledError:
            await self._cancel_all(pending)
            raise

    async def gather(self, factories: Sequence[Callable[[], Awaitable[T]]]) -> list[T]:
        results: dict[int, T] = {}
        async for index, result in self.run(factories):
            results[index] = result
        return [results[index] for index in range(len(factories))]

    async def _run_one(self, factory: Callable[[], Awaitable[T]]) -> T:
        async with self._semaphore.permit():
            return await factory()

    async def _cancel_all(self, tasks: set[asyncio.Task[T]]) -> None:
        for task in tasks:
            task.cancel()
        if tasks:
            with suppress(Exception):
                await asyncio.gather(*tasks, return_exceptions=True)


__all__ = ["BoundedSemaphore", "WorkerPool"]
