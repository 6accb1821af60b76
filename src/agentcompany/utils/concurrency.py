"""Async concurrency primitives for per-project serialization and bounded dispatch."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager, suppress
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Generic, TypeVar

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Awaitable, Iterable

T = TypeVar("T")
K = TypeVar("K")


class CancellationToken:
    """Cooperative cancellation token backed by ``asyncio.Event``."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise asyncio.CancelledError("operation cancelled")


class BoundedSemaphore:
    """Small wrapper over ``asyncio.Semaphore`` with usage diagnostics."""

    def __init__(self, limit: int) -> None:
        if limit <= 0:
            raise ValueError("limit must be > 0")
        self._limit = limit
        self._semaphore = asyncio.Semaphore(limit)
        self._in_use = 0

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def in_use(self) -> int:
        return self._in_use

    @asynccontextmanager
    async def permit(self) -> AsyncIterator[None]:
        # Cancellation while waiting here does not acquire a permit.
        await self._semaphore.acquire()
        self._in_use += 1
        try:
            yield
        finally:
            self._in_use -= 1
            self._semaphore.release()


class KeyedLock(Generic[K]):
    """One ``asyncio.Lock`` per key; used as the per-project single-writer guard."""

    def __init__(self) -> None:
        self._locks: dict[K, asyncio.Lock] = {}

    def lock_for(self, key: K) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    @asynccontextmanager
    async def hold(self, key: K) -> AsyncIterator[None]:
        async with self.lock_for(key):
            yield

    def is_locked(self, key: K) -> bool:
        lock = self._locks.get(key)
        return lock is not None and lock.locked()


@dataclass(frozen=True, slots=True)
class TaskOutcome(Generic[T]):
    """Result or error of one pooled coroutine, tagged with its submission index."""

    index: int
    value: T | None = None
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(slots=True)
class WorkerPool(Generic[T]):
    """Run coroutines with bounded concurrency and yield outcomes as they finish.

    A failing coroutine does not cancel its siblings; its exception is reported
    in the corresponding ``TaskOutcome``. Cancellation of the consumer cancels
    every outstanding task.
    """

    max_concurrency: int
    cancel_token: CancellationToken | None = None
    _token: CancellationToken = field(init=False, repr=False)
    _semaphore: BoundedSemaphore = field(init=False, repr=False)

    def __post_init__(self) -> None:
        if self.max_concurrency <= 0:
            raise ValueError("max_concurrency must be > 0")
        self._token = self.cancel_token or CancellationToken()
        self._semaphore = BoundedSemaphore(self.max_concurrency)

    async def run(self, coroutines: Iterable[Awaitable[T]]) -> AsyncIterator[TaskOutcome[T]]:
        tasks: dict[asyncio.Task[T], int] = {}

        for index, coroutine in enumerate(coroutines):
            self._token.raise_if_cancelled()
            tasks[asyncio.create_task(self._run_one(coroutine))] = index

        try:
            while tasks:
                self._token.raise_if_cancelled()
                done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
                for task in done:
                    index = tasks.pop(task)
                    if task.cancelled():
                        raise asyncio.CancelledError("worker task cancelled")
                    exc = task.exception()
                    if exc is not None:
                        yield TaskOutcome(index=index, error=exc)
                    else:
                        yield TaskOutcome(index=index, value=task.result())
        except asyncio.CancelledError:
            await self._cancel_all(set(tasks))
            raise

    async def gather(self, coroutines: Iterable[Awaitable[T]]) -> list[TaskOutcome[T]]:
        """Collect every outcome, ordered by submission index."""
        outcomes = [outcome async for outcome in self.run(coroutines)]
        return sorted(outcomes, key=lambda outcome: outcome.index)

    async def _run_one(self, coroutine: Awaitable[T]) -> T:
        async with self._semaphore.permit():
            self._token.raise_if_cancelled()
            return await coroutine

    async def _cancel_all(self, tasks: set[asyncio.Task[T]]) -> None:
        for task in tasks:
            task.cancel()
        if tasks:
            with suppress(Exception):
                await asyncio.gather(*tasks, return_exceptions=True)


__all__ = [
    "BoundedSemaphore",
    "CancellationToken",
    "KeyedLock",
    "TaskOutcome",
    "WorkerPool",
]
