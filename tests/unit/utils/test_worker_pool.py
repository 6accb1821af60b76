"""Concurrency primitive tests: keyed locks, bounded pools, and cancellation."""

from __future__ import annotations

import asyncio

import pytest

from agentcompany.utils.concurrency import (
    BoundedSemaphore,
    CancellationToken,
    KeyedLock,
    WorkerPool,
)


async def test_keyed_lock_serializes_same_key_only() -> None:
    locks: KeyedLock[str] = KeyedLock()
    order: list[str] = []

    async def critical(key: str, label: str) -> None:
        async with locks.hold(key):
            order.append(f"{label}-start")
            await asyncio.sleep(0.02)
            order.append(f"{label}-end")

    await asyncio.gather(critical("webapp", "a"), critical("webapp", "b"))

    assert order == ["a-start", "a-end", "b-start", "b-end"]
    assert locks.lock_for("webapp") is locks.lock_for("webapp")
    assert not locks.is_locked("webapp")
    assert not locks.is_locked("never-used")


async def test_worker_pool_respects_concurrency_limit() -> None:
    pool: WorkerPool[int] = WorkerPool(max_concurrency=2)
    active = 0
    peak = 0

    async def job(value: int) -> int:
        nonlocal active, peak
        active += 1
        peak = max(peak, active)
        await asyncio.sleep(0.01)
        active -= 1
        return value * 10

    outcomes = await pool.gather(job(index) for index in range(6))

    assert peak <= 2
    assert [outcome.index for outcome in outcomes] == list(range(6))
    assert [outcome.value for outcome in outcomes] == [0, 10, 20, 30, 40, 50]


async def test_worker_pool_reports_failures_without_cancelling_siblings() -> None:
    pool: WorkerPool[str] = WorkerPool(max_concurrency=3)

    async def ok() -> str:
        await asyncio.sleep(0.01)
        return "done"

    async def boom() -> str:
        raise RuntimeError("agent crashed")

    outcomes = await pool.gather([ok(), boom(), ok()])

    assert [outcome.ok for outcome in outcomes] == [True, False, True]
    assert isinstance(outcomes[1].error, RuntimeError)
    assert outcomes[2].value == "done"


async def test_cancelled_token_stops_submission() -> None:
    token = CancellationToken()
    token.cancel()
    pool: WorkerPool[int] = WorkerPool(max_concurrency=1, cancel_token=token)

    async def job() -> int:
        return 1

    coroutine = job()
    with pytest.raises(asyncio.CancelledError):
        await pool.gather([coroutine])
    coroutine.close()


async def test_bounded_semaphore_tracks_usage() -> None:
    semaphore = BoundedSemaphore(2)

    async with semaphore.permit():
        assert semaphore.in_use == 1
    assert semaphore.in_use == 0
    assert semaphore.limit == 2


def test_pool_and_semaphore_reject_non_positive_limits() -> None:
    with pytest.raises(ValueError, match="max_concurrency"):
        WorkerPool(max_concurrency=0)
    with pytest.raises(ValueError, match="limit"):
        BoundedSemaphore(0)
