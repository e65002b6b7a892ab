"""Unit tests for per-job locks and run tracking."""

from __future__ import annotations

import asyncio

from cronkeeper.cron.locks import JobLocks, RunTracker


async def test_same_job_shares_one_lock() -> None:
    locks = JobLocks()
    assert locks.get("a") is locks.get("a")
    assert locks.get("a") is not locks.get("b")
    assert len(locks) == 2


async def test_is_running_reflects_lock_state() -> None:
    locks = JobLocks()
    assert not locks.is_running("a")
    async with locks.get("a"):
        assert locks.is_running("a")
        assert not locks.is_running("b")
    assert not locks.is_running("a")


async def test_discard_keeps_held_lock() -> None:
    locks = JobLocks()
    lock = locks.get("a")
    async with lock:
        locks.discard("a")
        assert locks.get("a") is lock
    locks.discard("a")
    assert len(locks) == 0


async def test_tracker_waits_for_spawned_tasks() -> None:
    tracker = RunTracker()
    release = asyncio.Event()
    finished: list[str] = []

    async def _work(name: str) -> None:
        await release.wait()
        finished.append(name)

    tracker.spawn("one", lambda: _work("one"))
    tracker.spawn("two", lambda: _work("two"))
    await asyncio.sleep(0)
    assert tracker.get_active_count() == 2

    release.set()
    await tracker.wait_all()
    assert sorted(finished) == ["one", "two"]
    assert tracker.get_active_count() == 0


async def test_tracker_wait_all_swallows_task_errors() -> None:
    tracker = RunTracker()

    async def _fail() -> None:
        raise RuntimeError("boom")

    task = tracker.spawn("fail", _fail)
    await tracker.wait_all()
    assert isinstance(task.exception(), RuntimeError)
