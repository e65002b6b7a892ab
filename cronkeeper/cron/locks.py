"""Per-job run locks and in-flight task tracking."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any


class JobLocks:
    """Lazily created asyncio.Lock per job id.

    There is no global lock: different jobs never wait on each other.
    """

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}

    def get(self, job_id: str) -> asyncio.Lock:
        lock = self._locks.get(job_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[job_id] = lock
        return lock

    def is_running(self, job_id: str) -> bool:
        lock = self._locks.get(job_id)
        return lock is not None and lock.locked()

    def discard(self, job_id: str) -> None:
        """Forget an idle lock (e.g. after the job is removed)."""
        lock = self._locks.get(job_id)
        if lock is not None and not lock.locked():
            self._locks.pop(job_id, None)

    def __len__(self) -> int:
        return len(self._locks)


class RunTracker:
    """Track spawned run tasks so shutdown can wait for them."""

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task[Any]] = set()

    def spawn(self, name: str, factory: Callable[[], Awaitable[Any]]) -> asyncio.Task[Any]:
        async def _runner() -> Any:
            return await factory()

        task = asyncio.create_task(_runner(), name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def get_active_count(self) -> int:
        return len([task for task in self._tasks if not task.done()])

    async def wait_all(self) -> None:
        """Wait for a snapshot of active tasks; their errors are not raised here."""
        tasks = list(self._tasks)
        if not tasks:
            return
        await asyncio.gather(*tasks, return_exceptions=True)
