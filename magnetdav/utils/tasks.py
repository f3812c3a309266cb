"""Task helpers for tracking and cancelling background tasks."""

from __future__ import annotations

import asyncio
from typing import Any, Coroutine


class TaskSupervisor:
    """Lightweight task supervisor to track and cancel background tasks safely."""

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task[Any]] = set()

    def create_task(
        self, coro: Coroutine[Any, Any, Any], *, name: str | None = None
    ) -> asyncio.Task[Any]:
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def cancel_all(self) -> None:
        for task in list(self._tasks):
            if not task.done():
                task.cancel()

    async def wait_all(self, timeout: float | None = None) -> None:
        """Wait for tracked tasks to finish; tasks still running at ``timeout`` are left alone."""
        if not self._tasks:
            return
        await asyncio.wait(set(self._tasks), timeout=timeout)

    async def cancel_and_wait(self, timeout: float | None = 5.0) -> None:
        self.cancel_all()
        await self.wait_all(timeout)

    @property
    def tasks(self) -> set[asyncio.Task[Any]]:
        return set(self._tasks)

    def __len__(self) -> int:
        return len(self._tasks)
