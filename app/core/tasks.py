"""Post-commit task queue and detached background task runner."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from fastapi import Request

logger = logging.getLogger(__name__)

TaskFactory = Callable[[], Awaitable[None]]


class BackgroundTaskRunner:
    """Own detached tasks so they are not garbage collected mid-flight."""

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def spawn(self, factory: TaskFactory, *, name: str | None = None) -> asyncio.Task[None]:
        """Start a task without waiting for it."""
        task = asyncio.create_task(self._run(factory, name), name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def drain(self, timeout: float | None = None) -> None:
        """Wait for in-flight tasks, used on shutdown and in tests."""
        if not self._tasks:
            return
        _, still_running = await asyncio.wait(set(self._tasks), timeout=timeout)
        for task in still_running:
            task.cancel()
        if still_running:
            logger.warning("Cancelled %s background tasks still running at shutdown", len(still_running))

    @staticmethod
    async def _run(factory: TaskFactory, name: str | None) -> None:
        try:
            await factory()
        except Exception:
            logger.exception("Background task %s failed", name or "<unnamed>")


class PostCommitQueue:
    """Collect side effects of one unit of work and release them after commit."""

    def __init__(self, runner: BackgroundTaskRunner) -> None:
        self.runner = runner
        self._pending: list[tuple[TaskFactory, str | None]] = []

    def __len__(self) -> int:
        return len(self._pending)

    def add(self, factory: TaskFactory, *, name: str | None = None) -> None:
        self._pending.append((factory, name))

    def flush(self) -> list[asyncio.Task[None]]:
        """Detach all queued tasks; call only once the transaction committed."""
        pending, self._pending = self._pending, []
        return [self.runner.spawn(factory, name=name) for factory, name in pending]

    def discard(self) -> int:
        """Drop queued tasks after a rollback."""
        dropped = len(self._pending)
        self._pending = []
        if dropped:
            logger.info("Discarded %s post-commit tasks after rollback", dropped)
        return dropped


def get_task_runner(request: Request) -> BackgroundTaskRunner:
    """FastAPI dependency returning the application-owned runner."""
    return request.app.state.task_runner


def get_post_commit_queue(request: Request) -> PostCommitQueue:
    """FastAPI dependency that provides one queue per request."""
    return PostCommitQueue(get_task_runner(request))
