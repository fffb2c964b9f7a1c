"""
Detached background task execution.

Side effects that must not delay or fail a request (e.g. recording user
activity) are submitted here instead of being awaited inline. Tasks are
decoupled from the submitting request: cancelling the request leaves the
task running, and task failures are logged rather than re-raised.
"""

import asyncio
from typing import Any, Coroutine, Optional, Set

from shared.logging import get_logger


class BackgroundTaskRunner:
    """Owns detached asyncio tasks until they finish."""

    def __init__(self, name: str = "background"):
        self.name = name
        self.logger = get_logger(f"{name}.tasks")
        self._tasks: Set[asyncio.Task] = set()
        self._closed = False

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def submit(self, coro: Coroutine[Any, Any, Any], name: str) -> Optional[asyncio.Task]:
        """Schedule ``coro`` as a detached task.

        Returns the task, or None when the runner is already shut down.
        """
        if self._closed:
            self.logger.warning("Background task rejected after shutdown", task=name)
            coro.close()
            return None

        task = asyncio.get_running_loop().create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            self.logger.debug("Background task cancelled", task=task.get_name())
            return

        exc = task.exception()
        if exc is not None:
            self.logger.error(
                "Background task failed",
                task=task.get_name(),
                error=str(exc),
                error_type=type(exc).__name__,
            )

    async def shutdown(self, timeout: float = 5.0) -> None:
        """Wait for in-flight tasks, cancelling whatever is left after ``timeout``."""
        self._closed = True
        running = list(self._tasks)
        if not running:
            return

        self.logger.info("Draining background tasks", count=len(running))
        _, stuck = await asyncio.wait(running, timeout=timeout)

        if stuck:
            self.logger.warning("Cancelling stuck background tasks", count=len(stuck))
            for task in stuck:
                task.cancel()
            await asyncio.gather(*stuck, return_exceptions=True)
