"""Named, cancellable asyncio task handles.

Replaces ad hoc timer bookkeeping: every timer-like activity of a
connection session (retry backoff, redirect, signal monitor) lives in one
``TaskSlots`` and is cancelled together.
"""

import asyncio
import logging
from typing import Any, Coroutine

logger = logging.getLogger(__name__)


class TaskSlots:
    """A set of asyncio tasks keyed by slot name.

    Starting a task in an occupied slot cancels the previous occupant.

    Usage:
        slots = TaskSlots()
        slots.start("monitor", monitor_loop())
        slots.cancel("monitor")
        await slots.cancel_all()
    """

    def __init__(self) -> None:
        self._tasks: dict[str, asyncio.Task[Any]] = {}

    def __contains__(self, name: str) -> bool:
        return self.is_running(name)

    def start(self, name: str, coro: Coroutine[Any, Any, Any]) -> asyncio.Task[Any]:
        """Schedule ``coro`` in slot ``name``.

        Args:
            name: Slot name
            coro: Coroutine to run

        Returns:
            The created task
        """
        self.cancel(name)
        task = asyncio.create_task(coro, name=name)
        self._tasks[name] = task
        task.add_done_callback(lambda t, n=name: self._on_done(n, t))
        return task

    def _on_done(self, name: str, task: asyncio.Task[Any]) -> None:
        if self._tasks.get(name) is task:
            del self._tasks[name]
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Background task %s failed: %s", name, exc)

    def get(self, name: str) -> asyncio.Task[Any] | None:
        return self._tasks.get(name)

    def is_running(self, name: str) -> bool:
        task = self._tasks.get(name)
        return task is not None and not task.done()

    def cancel(self, name: str) -> bool:
        """Cancel the task in ``name``, unless it is the calling task.

        Returns:
            True if a running task was cancelled
        """
        task = self._tasks.get(name)
        if task is None or task.done():
            return False
        if task is asyncio.current_task():
            # A task cancelling its own slot is finishing on its own
            del self._tasks[name]
            return False
        task.cancel()
        del self._tasks[name]
        return True

    async def cancel_all(self) -> None:
        """Cancel every task and wait for them to unwind."""
        current = asyncio.current_task()
        tasks = [t for t in self._tasks.values() if t is not current and not t.done()]
        self._tasks.clear()
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    def names(self) -> list[str]:
        return [name for name, task in self._tasks.items() if not task.done()]
