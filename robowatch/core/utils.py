"""Core utility helpers shared across modules."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Coroutine, Optional, Set

LOGGER = logging.getLogger(__name__)


class CallbackTasks:
    """Keeps coroutine callbacks alive until they finish and logs their failures.

    Callbacks are invoked from synchronous code paths; a callback that returns a
    coroutine is run as a task owned by this set instead of being awaited.
    """

    def __init__(self, label: str) -> None:
        self.label = label
        self._tasks: Set[asyncio.Task[Any]] = set()

    def __len__(self) -> int:
        return len(self._tasks)

    def spawn(
        self,
        coro: Coroutine[Any, Any, Any],
        *,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ) -> asyncio.Task[Any]:
        task = (loop or asyncio.get_running_loop()).create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._finished)
        return task

    def cancel_all(self) -> None:
        for task in list(self._tasks):
            task.cancel()

    def _finished(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            LOGGER.error("%s failed", self.label, exc_info=exc)
