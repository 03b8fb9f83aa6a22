"""DebouncedScheduler: coalesce bursts of triggers into one deferred call."""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable

logger = logging.getLogger(__name__)


class DebouncedScheduler:
    """Run ``callback`` once, ``delay`` seconds after the last ``schedule()``.

    Each ``schedule()`` resets the timer instead of stacking another one.
    Coroutine callbacks run as tasks on the running loop; ``generation``
    counts how many times the callback has actually fired.
    """

    def __init__(
        self,
        delay: float,
        callback: Callable[[], Awaitable[Any] | Any],
    ) -> None:
        self.delay = delay
        self.callback = callback
        self.generation = 0
        self._handle: asyncio.TimerHandle | None = None
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def schedule(self) -> None:
        """(Re)start the timer. Must be called from inside a running loop."""
        self.cancel()
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self.delay, self._fire)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def flush(self) -> asyncio.Task | None:
        """Fire now if a trigger is pending. Returns the task for async callbacks."""
        if self._handle is None:
            return None
        self.cancel()
        return self._fire()

    def _fire(self) -> asyncio.Task | None:
        self._handle = None
        self.generation += 1
        result = self.callback()
        if not inspect.isawaitable(result):
            return None
        task = asyncio.ensure_future(result)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Debounced callback failed: %s", exc, exc_info=exc)

    async def drain(self) -> None:
        """Wait for every callback task started so far."""
        while True:
            running = [t for t in self._tasks if not t.done()]
            if not running:
                return
            await asyncio.gather(*running, return_exceptions=True)
