# src/scout_sync/core/periodic.py

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)


class PeriodicTask:
    """
    Cancellable handle around a polling loop.

    Runs `callback` every `interval_seconds` on the running event loop, optionally
    once right away. A failing tick is logged and the loop keeps going.
    To stop it, call cancel(); the handle can be started again afterwards.
    """

    def __init__(
        self,
        callback: Callable[[], Awaitable[object]],
        interval_seconds: float,
        *,
        name: str,
        run_immediately: bool = False,
    ) -> None:
        self._callback = callback
        self._interval = max(0.001, float(interval_seconds))
        self._name = name
        self._run_immediately = run_immediately
        self._task: asyncio.Task[None] | None = None
        self.ticks = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        loop = asyncio.get_running_loop()
        self._task = loop.create_task(self._run(), name=self._name)
        logger.debug("Periodic task %s started (every %.1fs)", self._name, self._interval)

    def cancel(self) -> None:
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            logger.debug("Periodic task %s cancelled", self._name)

    async def wait_cancelled(self) -> None:
        """Cancel and wait until the loop has actually exited."""
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _tick(self) -> None:
        self.ticks += 1
        try:
            await self._callback()
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Periodic task %s tick failed", self._name)

    async def _run(self) -> None:
        if self._run_immediately:
            await self._tick()
        while True:
            await asyncio.sleep(self._interval)
            await self._tick()
