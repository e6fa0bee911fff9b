"""Fixed-interval scheduling with at most one job outstanding."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


class SingleSlotScheduler:
    """Dispatches ``job`` every ``interval`` seconds.

    A tick that fires while the previous job is still running is skipped
    rather than queued, so jobs never overlap and never pile up.
    """

    def __init__(self, interval: float, job: Callable[[], Awaitable[Any]]) -> None:
        self.interval = interval
        self._job = job
        self._task: Optional[asyncio.Task[Any]] = None
        self.dispatched = 0
        self.skipped = 0

    @property
    def busy(self) -> bool:
        return self._task is not None and not self._task.done()

    def tick(self) -> Optional[asyncio.Task[Any]]:
        """Dispatch the job unless one is pending; returns the new task, if any."""
        if self.busy:
            self.skipped += 1
            logger.debug("Tick skipped, previous job still pending")
            return None
        self._task = asyncio.create_task(self._job())
        self.dispatched += 1
        return self._task

    async def run(self) -> None:
        loop = asyncio.get_running_loop()
        next_at = loop.time()
        try:
            while True:
                self.tick()
                next_at += self.interval
                await asyncio.sleep(max(0.0, next_at - loop.time()))
        finally:
            await self.cancel()

    async def cancel(self) -> None:
        task = self._task
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
