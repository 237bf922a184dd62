"""Repeating asyncio task with start/stop control."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

logger = logging.getLogger("wallet_sync.periodic")


class PeriodicTask:
    """Runs ``callback`` every ``interval`` seconds until stopped.

    The next sleep starts only after the previous run has finished, so runs
    of one task never overlap.  Exceptions escaping ``callback`` are logged
    and the timer keeps going.
    """

    def __init__(
        self,
        name: str,
        callback: Callable[[], Awaitable[object]],
        interval: float,
    ) -> None:
        self.name = name
        self.callback = callback
        self.interval = interval
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> bool:
        """Schedule the loop on the running event loop.

        Returns ``False`` (and does nothing) if already running.
        """
        if self.running:
            return False
        self._task = asyncio.get_running_loop().create_task(self._loop(), name=self.name)
        return True

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                await self.callback()
            except Exception:
                logger.exception(f"Error in {self.name} cycle")
