"""Periodic background task that runs the reaper.

Owned by the application lifespan: ``start()`` on startup, ``stop()`` on
shutdown.
"""

import asyncio
import logging
from datetime import datetime
from typing import Any

from resultcache.services.reaper import StaleResultReaper

logger = logging.getLogger(__name__)


class ReaperScheduler:
    """Cancellable asyncio loop calling ``reaper.run_once()`` every interval."""

    def __init__(self, reaper: StaleResultReaper, interval_seconds: float = 10.0):
        self.reaper = reaper
        self.interval_seconds = interval_seconds
        self._task: asyncio.Task | None = None
        self._run_count = 0
        self._last_run: datetime | None = None
        self._last_deleted = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self):
        if self.running:
            logger.warning("ReaperScheduler already started")
            return
        self._task = asyncio.create_task(self._loop(), name="result-reaper")
        logger.info("ReaperScheduler started (interval=%.1fs)", self.interval_seconds)

    async def stop(self):
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("ReaperScheduler stopped")

    async def _loop(self):
        while True:
            await self.tick()
            await asyncio.sleep(self.interval_seconds)

    async def tick(self) -> int:
        """One scheduled pass. Unexpected errors are logged and the loop keeps going."""
        self._run_count += 1
        self._last_run = self.reaper.clock.now()
        try:
            self._last_deleted = await self.reaper.run_once()
        except Exception:
            logger.exception("Reaper tick failed")
            self._last_deleted = 0
        return self._last_deleted

    def health(self) -> dict[str, Any]:
        return {
            "running": self.running,
            "interval_seconds": self.interval_seconds,
            "run_count": self._run_count,
            "last_run": self._last_run.isoformat() if self._last_run else None,
            "last_deleted": self._last_deleted,
        }
