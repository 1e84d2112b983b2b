"""
scheduler.py
Background timer driving repeated bulk sync passes.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from sync import BulkSynchronizer, SyncReport

logger = logging.getLogger(__name__)

SECONDS_PER_MINUTE = 60.0


class PeriodicSync:
    """
    At most one timer is armed. Each tick launches a pass in its own task;
    a tick that finds the previous pass still running is skipped, not queued.
    stop() disarms the timer but leaves an in-flight pass to finish.
    """

    def __init__(
        self,
        synchronizer: BulkSynchronizer,
        sleep: Optional[Callable[[float], Awaitable[object]]] = None,
    ) -> None:
        self.synchronizer = synchronizer
        self.sleep = sleep if sleep is not None else asyncio.sleep
        self._timer: asyncio.Task | None = None
        self._passes: set[asyncio.Task] = set()
        self.interval_minutes: float | None = None
        self.in_flight = False
        self.skipped = 0

    @property
    def running(self) -> bool:
        return self._timer is not None and not self._timer.done()

    def start(self, interval_minutes: float) -> None:
        """Must be called from inside the event loop that owns the sync work."""
        if interval_minutes <= 0:
            raise ValueError("interval_minutes must be positive")
        self.stop()
        self.interval_minutes = interval_minutes
        self._timer = asyncio.get_running_loop().create_task(self._tick_forever(interval_minutes * SECONDS_PER_MINUTE))
        logger.info("Periodic sync started (every %g min)", interval_minutes)

    def stop(self) -> bool:
        if self._timer is None:
            return False
        timer, self._timer = self._timer, None
        if timer.done():
            return False
        timer.cancel()
        logger.info("Periodic sync stopped")
        return True

    async def _tick_forever(self, interval_seconds: float) -> None:
        while True:
            await self.sleep(interval_seconds)
            task = asyncio.get_running_loop().create_task(self.fire())
            self._passes.add(task)
            task.add_done_callback(self._passes.discard)

    async def fire(self) -> SyncReport | None:
        if self.in_flight:
            self.skipped += 1
            logger.info("Previous sync pass still running; skipping this tick")
            return None
        self.in_flight = True
        try:
            return await self.synchronizer.sync_all()
        except Exception:
            logger.exception("Periodic sync pass crashed")
            return None
        finally:
            self.in_flight = False


async def start_after_initial_sync(
    scheduler: PeriodicSync,
    *,
    initial_delay: float = 2.0,
    interval_minutes: float = 3.0,
    retry_interval_minutes: float = 2.0,
) -> SyncReport | None:
    """Run one pass after the initial load, then arm the timer (faster cadence on failure)."""
    if initial_delay > 0:
        await scheduler.sleep(initial_delay)
    report = await scheduler.fire()
    if report is not None and report.ok:
        logger.info("Initial data synchronization successful")
        scheduler.start(interval_minutes)
    else:
        logger.warning("Initial data synchronization failed, changes may not persist after reload")
        scheduler.start(retry_interval_minutes)
    return report
