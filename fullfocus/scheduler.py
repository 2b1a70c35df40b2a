"""
Poll scheduler for the calendar monitor.

Runs the monitor on a fixed interval with APScheduler and re-runs it as soon
as the provider reports a change. Everything executes on one asyncio event
loop and evaluations are serialized with a lock.
"""

import asyncio
import logging
from typing import Any

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from .monitors.calendar import CalendarMonitor

logger = logging.getLogger(__name__)

POLL_JOB_ID = "calendar_poll"
CHANGE_JOB_ID = "calendar_changes"


class PollScheduler:
    """Drives CalendarMonitor checks from a timer and change notifications."""

    def __init__(
        self,
        monitor: CalendarMonitor,
        interval_seconds: int = 10,
        change_check_seconds: int = 5,
        scheduler: AsyncIOScheduler | None = None,
    ):
        self.monitor = monitor
        self.provider = monitor.provider
        self.interval_seconds = interval_seconds
        self.change_check_seconds = change_check_seconds
        self.scheduler = scheduler or AsyncIOScheduler()
        self._lock = asyncio.Lock()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._pending: set[asyncio.Task] = set()
        self._running = False
        self.tick_count = 0

    @property
    def running(self) -> bool:
        return self._running

    async def tick(self, reason: str = "timer") -> dict[str, Any]:
        """Run one evaluation of the monitor."""
        async with self._lock:
            self.tick_count += 1
            logger.debug(f"Calendar evaluation ({reason})")
            return await self.monitor.run()

    async def _check_provider(self):
        try:
            await self.provider.check_for_changes()
        except Exception as e:
            logger.error(f"Change detection failed: {e}", exc_info=True)

    def on_store_changed(self):
        """Provider change callback; schedules an immediate evaluation."""
        if self._loop is None or self._loop.is_closed():
            logger.debug("Change notification ignored, scheduler not started")
            return
        self._loop.call_soon_threadsafe(self._spawn_tick)

    def _spawn_tick(self):
        task = self._loop.create_task(self.tick("change"))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def wait_idle(self):
        """Wait for change-triggered evaluations that are still running."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def start(self):
        """Schedule the polling jobs and subscribe to provider changes."""
        if self._running:
            logger.warning("Poll scheduler is already running")
            return

        self._loop = asyncio.get_running_loop()

        self.scheduler.add_job(
            self.tick,
            trigger=IntervalTrigger(seconds=self.interval_seconds),
            id=POLL_JOB_ID,
            name="Calendar Poll",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self.scheduler.add_job(
            self._check_provider,
            trigger=IntervalTrigger(seconds=self.change_check_seconds),
            id=CHANGE_JOB_ID,
            name="Calendar Change Check",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self.provider.subscribe(self.on_store_changed)
        self.scheduler.start()
        self._running = True
        logger.info(f"Polling calendar every {self.interval_seconds}s")

    async def stop(self):
        """Stop polling, drop the change subscription and let running checks finish."""
        self.provider.unsubscribe(self.on_store_changed)
        self._running = False
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            # AsyncIOScheduler may defer shutdown to the next loop iteration
            await asyncio.sleep(0)
        await self.wait_idle()
        async with self._lock:
            pass
        self._loop = None
        logger.info("Poll scheduler stopped")
