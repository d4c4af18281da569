"""Daily jobs on an APScheduler cron schedule."""

import asyncio
import logging
from datetime import datetime
from typing import Callable, Optional, Sequence

import pytz
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

logger = logging.getLogger(__name__)

# A run delayed by more than this (event loop stalled, process asleep) is skipped
MISFIRE_GRACE_SECONDS = 15 * 60


class DailyJob:
    """Work that runs once a day at ``hour:minute`` local time.

    Subclasses implement ``run_once(fire_at)``. ``fire`` is what the
    scheduler calls; whatever ``run_once`` raises is logged and the job
    stays scheduled for the next day.
    """

    name = "daily-job"

    def __init__(
        self,
        hour: int,
        minute: int = 0,
        timezone: str = "Europe/Moscow",
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.hour = hour
        self.minute = minute
        self.tz = pytz.timezone(timezone)
        self._clock = clock or (lambda: datetime.now(self.tz))
        self._running: Optional[asyncio.Task] = None

    def trigger(self) -> CronTrigger:
        return CronTrigger(hour=self.hour, minute=self.minute, timezone=self.tz)

    async def run_once(self, fire_at: datetime) -> None:
        raise NotImplementedError

    async def fire(self) -> None:
        fire_at = self._clock()
        self._running = asyncio.current_task()
        try:
            await self.run_once(fire_at)
        except Exception as e:
            logger.exception(f"{self.name}: run for {fire_at:%Y-%m-%d %H:%M} failed: {e}")
        finally:
            self._running = None

    async def wait_idle(self) -> None:
        """Wait for an in-flight run to finish."""
        task = self._running
        if task is not None and task is not asyncio.current_task() and not task.done():
            await asyncio.gather(task, return_exceptions=True)


def build_scheduler(jobs: Sequence[DailyJob], timezone: str = "Europe/Moscow") -> AsyncIOScheduler:
    """Scheduler with one cron job per ``DailyJob``; call ``start()`` inside the event loop."""
    scheduler = AsyncIOScheduler(
        timezone=pytz.timezone(timezone),
        job_defaults={
            "coalesce": True,
            "max_instances": 1,
            "misfire_grace_time": MISFIRE_GRACE_SECONDS,
        },
    )
    for job in jobs:
        scheduler.add_job(
            job.fire,
            trigger=job.trigger(),
            id=job.name,
            name=job.name,
            replace_existing=True,
        )
        logger.info(f"{job.name}: scheduled daily at {job.hour:02d}:{job.minute:02d} {job.tz.zone}")
    return scheduler


async def shutdown_scheduler(scheduler: AsyncIOScheduler, jobs: Sequence[DailyJob]) -> None:
    """Stop firing new runs, let in-flight ones finish, then shut down."""
    if not scheduler.running:
        return
    scheduler.pause()
    for job in jobs:
        await job.wait_idle()
    scheduler.shutdown(wait=False)
    logger.info("Scheduler stopped")
