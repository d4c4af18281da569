"""Midnight eraser of old homework."""

import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

import pytz

from services.schedule_store import ScheduleStore
from bot.utils import day_name_days_ago
from workers.scheduling import DailyJob

logger = logging.getLogger(__name__)

RETENTION_MODES = ("weekday", "timestamp")


class HomeworkEraser(DailyJob):
    """Deletes submissions once they are ``retention_days`` old.

    ``weekday`` mode clears the weekday that was ``retention_days`` ago for
    every user; a missed midnight leaves that weekday's homework until the
    same weekday comes round again. ``timestamp`` mode deletes everything
    uploaded before ``now - retention_days`` and catches up after a missed
    run.
    """

    name = "homework-eraser"

    def __init__(
        self,
        store: ScheduleStore,
        hour: int = 0,
        retention_days: int = 5,
        mode: str = "weekday",
        timezone: str = "Europe/Moscow",
        clock: Optional[Callable[[], datetime]] = None,
    ):
        if mode not in RETENTION_MODES:
            raise ValueError(f"unknown retention mode {mode!r}")
        super().__init__(hour=hour, timezone=timezone, clock=clock)
        self.store = store
        self.retention_days = retention_days
        self.mode = mode

    async def run_once(self, fire_at: datetime) -> None:
        if self.mode == "timestamp":
            cutoff = (fire_at - timedelta(days=self.retention_days)).astimezone(pytz.utc).replace(tzinfo=None)
            target = f"before {cutoff:%Y-%m-%d %H:%M} UTC"
        else:
            old_day = day_name_days_ago(fire_at, self.retention_days)
            target = old_day

        users = erased = failed = 0
        async for user in self.store.all_users():
            users += 1
            try:
                if self.mode == "timestamp":
                    erased += await self.store.erase_older_than(user.user_id, cutoff)
                else:
                    erased += await self.store.erase_day(user.user_id, old_day)
            except Exception as e:
                failed += 1
                logger.error(f"Error erasing homework for user {user.user_id}, {target}: {e}")

        logger.info(f"Erased {erased} submissions ({target}) for {users} users, {failed} failed")
