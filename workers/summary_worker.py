"""Nightly homework summary for guardians."""

import logging
from datetime import datetime
from typing import Callable, Optional, Sequence

from services.contact_service import ContactService
from services.notification_service import NotificationService
from services.schedule_store import ScheduleStore
from services.status_service import StatusService
from bot.utils import next_day_name
from workers.scheduling import DailyJob

logger = logging.getLogger(__name__)


class SummaryDispatcher(DailyJob):
    """At ``hour`` every evening, tells each guardian how tomorrow's homework stands."""

    name = "daily-summary"

    def __init__(
        self,
        store: ScheduleStore,
        contacts: ContactService,
        status: StatusService,
        notifications: NotificationService,
        hour: int = 21,
        rest_days: Sequence[str] = ("Sunday", "Tuesday"),
        timezone: str = "Europe/Moscow",
        clock: Optional[Callable[[], datetime]] = None,
    ):
        super().__init__(hour=hour, timezone=timezone, clock=clock)
        self.store = store
        self.contacts = contacts
        self.status = status
        self.notifications = notifications
        self.rest_days = tuple(rest_days)

    async def run_once(self, fire_at: datetime) -> None:
        day = next_day_name(fire_at)
        if day in self.rest_days:
            logger.info(f"Skipping summary notifications for {day}")
            return

        guardians = sent = failed = 0
        async for guardian in self.store.guardians():
            guardians += 1
            try:
                handles = await self.contacts.contacts_for(guardian.user_id)
            except Exception as e:
                logger.error(f"Error getting contacts of parent {guardian.user_id}: {e}")
                continue

            for handle in handles:
                try:
                    status = await self.status.status_for(handle, day)
                    await self.notifications.send_status(int(guardian.user_id), handle, status)
                    sent += 1
                except Exception as e:
                    failed += 1
                    logger.error(f"Error sending summary of {handle} to parent {guardian.user_id}: {e}")

        logger.info(f"Daily summaries for {day}: {guardians} parents, {sent} sent, {failed} failed")
