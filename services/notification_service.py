"""Delivers homework status reports to guardians."""

import logging
from datetime import datetime

import pytz

from services.exceptions import TransportError
from services.schemas import HomeworkStatus
from services.status_service import format_status

logger = logging.getLogger(__name__)


def format_uploaded_at(uploaded_at: datetime, timezone: str) -> str:
    """Upload time (naive UTC) shown in the guardian's timezone."""
    local = pytz.utc.localize(uploaded_at).astimezone(pytz.timezone(timezone))
    return local.strftime("%H:%M %d.%m.%Y")


class NotificationService:
    """Sends the text summary and the homework photos of one student."""

    def __init__(self, transport, timezone: str = "Europe/Moscow"):
        self.transport = transport
        self.timezone = timezone

    async def send_status(self, chat_id: int, student_handle: str, status: HomeworkStatus) -> int:
        """Send the summary, then every photo grouped by subject.

        A failed summary raises TransportError. Photo failures are logged
        and counted; the count is returned.
        """
        await self.transport.send_text(chat_id, format_status(student_handle, status))

        failed = 0
        for subject, submissions in status.submissions.items():
            try:
                await self.transport.send_text(chat_id, f"📚 Фото домашки по предмету {subject}:")
            except TransportError as e:
                logger.error(f"Error sending subject header to {chat_id}: {e}")

            for submission in submissions:
                caption = (
                    f"Предмет: {subject}\n"
                    f"Загружено в: {format_uploaded_at(submission.uploaded_at, self.timezone)}"
                )
                try:
                    await self.transport.send_photo(chat_id, submission.photo, caption=caption)
                except TransportError as e:
                    failed += 1
                    logger.error(f"Error sending homework photo {submission.submission_id} to {chat_id}: {e}")

        logger.info(
            f"Sent status of {student_handle} to {chat_id}: "
            f"{len(status.completed)} started, {len(status.incomplete)} not started, {failed} photos failed"
        )
        return failed
