"""Homework status of a student for one day."""

import logging
from typing import Dict, List

from services.schedule_store import ScheduleStore
from services.schemas import HomeworkStatus, SubmissionRecord

logger = logging.getLogger(__name__)


class StatusService:
    """Partitions a day's subjects into started and not started."""

    def __init__(self, store: ScheduleStore):
        self.store = store

    async def status_for(self, student_handle: str, day: str) -> HomeworkStatus:
        """Status of ``day`` for the student with ``student_handle``.

        Raises NotFound for an unknown student. A day missing from the
        student's schedule yields an empty status.
        """
        student = await self.store.get_user_by_handle(student_handle)
        schedule = await self.store.find_day(student.user_id, day, with_submissions=True)
        if schedule is None:
            logger.info(f"No {day} in schedule of {student_handle}")
            return HomeworkStatus()

        completed: List[str] = []
        incomplete: List[str] = []
        submissions: Dict[str, List[SubmissionRecord]] = {}

        for subject in schedule.subjects:
            if subject.submissions:
                completed.append(subject.subject_name)
                submissions.setdefault(subject.subject_name, []).extend(subject.submissions)
            else:
                incomplete.append(subject.subject_name)

        return HomeworkStatus(completed=completed, incomplete=incomplete, submissions=submissions)


def format_status(student_handle: str, status: HomeworkStatus) -> str:
    """Summary text sent to guardians."""
    lines = [f"Статус домашнего задания для {student_handle}:", ""]

    if status.is_empty:
        lines.append("На этот день уроков нет.")
        return "\n".join(lines)

    if status.completed:
        lines.append("✅ Начата домашка:")
        lines.extend(f"- {subject}" for subject in status.completed)

    if status.incomplete:
        if status.completed:
            lines.append("")
        lines.append("❌ Не начата домашка:")
        lines.extend(f"- {subject}" for subject in status.incomplete)

    return "\n".join(lines)
