"""Guardian -> student watch list."""

import logging
from typing import List

from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from database.models import User, Contact
from services.exceptions import NotFound
from services.schedule_store import ScheduleStore, strip_handle

logger = logging.getLogger(__name__)


def normalize_handle(raw: str) -> str:
    """Canonical contact form of a handle: ``@name``."""
    name = strip_handle(raw)
    if not name:
        raise ValueError("empty handle")
    return f"@{name}"


class ContactService:
    """Lets guardians watch students that already use the bot."""

    def __init__(self, store: ScheduleStore):
        self.store = store

    async def add_student(self, guardian_id: str, student_handle: str) -> str:
        """Watch ``student_handle`` and mark the caller as a guardian.

        Raises NotFound when no user has that handle; the guardian flag is
        left untouched in that case. Returns the canonical handle.
        """
        handle = normalize_handle(student_handle)
        added = await self.store.run("add_student", self._add_student, guardian_id, handle)
        if added:
            logger.info(f"Guardian {guardian_id} now watches {handle}")
        else:
            logger.info(f"Guardian {guardian_id} already watches {handle}")
        return handle

    async def _add_student(self, session: AsyncSession, guardian_id: str, handle: str) -> bool:
        student = (await session.execute(
            select(User.id).where(func.lower(User.username) == handle[1:].lower()).limit(1)
        )).scalar_one_or_none()
        if student is None:
            raise NotFound(f"student with username {handle} not found")

        guardian = (await session.execute(
            select(User).where(User.user_id == guardian_id)
        )).scalar_one_or_none()
        if guardian is None:
            raise NotFound(f"no user found with ID {guardian_id}")

        existing = (await session.execute(
            select(Contact.id).where(
                Contact.guardian_pk == guardian.id,
                func.lower(Contact.student_handle) == handle.lower(),
            )
        )).first()

        guardian.is_guardian = True
        if existing is None:
            session.add(Contact(guardian_pk=guardian.id, student_handle=handle))

        try:
            await session.commit()
        except IntegrityError:
            # Same edge added concurrently; only the flag is left to set
            await session.rollback()
            guardian = (await session.execute(
                select(User).where(User.user_id == guardian_id)
            )).scalar_one()
            guardian.is_guardian = True
            await session.commit()
            return False
        return existing is None

    async def contacts_for(self, guardian_id: str) -> List[str]:
        """Handles watched by ``guardian_id``, oldest first."""

        async def _list(session):
            result = await session.execute(
                select(Contact.student_handle)
                .join(User, Contact.guardian_pk == User.id)
                .where(User.user_id == guardian_id)
                .order_by(Contact.id)
            )
            return list(result.scalars())

        return await self.store.run("contacts_for", _list)
