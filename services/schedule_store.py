"""Per-user weekly schedule storage.

Every public coroutine opens its own session and runs under a fixed
deadline; SQLAlchemy failures and timeouts surface as ``StoreError`` while
missing users, days and subjects surface as ``NotFound``.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Awaitable, Callable, List, Optional, Tuple

from sqlalchemy import select, delete, func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from config.settings import get_settings
from database.models import User, ScheduleDay, Subject, Submission, utcnow
from services.exceptions import NotFound, StoreError
from services.schedule_template import DEFAULT_TEMPLATE, ScheduleTemplate, normalize_subject
from services.schemas import DaySchedule, SubjectEntry, SubmissionRecord, UserRecord

logger = logging.getLogger(__name__)


def strip_handle(handle: Optional[str]) -> Optional[str]:
    """Handle as stored on the user row: no leading "@", no whitespace."""
    if handle is None:
        return None
    handle = handle.strip().lstrip("@")
    return handle or None


def make_submission_id(user_id: str, day: str, subject: str, uploaded_at: datetime) -> str:
    """Deterministic id; two uploads for one subject in the same second collide."""
    seconds = int(uploaded_at.replace(tzinfo=timezone.utc).timestamp())
    return f"{user_id}-{day}-{subject}-{seconds}"


def _to_record(submission: Submission, subject_name: Optional[str] = None, day_name: Optional[str] = None) -> SubmissionRecord:
    return SubmissionRecord(
        submission_id=submission.submission_id,
        photo=submission.photo,
        uploaded_at=submission.uploaded_at,
        uploaded_by=submission.uploaded_by,
        subject_name=subject_name,
        day_name=day_name,
    )


def _to_day_schedule(day: ScheduleDay, with_submissions: bool) -> DaySchedule:
    return DaySchedule(
        day_name=day.day_name,
        subjects=[
            SubjectEntry(
                subject_name=subject.subject_name,
                submissions=[
                    _to_record(submission, subject.subject_name, day.day_name)
                    for submission in subject.submissions
                ] if with_submissions else [],
            )
            for subject in day.subjects
        ],
    )


class ScheduleStore:
    """Users, their weekly schedules and the homework filed under them."""

    def __init__(
        self,
        session_factory: async_sessionmaker,
        template: ScheduleTemplate = DEFAULT_TEMPLATE,
        timeout: Optional[float] = None,
    ):
        self._session_factory = session_factory
        self.template = template
        self.timeout = timeout if timeout is not None else get_settings().store_timeout_seconds

    async def run(self, operation: str, work: Callable[..., Awaitable[Any]], *args) -> Any:
        """Run ``work(session, *args)`` in a fresh session under the store deadline."""

        async def _unit_of_work():
            async with self._session_factory() as session:
                return await work(session, *args)

        try:
            return await asyncio.wait_for(_unit_of_work(), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            raise StoreError(f"{operation} timed out after {self.timeout}s") from e
        except SQLAlchemyError as e:
            raise StoreError(f"{operation} failed: {e}") from e

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    async def ensure_user(self, user_id: str, username: Optional[str]) -> None:
        """Create the user on first contact; otherwise reconcile the handle."""
        username = strip_handle(username)
        stored = await self.run("ensure_user", self._create_user_if_absent, user_id, username)
        if stored is None or stored.username == username:
            return

        try:
            await self.run("reconcile_username", self._set_username, user_id, username)
            logger.info(f"Updated handle of user {user_id}: {stored.username} -> {username}")
        except StoreError as e:
            logger.warning(f"Failed to reconcile handle of user {user_id}: {e}")

    async def _create_user_if_absent(self, session: AsyncSession, user_id: str, username: Optional[str]) -> Optional[User]:
        existing = await self._find_user(session, user_id)
        if existing is not None:
            return existing

        session.add(User(user_id=user_id, username=username))
        try:
            await session.commit()
        except IntegrityError:
            # Created by a concurrent handler in the meantime
            await session.rollback()
            logger.info(f"User {user_id} already exists")
            return None

        logger.info(f"Created user {user_id} (@{username})")
        return None

    async def _set_username(self, session: AsyncSession, user_id: str, username: Optional[str]) -> None:
        user = await self._find_user(session, user_id)
        if user is not None:
            user.username = username
            await session.commit()

    async def _find_user(self, session: AsyncSession, user_id: str) -> Optional[User]:
        result = await session.execute(select(User).where(User.user_id == user_id))
        return result.scalar_one_or_none()

    async def get_user(self, user_id: str) -> UserRecord:
        """User by platform id."""

        async def _get(session):
            user = await self._find_user(session, user_id)
            if user is None:
                raise NotFound(f"user {user_id} not found")
            return UserRecord.model_validate(user)

        return await self.run("get_user", _get)

    async def get_user_by_handle(self, handle: str) -> UserRecord:
        """User by display handle, with or without the leading "@"."""
        name = strip_handle(handle)

        async def _get(session):
            user = None
            if name:
                result = await session.execute(
                    select(User)
                    .where(func.lower(User.username) == name.lower())
                    .order_by(User.id)
                    .limit(1)
                )
                user = result.scalars().first()
            if user is None:
                raise NotFound(f"user with handle @{name} not found")
            return UserRecord.model_validate(user)

        return await self.run("get_user_by_handle", _get)

    async def all_users(self, batch_size: int = 100, guardians_only: bool = False) -> AsyncIterator[UserRecord]:
        """Iterate over every user in primary key order.

        Users are fetched in batches so the sequence is lazy; every call
        starts a fresh pass.
        """
        last_pk = 0
        while True:
            batch = await self.run("all_users", self._user_batch, last_pk, batch_size, guardians_only)
            for _, record in batch:
                yield record
            if len(batch) < batch_size:
                return
            last_pk = batch[-1][0]

    def guardians(self, batch_size: int = 100) -> AsyncIterator[UserRecord]:
        """Iterate over users that watch at least one student."""
        return self.all_users(batch_size=batch_size, guardians_only=True)

    async def _user_batch(
        self, session: AsyncSession, after_pk: int, limit: int, guardians_only: bool
    ) -> List[Tuple[int, UserRecord]]:
        stmt = select(User).where(User.id > after_pk)
        if guardians_only:
            stmt = stmt.where(User.is_guardian.is_(True))
        result = await session.execute(stmt.order_by(User.id).limit(limit))
        return [(user.id, UserRecord.model_validate(user)) for user in result.scalars()]

    # ------------------------------------------------------------------
    # Schedule
    # ------------------------------------------------------------------

    async def ensure_schedule(self, user_id: str) -> bool:
        """Install the weekly template if the user has no schedule yet.

        Returns True when the template was installed by this call.
        """
        installed = await self.run("ensure_schedule", self._install_template, user_id)
        if installed:
            logger.info(f"Initialized schedule for user {user_id} ({len(self.template)} days)")
        return installed

    async def _install_template(self, session: AsyncSession, user_id: str) -> bool:
        try:
            user = await self._find_user(session, user_id)
            if user is None:
                user = User(user_id=user_id)
                session.add(user)
                await session.flush()

            day_count = await session.scalar(
                select(func.count(ScheduleDay.id)).where(ScheduleDay.user_pk == user.id)
            )
            if day_count:
                return False

            for position, (day_name, subjects) in enumerate(self.template):
                session.add(ScheduleDay(
                    user_pk=user.id,
                    position=position,
                    day_name=day_name,
                    subjects=[
                        Subject(position=index, subject_name=name)
                        for index, name in enumerate(subjects)
                    ],
                ))
            await session.commit()
            return True
        except IntegrityError:
            # Another handler installed the template first
            await session.rollback()
            return False

    async def ensure_initialized(self, user_id: str, username: Optional[str]) -> None:
        """Make sure the user row and its schedule exist."""
        await self.ensure_user(user_id, username)
        await self.ensure_schedule(user_id)

    async def find_day(self, user_id: str, day: str, with_submissions: bool = False) -> Optional[DaySchedule]:
        """First schedule entry named ``day``, or None when the user has none."""

        async def _find(session):
            day_row = await self._find_day_row(session, user_id, day, with_submissions)
            return _to_day_schedule(day_row, with_submissions) if day_row else None

        return await self.run("find_day", _find)

    async def get_schedule_for_day(self, user_id: str, day: str, with_submissions: bool = False) -> DaySchedule:
        """Like ``find_day`` but raises NotFound for a missing day."""
        schedule = await self.find_day(user_id, day, with_submissions)
        if schedule is None:
            raise NotFound(f"no schedule found for user {user_id}, day {day}")
        return schedule

    async def get_schedule(self, user_id: str) -> List[DaySchedule]:
        """Whole weekly schedule with submissions, in display order."""

        async def _get(session):
            result = await session.execute(
                select(ScheduleDay)
                .join(User)
                .where(User.user_id == user_id)
                .order_by(ScheduleDay.position)
                .options(selectinload(ScheduleDay.subjects).selectinload(Subject.submissions))
            )
            return [_to_day_schedule(day, True) for day in result.scalars()]

        return await self.run("get_schedule", _get)

    async def _find_day_row(
        self, session: AsyncSession, user_id: str, day: str, with_submissions: bool = False
    ) -> Optional[ScheduleDay]:
        if with_submissions:
            loader = selectinload(ScheduleDay.subjects).selectinload(Subject.submissions)
        else:
            loader = selectinload(ScheduleDay.subjects)
        result = await session.execute(
            select(ScheduleDay)
            .join(User)
            .where(User.user_id == user_id, ScheduleDay.day_name == day)
            .order_by(ScheduleDay.position)
            .limit(1)
            .options(loader)
        )
        return result.scalars().first()

    # ------------------------------------------------------------------
    # Submissions
    # ------------------------------------------------------------------

    async def record_submission(self, user_id: str, day: str, subject_query: str, photo: bytes) -> str:
        """Append a photo under the matching subject of ``day``.

        The subject is matched on its trimmed, case-folded name. Nothing is
        written when the day or subject does not exist.
        """
        submission_id = await self.run(
            "record_submission", self._append_submission, user_id, day, subject_query, photo
        )
        logger.info(f"Saved homework {submission_id} for user {user_id}")
        return submission_id

    async def _append_submission(
        self, session: AsyncSession, user_id: str, day: str, subject_query: str, photo: bytes
    ) -> str:
        day_row = await self._find_day_row(session, user_id, day)
        if day_row is None:
            raise NotFound(f"no matching user/day found for {user_id}/{day}")

        key = normalize_subject(subject_query)
        subject = next((s for s in day_row.subjects if normalize_subject(s.subject_name) == key), None)
        if subject is None:
            raise NotFound(f"no matching subject found for {user_id}/{day}/{subject_query}")

        uploaded_at = utcnow()
        submission_id = make_submission_id(user_id, day, subject.subject_name, uploaded_at)
        session.add(Submission(
            subject_id=subject.id,
            submission_id=submission_id,
            photo=bytes(photo),
            uploaded_at=uploaded_at,
            uploaded_by=user_id,
        ))
        await session.commit()
        return submission_id

    async def get_submission(self, user_id: str, submission_id: str) -> SubmissionRecord:
        """Submission of ``user_id`` by its identifier."""

        async def _get(session):
            result = await session.execute(
                select(Submission, Subject.subject_name, ScheduleDay.day_name)
                .join(Subject, Submission.subject_id == Subject.id)
                .join(ScheduleDay, Subject.day_id == ScheduleDay.id)
                .join(User, ScheduleDay.user_pk == User.id)
                .where(User.user_id == user_id, Submission.submission_id == submission_id)
                .order_by(Submission.id)
                .limit(1)
            )
            row = result.first()
            if row is None:
                raise NotFound(f"homework with ID {submission_id} not found")
            submission, subject_name, day_name = row
            return _to_record(submission, subject_name, day_name)

        return await self.run("get_submission", _get)

    async def list_submissions(self, user_id: str, day: str, subject: str) -> List[SubmissionRecord]:
        """Every submission filed under ``subject`` on ``day``."""
        schedule = await self.get_schedule_for_day(user_id, day, with_submissions=True)
        key = normalize_subject(subject)
        for entry in schedule.subjects:
            if normalize_subject(entry.subject_name) == key:
                return entry.submissions
        raise NotFound(f"subject {subject} not found for day {day}")

    async def erase_day(self, user_id: str, day: str) -> int:
        """Delete all homework filed under ``day``; subjects stay in place."""

        async def _erase(session):
            day_ids = (await session.execute(
                select(ScheduleDay.id)
                .join(User)
                .where(User.user_id == user_id, ScheduleDay.day_name == day)
            )).scalars().all()
            if not day_ids:
                logger.warning(f"No schedule found for user: {user_id}, day: {day}")
                return 0

            result = await session.execute(
                delete(Submission).where(
                    Submission.subject_id.in_(select(Subject.id).where(Subject.day_id.in_(day_ids)))
                ).execution_options(synchronize_session=False)
            )
            await session.commit()
            return result.rowcount or 0

        erased = await self.run("erase_day", _erase)
        if erased:
            logger.info(f"Erased {erased} submissions for user {user_id}, day {day}")
        return erased

    async def erase_older_than(self, user_id: str, cutoff: datetime) -> int:
        """Delete the user's homework uploaded before ``cutoff`` (naive UTC)."""

        async def _erase(session):
            user_subjects = (
                select(Subject.id)
                .join(ScheduleDay, Subject.day_id == ScheduleDay.id)
                .join(User, ScheduleDay.user_pk == User.id)
                .where(User.user_id == user_id)
            )
            result = await session.execute(
                delete(Submission).where(
                    Submission.subject_id.in_(user_subjects),
                    Submission.uploaded_at < cutoff,
                ).execution_options(synchronize_session=False)
            )
            await session.commit()
            return result.rowcount or 0

        erased = await self.run("erase_older_than", _erase)
        if erased:
            logger.info(f"Erased {erased} submissions older than {cutoff:%Y-%m-%d %H:%M} for user {user_id}")
        return erased
