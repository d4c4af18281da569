"""Tests for the scheduled workers."""

import asyncio
from datetime import datetime, timedelta
from unittest.mock import Mock, AsyncMock

import pytest
import pytz

from services.exceptions import StoreError, TransportError
from services.schemas import UserRecord
from workers.scheduling import DailyJob, build_scheduler, shutdown_scheduler
from workers.summary_worker import SummaryDispatcher
from workers.cleanup_worker import HomeworkEraser

MOSCOW = pytz.timezone("Europe/Moscow")


def moscow(*args):
    return MOSCOW.localize(datetime(*args))


class RecordingJob(DailyJob):
    """Job that records its runs, optionally failing or waiting on a gate."""

    name = "recording-job"

    def __init__(self, clock, fail=False, gate=None):
        super().__init__(hour=21, clock=clock)
        self.fired = []
        self.finished = False
        self.fail = fail
        self.gate = gate

    async def run_once(self, fire_at):
        self.fired.append(fire_at)
        if self.gate is not None:
            await self.gate.wait()
        if self.fail:
            raise RuntimeError("boom")
        self.finished = True


class TestDailyJob:
    """Test the daily job wrapper."""

    def test_trigger_fires_later_today(self):
        """Test that 20:00 is followed by 21:00 the same day."""
        job = RecordingJob(Mock())
        now = moscow(2024, 9, 2, 20, 0)
        assert job.trigger().get_next_fire_time(None, now) == moscow(2024, 9, 2, 21, 0)

    def test_trigger_midnight(self):
        """Test that a midnight job fires at the start of the next day."""
        eraser = HomeworkEraser(Mock())
        now = moscow(2024, 9, 2, 23, 59)
        assert eraser.trigger().get_next_fire_time(None, now) == moscow(2024, 9, 3, 0, 0)

    @pytest.mark.asyncio
    async def test_fire_passes_clock_time(self):
        """Test that a run is stamped with the clock's reading."""
        job = RecordingJob(lambda: moscow(2024, 9, 2, 21, 0))
        await job.fire()
        assert job.fired == [moscow(2024, 9, 2, 21, 0)]
        assert job.finished

    @pytest.mark.asyncio
    async def test_fire_contains_failure(self):
        """Test that an exception in run_once is logged, not raised."""
        job = RecordingJob(lambda: moscow(2024, 9, 2, 21, 0), fail=True)
        await job.fire()
        assert job.fired
        assert not job.finished

    @pytest.mark.asyncio
    async def test_wait_idle_without_run(self):
        """Test that waiting on an idle job returns at once."""
        await asyncio.wait_for(RecordingJob(Mock()).wait_idle(), timeout=1)


class TestScheduler:
    """Test scheduler assembly and shutdown."""

    def test_registers_one_job_each(self):
        """Test that each worker is registered under its name."""
        summary = SummaryDispatcher(Mock(), Mock(), Mock(), Mock())
        eraser = HomeworkEraser(Mock())

        scheduler = build_scheduler([summary, eraser])

        assert sorted(job.id for job in scheduler.get_jobs()) == ["daily-summary", "homework-eraser"]

    @pytest.mark.asyncio
    async def test_start_and_shutdown(self):
        """Test that shutdown leaves the scheduler stopped."""
        job = RecordingJob(Mock())
        scheduler = build_scheduler([job])

        scheduler.start()
        assert scheduler.running
        await shutdown_scheduler(scheduler, [job])

        assert not scheduler.running
        assert job.fired == []

    @pytest.mark.asyncio
    async def test_shutdown_waits_for_running_job(self):
        """Test that shutdown does not return while a run is in flight."""
        gate = asyncio.Event()
        job = RecordingJob(lambda: moscow(2024, 9, 2, 21, 0), gate=gate)
        scheduler = build_scheduler([job])
        scheduler.start()

        run = asyncio.create_task(job.fire())
        await asyncio.sleep(0)
        closing = asyncio.create_task(shutdown_scheduler(scheduler, [job]))
        await asyncio.sleep(0.05)
        assert not closing.done()

        gate.set()
        await asyncio.wait_for(closing, timeout=1)
        await run

        assert job.finished
        assert not scheduler.running

    @pytest.mark.asyncio
    async def test_shutdown_when_not_started(self):
        """Test that shutting down an unstarted scheduler is a no-op."""
        await shutdown_scheduler(build_scheduler([]), [])


class TestSummaryDispatcher:
    """Test the nightly guardian summary."""

    @pytest.fixture
    def notifications(self):
        notifications = Mock()
        notifications.send_status = AsyncMock(return_value=0)
        return notifications

    @pytest.fixture
    def dispatcher(self, store, contacts, status, notifications):
        return SummaryDispatcher(store, contacts, status, notifications)

    @pytest.mark.asyncio
    async def test_sends_tomorrows_status(self, store, dispatcher, notifications, guardian, student):
        """Test that Sunday evening reports Monday's subjects."""
        await store.record_submission(student, "Monday", "Физика", b"img")

        # Sunday 21:00 reports Monday
        await dispatcher.run_once(moscow(2024, 9, 1, 21, 0))

        notifications.send_status.assert_awaited_once()
        chat_id, handle, result = notifications.send_status.await_args.args
        assert chat_id == 222
        assert handle == "@alice"
        assert result.completed == ["Физика"]
        assert result.incomplete == ["Математика"]

    @pytest.mark.asyncio
    async def test_rest_day_skipped(self, dispatcher, notifications, guardian):
        """Test that the eve of a rest day sends nothing."""
        # Monday 21:00 would report Tuesday
        await dispatcher.run_once(moscow(2024, 9, 2, 21, 0))
        notifications.send_status.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_failure_isolated_per_guardian(self, store, contacts, dispatcher, notifications, guardian):
        """Test that one failed send does not stop the next guardian."""
        await store.ensure_initialized("333", "dad")
        await contacts.add_student("333", "@alice")
        notifications.send_status.side_effect = [TransportError("blocked"), 0]

        await dispatcher.run_once(moscow(2024, 9, 1, 21, 0))

        chat_ids = [call.args[0] for call in notifications.send_status.await_args_list]
        assert chat_ids == [222, 333]

    @pytest.mark.asyncio
    async def test_students_without_guardians_get_nothing(self, store, dispatcher, notifications, student):
        """Test that a student nobody watches produces no message."""
        await dispatcher.run_once(moscow(2024, 9, 1, 21, 0))
        notifications.send_status.assert_not_awaited()


class TestHomeworkEraser:
    """Test the midnight eraser."""

    def test_unknown_mode(self):
        """Test rejecting an unknown retention mode."""
        with pytest.raises(ValueError):
            HomeworkEraser(Mock(), mode="forever")

    @pytest.mark.asyncio
    async def test_weekday_mode_erases_day_five_days_ago(self, store, student):
        """Test that weekday mode clears the weekday five days back."""
        await store.record_submission(student, "Wednesday", "Русский язык", b"old")
        await store.record_submission(student, "Monday", "Физика", b"keep")

        # Monday 00:00; five days earlier was Wednesday
        await HomeworkEraser(store).run_once(moscow(2024, 9, 9, 0, 0))

        assert await store.list_submissions(student, "Wednesday", "Русский язык") == []
        assert len(await store.list_submissions(student, "Monday", "Физика")) == 1

    @pytest.mark.asyncio
    async def test_timestamp_mode(self, store, student):
        """Test that timestamp mode deletes only uploads past retention."""
        await store.record_submission(student, "Monday", "Физика", b"img")
        eraser = HomeworkEraser(store, mode="timestamp", retention_days=5)

        await eraser.run_once(datetime.now(MOSCOW) + timedelta(days=4))
        assert len(await store.list_submissions(student, "Monday", "Физика")) == 1

        await eraser.run_once(datetime.now(MOSCOW) + timedelta(days=6))
        assert await store.list_submissions(student, "Monday", "Физика") == []

    @pytest.mark.asyncio
    async def test_failure_isolated_per_user(self):
        """Test that a store error for one user does not stop the next."""
        created_at = datetime(2024, 9, 1)

        async def users():
            for user_id in ("1", "2"):
                yield UserRecord(user_id=user_id, created_at=created_at)

        store = Mock()
        store.all_users = Mock(side_effect=lambda: users())
        store.erase_day = AsyncMock(side_effect=[StoreError("locked"), 3])

        await HomeworkEraser(store).run_once(moscow(2024, 9, 9, 0, 0))

        assert [call.args for call in store.erase_day.await_args_list] == [
            ("1", "Wednesday"),
            ("2", "Wednesday"),
        ]
