"""Shared test fixtures."""

import pytest

from database.connection import create_engine_for_url, make_session_factory, init_db
from services.schedule_store import ScheduleStore
from services.contact_service import ContactService
from services.status_service import StatusService

TEST_TEMPLATE = (
    ("Monday", ("Математика", "Физика")),
    ("Wednesday", ("Русский язык",)),
    ("Saturday", ("Русский", "Алгебра", "Русский")),
)


@pytest.fixture
async def engine(tmp_path):
    """Fresh SQLite database per test."""
    engine = create_engine_for_url(f"sqlite+aiosqlite:///{tmp_path / 'homework.db'}")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def store(engine):
    return ScheduleStore(make_session_factory(engine), template=TEST_TEMPLATE, timeout=5.0)


@pytest.fixture
def contacts(store):
    return ContactService(store)


@pytest.fixture
def status(store):
    return StatusService(store)


@pytest.fixture
async def student(store):
    """A student with handle @alice and the test schedule installed."""
    await store.ensure_initialized("111", "alice")
    return "111"


@pytest.fixture
async def guardian(store, student, contacts):
    """A guardian (id 222) watching @alice."""
    await store.ensure_initialized("222", "mom")
    await contacts.add_student("222", "@alice")
    return "222"
