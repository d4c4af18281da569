"""Database module for the homework tracker."""

from database.models import (
    Base,
    User,
    ScheduleDay,
    Subject,
    Submission,
    Contact,
    utcnow,
)
from database.connection import (
    get_engine,
    get_session_maker,
    make_session_factory,
    create_engine_for_url,
    init_db,
    check_db_connection,
    close_db,
)

__all__ = [
    "Base",
    "User",
    "ScheduleDay",
    "Subject",
    "Submission",
    "Contact",
    "utcnow",
    "get_engine",
    "get_session_maker",
    "make_session_factory",
    "create_engine_for_url",
    "init_db",
    "check_db_connection",
    "close_db",
]
