"""Utility functions for Telegram Bot."""

import logging
from datetime import datetime, timedelta
from typing import Optional

import pytz

from .config import WEEKDAYS

logger = logging.getLogger(__name__)


def now_in(timezone: str) -> datetime:
    """Current wall-clock time in ``timezone``."""
    return datetime.now(pytz.timezone(timezone))


def weekday_name(dt: datetime) -> str:
    """English weekday name, independent of the process locale."""
    return WEEKDAYS[dt.weekday()]


def next_day_name(now: datetime) -> str:
    """Weekday name of the next calendar day."""
    return weekday_name(now + timedelta(days=1))


def day_name_days_ago(now: datetime, days: int) -> str:
    """Weekday name of the calendar day ``days`` days before ``now``."""
    return weekday_name(now - timedelta(days=days))


def subject_label(caption: Optional[str]) -> str:
    """Subject name typed by a student, title-cased: 'алгебра' -> 'Алгебра'."""
    return " ".join((caption or "").split()).title()


def format_schedule(day_name: str, subjects) -> str:
    """Numbered lesson list for /schedule."""
    lines = [f"Завтрашнее ({day_name}) расписание:"]
    lines.extend(f"{index}. {name}" for index, name in enumerate(subjects, start=1))
    return "\n".join(lines)
