"""Homework tracker business services."""

from .exceptions import HomeworkBotError, NotFound, StoreError, TransportError
from .schedule_store import ScheduleStore
from .status_service import StatusService, format_status
from .contact_service import ContactService, normalize_handle
from .notification_service import NotificationService, format_uploaded_at

__all__ = [
    "HomeworkBotError",
    "NotFound",
    "StoreError",
    "TransportError",
    "ScheduleStore",
    "StatusService",
    "format_status",
    "ContactService",
    "normalize_handle",
    "NotificationService",
    "format_uploaded_at",
]
