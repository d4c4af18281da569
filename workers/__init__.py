"""Homework tracker background workers."""

from .scheduling import DailyJob, build_scheduler, shutdown_scheduler
from .summary_worker import SummaryDispatcher
from .cleanup_worker import HomeworkEraser

__all__ = ["DailyJob", "build_scheduler", "shutdown_scheduler", "SummaryDispatcher", "HomeworkEraser"]
