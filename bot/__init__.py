"""
Homework Photo Telegram Bot Module

Students file photos of their homework under tomorrow's subjects; guardians
check the status on demand and receive a nightly summary. The application
itself lives in ``bot.main``.
"""

__version__ = "1.0.0"

from .config import BotConfig
from .correlator import CaptionCache, PhotoEvent, SubmissionCorrelator
from .transport import TelegramTransport

__all__ = [
    "BotConfig",
    "CaptionCache",
    "PhotoEvent",
    "SubmissionCorrelator",
    "TelegramTransport",
]
