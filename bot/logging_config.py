"""Secure logging configuration with token redaction."""
import logging
import re
from datetime import datetime
from pathlib import Path
from typing import Optional


class TokenRedactionFilter(logging.Filter):
    """Filter to redact sensitive tokens from logs."""

    # Patterns to redact
    SENSITIVE_PATTERNS = [
        (r'\d{9,10}:[A-Za-z0-9_-]{35}', '[TELEGRAM_BOT_TOKEN_REDACTED]'),
        (r'Bearer\s+[a-zA-Z0-9_-]+\.[a-zA-Z0-9_-]+\.[a-zA-Z0-9_-]+', 'Bearer [JWT_REDACTED]'),
        (r'(://[^:/@\s]+):[^@\s]+@', r'\1:[PASSWORD_REDACTED]@'),
        (r'secret["\']?\s*[:=]\s*["\']?[a-zA-Z0-9]{16,}', 'secret=[REDACTED]'),
    ]

    def filter(self, record):
        if isinstance(record.msg, str):
            record.msg = self._redact(record.msg)
        # Also check args if it's a formatted string
        if record.args and isinstance(record.args, tuple):
            record.args = tuple(
                self._redact(arg) if isinstance(arg, str) else arg
                for arg in record.args
            )
        return True

    def _redact(self, message):
        """Redact sensitive patterns from a message string."""
        for pattern, replacement in self.SENSITIVE_PATTERNS:
            message = re.sub(pattern, replacement, message)
        return message


def daily_log_path(log_dir: str, today: Optional[datetime] = None) -> Path:
    """Path of the log file for the given day, e.g. logs/bot_2024-09-02.log."""
    today = today or datetime.now()
    return Path(log_dir) / f"bot_{today.strftime('%Y-%m-%d')}.log"


def setup_secure_logging(level=logging.INFO, log_dir: Optional[str] = None):
    """Configure secure logging with token redaction.

    When ``log_dir`` is given, records are also appended to a per-day file
    inside it so failures can be diagnosed after the fact.
    """
    log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    logging.basicConfig(format=log_format, level=level)

    root_logger = logging.getLogger()
    # basicConfig is a no-op once the root logger has handlers
    root_logger.setLevel(level)
    redaction = TokenRedactionFilter()

    if log_dir:
        path = daily_log_path(log_dir)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(path, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(log_format))
        root_logger.addHandler(file_handler)

    # Add redaction filter to root logger and its handlers; logger-level
    # filters do not see records propagated from child loggers
    root_logger.addFilter(redaction)
    for handler in root_logger.handlers:
        handler.addFilter(redaction)

    # Also redact httpx library logs which log URLs
    logging.getLogger("httpx").addFilter(redaction)

    # Redact telegram library logs as well
    logging.getLogger("telegram").addFilter(redaction)

    return root_logger
