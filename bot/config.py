"""Telegram Bot Configuration."""

import os
import re
import logging
from dataclasses import dataclass
from typing import Optional, Tuple

logger = logging.getLogger(__name__)

WEEKDAYS = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")


@dataclass
class BotConfig:
    """Bot configuration settings."""

    # Telegram
    bot_token: str
    webhook_url: Optional[str] = None
    webhook_secret: Optional[str] = None
    use_webhook: bool = False
    webhook_port: int = 8080

    # Wall clock used by the schedule and both background loops
    timezone: str = "Europe/Moscow"

    # Daily summary
    summary_hour: int = 21
    rest_days: Tuple[str, ...] = ("Sunday", "Tuesday")

    # Eraser
    erase_hour: int = 0
    retention_days: int = 5
    retention_mode: str = "weekday"  # weekday, timestamp

    # Album captions
    caption_cache_ttl: int = 3600

    # Logging
    log_dir: Optional[str] = "./logs"

    @classmethod
    def from_env(cls) -> "BotConfig":
        """Load configuration from environment variables with validation."""
        token = os.getenv("TELEGRAM_BOT_TOKEN", "")

        # Validate token format (9-10 digits : 35 alphanumeric chars)
        if token and not re.match(r'^\d{9,10}:[A-Za-z0-9_-]{35}$', token):
            logger.warning("TELEGRAM_BOT_TOKEN format appears invalid")

        use_webhook = os.getenv("USE_WEBHOOK", "false").lower() == "true"
        webhook_secret = os.getenv("TELEGRAM_WEBHOOK_SECRET")
        if use_webhook and not webhook_secret:
            logger.warning("Webhook enabled but TELEGRAM_WEBHOOK_SECRET not set")

        rest_days = tuple(
            day.strip().capitalize()
            for day in os.getenv("REST_DAYS", "Sunday,Tuesday").split(",")
            if day.strip()
        )
        unknown = [day for day in rest_days if day not in WEEKDAYS]
        if unknown:
            raise ValueError(f"REST_DAYS contains unknown weekdays: {', '.join(unknown)}")

        retention_mode = os.getenv("RETENTION_MODE", "weekday").lower()
        if retention_mode not in ("weekday", "timestamp"):
            raise ValueError(f"RETENTION_MODE must be 'weekday' or 'timestamp', got {retention_mode!r}")

        return cls(
            bot_token=token,
            webhook_url=os.getenv("TELEGRAM_WEBHOOK_URL"),
            webhook_secret=webhook_secret,
            use_webhook=use_webhook,
            webhook_port=int(os.getenv("WEBHOOK_PORT", "8080")),
            timezone=os.getenv("BOT_TIMEZONE", "Europe/Moscow"),
            summary_hour=int(os.getenv("SUMMARY_HOUR", "21")),
            rest_days=rest_days,
            erase_hour=int(os.getenv("ERASE_HOUR", "0")),
            retention_days=int(os.getenv("RETENTION_DAYS", "5")),
            retention_mode=retention_mode,
            caption_cache_ttl=int(os.getenv("CAPTION_CACHE_TTL", "3600")),
            log_dir=os.getenv("LOG_DIR", "./logs") or None,
        )
