"""Main Telegram Bot Application."""

import logging
from typing import List, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from dotenv import load_dotenv
from telegram import Update
from telegram.ext import (
    Application,
    BaseHandler,
    CommandHandler,
    MessageHandler,
    filters,
    ContextTypes,
)

from database.connection import init_db, close_db, check_db_connection, get_session_maker
from services.exceptions import TransportError
from services.schedule_store import ScheduleStore
from services.contact_service import ContactService
from services.status_service import StatusService
from services.notification_service import NotificationService
from workers.scheduling import build_scheduler, shutdown_scheduler
from workers.summary_worker import SummaryDispatcher
from workers.cleanup_worker import HomeworkEraser
from .config import BotConfig
from .correlator import CaptionCache, SubmissionCorrelator
from .handlers import OnboardingHandler, HomeworkHandler, GuardianHandler
from .logging_config import setup_secure_logging
from .transport import TelegramTransport

logger = logging.getLogger(__name__)

# Edited messages are not resubmitted
NEW_MESSAGES = filters.UpdateType.MESSAGE


def build_handlers(
    onboarding: OnboardingHandler, homework: HomeworkHandler, guardian: GuardianHandler
) -> List[BaseHandler]:
    """Handlers in dispatch order; commands first, then unknown commands, then homework."""
    return [
        CommandHandler("start", onboarding.cmd_start, filters=NEW_MESSAGES),
        CommandHandler("help", onboarding.cmd_help, filters=NEW_MESSAGES),
        CommandHandler("schedule", onboarding.cmd_schedule, filters=NEW_MESSAGES),
        CommandHandler("addstudent", guardian.cmd_add_student, filters=NEW_MESSAGES),
        CommandHandler("checkhw", guardian.cmd_check_homework, filters=NEW_MESSAGES),
        MessageHandler(NEW_MESSAGES & filters.COMMAND, onboarding.cmd_unknown),
        MessageHandler(NEW_MESSAGES & ~filters.COMMAND, homework.handle_message),
    ]


class HomeworkBot:
    """Main Telegram Bot class."""

    def __init__(self, config: BotConfig):
        self.config = config
        self.application: Optional[Application] = None
        self.store = ScheduleStore(get_session_maker())
        self.contacts = ContactService(self.store)
        self.status = StatusService(self.store)
        self.caption_cache = CaptionCache(ttl_seconds=config.caption_cache_ttl)

        self.transport: Optional[TelegramTransport] = None
        self.summary: Optional[SummaryDispatcher] = None
        self.eraser: Optional[HomeworkEraser] = None
        self.scheduler: Optional[AsyncIOScheduler] = None

    def setup(self):
        """Setup bot application."""
        self.application = (
            Application.builder()
            .token(self.config.bot_token)
            .concurrent_updates(True)
            .post_init(self._post_init)
            .post_shutdown(self._post_shutdown)
            .build()
        )

        self.transport = TelegramTransport(self.application.bot)
        notifications = NotificationService(self.transport, self.config.timezone)
        correlator = SubmissionCorrelator(
            self.store,
            self.caption_cache,
            self.transport.download,
            timezone=self.config.timezone,
        )

        self.onboarding_handler = OnboardingHandler(self.store, self.config)
        self.homework_handler = HomeworkHandler(self.store, self.config, correlator)
        self.guardian_handler = GuardianHandler(
            self.store, self.config, self.contacts, self.status, notifications
        )

        self.summary = SummaryDispatcher(
            self.store,
            self.contacts,
            self.status,
            notifications,
            hour=self.config.summary_hour,
            rest_days=self.config.rest_days,
            timezone=self.config.timezone,
        )
        self.eraser = HomeworkEraser(
            self.store,
            hour=self.config.erase_hour,
            retention_days=self.config.retention_days,
            mode=self.config.retention_mode,
            timezone=self.config.timezone,
        )

        for handler in build_handlers(
            self.onboarding_handler, self.homework_handler, self.guardian_handler
        ):
            self.application.add_handler(handler)

        # Register error handler
        self.application.add_error_handler(self._error_handler)

        logger.info("✅ Bot setup complete")

    async def _post_init(self, application: Application):
        await init_db()
        if await check_db_connection():
            logger.info("✅ Database connection OK")
        try:
            await self.transport.set_commands()
        except TransportError as e:
            logger.warning(f"⚠️ Could not register bot commands: {e}")

        self.scheduler = build_scheduler([self.summary, self.eraser], self.config.timezone)
        self.scheduler.start()
        logger.info("✅ Scheduler started")

    async def _post_shutdown(self, application: Application):
        if self.scheduler is not None:
            await shutdown_scheduler(self.scheduler, [self.summary, self.eraser])
        await close_db()
        logger.info("Bot shut down")

    async def _error_handler(self, update: Optional[object], context: ContextTypes.DEFAULT_TYPE):
        """Handle errors."""
        logger.error(f"Update {update} caused error {context.error}")

        if isinstance(update, Update) and update.effective_message:
            try:
                await update.effective_message.reply_text(
                    "❌ Произошла ошибка. Пожалуйста, попробуйте позже."
                )
            except Exception as e:
                logger.error(f"Failed to report error to chat: {e}")

    def run(self):
        """Run the bot."""
        self.setup()

        if self.config.use_webhook and self.config.webhook_url:
            logger.info(f"Starting bot with webhook: {self.config.webhook_url}")
            self.application.run_webhook(
                listen="0.0.0.0",
                port=self.config.webhook_port,
                webhook_url=self.config.webhook_url,
                secret_token=self.config.webhook_secret,
            )
        else:
            logger.info("Starting bot with polling")
            self.application.run_polling(allowed_updates=Update.ALL_TYPES)


def main():
    """Main entry point."""
    load_dotenv()
    config = BotConfig.from_env()
    setup_secure_logging(logging.INFO, log_dir=config.log_dir)

    if not config.bot_token:
        logger.error("TELEGRAM_BOT_TOKEN not set!")
        return

    bot = HomeworkBot(config)
    bot.run()


if __name__ == "__main__":
    main()
