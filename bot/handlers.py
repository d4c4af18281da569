"""Telegram Bot Message Handlers."""

import logging
from typing import Optional

from telegram import Update
from telegram.ext import ContextTypes

from services.exceptions import NotFound, StoreError, TransportError
from services.schedule_store import ScheduleStore
from services.contact_service import ContactService
from services.status_service import StatusService
from services.notification_service import NotificationService
from .config import BotConfig
from .correlator import PhotoEvent, ResolutionStatus, SubmissionCorrelator
from .utils import format_schedule, next_day_name, now_in

logger = logging.getLogger(__name__)

SEND_PHOTOS_TEXT = (
    "Пожалуйста, отправьте снимки вашего домашнего задания и подпишите названием предмета."
)


class BaseHandler:
    """Base handler with common functionality."""

    def __init__(self, store: ScheduleStore, config: BotConfig):
        self.store = store
        self.config = config

    async def send_message(self, update: Update, text: str, parse_mode: Optional[str] = None):
        """Send message with error handling."""
        try:
            await update.effective_message.reply_text(text, parse_mode=parse_mode)
        except Exception as e:
            logger.error(f"Failed to send message to chat {update.effective_chat.id}: {e}")

    async def ensure_user(
        self,
        update: Update,
        failure_text: str = "Ошибка инициализации, попробуйте позже",
    ) -> bool:
        """Create the sender's record and schedule on first contact."""
        user = update.effective_user
        try:
            await self.store.ensure_initialized(str(user.id), user.username)
            return True
        except StoreError as e:
            logger.error(f"Error initializing user {user.id}: {e}")
            await self.send_message(update, failure_text)
            return False

    def next_day(self) -> str:
        return next_day_name(now_in(self.config.timezone))


class OnboardingHandler(BaseHandler):
    """/start, /help, /schedule and everything that is not a command we know."""

    async def cmd_start(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Handle /start command."""
        if not await self.ensure_user(update):
            return

        await self.send_message(
            update,
            "Добро пожаловать в Бота для домашних заданий!\n\n"
            f"1. Чтобы отправить домашку на завтра ({self.next_day()}), отправьте снимки "
            "с названием предмета в подписи.\n"
            "Пример: 'Алгебра'\n\n"
            "2. Родители могут добавлять студентов с помощью команды /addstudent @username.\n"
            "3. Родители могут проверять статус домашнего задания с помощью команды /checkhw.\n\n"
            "Используйте /help, чтобы увидеть все доступные команды.",
        )

    async def cmd_help(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Handle /help command."""
        if not await self.ensure_user(update):
            return

        help_text = (
            "📚 <b>Помощь по Боту для домашних заданий</b>\n\n"
            "Вот доступные команды:\n\n"
            "<b>/start</b> - Запустить бота и увидеть инструкции.\n"
            "<b>/help</b> - Показать это сообщение с помощью.\n"
            "<b>/addstudent @username</b> - Добавить студента в ваши контакты (для родителей).\n"
            "<b>/checkhw</b> - Проверить статус домашнего задания ваших студентов (для родителей).\n"
            "<b>/schedule</b> - Посмотреть расписание на завтра.\n\n"
            "Чтобы отправить домашку:\n"
            "1. Сделайте фото(снимки) вашего домашнего задания.\n"
            "2. Добавьте подпись с названием предмета (например, 'Алгебра').\n"
            "3. Отправьте фото(снимки) боту.\n\n"
            "В альбоме достаточно подписать одно фото, но лучше первое."
        )
        await self.send_message(update, help_text, parse_mode="HTML")

    async def cmd_schedule(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Handle /schedule command: tomorrow's lessons, numbered."""
        if not await self.ensure_user(update):
            return

        user_id = str(update.effective_user.id)
        day = self.next_day()
        try:
            schedule = await self.store.get_schedule_for_day(user_id, day)
        except NotFound:
            await self.send_message(update, f"Завтра ({day}) уроков нет.")
            return
        except StoreError as e:
            logger.error(f"Error getting schedule for user {user_id}: {e}")
            await self.send_message(update, "Ошибка получения расписания. Попробуйте позже")
            return

        await self.send_message(
            update,
            format_schedule(day, [subject.subject_name for subject in schedule.subjects]),
        )

    async def cmd_unknown(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Reply to commands the bot does not know."""
        await self.send_message(
            update,
            "Неизвестная команда. Используйте /help, чтобы увидеть доступные команды.",
        )


class HomeworkHandler(BaseHandler):
    """Files homework photos sent by students."""

    def __init__(self, store: ScheduleStore, config: BotConfig, correlator: SubmissionCorrelator):
        super().__init__(store, config)
        self.correlator = correlator

    async def handle_message(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Handle any non-command message: photos are filed, the rest gets instructions."""
        message = update.effective_message
        if message is None or message.from_user is None:
            return

        if not await self.ensure_user(
            update,
            "Извините, произошла ошибка при инициализации вашего аккаунта. "
            "Пожалуйста, попробуйте позже.",
        ):
            return

        event = PhotoEvent.from_message(message)
        resolution = self.correlator.resolve(event)

        if resolution.status == ResolutionStatus.NO_PHOTO:
            await self.send_message(update, SEND_PHOTOS_TEXT)
            return

        if resolution.status == ResolutionStatus.NEED_CAPTION:
            await self.send_message(
                update,
                "Пожалуйста, добавьте подпись с названием предмета (например, 'Алгебра')",
            )
            return

        day, subject = resolution.day, resolution.subject
        if resolution.acknowledge:
            await self.send_message(update, f"Обрабатываю фотографии для {day} {subject}...")

        try:
            submission_id = await self.correlator.submit(event, resolution)
        except NotFound as e:
            logger.warning(f"Rejected homework from user {event.user_id}: {e}")
            reply = await self._unknown_subject_text(event.user_id, day, subject)
            await self.send_message(update, reply)
            return
        except TransportError as e:
            logger.error(f"Error downloading photo from user {event.user_id}: {e}")
            await self.send_message(update, "Ошибка загрузки фото, попробуйте позже")
            return
        except StoreError as e:
            logger.error(f"Error saving homework for user {event.user_id}: {e}")
            await self.send_message(update, "Ошибка сохранения фото, попробуйте позже")
            return

        logger.info(f"Saved homework with ID: {submission_id} for user: {event.user_id}")
        if resolution.acknowledge:
            await self.send_message(update, f"Успешно сохранил домашку для {day} {subject}!")

    async def _unknown_subject_text(self, user_id: str, day: str, subject: str) -> str:
        """Rejection reply listing the subject names that day accepts."""
        text = f"Не нашёл предмет «{subject}» в расписании на {day}."
        try:
            schedule = await self.store.find_day(user_id, day)
        except StoreError as e:
            logger.error(f"Error loading schedule for user {user_id}: {e}")
            schedule = None
        if schedule and schedule.subjects:
            names = ", ".join(dict.fromkeys(entry.subject_name for entry in schedule.subjects))
            return f"{text} Подпишите фото точным названием: {names}"
        return f"{text} Проверьте подпись или посмотрите /schedule"


class GuardianHandler(BaseHandler):
    """Commands for guardians watching students."""

    def __init__(
        self,
        store: ScheduleStore,
        config: BotConfig,
        contacts: ContactService,
        status: StatusService,
        notifications: NotificationService,
    ):
        super().__init__(store, config)
        self.contacts = contacts
        self.status = status
        self.notifications = notifications

    async def cmd_add_student(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Handle /addstudent @username."""
        if not await self.ensure_user(update):
            return

        usage = (
            "Пожалуйста, укажите Telegram-имя пользователя студента.\n"
            "Использование: /addstudent @username"
        )
        args = context.args or []
        if not args:
            await self.send_message(update, usage)
            return

        guardian_id = str(update.effective_user.id)
        try:
            handle = await self.contacts.add_student(guardian_id, args[0])
        except ValueError:
            await self.send_message(update, usage)
            return
        except NotFound as e:
            logger.warning(f"Error adding student contact for parent {guardian_id}: {e}")
            await self.send_message(
                update,
                f"Не удалось добавить студента {args[0]}: такой пользователь ещё не писал боту.",
            )
            return
        except StoreError as e:
            logger.error(f"Error adding student contact for parent {guardian_id}: {e}")
            await self.send_message(update, "Не удалось добавить студента, попробуйте позже")
            return

        await self.send_message(
            update,
            f"Успешно добавлен студент {handle} в ваши контакты. "
            "Теперь вы можете проверять его домашку с помощью /checkhw",
        )

    async def cmd_check_homework(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Handle /checkhw: tomorrow's status for every watched student."""
        if not await self.ensure_user(update):
            return

        guardian_id = str(update.effective_user.id)
        try:
            handles = await self.contacts.contacts_for(guardian_id)
        except StoreError as e:
            logger.error(f"Error getting contacts of parent {guardian_id}: {e}")
            await self.send_message(update, "Не удалось получить вашу информацию. Пожалуйста, попробуйте снова.")
            return

        if not handles:
            await self.send_message(
                update,
                "Вы еще не добавили ни одного студента. "
                "Используйте команду /addstudent @username, чтобы добавить студента.",
            )
            return

        day = self.next_day()
        chat_id = update.effective_chat.id
        for handle in handles:
            try:
                status = await self.status.status_for(handle, day)
            except (NotFound, StoreError) as e:
                logger.error(f"Error checking homework for student {handle}: {e}")
                await self.send_message(update, f"Не удалось проверить домашку для студента {handle}")
                continue

            try:
                failed = await self.notifications.send_status(chat_id, handle, status)
            except TransportError as e:
                logger.error(f"Error sending status of {handle} to parent {guardian_id}: {e}")
                continue

            if failed:
                await self.send_message(update, "Не удалось отправить некоторые фото домашнего задания")
