"""Thin wrapper around the Telegram Bot API used by handlers and workers."""

import logging
from typing import Optional, Sequence, Tuple

from telegram import Bot, BotCommand, InputFile
from telegram.error import TelegramError

from services.exceptions import TransportError

logger = logging.getLogger(__name__)

BOT_COMMANDS: Tuple[Tuple[str, str], ...] = (
    ("start", "Запустить бота и увидеть инструкции"),
    ("help", "Показать сообщение с помощью"),
    ("addstudent", "Добавить студента в ваши контакты (для родителей)"),
    ("checkhw", "Проверить статус домашнего задания ваших студентов (для родителей)"),
    ("schedule", "Посмотреть расписание на завтра"),
)


class TelegramTransport:
    """Fetches attachments and sends messages; failures become TransportError."""

    def __init__(self, bot: Bot):
        self.bot = bot

    async def download(self, file_id: str) -> bytes:
        try:
            file = await self.bot.get_file(file_id)
            return bytes(await file.download_as_bytearray())
        except TelegramError as e:
            raise TransportError(f"failed to download file {file_id}: {e}") from e

    async def send_text(self, chat_id: int, text: str, parse_mode: Optional[str] = None) -> None:
        try:
            await self.bot.send_message(chat_id=chat_id, text=text, parse_mode=parse_mode)
        except TelegramError as e:
            raise TransportError(f"failed to send message to {chat_id}: {e}") from e

    async def send_photo(self, chat_id: int, photo: bytes, caption: Optional[str] = None) -> None:
        try:
            await self.bot.send_photo(
                chat_id=chat_id,
                photo=InputFile(photo, filename="homework.jpg"),
                caption=caption,
            )
        except TelegramError as e:
            raise TransportError(f"failed to send photo to {chat_id}: {e}") from e

    async def set_commands(self, commands: Sequence[Tuple[str, str]] = BOT_COMMANDS) -> None:
        try:
            await self.bot.set_my_commands([BotCommand(name, description) for name, description in commands])
        except TelegramError as e:
            raise TransportError(f"failed to set bot commands: {e}") from e
