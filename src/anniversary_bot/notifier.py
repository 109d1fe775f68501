from __future__ import annotations

import logging
from typing import Protocol

from telegram import Bot
from telegram.error import TelegramError

LOGGER = logging.getLogger(__name__)


class DeliveryError(Exception):
    pass


class Notifier(Protocol):
    async def send_message(self, chat_id: int, text: str) -> str:
        ...


class TelegramNotifier:
    def __init__(self, bot: Bot) -> None:
        self._bot = bot

    async def send_message(self, chat_id: int, text: str) -> str:
        try:
            message = await self._bot.send_message(chat_id=chat_id, text=text)
        except TelegramError as exc:
            LOGGER.warning("Telegram send to chat %s failed: %s", chat_id, exc)
            raise DeliveryError(str(exc)) from exc
        return str(message.message_id)
