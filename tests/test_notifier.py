import asyncio
from dataclasses import dataclass, field

import pytest
from telegram.error import Forbidden

from anniversary_bot.notifier import DeliveryError, TelegramNotifier


@dataclass
class FakeMessage:
    message_id: int


@dataclass
class FakeBot:
    fail: bool = False
    sent_messages: list[tuple[int, str]] = field(default_factory=list)

    async def send_message(self, chat_id: int, text: str) -> FakeMessage:
        if self.fail:
            raise Forbidden("bot was blocked by the user")
        self.sent_messages.append((chat_id, text))
        return FakeMessage(message_id=77)


def test_send_returns_message_id_as_string() -> None:
    bot = FakeBot()

    message_id = asyncio.run(TelegramNotifier(bot).send_message(5, "hello"))

    assert message_id == "77"
    assert bot.sent_messages == [(5, "hello")]


def test_telegram_errors_become_delivery_errors() -> None:
    notifier = TelegramNotifier(FakeBot(fail=True))

    with pytest.raises(DeliveryError, match="blocked"):
        asyncio.run(notifier.send_message(5, "hello"))
