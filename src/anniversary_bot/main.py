from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from telegram.ext import Application

from anniversary_bot.bot_handlers import HandlerDependencies, build_handlers
from anniversary_bot.greetings import GreetingGenerator
from anniversary_bot.notifier import TelegramNotifier
from anniversary_bot.reminder_service import ReminderService
from anniversary_bot.repositories import AnniversaryStore, DeliveryLogStore, UserStore
from anniversary_bot.scheduler import TickScheduler
from anniversary_bot.settings import Settings, load_settings

LOGGER = logging.getLogger(__name__)


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)


def _ensure_parent(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


async def start_scheduler(application: Application) -> None:
    scheduler: TickScheduler = application.bot_data["scheduler"]
    application.bot_data["scheduler_task"] = asyncio.create_task(scheduler.run(), name="anniversary-reminders")


async def stop_scheduler(application: Application) -> None:
    scheduler: TickScheduler = application.bot_data["scheduler"]
    task: asyncio.Task | None = application.bot_data.get("scheduler_task")
    scheduler.stop()
    if task is not None:
        await task


def build_application(settings: Settings) -> Application:
    for path in (settings.users_path, settings.anniversaries_path, settings.delivery_log_path):
        _ensure_parent(path)

    users = UserStore(settings.users_path)
    anniversaries = AnniversaryStore(settings.anniversaries_path)
    delivery_logs = DeliveryLogStore(settings.delivery_log_path)

    application = Application.builder().token(settings.telegram_bot_token).build()
    application.bot_data["settings"] = settings
    application.bot_data["handler_deps"] = HandlerDependencies(
        users=users,
        anniversaries=anniversaries,
        delivery_logs=delivery_logs,
        leap_day_rule=settings.leap_day_rule,
    )

    reminder_service = ReminderService(
        users=users,
        anniversaries=anniversaries,
        delivery_logs=delivery_logs,
        notifier=TelegramNotifier(application.bot),
        greetings=GreetingGenerator(),
        leap_day_rule=settings.leap_day_rule,
    )
    application.bot_data["reminder_service"] = reminder_service
    application.bot_data["scheduler"] = TickScheduler(reminder_service, settings.reminder_cron)

    for handler in build_handlers():
        application.add_handler(handler)

    application.post_init = start_scheduler
    application.post_shutdown = stop_scheduler
    return application


def main() -> None:
    settings = load_settings()
    configure_logging(settings.log_level)

    application = build_application(settings)
    LOGGER.info("Starting anniversary bot")
    application.run_polling()


if __name__ == "__main__":
    main()
