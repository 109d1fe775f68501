from __future__ import annotations

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass, replace
from datetime import date, timedelta

from telegram import Update
from telegram.ext import CallbackContext, CommandHandler

from anniversary_bot.models import (
    SUPPORTED_LANGUAGES,
    SUPPORTED_TONES,
    DeliveryLogEntry,
    DeliveryStatus,
    User,
    normalize_code,
)
from anniversary_bot.occurrence import next_occurrence, parse_time_hhmm, validate_month_day
from anniversary_bot.repositories import AnniversaryStore, DeliveryLogStore, UserStore
from anniversary_bot.timezones import is_valid_timezone, resolve_zone, utc_now
from anniversary_bot.upcoming import UpcomingOccurrence, month_window, next_days_window, upcoming

LOGGER = logging.getLogger(__name__)

DEFAULT_UPCOMING_DAYS = 30
MAX_UPCOMING_DAYS = 366
HISTORY_SIZE = 10
GREETING_SWITCHES = {"on": True, "off": False}


@dataclass(frozen=True)
class HandlerDependencies:
    users: UserStore
    anniversaries: AnniversaryStore
    delivery_logs: DeliveryLogStore
    leap_day_rule: str


def parse_add_arguments(args: list[str]) -> tuple[str, date]:
    """Split ``/add`` arguments into a name and a YYYY-MM-DD date (the last argument)."""
    if len(args) < 2:
        raise ValueError("Usage: /add <name> <YYYY-MM-DD>")

    raw_date = args[-1].strip()
    name = " ".join(args[:-1]).strip()
    if not name:
        raise ValueError("Name cannot be empty")

    match = re.fullmatch(r"(\d{4})-(\d{2})-(\d{2})", raw_date)
    if not match:
        raise ValueError("Date must use YYYY-MM-DD")

    year, month, day = (int(piece) for piece in match.groups())
    validate_month_day(month, day, allow_feb_29=True)
    return name, date(year, month, day)


def parse_days_argument(args: list[str]) -> int:
    if not args:
        return DEFAULT_UPCOMING_DAYS

    raw = args[0].strip()
    if not raw.isdigit():
        raise ValueError("Days must be a non-negative number")

    days = int(raw)
    if days > MAX_UPCOMING_DAYS:
        raise ValueError(f"Days must be at most {MAX_UPCOMING_DAYS}")
    return days


def parse_upcoming_window(args: list[str], today: date) -> tuple[date, date]:
    """Resolve ``/upcoming`` arguments to an inclusive date window.

    Accepts a day count, ``today``, ``tomorrow``, ``month`` (rest of this
    month) or ``next`` (all of next month).
    """
    keyword = normalize_code(args[0]) if args else ""
    if keyword == "today":
        return today, today
    if keyword == "tomorrow":
        tomorrow = today + timedelta(days=1)
        return tomorrow, tomorrow
    if keyword == "month":
        return month_window(today, 0)
    if keyword == "next":
        return month_window(today, 1)
    return next_days_window(today, parse_days_argument(args))


def parse_timezone_argument(args: list[str]) -> str:
    if len(args) != 1:
        raise ValueError("Usage: /timezone <IANA zone, e.g. Europe/Warsaw>")

    timezone_id = args[0].strip()
    if not is_valid_timezone(timezone_id):
        raise ValueError(f"Unknown timezone: {timezone_id}")
    return timezone_id


def parse_time_argument(args: list[str]) -> str:
    if len(args) != 1:
        raise ValueError("Usage: /time <HH:MM>")

    hour, minute = parse_time_hhmm(args[0])
    return f"{hour:02d}:{minute:02d}"


def _parse_choice(args: list[str], command: str, choices: tuple[str, ...]) -> str:
    usage = f"Usage: /{command} {'|'.join(choices)}"
    if len(args) != 1:
        raise ValueError(usage)

    value = normalize_code(args[0])
    if value not in choices:
        raise ValueError(usage)
    return value


def parse_language_argument(args: list[str]) -> str:
    return _parse_choice(args, "language", SUPPORTED_LANGUAGES)


def parse_tone_argument(args: list[str]) -> str:
    return _parse_choice(args, "tone", SUPPORTED_TONES)


def parse_greetings_argument(args: list[str]) -> bool:
    return GREETING_SWITCHES[_parse_choice(args, "greetings", tuple(GREETING_SWITCHES))]


def render_settings_message(user: User) -> str:
    greetings = "on" if user.auto_generate_greeting else "off"
    return (
        "Settings:\n"
        f"Timezone: {user.timezone_id}\n"
        f"Reminder time: {user.notify_local_time}\n"
        f"Language: {user.language}\n"
        f"Tone: {user.tone}\n"
        f"Greetings: {greetings}"
    )


def render_history_message(entries: list[DeliveryLogEntry], names: dict[str, str]) -> str:
    if not entries:
        return "No reminders have been sent yet."

    lines = [f"Recent reminders ({len(entries)})"]
    for entry in entries:
        name = names.get(entry.anniversary_id, "(removed)")
        line = f"{entry.sent_at.strftime('%Y-%m-%d %H:%M')} UTC | {name} | {entry.status.value}"
        if entry.status is DeliveryStatus.FAILED and entry.error:
            line += f" ({entry.error})"
        lines.append(line)
    return "\n".join(lines)


def render_upcoming_message(items: list[UpcomingOccurrence], today: date) -> str:
    if not items:
        return "No anniversaries in this period."

    lines = [f"Upcoming anniversaries ({len(items)})"]
    for index, item in enumerate(items, start=1):
        days_left = (item.occurs_on - today).days
        when = "today" if days_left == 0 else f"in {days_left}d"
        lines.append(
            f"{index}. {item.anniversary.name} | {item.occurs_on.isoformat()} ({when})"
            f" | Turning {item.turning_years}"
        )
    return "\n".join(lines)


def _render_help() -> str:
    return (
        "Commands:\n"
        "/add <name> <YYYY-MM-DD> - Track a new anniversary\n"
        "/list - Show all tracked anniversaries\n"
        "/upcoming [days|today|tomorrow|month|next] - Show upcoming anniversaries (default 30 days)\n"
        "/remove <name> - Stop tracking an anniversary\n"
        "/history - Show recently sent reminders\n"
        "/settings - Show your reminder settings\n"
        "/timezone <IANA zone> - Set your timezone\n"
        "/time <HH:MM> - Set the local reminder time\n"
        "/language ru|pl|en - Set the greeting language\n"
        "/tone formal|friendly - Set the greeting tone\n"
        "/greetings on|off - Include a generated greeting\n"
        "/help - Show this help message"
    )


def _local_today(user: User) -> date:
    zone = resolve_zone(user.timezone_id)
    now = utc_now()
    if zone is None:
        return now.date()
    return now.astimezone(zone).date()


def _deps(context: CallbackContext) -> HandlerDependencies:
    return context.application.bot_data["handler_deps"]


def _ensure_user(update: Update, deps: HandlerDependencies) -> User:
    return deps.users.ensure(update.effective_chat.id)


async def start_command(update: Update, context: CallbackContext) -> None:
    deps = _deps(context)
    user = _ensure_user(update, deps)
    LOGGER.info("Start from user %s", user.owner_key)
    await update.effective_message.reply_text(
        f"Reminders arrive at {user.notify_local_time} ({user.timezone_id}).\n\n{_render_help()}"
    )


async def help_command(update: Update, context: CallbackContext) -> None:
    _ensure_user(update, _deps(context))
    await update.effective_message.reply_text(_render_help())


async def add_command(update: Update, context: CallbackContext) -> None:
    deps = _deps(context)
    user = _ensure_user(update, deps)

    try:
        name, anniversary_date = parse_add_arguments(list(context.args or []))
    except ValueError as exc:
        await update.effective_message.reply_text(str(exc))
        return

    anniversary = deps.anniversaries.create(
        owner_key=user.owner_key,
        name=name,
        anniversary_date=anniversary_date,
    )
    LOGGER.info("Added anniversary %s for user %s", anniversary.anniversary_id, user.owner_key)
    await update.effective_message.reply_text(f"Saved {anniversary.name} ({anniversary.date.isoformat()}).")


async def list_command(update: Update, context: CallbackContext) -> None:
    deps = _deps(context)
    user = _ensure_user(update, deps)

    anniversaries = deps.anniversaries.list_for_owner(user.owner_key)
    if not anniversaries:
        await update.effective_message.reply_text("No anniversaries are currently tracked.")
        return

    today = _local_today(user)
    lines = []
    for anniversary in anniversaries:
        occurs_on, turning = next_occurrence(today, anniversary.date, deps.leap_day_rule)
        lines.append(
            f"{anniversary.name}: {anniversary.date.isoformat()} -> next {occurs_on.isoformat()}, turns {turning}"
        )
    await update.effective_message.reply_text("\n".join(lines))


async def upcoming_command(update: Update, context: CallbackContext) -> None:
    deps = _deps(context)
    user = _ensure_user(update, deps)

    today = _local_today(user)
    try:
        from_date, to_date = parse_upcoming_window(list(context.args or []), today)
    except ValueError as exc:
        await update.effective_message.reply_text(str(exc))
        return

    items = upcoming(deps.anniversaries.list_for_owner(user.owner_key), from_date, to_date, deps.leap_day_rule)
    await update.effective_message.reply_text(render_upcoming_message(items, today))


async def remove_command(update: Update, context: CallbackContext) -> None:
    deps = _deps(context)
    user = _ensure_user(update, deps)

    name = " ".join(context.args or []).strip()
    if not name:
        await update.effective_message.reply_text("Usage: /remove <name>")
        return

    anniversary = deps.anniversaries.find_by_name(user.owner_key, name)
    if anniversary is None:
        await update.effective_message.reply_text("Not found.")
        return

    deps.anniversaries.delete(anniversary.anniversary_id, user.owner_key)
    LOGGER.info("Removed anniversary %s for user %s", anniversary.anniversary_id, user.owner_key)
    await update.effective_message.reply_text(f"Removed {anniversary.name}.")


async def history_command(update: Update, context: CallbackContext) -> None:
    deps = _deps(context)
    user = _ensure_user(update, deps)

    entries = deps.delivery_logs.list_for_owner(user.owner_key, take=HISTORY_SIZE)
    names = {item.anniversary_id: item.name for item in deps.anniversaries.list_for_owner(user.owner_key)}
    await update.effective_message.reply_text(render_history_message(entries, names))


async def settings_command(update: Update, context: CallbackContext) -> None:
    user = _ensure_user(update, _deps(context))
    await update.effective_message.reply_text(render_settings_message(user))


async def _update_setting(
    update: Update,
    context: CallbackContext,
    parser: Callable[[list[str]], object],
    field: str,
) -> None:
    deps = _deps(context)
    user = _ensure_user(update, deps)

    try:
        value = parser(list(context.args or []))
    except ValueError as exc:
        await update.effective_message.reply_text(str(exc))
        return

    updated = deps.users.update(replace(user, **{field: value}))
    LOGGER.info("User %s set %s to %r", user.owner_key, field, value)
    await update.effective_message.reply_text(f"Saved.\n\n{render_settings_message(updated)}")


async def timezone_command(update: Update, context: CallbackContext) -> None:
    await _update_setting(update, context, parse_timezone_argument, "timezone_id")


async def time_command(update: Update, context: CallbackContext) -> None:
    await _update_setting(update, context, parse_time_argument, "notify_local_time")


async def language_command(update: Update, context: CallbackContext) -> None:
    await _update_setting(update, context, parse_language_argument, "language")


async def tone_command(update: Update, context: CallbackContext) -> None:
    await _update_setting(update, context, parse_tone_argument, "tone")


async def greetings_command(update: Update, context: CallbackContext) -> None:
    await _update_setting(update, context, parse_greetings_argument, "auto_generate_greeting")


def build_handlers() -> list:
    return [
        CommandHandler("start", start_command),
        CommandHandler("help", help_command),
        CommandHandler("add", add_command),
        CommandHandler("list", list_command),
        CommandHandler("upcoming", upcoming_command),
        CommandHandler("remove", remove_command),
        CommandHandler("history", history_command),
        CommandHandler("settings", settings_command),
        CommandHandler("timezone", timezone_command),
        CommandHandler("time", time_command),
        CommandHandler("language", language_command),
        CommandHandler("tone", tone_command),
        CommandHandler("greetings", greetings_command),
    ]
