from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone

from anniversary_bot.greetings import GreetingGenerator
from anniversary_bot.models import (
    LEAP_DAY_FEB28,
    Anniversary,
    DeliveryLogEntry,
    DeliveryStatus,
    User,
    normalize_code,
)
from anniversary_bot.notifier import DeliveryError, Notifier
from anniversary_bot.occurrence import parse_time_hhmm
from anniversary_bot.repositories import AnniversaryStore, DeliveryLogStore, UserStore
from anniversary_bot.timezones import resolve_zone, utc_now
from anniversary_bot.upcoming import in_range, sort_for_display

LOGGER = logging.getLogger(__name__)

DUE_LABELS = {
    "ru": ("СЕГОДНЯ", "ЗАВТРА"),
    "pl": ("DZIŚ", "JUTRO"),
    "en": ("TODAY", "TOMORROW"),
}


@dataclass(frozen=True)
class DueReminder:
    anniversary: Anniversary
    occurs_on: date
    turning_years: int
    days_until: int


def due_reminders(
    anniversaries: Iterable[Anniversary],
    today: date,
    leap_day_rule: str = LEAP_DAY_FEB28,
) -> list[DueReminder]:
    items = tuple(anniversaries)
    tomorrow = today + timedelta(days=1)

    due: list[DueReminder] = []
    for days_ahead, day in ((0, today), (1, tomorrow)):
        for occurrence in sort_for_display(in_range(items, day, day, leap_day_rule)):
            due.append(
                DueReminder(
                    anniversary=occurrence.anniversary,
                    occurs_on=occurrence.occurs_on,
                    turning_years=occurrence.turning_years,
                    days_until=days_ahead,
                )
            )
    return due


def build_reminder_message(
    user: User,
    reminder: DueReminder,
    greetings: GreetingGenerator | None = None,
) -> str:
    today_label, tomorrow_label = DUE_LABELS.get(normalize_code(user.language), DUE_LABELS["en"])
    label = today_label if reminder.days_until == 0 else tomorrow_label

    message = (
        f"{label}: {reminder.anniversary.name} - "
        f"{reminder.occurs_on.isoformat()} ({reminder.turning_years})"
    )
    if user.auto_generate_greeting and greetings is not None:
        greeting = greetings.generate(user.language, user.tone, reminder.anniversary.name, reminder.turning_years)
        message += f"\n\n{greeting}"
    return message


class ReminderService:
    """Runs one reminder pass: every user whose notify minute is now gets today's and tomorrow's anniversaries."""

    def __init__(
        self,
        *,
        users: UserStore,
        anniversaries: AnniversaryStore,
        delivery_logs: DeliveryLogStore,
        notifier: Notifier,
        greetings: GreetingGenerator | None = None,
        leap_day_rule: str = LEAP_DAY_FEB28,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._users = users
        self._anniversaries = anniversaries
        self._delivery_logs = delivery_logs
        self._notifier = notifier
        self._greetings = greetings
        self._leap_day_rule = leap_day_rule
        self._clock = clock

    async def run_once(self, now: datetime) -> int:
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)

        self._delivery_logs.prune_sent_index(now.astimezone(timezone.utc).date())
        users = self._users.list_all()
        sent_count = 0
        for user in users:
            try:
                sent_count += await self._process_user(user, now)
            except Exception:
                LOGGER.exception("Reminder error for user %s", user.owner_key)

        if sent_count:
            LOGGER.info("Sent %s reminders for tick %s", sent_count, now.isoformat())
        return sent_count

    async def _process_user(self, user: User, now: datetime) -> int:
        zone = resolve_zone(user.timezone_id)
        if zone is None:
            LOGGER.debug("Skipping user %s: unknown timezone %r", user.owner_key, user.timezone_id)
            return 0

        now_local = now.astimezone(zone)

        try:
            hour, minute = parse_time_hhmm(user.notify_local_time)
        except ValueError:
            LOGGER.warning("Skipping user %s: bad notify time %r", user.owner_key, user.notify_local_time)
            return 0

        if now_local.hour != hour or now_local.minute != minute:
            return 0

        today = now_local.date()
        due = due_reminders(self._anniversaries.list_for_owner(user.owner_key), today, self._leap_day_rule)

        sent_count = 0
        for reminder in due:
            if self._delivery_logs.has_sent(user.owner_key, reminder.anniversary.anniversary_id, today):
                LOGGER.info(
                    "Already reminded user %s about %s on %s",
                    user.owner_key,
                    reminder.anniversary.anniversary_id,
                    today.isoformat(),
                )
                continue
            if await self._deliver(user, reminder, today):
                sent_count += 1
        return sent_count

    async def _deliver(self, user: User, reminder: DueReminder, local_date: date) -> bool:
        message = build_reminder_message(user, reminder, self._greetings)
        attempted_at = self._clock()

        try:
            message_id = await self._notifier.send_message(user.chat_id, message)
        except DeliveryError as exc:
            LOGGER.warning(
                "Delivery to user %s for %s failed: %s",
                user.owner_key,
                reminder.anniversary.anniversary_id,
                exc,
            )
            self._delivery_logs.create(
                DeliveryLogEntry(
                    owner_key=user.owner_key,
                    anniversary_id=reminder.anniversary.anniversary_id,
                    sent_at=attempted_at,
                    local_date=local_date,
                    status=DeliveryStatus.FAILED,
                    error=str(exc) or exc.__class__.__name__,
                )
            )
            return False

        self._delivery_logs.create(
            DeliveryLogEntry(
                owner_key=user.owner_key,
                anniversary_id=reminder.anniversary.anniversary_id,
                sent_at=attempted_at,
                local_date=local_date,
                status=DeliveryStatus.SENT,
                message_id=message_id,
            )
        )
        return True
