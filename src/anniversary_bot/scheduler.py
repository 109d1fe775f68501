from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Protocol

from croniter import croniter

from anniversary_bot.timezones import utc_now

LOGGER = logging.getLogger(__name__)

DEFAULT_CRON = "* * * * *"
FALLBACK_DELAY = timedelta(minutes=1)
MIN_DELAY = timedelta(seconds=10)


class SchedulerState(str, Enum):
    IDLE = "idle"
    WAITING = "waiting"
    RUNNING = "running"
    STOPPED = "stopped"


class TickProcessor(Protocol):
    async def run_once(self, now: datetime) -> int:
        ...


def next_wake(cron_expression: str, now: datetime) -> datetime | None:
    """Next UTC instant strictly after ``now`` matching ``cron_expression``, or None if it does not parse."""
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    base = now.astimezone(timezone.utc)

    try:
        wake = croniter(cron_expression, base).get_next(datetime)
    except (ValueError, KeyError, TypeError) as exc:
        LOGGER.warning("Cannot parse cron expression %r: %s", cron_expression, exc)
        return None

    if wake.tzinfo is None:
        wake = wake.replace(tzinfo=timezone.utc)
    return wake


def compute_delay(
    cron_expression: str,
    now: datetime,
    *,
    min_delay: timedelta = MIN_DELAY,
) -> timedelta:
    wake = next_wake(cron_expression, now)
    if wake is None:
        return FALLBACK_DELAY

    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    delay = wake - now
    if delay <= timedelta(0):
        return min_delay
    return delay


class TickScheduler:
    """Wakes on a cron schedule and runs the tick processor once per wake until stopped."""

    def __init__(
        self,
        processor: TickProcessor,
        cron_expression: str = DEFAULT_CRON,
        *,
        clock: Callable[[], datetime] = utc_now,
        min_delay: timedelta = MIN_DELAY,
    ) -> None:
        self._processor = processor
        self._cron_expression = cron_expression
        self._clock = clock
        self._min_delay = min_delay
        self._stop_event = asyncio.Event()
        self.state = SchedulerState.IDLE
        self.next_wake_at: datetime | None = None

    @property
    def cron_expression(self) -> str:
        return self._cron_expression

    def stop(self) -> None:
        self._stop_event.set()

    async def run(self) -> None:
        LOGGER.info("Reminder scheduler started with cron %r", self._cron_expression)
        try:
            while not self._stop_event.is_set():
                now = self._clock()
                delay = compute_delay(self._cron_expression, now, min_delay=self._min_delay)
                self.next_wake_at = now + delay
                self.state = SchedulerState.WAITING

                if await self._wait(delay):
                    break

                self.state = SchedulerState.RUNNING
                await self._tick()
        finally:
            self.state = SchedulerState.STOPPED
            self.next_wake_at = None
            LOGGER.info("Reminder scheduler stopped")

    async def _wait(self, delay: timedelta) -> bool:
        """Sleep for ``delay``; True when stop() was called meanwhile."""
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=delay.total_seconds())
        except asyncio.TimeoutError:
            return False
        return True

    async def _tick(self) -> None:
        try:
            await self._processor.run_once(self._clock())
        except Exception:
            LOGGER.exception("Reminder run failed")
