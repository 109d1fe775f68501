from __future__ import annotations

import calendar
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from datetime import date, timedelta

from anniversary_bot.models import LEAP_DAY_FEB28, Anniversary
from anniversary_bot.occurrence import next_occurrence


@dataclass(frozen=True)
class UpcomingOccurrence:
    anniversary: Anniversary
    occurs_on: date
    turning_years: int


class OccurrenceRange:
    """Anniversaries whose next occurrence from ``from_date`` is on or before ``to_date``.

    Occurrences are computed while iterating, and every iteration starts over,
    so the same range can be walked more than once. No ordering is implied.
    """

    def __init__(
        self,
        anniversaries: Iterable[Anniversary],
        from_date: date,
        to_date: date,
        leap_day_rule: str = LEAP_DAY_FEB28,
    ) -> None:
        self._anniversaries = tuple(anniversaries)
        self.from_date = from_date
        self.to_date = to_date
        self.leap_day_rule = leap_day_rule

    def __iter__(self) -> Iterator[UpcomingOccurrence]:
        for anniversary in self._anniversaries:
            occurs_on, turning_years = next_occurrence(self.from_date, anniversary.date, self.leap_day_rule)
            if occurs_on > self.to_date:
                continue
            yield UpcomingOccurrence(
                anniversary=anniversary,
                occurs_on=occurs_on,
                turning_years=turning_years,
            )


def in_range(
    anniversaries: Iterable[Anniversary],
    from_date: date,
    to_date: date,
    leap_day_rule: str = LEAP_DAY_FEB28,
) -> OccurrenceRange:
    return OccurrenceRange(anniversaries, from_date, to_date, leap_day_rule)


def sort_for_display(items: Iterable[UpcomingOccurrence]) -> list[UpcomingOccurrence]:
    return sorted(items, key=lambda item: (item.occurs_on, item.anniversary.name.lower()))


def upcoming(
    anniversaries: Iterable[Anniversary],
    from_date: date,
    to_date: date,
    leap_day_rule: str = LEAP_DAY_FEB28,
) -> list[UpcomingOccurrence]:
    return sort_for_display(in_range(anniversaries, from_date, to_date, leap_day_rule))


def next_days_window(today: date, days: int) -> tuple[date, date]:
    if days < 0:
        raise ValueError("days must be non-negative")
    return today, today + timedelta(days=days)


def month_window(today: date, months_ahead: int = 0) -> tuple[date, date]:
    """Window for "this month" (``months_ahead=0``) or a later calendar month.

    The current month starts at ``today`` so already-passed days are not
    pushed into next year.
    """
    if months_ahead < 0:
        raise ValueError("months_ahead must be non-negative")

    month_index = today.month - 1 + months_ahead
    year = today.year + month_index // 12
    month = month_index % 12 + 1
    last_day = date(year, month, calendar.monthrange(year, month)[1])

    if months_ahead == 0:
        return today, last_day
    return date(year, month, 1), last_day
