from __future__ import annotations

import calendar
from datetime import date

from anniversary_bot.models import LEAP_DAY_FEB28, LEAP_DAY_MAR1

MAX_YEAR_ADVANCES = 2


class InvalidAnniversaryError(ValueError):
    pass


def is_leap_year(year: int) -> bool:
    return year % 4 == 0 and (year % 100 != 0 or year % 400 == 0)


def validate_month_day(month: int, day: int, *, allow_feb_29: bool = True) -> None:
    if month < 1 or month > 12:
        raise InvalidAnniversaryError(f"Invalid month: {month}")

    if day < 1 or day > 31:
        raise InvalidAnniversaryError(f"Invalid day: {day}")

    year = 2000 if allow_feb_29 else 2001
    try:
        date(year, month, day)
    except ValueError as exc:
        raise InvalidAnniversaryError(f"Invalid month/day combination: {month:02d}-{day:02d}") from exc


def occurrence_for_year(month: int, day: int, year: int, leap_day_rule: str = LEAP_DAY_FEB28) -> date:
    """Return the date a month/day anniversary falls on in ``year``.

    Feb 29 in a non-leap year follows ``leap_day_rule``; any other day past
    the end of the month is clamped to the month's last day.
    """
    if month == 2 and day == 29 and not is_leap_year(year):
        if leap_day_rule == LEAP_DAY_FEB28:
            return date(year, 2, 28)
        if leap_day_rule == LEAP_DAY_MAR1:
            return date(year, 3, 1)
        raise InvalidAnniversaryError(f"Unsupported leap day rule: {leap_day_rule}")

    days_in_month = calendar.monthrange(year, month)[1]
    return date(year, month, min(day, days_in_month))


def next_occurrence(
    reference: date,
    birth_date: date,
    leap_day_rule: str = LEAP_DAY_FEB28,
) -> tuple[date, int]:
    """Return ``(occurrence, turning_years)`` for the first occurrence on or after ``reference``.

    ``reference`` must already be the calendar date in the relevant zone.
    """
    year = reference.year
    for _ in range(MAX_YEAR_ADVANCES + 1):
        candidate = occurrence_for_year(birth_date.month, birth_date.day, year, leap_day_rule)
        if candidate >= reference:
            return candidate, candidate.year - birth_date.year
        year += 1

    raise InvalidAnniversaryError(
        f"No occurrence of {birth_date.month:02d}-{birth_date.day:02d} found after {reference.isoformat()}"
    )


def parse_time_hhmm(value: str) -> tuple[int, int]:
    pieces = (value or "").strip().split(":")
    if len(pieces) != 2:
        raise ValueError("time must be in HH:MM format")

    hour, minute = pieces
    if not hour.isdigit() or not minute.isdigit() or len(minute) != 2 or len(hour) > 2:
        raise ValueError("time must contain numeric hour/minute")

    hour_i = int(hour)
    minute_i = int(minute)
    if hour_i < 0 or hour_i > 23 or minute_i < 0 or minute_i > 59:
        raise ValueError("time must be a valid 24-hour time")

    return hour_i, minute_i
