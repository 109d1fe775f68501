from datetime import date

import pytest

from anniversary_bot.models import Anniversary
from anniversary_bot.upcoming import in_range, month_window, next_days_window, sort_for_display, upcoming


def _anniversary(name: str, value: date) -> Anniversary:
    return Anniversary(anniversary_id=f"id-{name.lower()}", owner_key="owner", name=name, date=value)


ANNIVERSARIES = [
    _anniversary("Alice", date(1990, 8, 22)),
    _anniversary("bob", date(1985, 8, 22)),
    _anniversary("Carol", date(2001, 8, 25)),
    _anniversary("Dave", date(1970, 1, 10)),
]


def test_single_day_window_returns_exactly_todays_occurrences() -> None:
    today = date(2025, 8, 22)

    names = {item.anniversary.name for item in in_range(ANNIVERSARIES, today, today)}

    assert names == {"Alice", "bob"}


def test_wider_window_is_superset() -> None:
    today = date(2025, 8, 22)
    narrow = {item.anniversary.anniversary_id for item in in_range(ANNIVERSARIES, today, today)}
    from_date, to_date = next_days_window(today, 7)
    wide = {item.anniversary.anniversary_id for item in in_range(ANNIVERSARIES, from_date, to_date)}

    assert narrow <= wide
    assert wide == {"id-alice", "id-bob", "id-carol"}


def test_range_carries_turning_years() -> None:
    items = {item.anniversary.name: item for item in in_range(ANNIVERSARIES, date(2025, 8, 23), date(2025, 8, 31))}

    assert list(items) == ["Carol"]
    assert items["Carol"].occurs_on == date(2025, 8, 25)
    assert items["Carol"].turning_years == 24


def test_range_can_be_iterated_twice() -> None:
    selection = in_range(ANNIVERSARIES, date(2025, 8, 1), date(2025, 8, 31))

    assert list(selection) == list(selection)
    assert len(list(selection)) == 3


def test_sort_for_display_orders_by_date_then_name() -> None:
    items = upcoming(ANNIVERSARIES, date(2025, 8, 1), date(2026, 1, 31))

    assert [item.anniversary.name for item in items] == ["Alice", "bob", "Carol", "Dave"]
    assert sort_for_display(reversed(items)) == items


def test_leap_rule_is_applied_in_range() -> None:
    leap = [_anniversary("Leap", date(2000, 2, 29))]

    assert [item.occurs_on for item in in_range(leap, date(2025, 3, 1), date(2025, 3, 1), "mar1")] == [
        date(2025, 3, 1)
    ]
    assert list(in_range(leap, date(2025, 3, 1), date(2025, 3, 1), "feb28")) == []


def test_month_window_current_month_starts_today() -> None:
    assert month_window(date(2026, 2, 10)) == (date(2026, 2, 10), date(2026, 2, 28))


def test_month_window_next_month_wraps_year() -> None:
    assert month_window(date(2026, 12, 5), 1) == (date(2027, 1, 1), date(2027, 1, 31))


def test_windows_reject_negative_values() -> None:
    with pytest.raises(ValueError):
        next_days_window(date(2026, 1, 1), -1)
    with pytest.raises(ValueError):
        month_window(date(2026, 1, 1), -1)
