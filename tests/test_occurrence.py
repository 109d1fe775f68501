from datetime import date, timedelta

import pytest

from anniversary_bot.occurrence import (
    InvalidAnniversaryError,
    next_occurrence,
    occurrence_for_year,
    parse_time_hhmm,
    validate_month_day,
)


def test_occurrence_today_counts_and_age() -> None:
    occurs_on, turning = next_occurrence(date(2025, 8, 22), date(1990, 8, 22))

    assert occurs_on == date(2025, 8, 22)
    assert turning == 35


def test_occurrence_already_passed_moves_to_next_year() -> None:
    occurs_on, turning = next_occurrence(date(2025, 8, 22), date(1990, 1, 10))

    assert occurs_on == date(2026, 1, 10)
    assert turning == 36


def test_feb_29_maps_to_feb_28_on_non_leap_year() -> None:
    occurs_on, turning = next_occurrence(date(2025, 2, 1), date(2000, 2, 29), "feb28")

    assert occurs_on == date(2025, 2, 28)
    assert turning == 25


def test_feb_29_maps_to_mar_1_with_alternate_rule() -> None:
    occurs_on, _ = next_occurrence(date(2025, 2, 1), date(2000, 2, 29), "mar1")

    assert occurs_on == date(2025, 3, 1)


def test_feb_29_kept_on_leap_year() -> None:
    occurs_on, turning = next_occurrence(date(2028, 2, 27), date(2000, 2, 29))

    assert occurs_on == date(2028, 2, 29)
    assert turning == 28


def test_feb_29_after_substitute_day_rolls_to_next_year() -> None:
    occurs_on, _ = next_occurrence(date(2025, 3, 1), date(2000, 2, 29), "feb28")

    assert occurs_on == date(2026, 2, 28)


def test_unknown_leap_rule_rejected() -> None:
    with pytest.raises(InvalidAnniversaryError):
        occurrence_for_year(2, 29, 2025, "feb30")


def test_day_past_end_of_month_is_clamped() -> None:
    assert occurrence_for_year(4, 31, 2026) == date(2026, 4, 30)


def test_next_occurrence_is_deterministic() -> None:
    reference = date(2026, 10, 19)
    birth = date(1979, 12, 31)

    assert next_occurrence(reference, birth) == next_occurrence(reference, birth)


def test_next_occurrence_never_before_reference_and_keeps_month_day() -> None:
    births = [date(1990, month, day) for month in range(1, 13) for day in (1, 15, 28)]
    births.append(date(2000, 2, 29))
    references = [date(2025, 1, 1), date(2025, 6, 30), date(2025, 12, 31), date(2028, 2, 29)]

    for reference in references:
        for birth in births:
            occurs_on, turning = next_occurrence(reference, birth)
            assert occurs_on >= reference
            assert occurs_on - reference < timedelta(days=367)
            assert turning == occurs_on.year - birth.year
            if (birth.month, birth.day) == (2, 29) and occurs_on.day == 28:
                assert occurs_on.month == 2
            else:
                assert (occurs_on.month, occurs_on.day) == (birth.month, birth.day)


def test_validate_month_day() -> None:
    validate_month_day(2, 29, allow_feb_29=True)

    with pytest.raises(InvalidAnniversaryError):
        validate_month_day(2, 29, allow_feb_29=False)
    with pytest.raises(InvalidAnniversaryError):
        validate_month_day(4, 31)
    with pytest.raises(InvalidAnniversaryError):
        validate_month_day(13, 1)


def test_parse_time_hhmm_accepts_valid_times() -> None:
    assert parse_time_hhmm("09:00") == (9, 0)
    assert parse_time_hhmm("9:05") == (9, 5)
    assert parse_time_hhmm(" 23:59 ") == (23, 59)


@pytest.mark.parametrize("value", ["", "9", "24:00", "12:60", "ab:cd", "12:5", "12:00:00"])
def test_parse_time_hhmm_rejects_invalid_times(value: str) -> None:
    with pytest.raises(ValueError):
        parse_time_hhmm(value)
