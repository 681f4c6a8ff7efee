"""Unit tests for caser_recurrence.calendar_math."""

from datetime import date

import pytest

from caser_recurrence.calendar_math import (
    days_in_month,
    days_in_year,
    first_week_start,
    is_leap_year,
    iter_days,
    month_bounds,
    resolve_signed,
    week_number,
    week_start_on_or_before,
    weekday_position,
    weeks_in_year,
    year_day,
)

pytestmark = pytest.mark.unit

MONDAY = 0
SUNDAY = 6


@pytest.mark.parametrize(
    "year,expected",
    [(2024, True), (2023, False), (1900, False), (2000, True)],
)
def test_is_leap_year(year: int, expected: bool) -> None:
    assert is_leap_year(year) is expected
    assert days_in_year(year) == (366 if expected else 365)


@pytest.mark.parametrize(
    "year,month,expected",
    [(2024, 2, 29), (2023, 2, 28), (2024, 4, 30), (2024, 12, 31), (1900, 2, 28)],
)
def test_days_in_month(year: int, month: int, expected: int) -> None:
    assert days_in_month(year, month) == expected


def test_year_day() -> None:
    assert year_day(date(2024, 1, 1)) == 1
    assert year_day(date(2024, 12, 31)) == 366
    assert year_day(date(2023, 12, 31)) == 365


@pytest.mark.parametrize(
    "value,length,expected",
    [
        (1, 31, 1),
        (31, 31, 31),
        (-1, 31, 31),
        (-31, 31, 1),
        (31, 30, None),
        (-31, 30, None),
        (-1, 0, None),
    ],
)
def test_resolve_signed(value: int, length: int, expected: int) -> None:
    assert resolve_signed(value, length) == expected


def test_week_start_on_or_before() -> None:
    wednesday = date(2024, 1, 3)
    assert week_start_on_or_before(wednesday, MONDAY) == date(2024, 1, 1)
    assert week_start_on_or_before(wednesday, SUNDAY) == date(2023, 12, 31)
    assert week_start_on_or_before(date(2024, 1, 1), MONDAY) == date(2024, 1, 1)


@pytest.mark.parametrize(
    "year,expected",
    [
        (2024, date(2024, 1, 1)),  # Jan 1 is a Monday
        (2021, date(2021, 1, 4)),  # Jan 1 is a Friday: only 3 days in week
        (2020, date(2019, 12, 30)),  # Jan 1 is a Wednesday: 5 days in week
    ],
)
def test_first_week_start_iso(year: int, expected: date) -> None:
    assert first_week_start(year, MONDAY) == expected


@pytest.mark.parametrize(
    "value",
    [date(2021, 1, 1), date(2024, 12, 30), date(2024, 6, 15), date(2026, 12, 31), date(2027, 1, 3)],
)
def test_week_number_matches_iso_calendar_for_monday_weeks(value: date) -> None:
    iso = value.isocalendar()
    assert week_number(value, MONDAY) == (iso[0], iso[1])


def test_week_number_with_sunday_week_start() -> None:
    # 2023-01-01 is a Sunday, so a Sunday-based week 1 starts that day
    assert week_number(date(2023, 1, 1), SUNDAY) == (2023, 1)
    # The same day is the end of ISO week 52 of 2022
    assert week_number(date(2023, 1, 1), MONDAY) == (2022, 52)


@pytest.mark.parametrize("year,expected", [(2020, 53), (2026, 53), (2024, 52), (2021, 52)])
def test_weeks_in_year(year: int, expected: int) -> None:
    assert weeks_in_year(year, MONDAY) == expected


def test_weekday_position_in_month() -> None:
    first, last = month_bounds(2024, 5)
    # Fridays in May 2024: 3, 10, 17, 24, 31
    assert weekday_position(date(2024, 5, 3), first, last) == (1, 5)
    assert weekday_position(date(2024, 5, 31), first, last) == (5, 1)
    assert weekday_position(date(2024, 5, 24), first, last) == (4, 2)


def test_month_bounds_leap_february() -> None:
    assert month_bounds(2024, 2) == (date(2024, 2, 1), date(2024, 2, 29))


def test_iter_days_is_inclusive() -> None:
    days = list(iter_days(date(2024, 2, 27), date(2024, 3, 1)))
    assert days == [date(2024, 2, 27), date(2024, 2, 28), date(2024, 2, 29), date(2024, 3, 1)]
    assert list(iter_days(date(2024, 3, 1), date(2024, 2, 1))) == []
