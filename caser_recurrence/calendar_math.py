"""Pure calendar arithmetic used by the recurrence engine.

Every function here is a pure function of its arguments. Period lengths are
computed per call rather than read from fixed tables so that leap years and
varying month lengths are always handled the same way.
"""

import calendar
from datetime import date, timedelta
from collections.abc import Iterator
from typing import Optional

# Largest year the generator will reach before the sequence ends.
MAX_YEAR = date.max.year


def is_leap_year(year: int) -> bool:
    """Return True when ``year`` is a Gregorian leap year."""
    return calendar.isleap(year)


def days_in_month(year: int, month: int) -> int:
    """Return the number of days in ``month`` of ``year``.

    Examples:
        >>> days_in_month(2024, 2)
        29
        >>> days_in_month(2023, 2)
        28
        >>> days_in_month(2024, 4)
        30
    """
    return calendar.monthrange(year, month)[1]


def days_in_year(year: int) -> int:
    """Return 366 for leap years and 365 otherwise."""
    return 366 if is_leap_year(year) else 365


def year_day(value: date) -> int:
    """Return the 1-based day of the year for ``value``."""
    return value.timetuple().tm_yday


def resolve_signed(value: int, length: int) -> Optional[int]:
    """Resolve a signed 1-based ordinal against a sequence of ``length`` items.

    Positive values count from the start (1 = first) and negative values count
    from the end (-1 = last).

    Args:
        value: Signed ordinal, never zero
        length: Number of items in the containing sequence

    Returns:
        The positive 1-based ordinal, or None when it falls outside the sequence
    """
    resolved = value if value > 0 else length + value + 1
    if 1 <= resolved <= length:
        return resolved
    return None


def week_start_on_or_before(value: date, week_start: int) -> date:
    """Return the first day of the week containing ``value``.

    Args:
        value: Any date
        week_start: Weekday number (0 = Monday ... 6 = Sunday) that begins a week
    """
    return value - timedelta(days=(value.weekday() - week_start) % 7)


def first_week_start(year: int, week_start: int) -> date:
    """Return the first day of week 1 of ``year``.

    Week 1 is the first week, beginning on ``week_start``, that contains at
    least four days of the year. With ``week_start`` = Monday this is the ISO
    8601 definition.
    """
    jan1 = date(year, 1, 1)
    offset = (jan1.weekday() - week_start) % 7
    start = jan1 - timedelta(days=offset)
    if 7 - offset < 4:
        start += timedelta(days=7)
    return start


def weeks_in_year(year: int, week_start: int) -> int:
    """Return how many numbered weeks (52 or 53) ``year`` has."""
    if year >= MAX_YEAR:
        return 52
    span = first_week_start(year + 1, week_start) - first_week_start(year, week_start)
    return span.days // 7


def week_number(value: date, week_start: int) -> tuple[int, int]:
    """Return the ``(week_year, week_number)`` that ``value`` belongs to.

    Days at the start of January may belong to the last week of the previous
    year, and days at the end of December to week 1 of the next year.

    Examples:
        >>> week_number(date(2021, 1, 1), 0)
        (2020, 53)
        >>> week_number(date(2024, 12, 30), 0)
        (2025, 1)
    """
    year = value.year
    if year < MAX_YEAR and value >= first_week_start(year + 1, week_start):
        year += 1
    elif year > 1 and value < first_week_start(year, week_start):
        year -= 1
    start = first_week_start(year, week_start)
    return year, (value - start).days // 7 + 1


def weekday_position(value: date, range_start: date, range_end: date) -> tuple[int, int]:
    """Return the position of ``value`` among same-weekday days in a range.

    The range is inclusive on both ends. For the last Friday of a month the
    result is ``(n, 1)``; for the first Friday it is ``(1, n)``.

    Returns:
        Tuple of (position counted from the start, position counted from the end)
    """
    from_start = (value - range_start).days // 7 + 1
    from_end = (range_end - value).days // 7 + 1
    return from_start, from_end


def month_bounds(year: int, month: int) -> tuple[date, date]:
    """Return the first and last day of a month."""
    return date(year, month, 1), date(year, month, days_in_month(year, month))


def year_bounds(year: int) -> tuple[date, date]:
    """Return the first and last day of a year."""
    return date(year, 1, 1), date(year, 12, 31)


def iter_days(start: date, end: date) -> Iterator[date]:
    """Yield every date from ``start`` to ``end`` inclusive."""
    for offset in range((end - start).days + 1):
        yield start + timedelta(days=offset)
