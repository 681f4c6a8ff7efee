"""RRULE parsing and validation.

Turns RRULE text (``FREQ=WEEKLY;BYDAY=MO,WE``) or its structured mapping form
into a validated, immutable ``RecurrenceRule``. Every failure raises
``InvalidRule`` naming the offending rule part; no partial rule is returned.
"""

import logging
import re
from collections.abc import Mapping
from datetime import date, datetime
from typing import Any, Optional, Union

from .calendar_math import days_in_month
from .datetime_utils import TimeFrame, coerce_date_value
from .exceptions import InvalidDateValue, InvalidRule, UnsupportedCombination
from .models import DateOrDateTime, Frequency, RecurrenceRule, Weekday, WeekdayNum

logger = logging.getLogger(__name__)

RuleSource = Union[str, Mapping[str, Any]]

# (rule part, model field, minimum, maximum, signed)
_NUMERIC_PARTS: tuple[tuple[str, str, int, int, bool], ...] = (
    ("BYMONTH", "by_month", 1, 12, False),
    ("BYWEEKNO", "by_week_no", 1, 53, True),
    ("BYYEARDAY", "by_year_day", 1, 366, True),
    ("BYMONTHDAY", "by_month_day", 1, 31, True),
    ("BYHOUR", "by_hour", 0, 23, False),
    ("BYMINUTE", "by_minute", 0, 59, False),
    ("BYSECOND", "by_second", 0, 60, False),
    ("BYSETPOS", "by_set_pos", 1, 366, True),
)

_KNOWN_PARTS = frozenset(
    {"FREQ", "INTERVAL", "COUNT", "UNTIL", "BYDAY", "WKST"} | {part[0] for part in _NUMERIC_PARTS}
)

# Any leap year; February is measured at its longest.
_LEAP_YEAR = 2000

_BYDAY_RE = re.compile(r"^([+-]?\d{1,2})?(MO|TU|WE|TH|FR|SA|SU)$")


def parse_rule(source: RuleSource, dtstart: Optional[DateOrDateTime] = None) -> RecurrenceRule:
    """Parse and validate a recurrence rule.

    Args:
        source: RRULE text (an ``RRULE:`` prefix is accepted), a mapping of
            rule part names to values, or an object exposing ``to_ical()``
            such as ``icalendar.prop.vRecur``
        dtstart: Event start used to validate UNTIL precision and the
            rule parts that need a date-time start; optional

    Returns:
        Validated RecurrenceRule

    Raises:
        InvalidRule: If the rule is malformed (``UnsupportedCombination`` for
            BY* parts that RFC 5545 forbids with the rule's FREQ)
    """
    parts = _split_parts(source)

    if "FREQ" not in parts:
        raise InvalidRule("FREQ", "rule part is required")
    frequency = _parse_frequency(_single(parts, "FREQ"))

    fields: dict[str, Any] = {"frequency": frequency}

    if "INTERVAL" in parts:
        interval = _parse_int("INTERVAL", _single(parts, "INTERVAL"))
        if interval < 1:
            raise InvalidRule("INTERVAL", f"must be a positive integer, got {interval}")
        fields["interval"] = interval

    if "COUNT" in parts and "UNTIL" in parts:
        raise InvalidRule("COUNT", "COUNT and UNTIL cannot both be present")

    if "COUNT" in parts:
        count = _parse_int("COUNT", _single(parts, "COUNT"))
        if count < 0:
            raise InvalidRule("COUNT", f"must be a non-negative integer, got {count}")
        fields["count"] = count

    if "UNTIL" in parts:
        fields["until"] = _parse_until(_single(parts, "UNTIL"), dtstart)

    for name, field_name, low, high, signed in _NUMERIC_PARTS:
        if name in parts:
            fields[field_name] = _parse_int_list(name, parts[name], low, high, signed)

    if "BYDAY" in parts:
        fields["by_day"] = tuple(_parse_weekday_num(token) for token in parts["BYDAY"])

    if "WKST" in parts:
        fields["week_start"] = _parse_weekday("WKST", _single(parts, "WKST"))

    rule = RecurrenceRule(**fields)
    _validate_combinations(rule, dtstart)
    _validate_reachable(rule)
    logger.debug("Parsed recurrence rule %s", rule)
    return rule


def resolve_defaults(rule: RecurrenceRule, dtstart: DateOrDateTime) -> RecurrenceRule:
    """Return ``rule`` with the BY* values implied by DTSTART made explicit.

    - WEEKLY without BYDAY repeats on DTSTART's weekday
    - MONTHLY without BYMONTHDAY or BYDAY repeats on DTSTART's day of month
    - YEARLY with BYWEEKNO only repeats on DTSTART's weekday
    - YEARLY without day-level parts repeats on DTSTART's month and day
      (only the day when BYMONTH is given)
    - BYHOUR/BYMINUTE/BYSECOND coarser than FREQ take DTSTART's time of day
    """
    start = TimeFrame(dtstart).wall_start
    freq = rule.frequency
    updates: dict[str, Any] = {}
    start_weekday = (WeekdayNum(weekday=Weekday(start.weekday())),)

    if freq == Frequency.WEEKLY and not rule.by_day:
        updates["by_day"] = start_weekday
    elif freq == Frequency.MONTHLY and not rule.by_month_day and not rule.by_day:
        updates["by_month_day"] = (start.day,)
    elif freq == Frequency.YEARLY:
        has_day_level = bool(rule.by_year_day or rule.by_month_day or rule.by_day)
        if rule.by_week_no and not has_day_level:
            updates["by_day"] = start_weekday
        elif not rule.by_week_no and not has_day_level:
            updates["by_month_day"] = (start.day,)
            if not rule.by_month:
                updates["by_month"] = (start.month,)

    if freq.rank > Frequency.HOURLY.rank and not rule.by_hour:
        updates["by_hour"] = (start.hour,)
    if freq.rank > Frequency.MINUTELY.rank and not rule.by_minute:
        updates["by_minute"] = (start.minute,)
    if freq.rank > Frequency.SECONDLY.rank and not rule.by_second:
        updates["by_second"] = (start.second,)

    if not updates:
        return rule
    return rule.model_copy(update=updates)


def _split_parts(source: RuleSource) -> dict[str, list[Any]]:
    """Normalize text or mapping input into ``{PART: [values...]}``."""
    if hasattr(source, "to_ical"):
        source = source.to_ical().decode("utf-8")

    parts: dict[str, list[Any]] = {}
    if isinstance(source, str):
        text = source.strip()
        if text.upper().startswith("RRULE:"):
            text = text[6:]
        if not text:
            raise InvalidRule(None, "empty RRULE string")
        for raw in text.split(";"):
            if not raw.strip():
                continue
            if "=" not in raw:
                raise InvalidRule(raw.strip().upper(), "expected NAME=VALUE")
            key, value = raw.split("=", 1)
            key = key.strip().upper()
            if key in parts:
                raise InvalidRule(key, "rule part given more than once")
            values = [token.strip() for token in value.split(",")]
            if not any(values):
                raise InvalidRule(key, "value is empty")
            parts[key] = values
    elif isinstance(source, Mapping):
        for key, value in source.items():
            name = str(key).strip().upper()
            if isinstance(value, (list, tuple)):
                values = list(value)
            elif isinstance(value, str):
                values = [token.strip() for token in value.split(",")]
            else:
                values = [value]
            if not values or any(v is None or v == "" for v in values):
                raise InvalidRule(name, "value is empty")
            parts[name] = [v.strip() if isinstance(v, str) else v for v in values]
    else:
        raise InvalidRule(None, f"unsupported rule source type {type(source).__name__}")

    unknown = set(parts) - _KNOWN_PARTS
    if unknown:
        name = sorted(unknown)[0]
        raise InvalidRule(name, "unknown rule part")
    return parts


def _single(parts: dict[str, list[Any]], name: str) -> Any:
    values = parts[name]
    if len(values) != 1:
        raise InvalidRule(name, "expected a single value")
    return values[0]


def _parse_frequency(token: Any) -> Frequency:
    try:
        return Frequency(str(token).strip().upper())
    except ValueError as e:
        raise InvalidRule("FREQ", f"unknown frequency {token!r}") from e


def _parse_int(name: str, token: Any) -> int:
    if isinstance(token, bool):
        raise InvalidRule(name, f"expected an integer, got {token!r}")
    if isinstance(token, int):
        return token
    try:
        return int(str(token).strip())
    except ValueError as e:
        raise InvalidRule(name, f"expected an integer, got {token!r}") from e


def _parse_int_list(name: str, tokens: list[Any], low: int, high: int, signed: bool) -> tuple[int, ...]:
    values: list[int] = []
    for token in tokens:
        value = _parse_int(name, token)
        magnitude = abs(value) if signed else value
        if signed and value == 0:
            raise InvalidRule(name, "zero is not a valid value")
        if not low <= magnitude <= high:
            bounds = f"+-{low}..{high}" if signed else f"{low}..{high}"
            raise InvalidRule(name, f"value {value} outside {bounds}")
        if value not in values:
            values.append(value)
    return tuple(values)


def _parse_weekday(name: str, token: Any) -> Weekday:
    if isinstance(token, Weekday):
        return token
    try:
        return Weekday.from_token(str(token))
    except KeyError as e:
        raise InvalidRule(name, f"unknown weekday {token!r}") from e


def _parse_weekday_num(token: Any) -> WeekdayNum:
    match = _BYDAY_RE.match(str(token).strip().upper())
    if not match:
        raise InvalidRule("BYDAY", f"malformed weekday {token!r}")
    ordinal_text, day = match.groups()
    ordinal = None
    if ordinal_text is not None:
        ordinal = int(ordinal_text)
        if ordinal == 0 or abs(ordinal) > 53:
            raise InvalidRule("BYDAY", f"ordinal {ordinal} outside +-1..53")
    return WeekdayNum(weekday=Weekday.from_token(day), ordinal=ordinal)


def _parse_until(token: Any, dtstart: Optional[DateOrDateTime]) -> DateOrDateTime:
    default_tz = None
    if isinstance(dtstart, datetime):
        default_tz = dtstart.tzinfo
    try:
        until = coerce_date_value(token, default_tz)  # type: ignore[arg-type]
    except InvalidDateValue as e:
        raise InvalidRule("UNTIL", str(e)) from e

    if dtstart is not None:
        until_is_datetime = isinstance(until, datetime)
        if isinstance(dtstart, datetime) != until_is_datetime:
            expected = "DATE-TIME" if isinstance(dtstart, datetime) else "DATE"
            raise InvalidRule("UNTIL", f"must be a {expected} value to match DTSTART")
    return until


def _validate_combinations(rule: RecurrenceRule, dtstart: Optional[DateOrDateTime]) -> None:
    """Reject BY* combinations that RFC 5545 does not allow for the FREQ."""
    freq = rule.frequency

    if rule.by_week_no and freq != Frequency.YEARLY:
        raise UnsupportedCombination("BYWEEKNO", f"only valid with FREQ=YEARLY, not {freq.value}")
    if rule.by_year_day and freq in (Frequency.DAILY, Frequency.WEEKLY, Frequency.MONTHLY):
        raise UnsupportedCombination("BYYEARDAY", f"not valid with FREQ={freq.value}")
    if rule.by_month_day and freq == Frequency.WEEKLY:
        raise UnsupportedCombination("BYMONTHDAY", "not valid with FREQ=WEEKLY")
    if rule.has_ordinal_by_day:
        if freq not in (Frequency.MONTHLY, Frequency.YEARLY):
            raise UnsupportedCombination(
                "BYDAY", f"ordinal weekdays are only valid with MONTHLY or YEARLY, not {freq.value}"
            )
        if freq == Frequency.YEARLY and rule.by_week_no:
            raise UnsupportedCombination("BYDAY", "ordinal weekdays are not valid together with BYWEEKNO")

    if rule.by_set_pos:
        others = (
            rule.by_month,
            rule.by_week_no,
            rule.by_year_day,
            rule.by_month_day,
            rule.by_day,
            rule.by_hour,
            rule.by_minute,
            rule.by_second,
        )
        if not any(others):
            raise InvalidRule("BYSETPOS", "requires at least one other BY* rule part")

    if dtstart is not None and not isinstance(dtstart, datetime):
        if freq.is_sub_daily:
            raise UnsupportedCombination("FREQ", f"{freq.value} requires a DATE-TIME DTSTART")
        for name, values in (("BYHOUR", rule.by_hour), ("BYMINUTE", rule.by_minute), ("BYSECOND", rule.by_second)):
            if values:
                raise UnsupportedCombination(name, "not valid with a DATE DTSTART")


def _validate_reachable(rule: RecurrenceRule) -> None:
    """Reject rules whose BY* parts can never name a real date-time."""
    if rule.by_second and all(second == 60 for second in rule.by_second):
        raise InvalidRule("BYSECOND", "a leap second alone never produces an occurrence")

    if rule.by_month and rule.by_month_day:
        for month in rule.by_month:
            longest = days_in_month(_LEAP_YEAR, month)
            if any(abs(day) <= longest for day in rule.by_month_day):
                return
        months = ",".join(str(month) for month in sorted(rule.by_month))
        raise InvalidRule("BYMONTHDAY", f"no listed day exists in BYMONTH={months}")


def describe_dtstart(dtstart: DateOrDateTime) -> str:
    """Short description of DTSTART precision for log messages."""
    if isinstance(dtstart, datetime):
        return "zoned" if dtstart.tzinfo is not None else "floating"
    if isinstance(dtstart, date):
        return "date"
    return type(dtstart).__name__
