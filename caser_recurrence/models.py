"""Data models for recurrence rules and their occurrences."""

from dataclasses import dataclass
from datetime import UTC, date, datetime, tzinfo
from enum import Enum, IntEnum
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

DateOrDateTime = Union[datetime, date]


class Frequency(str, Enum):
    """Base recurrence frequency (the FREQ rule part)."""

    SECONDLY = "SECONDLY"
    MINUTELY = "MINUTELY"
    HOURLY = "HOURLY"
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"
    YEARLY = "YEARLY"

    @property
    def rank(self) -> int:
        """Granularity rank, 0 for SECONDLY up to 6 for YEARLY."""
        return _FREQUENCY_ORDER.index(self)

    @property
    def is_sub_daily(self) -> bool:
        """True for HOURLY, MINUTELY and SECONDLY."""
        return self.rank < Frequency.DAILY.rank


_FREQUENCY_ORDER = (
    Frequency.SECONDLY,
    Frequency.MINUTELY,
    Frequency.HOURLY,
    Frequency.DAILY,
    Frequency.WEEKLY,
    Frequency.MONTHLY,
    Frequency.YEARLY,
)


class Weekday(IntEnum):
    """Day of the week, numbered like ``date.weekday()``."""

    MO = 0
    TU = 1
    WE = 2
    TH = 3
    FR = 4
    SA = 5
    SU = 6

    @property
    def token(self) -> str:
        """Two-letter RRULE token, e.g. ``"MO"``."""
        return self.name

    @classmethod
    def from_token(cls, token: str) -> "Weekday":
        """Look up a weekday by its two-letter RRULE token.

        Raises:
            KeyError: If the token is not a weekday
        """
        return cls[token.strip().upper()]


class WeekdayNum(BaseModel):
    """A BYDAY entry: a weekday with an optional signed ordinal (``-1FR``)."""

    weekday: Weekday
    ordinal: Optional[int] = None

    model_config = ConfigDict(frozen=True)

    def __str__(self) -> str:
        prefix = "" if self.ordinal is None else str(self.ordinal)
        return f"{prefix}{self.weekday.token}"


class RecurrenceRule(BaseModel):
    """An RFC 5545 RRULE value.

    Instances are immutable. Empty BY* tuples mean the part was not given.
    Implicit values derived from DTSTART are not stored here; see
    ``rule_parser.resolve_defaults``.
    """

    frequency: Frequency
    interval: int = Field(default=1, ge=1)
    count: Optional[int] = Field(default=None, ge=0)
    until: Optional[DateOrDateTime] = None

    by_month: tuple[int, ...] = ()
    by_week_no: tuple[int, ...] = ()
    by_year_day: tuple[int, ...] = ()
    by_month_day: tuple[int, ...] = ()
    by_day: tuple[WeekdayNum, ...] = ()
    by_hour: tuple[int, ...] = ()
    by_minute: tuple[int, ...] = ()
    by_second: tuple[int, ...] = ()
    by_set_pos: tuple[int, ...] = ()

    week_start: Weekday = Weekday.MO

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def _check_limits(self) -> "RecurrenceRule":
        if self.count is not None and self.until is not None:
            raise ValueError("COUNT and UNTIL are mutually exclusive")
        return self

    @property
    def is_finite(self) -> bool:
        """True when COUNT or UNTIL bounds the rule."""
        return self.count is not None or self.until is not None

    @property
    def has_ordinal_by_day(self) -> bool:
        """True when any BYDAY entry carries an ordinal."""
        return any(entry.ordinal is not None for entry in self.by_day)

    def to_rrule_string(self) -> str:
        """Serialize the rule back to RRULE text.

        Only parts that are set are emitted. INTERVAL is omitted when it is 1
        and WKST when it is Monday.

        Returns:
            RRULE value such as ``"FREQ=MONTHLY;BYDAY=-1FR;COUNT=2"``
        """
        parts = [f"FREQ={self.frequency.value}"]
        if self.interval > 1:
            parts.append(f"INTERVAL={self.interval}")
        if self.count is not None:
            parts.append(f"COUNT={self.count}")
        if self.until is not None:
            parts.append(f"UNTIL={format_ical_value(self.until)}")

        numeric_parts = (
            ("BYMONTH", self.by_month),
            ("BYWEEKNO", self.by_week_no),
            ("BYYEARDAY", self.by_year_day),
            ("BYMONTHDAY", self.by_month_day),
        )
        for name, values in numeric_parts:
            if values:
                parts.append(f"{name}={','.join(str(v) for v in values)}")
        if self.by_day:
            parts.append(f"BYDAY={','.join(str(entry) for entry in self.by_day)}")
        for name, values in (
            ("BYHOUR", self.by_hour),
            ("BYMINUTE", self.by_minute),
            ("BYSECOND", self.by_second),
            ("BYSETPOS", self.by_set_pos),
        ):
            if values:
                parts.append(f"{name}={','.join(str(v) for v in values)}")
        if self.week_start != Weekday.MO:
            parts.append(f"WKST={self.week_start.token}")
        return ";".join(parts)

    def __str__(self) -> str:
        return self.to_rrule_string()


def format_ical_value(value: DateOrDateTime) -> str:
    """Format a date or date-time in RFC 5545 basic form.

    Aware date-times are converted to UTC and suffixed with ``Z``; floating
    date-times carry no suffix.
    """
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            return value.astimezone(UTC).strftime("%Y%m%dT%H%M%SZ")
        return value.strftime("%Y%m%dT%H%M%S")
    return value.strftime("%Y%m%d")


def zone_identity(tz: Optional[tzinfo]) -> Optional[str]:
    """Return a stable identity string for a tzinfo (IANA key when available)."""
    if tz is None:
        return None
    key = getattr(tz, "key", None)
    if key:
        return str(key)
    return str(tz)


@dataclass(frozen=True, eq=False)
class Occurrence:
    """One concrete firing of a recurring event.

    ``start`` is an aware date-time, a floating (naive) date-time, or a
    ``date`` for all-day rules. Occurrences order by absolute instant and
    compare equal by wall date, wall time and zone identity.
    """

    start: DateOrDateTime

    @property
    def is_all_day(self) -> bool:
        return not isinstance(self.start, datetime)

    @property
    def instant(self) -> DateOrDateTime:
        """Absolute ordering key: UTC for aware values, the value itself otherwise."""
        if isinstance(self.start, datetime) and self.start.tzinfo is not None:
            return self.start.astimezone(UTC)
        return self.start

    @property
    def local_date(self) -> date:
        if isinstance(self.start, datetime):
            return self.start.date()
        return self.start

    def _identity(self) -> tuple:
        if isinstance(self.start, datetime):
            return (self.start.replace(tzinfo=None), zone_identity(self.start.tzinfo))
        return (self.start, None)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Occurrence):
            return NotImplemented
        return self._identity() == other._identity()

    def __hash__(self) -> int:
        return hash(self._identity())

    def __lt__(self, other: "Occurrence") -> bool:
        return self.instant < other.instant

    def isoformat(self) -> str:
        return self.start.isoformat()
