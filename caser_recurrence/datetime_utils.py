"""Date and time handling for recurrence expansion.

Provides the ``TimeFrame`` that pins an expansion to DTSTART's zone and
precision, plus parsing of RFC 5545 DATE / DATE-TIME strings used by UNTIL,
EXDATE and RDATE values.
"""

import logging
from collections.abc import Iterable
from datetime import UTC, date, datetime, time
from typing import Optional, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dateutil import parser as dateutil_parser

from .exceptions import InvalidDateValue
from .models import DateOrDateTime, Occurrence

logger = logging.getLogger(__name__)

# Windows zone names seen in Outlook/Exchange TZID parameters.
WINDOWS_TZ_MAP: dict[str, str] = {
    "Pacific Standard Time": "America/Los_Angeles",
    "Mountain Standard Time": "America/Denver",
    "Central Standard Time": "America/Chicago",
    "Eastern Standard Time": "America/New_York",
    "Alaskan Standard Time": "America/Anchorage",
    "Hawaiian Standard Time": "Pacific/Honolulu",
    "Arizona Standard Time": "America/Phoenix",
    "GMT Standard Time": "Europe/London",
    "Central European Standard Time": "Europe/Paris",
    "W. Europe Standard Time": "Europe/Berlin",
    "China Standard Time": "Asia/Shanghai",
    "Tokyo Standard Time": "Asia/Tokyo",
    "India Standard Time": "Asia/Kolkata",
    "AUS Eastern Standard Time": "Australia/Sydney",
}

DateInput = Union[str, date, datetime]


def resolve_zone(tzid: str) -> ZoneInfo:
    """Resolve a TZID (IANA or Windows name) to a ZoneInfo.

    Raises:
        InvalidDateValue: If the zone is unknown
    """
    name = WINDOWS_TZ_MAP.get(tzid.strip(), tzid.strip())
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise InvalidDateValue(f"Unknown time zone: {tzid}") from e


def parse_ical_datetime(value: str, default_tz: Optional[ZoneInfo] = None) -> DateOrDateTime:
    """Parse an RFC 5545 DATE or DATE-TIME string.

    Handles:
    - DATE: ``20250623``
    - Floating DATE-TIME: ``20250623T083000``
    - UTC DATE-TIME: ``20250623T083000Z``
    - TZID prefix: ``TZID=Pacific Standard Time:20250623T083000``
    - ISO 8601: ``2025-06-23T08:30:00+02:00`` (via dateutil)

    Args:
        value: String to parse
        default_tz: Zone applied to floating date-times, if given

    Returns:
        A ``date`` for DATE values, otherwise a ``datetime``

    Raises:
        InvalidDateValue: If the string matches none of the formats
    """
    text = value.strip()
    tz = default_tz
    if text.upper().startswith("TZID="):
        tzid, sep, text = text[5:].rpartition(":")
        if not sep or not tzid:
            raise InvalidDateValue(f"Malformed TZID value: {value}")
        tz = resolve_zone(tzid)

    if text.endswith(("Z", "z")) and "T" in text.upper():
        try:
            return datetime.strptime(text[:-1].upper(), "%Y%m%dT%H%M%S").replace(tzinfo=UTC)
        except ValueError:
            pass

    for fmt in ("%Y%m%dT%H%M%S", "%Y%m%d"):
        try:
            parsed = datetime.strptime(text.upper(), fmt)
        except ValueError:
            continue
        if fmt == "%Y%m%d":
            return parsed.date()
        return parsed.replace(tzinfo=tz) if tz is not None else parsed

    try:
        if len(text) == 10 and text[4] == "-":
            return date.fromisoformat(text)
        parsed = dateutil_parser.isoparse(text)
    except ValueError as e:
        raise InvalidDateValue(f"Unable to parse date value: {value}") from e
    if parsed.tzinfo is None and tz is not None:
        parsed = parsed.replace(tzinfo=tz)
    return parsed


def coerce_date_value(value: DateInput, default_tz: Optional[ZoneInfo] = None) -> DateOrDateTime:
    """Return ``value`` as a date or datetime, parsing strings."""
    if isinstance(value, str):
        return parse_ical_datetime(value, default_tz)
    if isinstance(value, date):
        return value
    raise InvalidDateValue(f"Expected a date, datetime or string, got {type(value).__name__}")


def coerce_date_values(values: Optional[Iterable[DateInput]], default_tz: Optional[ZoneInfo] = None) -> list[DateOrDateTime]:
    """Coerce a collection of EXDATE/RDATE inputs; comma-separated strings are split."""
    result: list[DateOrDateTime] = []
    if not values:
        return result
    if isinstance(values, (str, date)):
        values = [values]
    for value in values:
        if isinstance(value, str) and "," in value:
            prefix = ""
            head = value
            if value.upper().startswith("TZID="):
                prefix, _, head = value.rpartition(":")
                prefix += ":"
            result.extend(
                coerce_date_value(prefix + part, default_tz) for part in head.split(",") if part.strip()
            )
        else:
            result.append(coerce_date_value(value, default_tz))
    return result


class TimeFrame:
    """Pins expansion to DTSTART's zone and precision.

    The engine computes candidates as naive wall-clock date-times in DTSTART's
    zone. This class converts external values into that wall clock and turns
    wall-clock candidates back into zoned occurrences.

    Three kinds of frame exist:
    - all-day: DTSTART is a ``date``; occurrences are dates
    - floating: DTSTART is a naive ``datetime``; occurrences are naive
    - zoned: DTSTART is aware; occurrences carry DTSTART's tzinfo

    Every value is truncated to whole seconds, the finest precision an RFC 5545
    DATE-TIME carries. A DTSTART of 09:00:00.5 therefore yields occurrences at
    09:00:00, and EXDATE, RDATE and window bounds are compared the same way.
    """

    def __init__(self, dtstart: DateOrDateTime):
        self.dtstart = dtstart
        self.all_day = not isinstance(dtstart, datetime)
        self.tz = None if self.all_day else dtstart.tzinfo  # type: ignore[union-attr]

    @property
    def is_floating(self) -> bool:
        return not self.all_day and self.tz is None

    @property
    def wall_start(self) -> datetime:
        """DTSTART as a naive wall-clock date-time (microseconds dropped)."""
        return self.to_wall(self.dtstart)

    def to_wall(self, value: DateOrDateTime) -> datetime:
        """Convert any date or date-time into this frame's naive wall clock.

        Dates become midnight. Aware values are converted into the frame's zone;
        floating and all-day frames simply drop the zone.
        """
        if not isinstance(value, datetime):
            return datetime.combine(value, time())
        if value.tzinfo is not None:
            if self.tz is not None:
                value = value.astimezone(self.tz)
            value = value.replace(tzinfo=None)
        return value.replace(microsecond=0)

    def localize(self, wall: datetime) -> DateOrDateTime:
        """Turn a wall-clock candidate into this frame's occurrence value.

        Wall times inside a DST gap resolve with the offset in effect before
        the gap, so 02:30 on a spring-forward day becomes 03:30.
        """
        if self.all_day:
            return wall.date()
        if self.tz is None:
            return wall
        return wall.replace(tzinfo=self.tz).astimezone(UTC).astimezone(self.tz)

    def occurrence(self, wall: datetime) -> Occurrence:
        return Occurrence(self.localize(wall))

    def coerce(self, value: DateOrDateTime) -> DateOrDateTime:
        """Convert an RDATE-style value into this frame's kind.

        Dates paired with a timed frame take DTSTART's time of day; naive
        date-times in a zoned frame are interpreted in DTSTART's zone.
        """
        if self.all_day:
            return self.to_wall(value).date()
        if not isinstance(value, datetime):
            return self.localize(datetime.combine(value, self.wall_start.time()))
        if value.tzinfo is None:
            return self.localize(value.replace(microsecond=0))
        if self.tz is None:
            return value.replace(tzinfo=None, microsecond=0)
        return value.replace(microsecond=0)

    def bound(self, value: DateOrDateTime) -> DateOrDateTime:
        """Convert a window bound into this frame's kind (dates mean midnight)."""
        if self.all_day:
            if isinstance(value, datetime):
                wall = self.to_wall(value)
                # A bound after midnight still admits nothing earlier on that day.
                return wall.date() if wall.time() == time() else date.fromordinal(wall.date().toordinal() + 1)
            return value
        if not isinstance(value, datetime):
            return self.localize(datetime.combine(value, time()))
        return self.coerce(value)

    def key(self, value: DateOrDateTime) -> DateOrDateTime:
        """Absolute ordering key for a value already in this frame's kind."""
        return Occurrence(value).instant
