"""Recurrence data attached to a calendar event, and expansion into instances.

``RecurrencePlain`` is the loose payload form (RRULE text plus EXDATE/RDATE
strings) that arrives from storage or API callers. ``EventRecurrence`` is its
validated form, bound to the event's DTSTART. ``expand_instances`` turns a
recurrence and the master event's span into concrete start/end instances.
"""

import logging
from collections.abc import Iterator
from datetime import date, datetime, timedelta
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .config import ExpansionConfig
from .datetime_utils import DateInput, coerce_date_values
from .exceptions import InvalidRule
from .models import DateOrDateTime, Occurrence, RecurrenceRule, format_ical_value
from .rule_parser import parse_rule
from .window import next_n_occurrences, occurrences_in_range

logger = logging.getLogger(__name__)

PlainDateValue = Union[str, datetime, date]


class EventSpan(BaseModel):
    """Start and end of the master event; its length is reused by every instance."""

    start: DateOrDateTime
    end: DateOrDateTime

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def _check_order(self) -> "EventSpan":
        if isinstance(self.start, datetime) != isinstance(self.end, datetime):
            raise ValueError("start and end must both be dates or both be date-times")
        if self.end < self.start:  # type: ignore[operator]
            raise ValueError("end must not be before start")
        return self

    @property
    def duration(self) -> timedelta:
        return self.end - self.start  # type: ignore[operator,return-value]

    @property
    def is_all_day(self) -> bool:
        return not isinstance(self.start, datetime)


class EventInstance(BaseModel):
    """One expanded instance of a recurring event."""

    start: DateOrDateTime
    end: DateOrDateTime
    is_all_day: bool = False

    model_config = ConfigDict(frozen=True)


class RecurrencePlain(BaseModel):
    """Unvalidated recurrence payload: RRULE text plus raw EXDATE/RDATE values."""

    rrule: Optional[str] = None
    exdates: list[PlainDateValue] = Field(default_factory=list)
    rdates: list[PlainDateValue] = Field(default_factory=list)


class EventRecurrence(BaseModel):
    """A validated recurrence bound to its DTSTART."""

    rule: RecurrenceRule
    dtstart: DateOrDateTime
    exdates: tuple[DateOrDateTime, ...] = ()
    rdates: tuple[DateOrDateTime, ...] = ()

    model_config = ConfigDict(frozen=True)

    @classmethod
    def from_plain(cls, plain: RecurrencePlain, dtstart: DateOrDateTime) -> "EventRecurrence":
        """Validate a plain payload against ``dtstart``.

        Raises:
            InvalidRule: If the rule is missing or malformed
            InvalidDateValue: If an EXDATE or RDATE cannot be parsed
        """
        if not plain.rrule or not plain.rrule.strip():
            raise InvalidRule("RRULE", "recurrence has no rule")
        default_tz = dtstart.tzinfo if isinstance(dtstart, datetime) else None
        return cls(
            rule=parse_rule(plain.rrule, dtstart),
            dtstart=dtstart,
            exdates=tuple(coerce_date_values(plain.exdates, default_tz)),  # type: ignore[arg-type]
            rdates=tuple(coerce_date_values(plain.rdates, default_tz)),  # type: ignore[arg-type]
        )

    def to_plain(self) -> RecurrencePlain:
        """Convert back to the plain payload form (RFC 5545 strings)."""
        return RecurrencePlain(
            rrule=self.rule.to_rrule_string(),
            exdates=[format_ical_value(value) for value in self.exdates],
            rdates=[format_ical_value(value) for value in self.rdates],
        )

    def occurrences_in_range(
        self, range_start: DateInput, range_end: DateInput, config: Optional[ExpansionConfig] = None
    ) -> Iterator[Occurrence]:
        return occurrences_in_range(
            self.rule, self.dtstart, self.exdates, self.rdates, range_start, range_end, config
        )

    def next_occurrences(
        self, after: DateInput, n: int, config: Optional[ExpansionConfig] = None
    ) -> list[Occurrence]:
        return next_n_occurrences(self.rule, self.dtstart, self.exdates, self.rdates, after, n, config)


def expand_instances(
    recurrence: EventRecurrence,
    span: EventSpan,
    range_start: DateInput,
    range_end: DateInput,
    config: Optional[ExpansionConfig] = None,
) -> Iterator[EventInstance]:
    """Yield the event instances whose start falls in ``[range_start, range_end)``.

    Every instance keeps the master event's duration.

    Args:
        recurrence: Validated recurrence of the master event
        span: Master event start and end
        range_start: Inclusive window start
        range_end: Exclusive window end
        config: Optional expansion settings

    Yields:
        EventInstance objects in ascending start order
    """
    duration = span.duration
    count = 0
    for occurrence in recurrence.occurrences_in_range(range_start, range_end, config):
        count += 1
        yield EventInstance(
            start=occurrence.start,
            end=occurrence.start + duration,  # type: ignore[operator]
            is_all_day=occurrence.is_all_day,
        )
    logger.debug("Expanded %d instances of %s between %s and %s", count, recurrence.rule, range_start, range_end)
