"""Exception hierarchy for the recurrence engine.

Parsing and validation fail fast with a field-level message. Expansion of a
validated rule never raises these; the end of a sequence is signalled by the
iterator finishing, not by an exception.
"""

from typing import Optional


class RecurrenceError(Exception):
    """Base exception for all recurrence engine errors."""


class InvalidRule(RecurrenceError, ValueError):
    """A recurrence rule failed parsing or validation.

    Raised when:
    - FREQ is missing or unknown
    - A rule part has a malformed or out-of-range value
    - COUNT and UNTIL are both present
    - UNTIL precision does not match DTSTART precision

    Attributes:
        field: RRULE part name that failed (e.g. ``"BYMONTHDAY"``), or None
            when the failure is not tied to a single part
        reason: Human-readable description of the failure
    """

    def __init__(self, field: Optional[str], reason: str):
        self.field = field
        self.reason = reason
        message = f"{field}: {reason}" if field else reason
        super().__init__(message)


class UnsupportedCombination(InvalidRule):
    """A BY* part is not allowed with the rule's FREQ.

    Raised when:
    - BYWEEKNO is used with any FREQ other than YEARLY
    - BYYEARDAY is used with DAILY, WEEKLY or MONTHLY
    - BYMONTHDAY is used with WEEKLY
    - An ordinal BYDAY is used outside MONTHLY/YEARLY, or with BYWEEKNO
    - A time-of-day part or sub-daily FREQ is used with a date-only DTSTART
    """


class InvalidDateValue(RecurrenceError, ValueError):
    """A DATE or DATE-TIME string could not be parsed."""


class InvalidWindow(RecurrenceError, ValueError):
    """A query window or occurrence limit is malformed."""
