"""caser_recurrence - RFC 5545 recurrence expansion for the Caser calendar service.

Parses RRULE values and expands them, together with EXDATE and RDATE sets,
into lazily produced, time-zone-correct occurrence sequences.
"""

__version__ = "0.1.0"

from .config import ExpansionConfig
from .event_recurrence import (
    EventInstance,
    EventRecurrence,
    EventSpan,
    RecurrencePlain,
    expand_instances,
)
from .exceptions import (
    InvalidDateValue,
    InvalidRule,
    InvalidWindow,
    RecurrenceError,
    UnsupportedCombination,
)
from .models import Frequency, Occurrence, RecurrenceRule, Weekday, WeekdayNum
from .rule_parser import parse_rule, resolve_defaults
from .sequencer import ExpansionState, SequencerState, advance, iter_occurrences, start_expansion
from .window import next_n_occurrences, occurrences_in_range, stream_occurrences_in_range

__all__ = [
    "EventInstance",
    "EventRecurrence",
    "EventSpan",
    "ExpansionConfig",
    "ExpansionState",
    "Frequency",
    "InvalidDateValue",
    "InvalidRule",
    "InvalidWindow",
    "Occurrence",
    "RecurrenceError",
    "RecurrencePlain",
    "RecurrenceRule",
    "SequencerState",
    "UnsupportedCombination",
    "Weekday",
    "WeekdayNum",
    "__version__",
    "advance",
    "expand_instances",
    "iter_occurrences",
    "next_n_occurrences",
    "occurrences_in_range",
    "parse_rule",
    "resolve_defaults",
    "start_expansion",
    "stream_occurrences_in_range",
]
