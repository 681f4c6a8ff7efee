"""Window queries over a recurrence: the engine's public entry points.

``occurrences_in_range`` yields the occurrences inside ``[range_start,
range_end)`` and ``next_n_occurrences`` answers "what fires next". Both build
a fresh expansion state per call, fast-forward over periods that end before
the window, and stop pulling from the rule once the window is passed, so the
work done is proportional to the window or the number of results, never to
the rule's full extent.
"""

import asyncio
import logging
from collections.abc import AsyncIterator, Iterable, Iterator, Mapping
from datetime import datetime, timedelta
from itertools import islice
from typing import Any, Optional, Union

from .config import ExpansionConfig
from .datetime_utils import DateInput, TimeFrame, coerce_date_value
from .exceptions import InvalidWindow
from .models import DateOrDateTime, Occurrence, RecurrenceRule
from .rule_parser import parse_rule
from .sequencer import ExpansionState, iter_occurrences, start_expansion, stop_at_window

logger = logging.getLogger(__name__)

RuleInput = Union[RecurrenceRule, str, Mapping[str, Any]]


def occurrences_in_range(
    rule: RuleInput,
    dtstart: DateOrDateTime,
    exceptions: Optional[Iterable[DateInput]],
    additions: Optional[Iterable[DateInput]],
    range_start: DateInput,
    range_end: DateInput,
    config: Optional[ExpansionConfig] = None,
) -> Iterator[Occurrence]:
    """Lazily yield the occurrences that fall inside ``[range_start, range_end)``.

    Args:
        rule: Parsed rule, or RRULE text / mapping to parse against ``dtstart``
        dtstart: Event start anchoring the rule
        exceptions: EXDATE values
        additions: RDATE values
        range_start: Inclusive lower bound (a date means midnight)
        range_end: Exclusive upper bound (a date means midnight)
        config: Optional expansion settings

    Returns:
        Iterator of occurrences in ascending order

    Raises:
        InvalidRule: If ``rule`` is text that fails validation
        InvalidWindow: If ``range_end`` is before ``range_start``
    """
    config = config or ExpansionConfig()
    state = _prepare(rule, dtstart, exceptions, additions, config)
    frame = state.frame
    start_bound = frame.bound(_as_date_value(range_start, frame))
    end_bound = frame.bound(_as_date_value(range_end, frame))
    start_key = frame.key(start_bound)
    end_key = frame.key(end_bound)
    if end_key < start_key:
        raise InvalidWindow(f"range_end {range_end} is before range_start {range_start}")

    margin = timedelta(hours=config.fast_forward_margin_hours)
    if config.fast_forward:
        _fast_forward(state, frame.to_wall(start_bound), start_key, margin)
    state.horizon = _shift(frame.to_wall(end_bound), margin)
    return _clip(state, start_key, end_key)


def next_n_occurrences(
    rule: RuleInput,
    dtstart: DateOrDateTime,
    exceptions: Optional[Iterable[DateInput]],
    additions: Optional[Iterable[DateInput]],
    after: DateInput,
    n: int,
    config: Optional[ExpansionConfig] = None,
) -> list[Occurrence]:
    """Return at most ``n`` occurrences at or after ``after``, in order.

    ``after`` is inclusive, so querying from DTSTART includes DTSTART itself
    when it is an occurrence.

    Raises:
        InvalidRule: If ``rule`` is text that fails validation
        InvalidWindow: If ``n`` is negative
    """
    if n < 0:
        raise InvalidWindow(f"n must be non-negative, got {n}")
    config = config or ExpansionConfig()
    if n > config.max_occurrences_per_query:
        logger.warning(
            "next_n_occurrences limited to %d occurrences (requested %d)",
            config.max_occurrences_per_query,
            n,
        )
        n = config.max_occurrences_per_query
    state = _prepare(rule, dtstart, exceptions, additions, config)
    if n == 0:
        return []

    frame = state.frame
    after_bound = frame.bound(_as_date_value(after, frame))
    after_key = frame.key(after_bound)
    if config.fast_forward:
        margin = timedelta(hours=config.fast_forward_margin_hours)
        _fast_forward(state, frame.to_wall(after_bound), after_key, margin)

    pending = (occ for occ in iter_occurrences(state) if occ.instant >= after_key)
    return list(islice(pending, n))


async def stream_occurrences_in_range(
    rule: RuleInput,
    dtstart: DateOrDateTime,
    exceptions: Optional[Iterable[DateInput]],
    additions: Optional[Iterable[DateInput]],
    range_start: DateInput,
    range_end: DateInput,
    config: Optional[ExpansionConfig] = None,
) -> AsyncIterator[Occurrence]:
    """Async variant of ``occurrences_in_range`` for event-loop callers.

    Expansion stays synchronous; control goes back to the event loop every
    ``config.yield_frequency`` occurrences so long windows do not starve
    other tasks.
    """
    config = config or ExpansionConfig()
    occurrences = occurrences_in_range(rule, dtstart, exceptions, additions, range_start, range_end, config)
    for i, occurrence in enumerate(occurrences, start=1):
        yield occurrence
        if i % config.yield_frequency == 0:
            await asyncio.sleep(0)


def _prepare(
    rule: RuleInput,
    dtstart: DateOrDateTime,
    exceptions: Optional[Iterable[DateInput]],
    additions: Optional[Iterable[DateInput]],
    config: ExpansionConfig,
) -> ExpansionState:
    if not isinstance(rule, RecurrenceRule):
        rule = parse_rule(rule, dtstart)
    return start_expansion(rule, dtstart, exceptions, additions, config)


def _clip(state: ExpansionState, start_key: DateOrDateTime, end_key: DateOrDateTime) -> Iterator[Occurrence]:
    for occurrence in iter_occurrences(state):
        if occurrence.instant < start_key:
            continue
        if occurrence.instant >= end_key:
            stop_at_window(state)
            return
        yield occurrence


def _fast_forward(state: ExpansionState, wall: datetime, key: DateOrDateTime, margin: timedelta) -> None:
    target = _shift(wall, -margin)
    if state.seek(target, key):
        logger.debug("Fast-forwarded expansion towards %s", target)


def _shift(wall: datetime, delta: timedelta) -> datetime:
    """``wall + delta`` clamped to the representable range."""
    if delta >= timedelta(0) and wall > datetime.max - delta:
        return datetime.max
    if delta < timedelta(0) and wall < datetime.min - delta:
        return datetime.min
    return wall + delta


def _as_date_value(value: DateInput, frame: TimeFrame) -> DateOrDateTime:
    return coerce_date_value(value, frame.tz)  # type: ignore[arg-type]
