"""Occurrence sequencing: merges rule output with RDATE/EXDATE and bounds it.

All iteration state lives in an explicit ``ExpansionState`` value created by
``start_expansion`` and advanced by ``advance``. Nothing is shared between
queries: each query builds its own state and drops it when done.

State machine::

    SEEDING --batch ready--> EMITTING --batch empty--> SEEDING
    EMITTING --COUNT reached--> EXHAUSTED_BY_COUNT
    EMITTING --past UNTIL--> EXHAUSTED_BY_UNTIL
    any --window horizon passed--> EXHAUSTED_BY_WINDOW
    SEEDING --too many empty periods--> EXHAUSTED_BY_SEARCH_LIMIT
    EXHAUSTED_* / generator end --additions drained--> TERMINATED

RDATEs are independent of COUNT and UNTIL, so remaining additions are still
emitted after the rule itself is exhausted. A rule that can never match
(e.g. BYSETPOS=2 on a DAILY rule with one time per day) would otherwise scan
the calendar to its end, so seeding gives up after
``ExpansionConfig.max_empty_periods`` consecutive empty periods.
"""

import logging
from bisect import bisect_left
from collections import deque
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Optional

from .by_rules import PeriodExpander
from .candidates import CandidateGenerator
from .config import ExpansionConfig
from .datetime_utils import DateInput, TimeFrame, coerce_date_values
from .models import DateOrDateTime, Occurrence, RecurrenceRule
from .rule_parser import describe_dtstart, resolve_defaults

logger = logging.getLogger(__name__)


class SequencerState(str, Enum):
    """Lifecycle of one expansion."""

    SEEDING = "seeding"
    EMITTING = "emitting"
    EXHAUSTED_BY_COUNT = "exhausted_by_count"
    EXHAUSTED_BY_UNTIL = "exhausted_by_until"
    EXHAUSTED_BY_WINDOW = "exhausted_by_window"
    EXHAUSTED_BY_SEARCH_LIMIT = "exhausted_by_search_limit"
    TERMINATED = "terminated"

    @property
    def rule_active(self) -> bool:
        """True while the rule can still produce candidates."""
        return self in (SequencerState.SEEDING, SequencerState.EMITTING)


@dataclass(frozen=True)
class ExceptionSet:
    """EXDATE values normalized to a time frame.

    Timed values exclude the exact instant. Date values exclude every
    occurrence on that date, which for all-day rules is the date itself.
    """

    instants: frozenset
    dates: frozenset[date]

    @classmethod
    def build(cls, frame: TimeFrame, values: Iterable[DateOrDateTime]) -> "ExceptionSet":
        instants = set()
        dates: set[date] = set()
        for value in values:
            if frame.all_day or not isinstance(value, datetime):
                dates.add(frame.to_wall(value).date())
            else:
                instants.add(frame.key(frame.coerce(value)))
        return cls(frozenset(instants), frozenset(dates))

    def excludes(self, occurrence: Occurrence) -> bool:
        if self.dates and occurrence.local_date in self.dates:
            return True
        return occurrence.instant in self.instants


@dataclass
class ExpansionState:
    """Cursor for one expansion query. Never share an instance between queries."""

    rule: RecurrenceRule
    frame: TimeFrame
    generator: CandidateGenerator
    expander: PeriodExpander
    exceptions: ExceptionSet
    additions: list[Occurrence]
    floor_key: Optional[DateOrDateTime] = None
    until_key: Optional[DateOrDateTime] = None
    until_wall: Optional[datetime] = None
    horizon: Optional[datetime] = None
    max_empty_periods: Optional[int] = None
    status: SequencerState = SequencerState.SEEDING
    exhausted_by: Optional[SequencerState] = None
    batch: deque = field(default_factory=deque)
    addition_index: int = 0
    emitted_count: int = 0
    last_key: Optional[DateOrDateTime] = None
    periods_seen: int = 0
    empty_periods: int = 0

    @property
    def finished(self) -> bool:
        """True once the rule is done and every addition has been consumed."""
        return self.status == SequencerState.TERMINATED and self.addition_index >= len(self.additions)

    def seek(self, wall: datetime, key: DateOrDateTime) -> bool:
        """Skip everything that cannot reach ``wall`` / ``key`` before emitting.

        The generator jumps by whole periods and additions before ``key`` are
        dropped. Rules with COUNT are not fast-forwarded, since skipped
        periods would go uncounted.

        Returns:
            True when the generator was allowed to seek
        """
        self.addition_index = max(self.addition_index, first_addition_index(self.additions, key))
        if self.rule.count is not None:
            return False
        self.generator.seek(wall)
        return True


def start_expansion(
    rule: RecurrenceRule,
    dtstart: DateOrDateTime,
    exceptions: Optional[Iterable[DateInput]] = None,
    additions: Optional[Iterable[DateInput]] = None,
    config: Optional[ExpansionConfig] = None,
) -> ExpansionState:
    """Build a fresh expansion state for one query.

    Args:
        rule: Parsed recurrence rule
        dtstart: Event start anchoring the rule (date for all-day events)
        exceptions: EXDATE values (dates, date-times or RFC 5545 strings)
        additions: RDATE values (dates, date-times or RFC 5545 strings)
        config: Optional expansion settings (empty-period search limit)

    Returns:
        ExpansionState positioned before the first occurrence
    """
    config = config or ExpansionConfig()
    frame = TimeFrame(dtstart)
    resolved = resolve_defaults(rule, dtstart)
    default_tz = frame.tz
    exception_values = coerce_date_values(exceptions, default_tz)  # type: ignore[arg-type]
    addition_values = coerce_date_values(additions, default_tz)  # type: ignore[arg-type]

    added = sorted({Occurrence(frame.coerce(value)) for value in addition_values})
    until_key = None
    until_wall = None
    if rule.until is not None:
        until_key = frame.key(frame.coerce(rule.until))
        # One day of slack covers UTC offsets between the wall clock and UNTIL.
        until_wall = frame.to_wall(rule.until)
        if until_wall < datetime.max - timedelta(days=1):
            until_wall += timedelta(days=1)

    logger.debug(
        "Starting expansion: rule=%s dtstart=%s (%s) exdates=%d rdates=%d",
        rule,
        dtstart,
        describe_dtstart(dtstart),
        len(exception_values),
        len(added),
    )
    return ExpansionState(
        rule=rule,
        frame=frame,
        generator=CandidateGenerator(resolved, frame.wall_start),
        expander=PeriodExpander(resolved, all_day=frame.all_day),
        exceptions=ExceptionSet.build(frame, exception_values),
        additions=added,
        floor_key=frame.key(frame.localize(frame.wall_start)),
        until_key=until_key,
        until_wall=until_wall,
        max_empty_periods=config.max_empty_periods,
    )


def advance(state: ExpansionState) -> Optional[Occurrence]:
    """Return the next occurrence of ``state``, or None once it is terminated."""
    while True:
        rule_next = _peek_rule(state)
        addition_next = _peek_addition(state)

        if rule_next is None and addition_next is None:
            if state.status != SequencerState.TERMINATED:
                logger.debug(
                    "Expansion terminated after %d occurrences (%d periods, last state %s)",
                    state.emitted_count,
                    state.periods_seen,
                    state.status.value,
                )
                state.status = SequencerState.TERMINATED
            return None

        if addition_next is None or (rule_next is not None and rule_next.instant <= addition_next.instant):
            chosen = rule_next
            state.batch.popleft()
            state.emitted_count += 1
            if addition_next is not None and addition_next.instant == rule_next.instant:  # type: ignore[union-attr]
                state.addition_index += 1
        else:
            chosen = addition_next
            state.addition_index += 1

        key = chosen.instant  # type: ignore[union-attr]
        if state.last_key is not None and key <= state.last_key:
            continue
        if state.exceptions.excludes(chosen):  # type: ignore[arg-type]
            continue
        state.last_key = key
        return chosen


def iter_occurrences(state: ExpansionState) -> Iterator[Occurrence]:
    """Yield occurrences of ``state`` until it terminates."""
    while True:
        occurrence = advance(state)
        if occurrence is None:
            return
        yield occurrence


def _peek_addition(state: ExpansionState) -> Optional[Occurrence]:
    while state.addition_index < len(state.additions):
        candidate = state.additions[state.addition_index]
        if state.last_key is not None and candidate.instant <= state.last_key:
            state.addition_index += 1
            continue
        return candidate
    return None


def _peek_rule(state: ExpansionState) -> Optional[Occurrence]:
    """Return the next rule occurrence without consuming it.

    Excluded candidates are dropped here so that they never count towards
    COUNT. COUNT and UNTIL transitions happen when the next candidate would
    break them.
    """
    while state.status.rule_active:
        if not state.batch:
            if not _seed(state):
                return None
            continue

        candidate = state.batch[0]
        if state.exceptions.excludes(candidate):
            state.batch.popleft()
            continue
        if state.until_key is not None and candidate.instant > state.until_key:
            _exhaust(state, SequencerState.EXHAUSTED_BY_UNTIL)
            return None
        if state.rule.count is not None and state.emitted_count >= state.rule.count:
            _exhaust(state, SequencerState.EXHAUSTED_BY_COUNT)
            return None
        return candidate
    return None


def _seed(state: ExpansionState) -> bool:
    """Load the next non-empty period into the batch. False when the rule is done."""
    state.status = SequencerState.SEEDING
    while True:
        period = state.generator.next_period()
        if period is None:
            _exhaust(state, SequencerState.TERMINATED)
            return False
        if state.until_wall is not None and period.start > state.until_wall:
            _exhaust(state, SequencerState.EXHAUSTED_BY_UNTIL)
            return False
        if state.horizon is not None and period.start >= state.horizon:
            _exhaust(state, SequencerState.EXHAUSTED_BY_WINDOW)
            return False
        state.periods_seen += 1

        walls = state.expander.expand(period)
        if not walls:
            state.empty_periods += 1
            if state.max_empty_periods is not None and state.empty_periods >= state.max_empty_periods:
                logger.warning(
                    "Recurrence search gave up after %d consecutive empty periods at %s (rule %s)",
                    state.empty_periods,
                    period.start,
                    state.rule,
                )
                _exhaust(state, SequencerState.EXHAUSTED_BY_SEARCH_LIMIT)
                return False
            resume = state.expander.resume_after(period)
            if resume is not None:
                state.generator.seek(resume)
            continue
        state.empty_periods = 0

        candidates = sorted({state.frame.occurrence(wall) for wall in walls})
        floor = state.floor_key if state.last_key is None else max(state.floor_key, state.last_key)  # type: ignore[type-var]
        fresh = [c for c in candidates if c.instant >= floor and c.instant != state.last_key]
        if state.until_key is not None and candidates[0].instant > state.until_key:
            _exhaust(state, SequencerState.EXHAUSTED_BY_UNTIL)
            return False
        if fresh:
            state.batch.extend(fresh)
            state.status = SequencerState.EMITTING
            return True


def stop_at_window(state: ExpansionState) -> None:
    """Mark ``state`` as exhausted because the caller's window is passed."""
    if state.status.rule_active:
        _exhaust(state, SequencerState.EXHAUSTED_BY_WINDOW)
    state.addition_index = len(state.additions)
    state.status = SequencerState.TERMINATED


def _exhaust(state: ExpansionState, status: SequencerState) -> None:
    state.batch.clear()
    state.status = status
    state.exhausted_by = status
    logger.debug("Rule stream ended with state %s after %d occurrences", status.value, state.emitted_count)


def first_addition_index(additions: list[Occurrence], key: DateOrDateTime) -> int:
    """Index of the first addition at or after ``key`` (additions are sorted)."""
    return bisect_left([a.instant for a in additions], key)
