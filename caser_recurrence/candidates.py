"""Coarse period enumeration for a recurrence rule.

A ``CandidateGenerator`` walks the periods of a rule (years, months, weeks,
days, hours, minutes or seconds, spaced by INTERVAL) in DTSTART's wall clock.
It applies no BY* filtering; ``by_rules.PeriodExpander`` turns each period
into concrete date-times.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, time, timedelta
from typing import Optional

from dateutil.relativedelta import relativedelta

from .calendar_math import MAX_YEAR, week_start_on_or_before
from .models import Frequency, RecurrenceRule

logger = logging.getLogger(__name__)

_UNIT_LENGTHS: dict[Frequency, timedelta] = {
    Frequency.WEEKLY: timedelta(weeks=1),
    Frequency.DAILY: timedelta(days=1),
    Frequency.HOURLY: timedelta(hours=1),
    Frequency.MINUTELY: timedelta(minutes=1),
    Frequency.SECONDLY: timedelta(seconds=1),
}


@dataclass(frozen=True)
class Period:
    """One coarse recurrence period in wall-clock time.

    Attributes:
        index: Number of INTERVAL steps from DTSTART's period
        start: Inclusive lower bound
        end: Exclusive upper bound
    """

    index: int
    start: datetime
    end: datetime


class CandidateGenerator:
    """Lazy, restartable enumeration of a rule's periods.

    ``period_at(index)`` is a pure function of the rule and DTSTART, so a
    fresh generator always reproduces the same sequence. The cursor used by
    ``next_period`` and ``seek`` belongs to a single expansion.
    """

    def __init__(self, rule: RecurrenceRule, wall_start: datetime):
        self.frequency = rule.frequency
        self.interval = rule.interval
        self._index = 0

        if self.frequency == Frequency.YEARLY:
            self._base = datetime(wall_start.year, 1, 1)
        elif self.frequency == Frequency.MONTHLY:
            self._base = datetime(wall_start.year, wall_start.month, 1)
        elif self.frequency == Frequency.WEEKLY:
            first_day = week_start_on_or_before(wall_start.date(), int(rule.week_start))
            self._base = datetime.combine(first_day, time())
        elif self.frequency == Frequency.DAILY:
            self._base = datetime.combine(wall_start.date(), time())
        elif self.frequency == Frequency.HOURLY:
            self._base = wall_start.replace(minute=0, second=0, microsecond=0)
        elif self.frequency == Frequency.MINUTELY:
            self._base = wall_start.replace(second=0, microsecond=0)
        else:
            self._base = wall_start.replace(microsecond=0)

    @property
    def index(self) -> int:
        """Index of the period ``next_period`` will return."""
        return self._index

    def period_at(self, index: int) -> Optional[Period]:
        """Return the period ``index`` steps after DTSTART's, or None past the calendar's end."""
        if self.frequency == Frequency.YEARLY:
            year = self._base.year + index * self.interval
            if year > MAX_YEAR:
                return None
            start = self._base + relativedelta(years=index * self.interval)
            end = datetime.max if year == MAX_YEAR else start + relativedelta(years=1)
            return Period(index, start, end)

        if self.frequency == Frequency.MONTHLY:
            months = self._base.year * 12 + self._base.month - 1 + index * self.interval
            if months // 12 > MAX_YEAR:
                return None
            start = self._base + relativedelta(months=index * self.interval)
            last_month = start.year == MAX_YEAR and start.month == 12
            end = datetime.max if last_month else start + relativedelta(months=1)
            return Period(index, start, end)

        unit = _UNIT_LENGTHS[self.frequency]
        offset = unit * self.interval * index
        if offset > datetime.max - self._base:
            return None
        start = self._base + offset
        end = datetime.max if start > datetime.max - unit else start + unit
        return Period(index, start, end)

    def next_period(self) -> Optional[Period]:
        """Return the period under the cursor and advance it by one step."""
        period = self.period_at(self._index)
        if period is not None:
            self._index += 1
        return period

    def seek(self, wall: datetime) -> None:
        """Move the cursor forward to the first period that ends after ``wall``.

        Jumps by whole periods, so INTERVAL alignment is preserved. The cursor
        never moves backwards.
        """
        if self.frequency == Frequency.YEARLY:
            target = -((self._base.year - wall.year) // self.interval)
        elif self.frequency == Frequency.MONTHLY:
            base_months = self._base.year * 12 + self._base.month - 1
            wall_months = wall.year * 12 + wall.month - 1
            target = -((base_months - wall_months) // self.interval)
        else:
            unit = _UNIT_LENGTHS[self.frequency]
            delta = wall - self._base - unit
            target = 0 if delta < timedelta(0) else delta // (unit * self.interval) + 1

        if target > self._index:
            logger.debug(
                "Fast-forwarding %s generator from period %d to %d (target %s)",
                self.frequency.value,
                self._index,
                target,
                wall,
            )
            self._index = target
