"""BY* rule expansion and limiting for a single recurrence period.

Every frequency goes through the same pipeline:

1. candidate days of the period (a year, the BYMONTH months of a year, a
   month, a week, or a single day)
2. day filter: BYMONTH, BYWEEKNO, BYYEARDAY, BYMONTHDAY, BYDAY
3. cross product with time-of-day values (BYHOUR x BYMINUTE x BYSECOND);
   for sub-daily frequencies the period's own fields act as limits
4. BYSETPOS selection over the sorted result

Starting from every day of the period and intersecting with each BY* part
gives RFC 5545's "expand" semantics for parts finer than FREQ and "limit"
semantics for the others without per-frequency special cases.
"""

from datetime import date, datetime, time, timedelta
from typing import Optional

from .calendar_math import (
    days_in_month,
    days_in_year,
    iter_days,
    month_bounds,
    resolve_signed,
    week_number,
    weekday_position,
    weeks_in_year,
    year_bounds,
    year_day,
)
from .candidates import Period
from .models import Frequency, RecurrenceRule


class PeriodExpander:
    """Expands periods of one resolved rule into wall-clock date-times.

    The rule must already carry its DTSTART-derived defaults
    (see ``rule_parser.resolve_defaults``). Expansion never raises for a
    validated rule; it may return an empty list for a period.
    """

    def __init__(self, rule: RecurrenceRule, all_day: bool = False):
        self.rule = rule
        self.frequency = rule.frequency
        self.all_day = all_day
        self.week_start = int(rule.week_start)

        self._months = frozenset(rule.by_month)
        self._plain_weekdays = frozenset(int(e.weekday) for e in rule.by_day if e.ordinal is None)
        self._ordinal_weekdays = tuple((int(e.weekday), e.ordinal) for e in rule.by_day if e.ordinal is not None)
        self._hours = tuple(sorted(rule.by_hour))
        self._minutes = tuple(sorted(rule.by_minute))
        # 60 is a legal RFC 5545 leap second but datetime cannot represent it.
        self._seconds = tuple(sorted(s for s in rule.by_second if s < 60))

    def expand(self, period: Period) -> list[datetime]:
        """Return the sorted, duplicate-free date-times the rule allows in ``period``."""
        days = [day for day in self._candidate_days(period) if self.day_matches(day)]
        if not days:
            return []
        times = self._times(period)
        if not times:
            return []
        walls = [datetime.combine(day, moment) for day in days for moment in times]
        if self.rule.by_set_pos:
            walls = self._select_positions(walls)
        return walls

    def day_matches(self, day: date) -> bool:
        """True when ``day`` passes every day-level BY* part."""
        rule = self.rule
        if self._months and day.month not in self._months:
            return False

        if rule.by_week_no:
            week_year, week_no = week_number(day, self.week_start)
            total = weeks_in_year(week_year, self.week_start)
            if not any(resolve_signed(n, total) == week_no for n in rule.by_week_no):
                return False

        if rule.by_year_day:
            length = days_in_year(day.year)
            current = year_day(day)
            if not any(resolve_signed(n, length) == current for n in rule.by_year_day):
                return False

        if rule.by_month_day:
            length = days_in_month(day.year, day.month)
            if not any(resolve_signed(n, length) == day.day for n in rule.by_month_day):
                return False

        if rule.by_day and not self._weekday_matches(day):
            return False
        return True

    def resume_after(self, period: Period) -> Optional[datetime]:
        """For sub-daily rules, the wall time at which the next viable period can start.

        When a period is rejected by a coarser BY* part (its day, hour or
        minute), every following period sharing that day, hour or minute is
        rejected too, so the generator can seek past them.
        """
        if not self.frequency.is_sub_daily:
            return None
        start = period.start
        if not self.day_matches(start.date()):
            next_day = start.date().toordinal() + 1
            if next_day > date.max.toordinal():
                return None
            return datetime.combine(date.fromordinal(next_day), time())
        if self.frequency != Frequency.HOURLY and self._hours and start.hour not in self._hours:
            return self._safe_add(start.replace(minute=0, second=0), timedelta(hours=1))
        if self.frequency == Frequency.SECONDLY and self._minutes and start.minute not in self._minutes:
            return self._safe_add(start.replace(second=0), timedelta(minutes=1))
        return None

    def _candidate_days(self, period: Period) -> list[date]:
        start = period.start.date()
        if self.frequency == Frequency.YEARLY:
            if self._months:
                days: list[date] = []
                for month in sorted(self._months):
                    days.extend(iter_days(*month_bounds(start.year, month)))
                return days
            return list(iter_days(*year_bounds(start.year)))
        if self.frequency == Frequency.MONTHLY:
            return list(iter_days(*month_bounds(start.year, start.month)))
        if self.frequency == Frequency.WEEKLY:
            last = min(start.toordinal() + 6, date.max.toordinal())
            return list(iter_days(start, date.fromordinal(last)))
        return [start]

    def _weekday_matches(self, day: date) -> bool:
        weekday = day.weekday()
        if weekday in self._plain_weekdays:
            return True
        for target, ordinal in self._ordinal_weekdays:
            if target != weekday:
                continue
            first, last = self._ordinal_range(day)
            from_start, from_end = weekday_position(day, first, last)
            if (ordinal > 0 and from_start == ordinal) or (ordinal < 0 and from_end == -ordinal):
                return True
        return False

    def _ordinal_range(self, day: date) -> tuple[date, date]:
        """The month or year an ordinal BYDAY (``2TU``, ``-1FR``) counts within."""
        if self.frequency == Frequency.MONTHLY or self._months:
            return month_bounds(day.year, day.month)
        return year_bounds(day.year)

    def _times(self, period: Period) -> list[time]:
        if self.all_day:
            return [time()]
        start = period.start
        if self.frequency == Frequency.HOURLY:
            if self._hours and start.hour not in self._hours:
                return []
            return [time(start.hour, m, s) for m in self._minutes for s in self._seconds]
        if self.frequency == Frequency.MINUTELY:
            if self._hours and start.hour not in self._hours:
                return []
            if self._minutes and start.minute not in self._minutes:
                return []
            return [time(start.hour, start.minute, s) for s in self._seconds]
        if self.frequency == Frequency.SECONDLY:
            if self._hours and start.hour not in self._hours:
                return []
            if self._minutes and start.minute not in self._minutes:
                return []
            if self.rule.by_second and start.second not in self._seconds:
                return []
            return [start.time()]
        return [time(h, m, s) for h in self._hours for m in self._minutes for s in self._seconds]

    def _select_positions(self, walls: list[datetime]) -> list[datetime]:
        total = len(walls)
        positions = {resolve_signed(n, total) for n in self.rule.by_set_pos}
        return [walls[p - 1] for p in sorted(p for p in positions if p is not None)]

    @staticmethod
    def _safe_add(value: datetime, delta: timedelta) -> Optional[datetime]:
        if value > datetime.max - delta:
            return None
        return value + delta
