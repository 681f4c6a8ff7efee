"""
Unit tests for caser_recurrence.event_recurrence and caser_recurrence.ical_adapter.

Covers:
- EventRecurrence.from_plain() / to_plain()
- expand_instances() duration handling
- recurrence_from_component() with icalendar VEVENTs
"""

from datetime import UTC, date, datetime, timedelta
from zoneinfo import ZoneInfo

import pytest
from icalendar import Calendar, Event
from pydantic import ValidationError

from caser_recurrence.event_recurrence import (
    EventInstance,
    EventRecurrence,
    EventSpan,
    RecurrencePlain,
    expand_instances,
)
from caser_recurrence.exceptions import InvalidDateValue, InvalidRule
from caser_recurrence.ical_adapter import recurrence_from_component
from caser_recurrence.models import Frequency

pytestmark = pytest.mark.unit

BERLIN = ZoneInfo("Europe/Berlin")


class TestEventSpan:
    def test_duration(self) -> None:
        span = EventSpan(start=datetime(2024, 1, 1, 9, 0), end=datetime(2024, 1, 1, 10, 30))
        assert span.duration == timedelta(hours=1, minutes=30)
        assert not span.is_all_day

    def test_all_day_span(self) -> None:
        span = EventSpan(start=date(2024, 1, 1), end=date(2024, 1, 3))
        assert span.is_all_day
        assert span.duration == timedelta(days=2)

    def test_end_before_start_rejected(self) -> None:
        with pytest.raises(ValidationError):
            EventSpan(start=datetime(2024, 1, 2), end=datetime(2024, 1, 1))

    def test_mixed_kinds_rejected(self) -> None:
        with pytest.raises(ValidationError):
            EventSpan(start=date(2024, 1, 1), end=datetime(2024, 1, 1, 10))


class TestEventRecurrence:
    def test_from_plain(self) -> None:
        dtstart = datetime(2024, 1, 1, 9, 0, tzinfo=BERLIN)
        plain = RecurrencePlain(
            rrule="FREQ=WEEKLY;BYDAY=MO,TH",
            exdates=["20240104T090000"],
            rdates=["TZID=Europe/Berlin:20240110T120000"],
        )
        recurrence = EventRecurrence.from_plain(plain, dtstart)
        assert recurrence.rule.frequency == Frequency.WEEKLY
        assert recurrence.exdates == (datetime(2024, 1, 4, 9, 0, tzinfo=BERLIN),)
        assert recurrence.rdates == (datetime(2024, 1, 10, 12, 0, tzinfo=BERLIN),)

    @pytest.mark.parametrize("rrule", [None, "", "   "])
    def test_from_plain_without_rule_raises(self, rrule: object) -> None:
        with pytest.raises(InvalidRule) as exc_info:
            EventRecurrence.from_plain(RecurrencePlain(rrule=rrule), date(2024, 1, 1))  # type: ignore[arg-type]
        assert exc_info.value.field == "RRULE"

    def test_from_plain_with_bad_exdate_raises(self) -> None:
        plain = RecurrencePlain(rrule="FREQ=DAILY", exdates=["not-a-date"])
        with pytest.raises(InvalidDateValue):
            EventRecurrence.from_plain(plain, date(2024, 1, 1))

    def test_to_plain_round_trip(self) -> None:
        plain = RecurrencePlain(rrule="FREQ=MONTHLY;COUNT=2;BYDAY=-1FR", exdates=["20240126"], rdates=[])
        recurrence = EventRecurrence.from_plain(plain, date(2024, 1, 1))
        assert recurrence.to_plain() == plain

    def test_occurrence_queries(self) -> None:
        dtstart = datetime(2024, 1, 1, 9, 0, tzinfo=UTC)
        recurrence = EventRecurrence.from_plain(RecurrencePlain(rrule="FREQ=DAILY;COUNT=5"), dtstart)
        in_range = list(recurrence.occurrences_in_range("20240102", "20240104"))
        assert [occ.start.day for occ in in_range] == [2, 3]  # type: ignore[union-attr]
        assert len(recurrence.next_occurrences(dtstart, 10)) == 5


class TestExpandInstances:
    def test_instances_keep_master_duration(self) -> None:
        dtstart = datetime(2024, 1, 1, 9, 0, tzinfo=UTC)
        recurrence = EventRecurrence.from_plain(RecurrencePlain(rrule="FREQ=DAILY;COUNT=3"), dtstart)
        span = EventSpan(start=dtstart, end=dtstart + timedelta(minutes=45))
        instances = list(expand_instances(recurrence, span, "20240101", "20240201"))
        assert instances == [
            EventInstance(start=dtstart + timedelta(days=i), end=dtstart + timedelta(days=i, minutes=45))
            for i in range(3)
        ]

    def test_all_day_instances(self) -> None:
        recurrence = EventRecurrence.from_plain(RecurrencePlain(rrule="FREQ=YEARLY"), date(2024, 2, 29))
        span = EventSpan(start=date(2024, 2, 29), end=date(2024, 3, 1))
        instances = list(expand_instances(recurrence, span, date(2024, 1, 1), date(2033, 1, 1)))
        assert [instance.start for instance in instances] == [date(2024, 2, 29), date(2028, 2, 29), date(2032, 2, 29)]
        assert all(instance.is_all_day for instance in instances)
        assert instances[0].end == date(2024, 3, 1)


def _vevent(ics_body: str) -> Event:
    calendar = Calendar.from_ical(
        "BEGIN:VCALENDAR\r\nVERSION:2.0\r\nPRODID:-//Caser//Tests//EN\r\n" + ics_body + "END:VCALENDAR\r\n"
    )
    return calendar.walk("VEVENT")[0]


class TestIcalAdapter:
    def test_zoned_event_with_exdate_and_rdate(self) -> None:
        component = _vevent(
            "BEGIN:VEVENT\r\n"
            "UID:standup-1\r\n"
            "DTSTART;TZID=Europe/Berlin:20240101T093000\r\n"
            "DTEND;TZID=Europe/Berlin:20240101T094500\r\n"
            "RRULE:FREQ=WEEKLY;BYDAY=MO,WE;COUNT=4\r\n"
            "EXDATE;TZID=Europe/Berlin:20240103T093000\r\n"
            "RDATE;TZID=Europe/Berlin:20240106T100000\r\n"
            "END:VEVENT\r\n"
        )
        recurrence, span = recurrence_from_component(component)
        assert span.duration == timedelta(minutes=15)
        assert recurrence.exdates[0].astimezone(UTC) == datetime(2024, 1, 3, 8, 30, tzinfo=UTC)  # type: ignore[union-attr]

        starts = [occ.start.astimezone(UTC) for occ in recurrence.next_occurrences(span.start, 10)]  # type: ignore[union-attr]
        assert starts == [
            datetime(2024, 1, 1, 8, 30, tzinfo=UTC),
            datetime(2024, 1, 6, 9, 0, tzinfo=UTC),
            datetime(2024, 1, 8, 8, 30, tzinfo=UTC),
            datetime(2024, 1, 10, 8, 30, tzinfo=UTC),
            datetime(2024, 1, 15, 8, 30, tzinfo=UTC),
        ]

    def test_all_day_event_with_multiple_exdates(self) -> None:
        component = _vevent(
            "BEGIN:VEVENT\r\n"
            "UID:holiday-1\r\n"
            "DTSTART;VALUE=DATE:20240101\r\n"
            "DTEND;VALUE=DATE:20240102\r\n"
            "RRULE:FREQ=DAILY;COUNT=3\r\n"
            "EXDATE;VALUE=DATE:20240102,20240103\r\n"
            "END:VEVENT\r\n"
        )
        recurrence, span = recurrence_from_component(component)
        assert span.is_all_day
        starts = [occ.start for occ in recurrence.next_occurrences(date(2024, 1, 1), 10)]
        assert starts == [date(2024, 1, 1), date(2024, 1, 4), date(2024, 1, 5)]

    def test_duration_used_when_dtend_missing(self) -> None:
        component = _vevent(
            "BEGIN:VEVENT\r\n"
            "UID:call-1\r\n"
            "DTSTART:20240101T090000Z\r\n"
            "DURATION:PT30M\r\n"
            "RRULE:FREQ=DAILY\r\n"
            "END:VEVENT\r\n"
        )
        _, span = recurrence_from_component(component)
        assert span.end == datetime(2024, 1, 1, 9, 30, tzinfo=UTC)

    def test_missing_rrule_raises(self) -> None:
        component = _vevent("BEGIN:VEVENT\r\nUID:once\r\nDTSTART:20240101T090000Z\r\nEND:VEVENT\r\n")
        with pytest.raises(InvalidRule) as exc_info:
            recurrence_from_component(component)
        assert exc_info.value.field == "RRULE"

    def test_malformed_rrule_raises(self) -> None:
        component = _vevent(
            "BEGIN:VEVENT\r\nUID:bad\r\nDTSTART:20240101T090000Z\r\nRRULE:FREQ=MONTHLY;BYWEEKNO=3\r\nEND:VEVENT\r\n"
        )
        with pytest.raises(InvalidRule):
            recurrence_from_component(component)
