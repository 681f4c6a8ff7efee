"""Bridge from parsed ``icalendar`` VEVENT components to ``EventRecurrence``.

Only reads properties of an already-parsed component; fetching and parsing
whole calendars is left to the caller.
"""

import logging
from typing import Any, Optional

from icalendar import Event

from .datetime_utils import coerce_date_values
from .event_recurrence import EventRecurrence, EventSpan
from .exceptions import InvalidRule
from .rule_parser import parse_rule

logger = logging.getLogger(__name__)


def recurrence_from_component(component: Event) -> tuple[EventRecurrence, EventSpan]:
    """Build the recurrence and span of a recurring VEVENT.

    DTEND defaults to DTSTART plus DURATION, or to DTSTART itself when the
    event has neither.

    Args:
        component: Parsed VEVENT carrying DTSTART and RRULE

    Returns:
        Tuple of (EventRecurrence, EventSpan)

    Raises:
        InvalidRule: If DTSTART or RRULE is missing, or the rule is malformed
        InvalidDateValue: If an EXDATE or RDATE value cannot be parsed
    """
    if "DTSTART" not in component:
        raise InvalidRule("DTSTART", "component has no DTSTART")
    rrule_prop = component.get("RRULE")
    if rrule_prop is None:
        raise InvalidRule("RRULE", "component has no RRULE")

    dtstart = component.decoded("DTSTART")
    if "DTEND" in component:
        dtend = component.decoded("DTEND")
    elif "DURATION" in component:
        dtend = dtstart + component.decoded("DURATION")
    else:
        dtend = dtstart

    if hasattr(rrule_prop, "to_ical"):
        rrule_string = rrule_prop.to_ical().decode("utf-8")
    else:
        rrule_string = str(rrule_prop)

    default_tz = getattr(dtstart, "tzinfo", None)
    exdates = coerce_date_values(_collect_date_strings(component, "EXDATE"), default_tz)
    rdates = coerce_date_values(_collect_date_strings(component, "RDATE"), default_tz)

    recurrence = EventRecurrence(
        rule=parse_rule(rrule_string, dtstart),
        dtstart=dtstart,
        exdates=tuple(exdates),
        rdates=tuple(rdates),
    )
    logger.debug(
        "Read recurrence from UID=%s: %s (%d exdates, %d rdates)",
        component.get("UID"),
        rrule_string,
        len(exdates),
        len(rdates),
    )
    return recurrence, EventSpan(start=dtstart, end=dtend)


def _collect_date_strings(component: Event, name: str) -> list[str]:
    """Flatten EXDATE/RDATE properties into ``TZID=...``-prefixed strings.

    The property may appear once or several times, each with a list of
    values and an optional TZID parameter. PERIOD values keep their start.
    """
    props: Any = component.get(name)
    if props is None:
        return []
    if not isinstance(props, list):
        props = [props]

    values: list[str] = []
    for prop in props:
        tzid: Optional[str] = None
        if hasattr(prop, "to_ical"):
            text = prop.to_ical().decode("utf-8")
            params = getattr(prop, "params", {})
            tzid = params.get("TZID") if params else None
        else:
            text = str(prop)
        for part in text.split(","):
            part = part.strip().split("/", 1)[0]
            if not part:
                continue
            values.append(f"TZID={tzid}:{part}" if tzid else part)
    return values
