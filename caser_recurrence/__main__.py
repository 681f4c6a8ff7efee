"""Command-line entry for caser_recurrence.

Expands one RRULE from the shell and prints one occurrence per line, which is
handy for checking what the service will store for a recurring event.
"""

from __future__ import annotations

import argparse
import logging
import sys
from datetime import datetime
from typing import NoReturn, Optional

from .config import ExpansionConfig
from .datetime_utils import parse_ical_datetime, resolve_zone
from .exceptions import RecurrenceError
from .logging_config import configure_logging
from .models import DateOrDateTime
from .rule_parser import parse_rule
from .window import next_n_occurrences, occurrences_in_range

logger = logging.getLogger(__name__)

DEFAULT_NEXT = 10


def _create_parser() -> argparse.ArgumentParser:
    """Create argument parser for the caser_recurrence CLI.

    Returns:
        Configured argument parser
    """
    parser = argparse.ArgumentParser(
        prog="caser_recurrence",
        description="Expand an RFC 5545 recurrence rule into concrete occurrences",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m caser_recurrence "FREQ=DAILY;COUNT=3" --dtstart 20240101T090000Z
  python -m caser_recurrence "FREQ=MONTHLY;BYDAY=-1FR" --dtstart 20240126T170000 \\
      --tz Europe/Berlin --next 5
  python -m caser_recurrence "FREQ=WEEKLY;BYDAY=MO,WE" --dtstart 2024-01-01 \\
      --start 2024-03-01 --end 2024-04-01 --exdate 20240304
        """,
    )

    parser.add_argument("rrule", metavar="RRULE", help="Rule text, e.g. 'FREQ=WEEKLY;BYDAY=MO'")
    parser.add_argument(
        "--dtstart",
        required=True,
        metavar="VALUE",
        help="Event start (YYYYMMDD, YYYYMMDDTHHMMSS[Z], TZID=Zone:..., or ISO 8601)",
    )
    parser.add_argument("--tz", metavar="ZONE", help="Zone for a floating DTSTART (IANA or Windows name)")
    parser.add_argument("--exdate", action="append", default=[], metavar="VALUE", help="Excluded date (repeatable)")
    parser.add_argument("--rdate", action="append", default=[], metavar="VALUE", help="Additional date (repeatable)")

    window = parser.add_argument_group("query")
    window.add_argument("--start", metavar="VALUE", help="Inclusive window start (requires --end)")
    window.add_argument("--end", metavar="VALUE", help="Exclusive window end (requires --start)")
    window.add_argument("--next", type=int, metavar="N", help=f"Print the next N occurrences (default {DEFAULT_NEXT})")
    window.add_argument("--after", metavar="VALUE", help="Start of a --next query (default: DTSTART)")

    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    return parser


def _resolve_dtstart(value: str, tz_name: Optional[str]) -> DateOrDateTime:
    tz = resolve_zone(tz_name) if tz_name else None
    dtstart = parse_ical_datetime(value, tz)
    if tz is not None and isinstance(dtstart, datetime) and dtstart.tzinfo is None:
        dtstart = dtstart.replace(tzinfo=tz)
    return dtstart


def run(args: argparse.Namespace) -> list[str]:
    """Run one expansion query and return the formatted occurrences.

    Raises:
        RecurrenceError: If the rule, a date value or the window is invalid
    """
    dtstart = _resolve_dtstart(args.dtstart, args.tz)
    rule = parse_rule(args.rrule, dtstart)
    config = ExpansionConfig.from_env()

    if args.start or args.end:
        occurrences = list(
            occurrences_in_range(rule, dtstart, args.exdate, args.rdate, args.start, args.end, config)
        )
    else:
        after = args.after or dtstart
        count = DEFAULT_NEXT if args.next is None else args.next
        occurrences = next_n_occurrences(rule, dtstart, args.exdate, args.rdate, after, count, config)

    logger.debug("Expanded %d occurrences of %s", len(occurrences), rule)
    return [occurrence.isoformat() for occurrence in occurrences]


def main(argv: Optional[list[str]] = None) -> NoReturn:
    """Run the caser_recurrence CLI."""
    parser = _create_parser()
    args = parser.parse_args(argv)

    if bool(args.start) != bool(args.end):
        parser.error("--start and --end must be given together")
    if args.start and (args.next is not None or args.after):
        parser.error("--next/--after cannot be combined with --start/--end")

    configure_logging(debug_mode=args.debug)

    try:
        lines = run(args)
    except RecurrenceError as exc:
        print(f"error: {exc}", file=sys.stderr)
        sys.exit(2)

    for line in lines:
        print(line)
    sys.exit(0)


if __name__ == "__main__":
    main()
