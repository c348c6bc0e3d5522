"""
Calendar helpers shared by the scheduling engines.
"""

import calendar
import re
from datetime import datetime, time

SECONDS_PER_DAY = 24 * 60 * 60

_TIME_RE = re.compile(r"^\s*(\d{1,2}):(\d{2})\s*$")


def parse_time(twenty_four_hour_time: str) -> time:
    """
    Parse an ``HH:MM`` clock time.

    Raises:
        ValueError: If the text is not a valid 24-hour time.
    """
    match = _TIME_RE.match(twenty_four_hour_time or "")
    if not match:
        raise ValueError(
            f"Invalid time '{twenty_four_hour_time}'. Expected HH:MM."
        )
    hour, minute = int(match.group(1)), int(match.group(2))
    if hour > 23 or minute > 59:
        raise ValueError(
            f"Invalid time '{twenty_four_hour_time}'. Expected HH:MM."
        )
    return time(hour=hour, minute=minute)


def align_to(ts: datetime, reference: datetime) -> datetime:
    """
    Express ``ts`` in the same kind of time as ``reference`` so they can be
    compared and combined.

    Naive values are read as wall-clock time in the reference's zone; an aware
    value compared with a naive reference is converted to local time.
    """
    ts_aware = ts.tzinfo is not None and ts.utcoffset() is not None
    ref_aware = (
        reference.tzinfo is not None and reference.utcoffset() is not None
    )
    if ts_aware and ref_aware:
        return ts.astimezone(reference.tzinfo)
    if ref_aware:
        return ts.replace(tzinfo=reference.tzinfo)
    if ts_aware:
        return ts.astimezone().replace(tzinfo=None)
    return ts


def days_between(start: datetime, end: datetime) -> float:
    """Real-valued number of days from ``start`` to ``end``."""
    return (end - align_to(start, end)).total_seconds() / SECONDS_PER_DAY


def add_months(ts: datetime, months: int) -> datetime:
    """Move ``ts`` by whole calendar months, clamping to the month's last day."""
    month_index = ts.month - 1 + months
    year = ts.year + month_index // 12
    month = month_index % 12 + 1
    day = min(ts.day, calendar.monthrange(year, month)[1])
    return ts.replace(year=year, month=month, day=day)


def start_of_day(ts: datetime) -> datetime:
    return ts.replace(hour=0, minute=0, second=0, microsecond=0)
