"""
Human-readable summaries of when a note is next due.
"""

from datetime import datetime, timedelta

from .constants import DAYS_PER_MONTH, DAYS_PER_YEAR
from .fsrs import round_half_up
from .timeutils import SECONDS_PER_DAY, align_to


def pluralize(count: int, unit: str) -> str:
    """``pluralize(1, "day") -> "1 day"``, ``pluralize(3, "day") -> "3 days"``."""
    return f"{count} {unit}" if count == 1 else f"{count} {unit}s"


def summarize_due_at(due_at: datetime, now: datetime) -> str:
    """Summarize the time from ``now`` until ``due_at`` in its largest sensible unit."""
    seconds = max(0.0, (align_to(due_at, now) - now).total_seconds())
    days = seconds / SECONDS_PER_DAY

    if seconds < 60 * 60:
        return pluralize(max(1, round_half_up(seconds / 60)), "minute")
    if days < 1:
        return pluralize(round_half_up(seconds / (60 * 60)), "hour")
    if days < 14:
        return pluralize(round_half_up(days), "day")
    if days < 60:
        return pluralize(round_half_up(days / 7), "week")
    if days < DAYS_PER_YEAR:
        return pluralize(round_half_up(days / DAYS_PER_MONTH), "month")
    return pluralize(round_half_up(days / DAYS_PER_YEAR), "year")


def summarize_weekday_due_at(due_at: datetime, now: datetime) -> str:
    """
    Name the weekday a note is due on: ``"Friday"`` when it falls later in
    the current week (weeks start on Monday), otherwise ``"next Friday"``.
    """
    due_at = align_to(due_at, now)
    day_name = due_at.strftime("%A")
    week_start = now.date() - timedelta(days=now.weekday())
    due_week_start = due_at.date() - timedelta(days=due_at.weekday())
    if week_start == due_week_start and due_at.isoweekday() > now.isoweekday():
        return day_name
    return f"next {day_name}"
