# repeatcore/scheduler.py

"""
Due-date advancement for periodic, spaced and weekday repetitions.

Given a repetition record and the current time, computes when the record is
next due. Overdue records catch up by whole periods in one step, and
day-or-larger periods snap to the configured morning or evening time.
"""

import logging
import math
from datetime import datetime, timedelta
from typing import Iterable

from .config import ReviewTimes
from .constants import DAYS_PER_MONTH, DAYS_PER_YEAR
from .models import PeriodUnit, Repeat, Repetition, TimeOfDay, Weekday
from .timeutils import add_months, align_to

logger = logging.getLogger(__name__)

# Maximum number of days searched for a matching weekday.
WEEKDAY_SEARCH_DAYS = 7


def effective_period(repeat: Repeat) -> int:
    """The configured period, with zero or negative values treated as 1."""
    if repeat.period < 1:
        logger.debug(
            f"Degenerate period {repeat.period} {repeat.period_unit.value}; using 1."
        )
        return 1
    return repeat.period


def approximate_duration(unit: PeriodUnit, amount: float) -> timedelta:
    """
    Length of ``amount`` units as a fixed duration. Months count as 30 days
    and years as 365 days.
    """
    if unit == PeriodUnit.MINUTE:
        return timedelta(minutes=amount)
    if unit == PeriodUnit.HOUR:
        return timedelta(hours=amount)
    if unit == PeriodUnit.DAY:
        return timedelta(days=amount)
    if unit == PeriodUnit.WEEK:
        return timedelta(weeks=amount)
    if unit == PeriodUnit.MONTH:
        return timedelta(days=amount * DAYS_PER_MONTH)
    if unit == PeriodUnit.YEAR:
        return timedelta(days=amount * DAYS_PER_YEAR)
    raise ValueError(f"Unit {unit.value} has no fixed duration.")


def shift(ts: datetime, unit: PeriodUnit, amount: float) -> datetime:
    """
    Move ``ts`` forward by ``amount`` units.

    Months and years move along the calendar for the whole part of
    ``amount``; any fractional remainder is added as a fixed duration.
    """
    if unit in (PeriodUnit.MONTH, PeriodUnit.YEAR):
        whole = math.trunc(amount)
        months = whole if unit == PeriodUnit.MONTH else whole * 12
        shifted = add_months(ts, months)
        remainder = amount - whole
        if remainder:
            shifted += approximate_duration(unit, remainder)
        return shifted
    return ts + approximate_duration(unit, amount)


def snap_to_time_of_day(
    ts: datetime, time_of_day: TimeOfDay, review_times: ReviewTimes
) -> datetime:
    """Set the clock time of ``ts`` to the configured morning or evening time."""
    review_time = review_times.for_time_of_day(time_of_day)
    return ts.replace(
        hour=review_time.hour,
        minute=review_time.minute,
        second=0,
        microsecond=0,
    )


def next_matching_weekday(
    reference: datetime, weekdays: Iterable[Weekday]
) -> datetime:
    """
    The first day after ``reference`` (up to a week ahead) whose weekday is
    in ``weekdays``, keeping the reference's clock time. Falls back to the
    next day when no weekday matches.
    """
    targets = {day.isoweekday for day in weekdays}
    for days_ahead in range(1, WEEKDAY_SEARCH_DAYS + 1):
        candidate = reference + timedelta(days=days_ahead)
        if candidate.isoweekday() in targets:
            return candidate
    return reference + timedelta(days=1)


def next_weekday_occurrence(
    now: datetime,
    weekdays: Iterable[Weekday],
    time_of_day: TimeOfDay,
    review_times: ReviewTimes,
) -> datetime:
    """Next matching weekday after ``now`` at the configured time of day."""
    return snap_to_time_of_day(
        next_matching_weekday(now, weekdays), time_of_day, review_times
    )


def count_missed_periods(
    base: datetime, now: datetime, unit: PeriodUnit, period: int
) -> int:
    """
    Estimated number of whole periods needed to move ``base`` past ``now``,
    using fixed-length periods; at least 1.
    """
    if base > now:
        return 1
    overdue_by = now - base
    repetitions = math.ceil(overdue_by / approximate_duration(unit, period))
    return max(1, repetitions)


def advance_past(
    base: datetime, now: datetime, unit: PeriodUnit, period: int
) -> datetime:
    """
    Move ``base`` forward by whole periods until it is strictly after ``now``.

    Starts from the fixed-length estimate and walks forward along the
    calendar, since a run of short months can leave the estimate one period
    short.
    """
    repetitions = count_missed_periods(base, now, unit, period)
    next_due = shift(base, unit, repetitions * period)
    while next_due <= now:
        repetitions += 1
        next_due = shift(base, unit, repetitions * period)
    return next_due


def increment_due_at(
    repetition: Repetition, now: datetime, review_times: ReviewTimes
) -> datetime:
    """
    Determine when a periodic or spaced repetition is next due.

    Weekday repetitions always anchor to the next matching weekday after
    ``now``. Other units advance the due time by as many whole periods as
    needed to pass ``now``; day-or-larger units then snap to the configured
    time of day and move forward a day at a time if snapping left them at or
    before ``now``.

    Args:
        repetition: The note's repetition record.
        now: Reference time.
        review_times: Morning and evening clock times.

    Returns:
        The next due timestamp, always strictly after ``now``.
    """
    if repetition.uses_weekdays:
        return next_weekday_occurrence(
            now,
            repetition.weekdays or (),
            repetition.time_of_day,
            review_times,
        )

    unit = repetition.period_unit
    period = effective_period(repetition)
    base = align_to(repetition.due_at, now)
    next_due = advance_past(base, now, unit, period)

    if unit.is_sub_day:
        return next_due

    next_due = snap_to_time_of_day(next_due, repetition.time_of_day, review_times)
    while next_due <= now:
        # e.g. now = 8am, due = 7am, morning time = 6am.
        next_due += timedelta(days=1)
    return next_due
