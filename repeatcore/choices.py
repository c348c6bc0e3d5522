"""
Builds the next-repetition choices offered for a note.

The generator dispatches on the record's strategy: periodic and weekday
records get the canonical next due time, spaced records get interval
multipliers, and adaptive records get one choice per rating computed by the
memory-model review engine.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, List, Optional

from .config import ChoiceOptions
from .constants import (
    DISMISS_BUTTON_TEXT,
    NEVER_BUTTON_TEXT,
    RELEARNING_STEP_MINUTES,
    SKIP_BUTTON_TEXT,
    SKIP_PERIOD_MINUTES,
    SPACED_MULTIPLIERS,
    SPACED_SNAP_THRESHOLD_DAYS,
)
from .fsrs import init_card, review_card, round_half_up
from .models import (
    AdaptiveHistory,
    Card,
    Choice,
    ChoiceAction,
    PeriodUnit,
    Rating,
    Repetition,
    Strategy,
)
from .scheduler import (
    effective_period,
    increment_due_at,
    shift,
    snap_to_time_of_day,
)
from .summaries import pluralize, summarize_due_at, summarize_weekday_due_at
from .timeutils import align_to

logger = logging.getLogger(__name__)

MINUTES_PER_DAY = 24 * 60


def dismiss_choice() -> Choice:
    return Choice(label=DISMISS_BUTTON_TEXT, action=ChoiceAction.DISMISS)


def never_choice() -> Choice:
    return Choice(label=NEVER_BUTTON_TEXT, action=ChoiceAction.NEVER)


def skip_choice(repetition: Repetition, now: datetime) -> Choice:
    """Show the note again in a few minutes, leaving everything else unchanged."""
    return Choice(
        label=SKIP_BUTTON_TEXT,
        next_repetition=repetition.model_copy(
            update={"due_at": now + timedelta(minutes=SKIP_PERIOD_MINUTES)}
        ),
    )


def _is_not_yet_due(repetition: Repetition, now: datetime) -> bool:
    return align_to(repetition.due_at, now) > now


def _offers_never(repetition: Repetition, options: ChoiceOptions) -> bool:
    return options.enqueue_non_repeating_notes and repetition.virtual


def uniq_by_label(choices: List[Choice]) -> List[Choice]:
    """Drop choices whose label repeats an earlier one, keeping order."""
    seen = set()
    unique = []
    for choice in choices:
        if choice.label not in seen:
            seen.add(choice.label)
            unique.append(choice)
    return unique


def get_periodic_choices(
    repetition: Repetition, now: datetime, options: ChoiceOptions
) -> List[Choice]:
    """
    Choices for a periodic (or weekday) note: skip, the next period, and
    Never for virtual notes when enabled.
    """
    if _is_not_yet_due(repetition, now):
        return [dismiss_choice()]

    next_due_at = increment_due_at(repetition, now, options.review_times)
    if repetition.uses_weekdays:
        label = summarize_weekday_due_at(next_due_at, now)
    else:
        label = summarize_due_at(next_due_at, now)

    choices = [
        skip_choice(repetition, now),
        Choice(
            label=label,
            next_repetition=repetition.model_copy(
                update={"due_at": next_due_at}
            ),
        ),
    ]
    if _offers_never(repetition, options):
        choices.append(never_choice())
    return choices


def _spaced_choice(
    repetition: Repetition,
    now: datetime,
    options: ChoiceOptions,
    multiplier: float,
) -> Choice:
    next_due_at = shift(
        now,
        repetition.period_unit,
        multiplier * effective_period(repetition),
    )
    # Spaced notes due in at least a week respect the time of day choice.
    if next_due_at - timedelta(days=SPACED_SNAP_THRESHOLD_DAYS) >= now:
        next_due_at = snap_to_time_of_day(
            next_due_at, repetition.time_of_day, options.review_times
        )

    hours = (next_due_at - now).total_seconds() / 3600
    if hours < 1:
        hours = 1
    return Choice(
        label=f"{summarize_due_at(next_due_at, now)} (x{multiplier:g})",
        next_repetition=repetition.model_copy(
            update={
                "due_at": next_due_at,
                "period": round_half_up(hours),
                "period_unit": PeriodUnit.HOUR,
            }
        ),
    )


def get_spaced_choices(
    repetition: Repetition, now: datetime, options: ChoiceOptions
) -> List[Choice]:
    """
    Choices for a spaced note: skip, then the period scaled by each
    multiplier measured from ``now``.
    """
    if _is_not_yet_due(repetition, now):
        return [dismiss_choice()]

    choices = [skip_choice(repetition, now)]
    choices.extend(
        _spaced_choice(repetition, now, options, multiplier)
        for multiplier in SPACED_MULTIPLIERS
    )
    if _offers_never(repetition, options):
        choices.append(never_choice())
    return uniq_by_label(choices)


def reconstruct_card(repetition: Repetition, now: datetime) -> Card:
    """
    The memory state stored on a record, or a fresh New card when the record
    has no adaptive history yet.
    """
    if repetition.adaptive is None:
        logger.debug("No adaptive history; treating as first review.")
        return init_card(now)
    return repetition.adaptive.to_card(now)


def _adaptive_choice(
    repetition: Repetition,
    card: Card,
    rating: Rating,
    now: datetime,
    options: ChoiceOptions,
) -> Choice:
    next_card = review_card(card, rating, now, options.parameters)

    if rating == Rating.Again:
        period = RELEARNING_STEP_MINUTES
        unit = PeriodUnit.MINUTE
        due_at = now + timedelta(minutes=period)
        interval_text = f"{period} min"
    elif next_card.scheduled_days < 1:
        period = max(1, round_half_up(next_card.scheduled_days * MINUTES_PER_DAY))
        unit = PeriodUnit.MINUTE
        due_at = now + timedelta(minutes=period)
        interval_text = f"{period} min"
    else:
        period = round_half_up(next_card.scheduled_days)
        unit = PeriodUnit.DAY
        due_at = now + timedelta(days=period)
        interval_text = pluralize(period, "day")

    return Choice(
        label=f"{rating.name} ({interval_text})",
        rating=rating,
        next_repetition=repetition.model_copy(
            update={
                "strategy": Strategy.ADAPTIVE,
                "due_at": due_at,
                "period": period,
                "period_unit": unit,
                "weekdays": None,
                "adaptive": AdaptiveHistory.from_card(next_card),
            }
        ),
    )


def get_adaptive_choices(
    repetition: Repetition, now: datetime, options: ChoiceOptions
) -> List[Choice]:
    """
    Choices for an adaptive note: skip, one choice per rating from Again to
    Easy, and Never for virtual notes when enabled.
    """
    if _is_not_yet_due(repetition, now):
        return [dismiss_choice()]

    card = reconstruct_card(repetition, now)
    choices = [skip_choice(repetition, now)]
    choices.extend(
        _adaptive_choice(repetition, card, rating, now, options)
        for rating in Rating
    )
    if _offers_never(repetition, options):
        choices.append(never_choice())
    return choices


def get_repeat_choices(
    repetition: Optional[Any],
    now: datetime,
    options: Optional[ChoiceOptions] = None,
) -> List[Choice]:
    """
    Get all repetition choices for a note.

    Args:
        repetition: The note's repetition record. Anything that is not a
            Repetition yields no choices.
        now: Reference time used for every computed due time.
        options: Review times, memory parameters and the Never toggle.

    Returns:
        The ordered list of choices; a single Dismiss choice when the note
        is not yet due.
    """
    if not isinstance(repetition, Repetition):
        if repetition is not None:
            logger.debug(f"Cannot build choices for {type(repetition).__name__}.")
        return []
    if options is None:
        options = ChoiceOptions()

    # Weekday repetitions always use periodic choices, regardless of strategy.
    if repetition.strategy == Strategy.PERIODIC or repetition.uses_weekdays:
        return get_periodic_choices(repetition, now, options)
    if repetition.strategy == Strategy.ADAPTIVE:
        return get_adaptive_choices(repetition, now, options)
    if repetition.strategy == Strategy.SPACED:
        return get_spaced_choices(repetition, now, options)
    return [dismiss_choice()]
