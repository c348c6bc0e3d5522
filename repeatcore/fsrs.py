# repeatcore/fsrs.py

"""
Adaptive memory-model review engine.

The engine turns a rating into a new memory state (stability, difficulty,
discrete state) and derives the next interval from a power-law forgetting
curve. All functions are pure: they take the review time explicitly and
return new Card values.
"""

import logging
import math
from datetime import datetime
from typing import Optional, Sequence, Union

from .constants import FORGETTING_CURVE_DECAY, FORGETTING_CURVE_FACTOR
from .models import Card, CardState, MemoryParameters, Rating
from .timeutils import days_between

logger = logging.getLogger(__name__)

MIN_DIFFICULTY = 1.0
MAX_DIFFICULTY = 10.0


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves rounding up."""
    return int(math.floor(value + 0.5))


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def coerce_rating(rating: Union[Rating, int]) -> Rating:
    """Validate a rating given as an enum member or an int 1-4."""
    try:
        return Rating(rating)
    except ValueError:
        raise ValueError(
            f"Invalid rating: {rating}. Must be 1-4 (1=Again, 2=Hard, 3=Good, 4=Easy)."
        ) from None


def init_card(now: datetime) -> Card:
    """Create a New card with zeroed memory state, created at ``now``."""
    return Card(due=now, last_review=now)


def retrievability(elapsed_days: float, stability: float) -> float:
    """
    Probability of recall after ``elapsed_days`` for a memory of the given
    stability. Zero when there is no stability yet.
    """
    if stability <= 0:
        return 0.0
    return math.pow(
        1 + FORGETTING_CURVE_FACTOR * elapsed_days / stability,
        FORGETTING_CURVE_DECAY,
    )


def next_interval(
    stability: float, params: Optional[MemoryParameters] = None
) -> int:
    """
    Days until predicted retrievability falls to the target retention.

    Returns 0 for a card without stability; otherwise the rounded interval
    clamped to [1, max_interval_days].
    """
    if params is None:
        params = MemoryParameters()
    if stability <= 0:
        return 0
    raw = (
        stability
        * (1 / FORGETTING_CURVE_FACTOR)
        * (math.pow(params.target_retention, -2) - 1)
    )
    return int(_clamp(round_half_up(raw), 1, params.max_interval_days))


def _initial_stability(w: Sequence[float], rating: Rating) -> float:
    return w[rating - 1]


def _initial_difficulty(w: Sequence[float], rating: Rating) -> float:
    return _clamp(
        w[4] - (rating - 3) * w[5], MIN_DIFFICULTY, MAX_DIFFICULTY
    )


def _next_difficulty(
    w: Sequence[float], difficulty: float, rating: Rating
) -> float:
    # Mean reversion toward the initial difficulty of a Good rating.
    next_d = difficulty - w[6] * (rating - 3)
    return _clamp(
        w[7] * w[4] + (1 - w[7]) * next_d, MIN_DIFFICULTY, MAX_DIFFICULTY
    )


def _same_day_stability(
    w: Sequence[float], stability: float, rating: Rating
) -> float:
    return stability * math.exp(w[17] * (rating - 3 + w[18]))


def _stability_after_lapse(
    w: Sequence[float], difficulty: float, stability: float, r: float
) -> float:
    return (
        w[11]
        * math.pow(difficulty, -w[12])
        * (math.pow(stability + 1, w[13]) - 1)
        * math.exp(w[14] * (1 - r))
    )


def _stability_after_success(
    w: Sequence[float],
    difficulty: float,
    stability: float,
    r: float,
    rating: Rating,
) -> float:
    hard_penalty = w[15] if rating == Rating.Hard else 1.0
    easy_bonus = w[16] if rating == Rating.Easy else 1.0
    growth = (
        math.exp(w[8])
        * (11 - difficulty)
        * math.pow(stability, -w[9])
        * (math.exp(w[10] * (1 - r)) - 1)
    )
    return stability * (1 + growth * hard_penalty * easy_bonus)


def review_card(
    card: Card,
    rating: Union[Rating, int],
    review_time: datetime,
    params: Optional[MemoryParameters] = None,
) -> Card:
    """
    Apply one review to a card and return the resulting card.

    Args:
        card: The memory state before the review.
        rating: Rating given for this review (1=Again, 2=Hard, 3=Good, 4=Easy).
        review_time: When the review happened.
        params: Memory-model parameters; defaults to the built-in weights.

    Returns:
        A new Card with updated stability, difficulty, state, counters,
        last review and scheduled interval. ``scheduled_days`` is 0 after an
        Again rating; the caller schedules a short learning step instead.

    Raises:
        ValueError: If the rating is not 1-4.
    """
    if params is None:
        params = MemoryParameters()
    rating = coerce_rating(rating)
    w = params.w

    elapsed_days = max(0.0, days_between(card.last_review, review_time))
    # Uses the stability from before this review.
    r = retrievability(elapsed_days, card.stability)

    stability = card.stability
    difficulty = card.difficulty
    state = card.state
    lapses = card.lapses

    if state == CardState.New:
        difficulty = _initial_difficulty(w, rating)
        stability = _initial_stability(w, rating)
        state = (
            CardState.Learning if rating <= Rating.Hard else CardState.Review
        )
    elif state in (CardState.Learning, CardState.Relearning):
        stability = _initial_stability(w, rating)
        if rating >= Rating.Good:
            state = CardState.Review
    elif state == CardState.Review:
        if elapsed_days == 0:
            stability = _same_day_stability(w, stability, rating)
        else:
            difficulty = _next_difficulty(w, difficulty, rating)
            if rating == Rating.Again:
                stability = _stability_after_lapse(
                    w, difficulty, stability, r
                )
                state = CardState.Relearning
                lapses += 1
            else:
                stability = _stability_after_success(
                    w, difficulty, stability, r, rating
                )
    else:
        raise ValueError(f"Unknown card state: {state!r}")

    reps = 0 if rating == Rating.Again else card.reps + 1
    scheduled_days = (
        0 if rating == Rating.Again else next_interval(stability, params)
    )

    logger.debug(
        f"Reviewed card ({card.state.name} -> {state.name}) with {rating.name}: "
        f"stability {card.stability:.4f} -> {stability:.4f}, "
        f"elapsed {elapsed_days:.4f}d, scheduled {scheduled_days}d"
    )

    return card.model_copy(
        update={
            "stability": stability,
            "difficulty": difficulty,
            "state": state,
            "reps": reps,
            "lapses": lapses,
            "elapsed_days": elapsed_days,
            "scheduled_days": scheduled_days,
            "last_review": review_time,
        }
    )
