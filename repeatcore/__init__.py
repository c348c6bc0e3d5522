"""
repeatcore: spaced repetition scheduling for markdown notes.

The scheduling core (review engine, due-date advancement and choice
generation) is pure; the vault queries, text codec and review log sit
around it.
"""

from .choices import get_repeat_choices
from .fsrs import init_card, next_interval, retrievability, review_card
from .models import (
    AdaptiveHistory,
    Card,
    CardState,
    Choice,
    ChoiceAction,
    MemoryParameters,
    PeriodUnit,
    Rating,
    Repetition,
    Strategy,
    TimeOfDay,
    Weekday,
)
from .scheduler import increment_due_at

__all__ = [
    "AdaptiveHistory",
    "Card",
    "CardState",
    "Choice",
    "ChoiceAction",
    "MemoryParameters",
    "PeriodUnit",
    "Rating",
    "Repetition",
    "Strategy",
    "TimeOfDay",
    "Weekday",
    "get_repeat_choices",
    "increment_due_at",
    "init_card",
    "next_interval",
    "retrievability",
    "review_card",
]
