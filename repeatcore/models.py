"""
Core data models for repeatcore: memory-model parameters and card state,
repetition records and the review choices built from them.
"""

from __future__ import annotations

import math
from datetime import datetime
from enum import Enum, IntEnum
from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .constants import (
    DEFAULT_MAX_INTERVAL_DAYS,
    DEFAULT_TARGET_RETENTION,
    DEFAULT_WEIGHTS,
    WEIGHT_COUNT,
)


class CardState(IntEnum):
    """
    Represents the discrete state of a card's memory trace.
    """

    New = 0
    Learning = 1
    Review = 2
    Relearning = 3


class Rating(IntEnum):
    """
    Represents the user's rating of their recall performance.

    Again is the lowest ("forgot") rating.
    """

    Again = 1
    Hard = 2
    Good = 3
    Easy = 4


class Strategy(str, Enum):
    PERIODIC = "PERIODIC"
    SPACED = "SPACED"
    ADAPTIVE = "ADAPTIVE"


class PeriodUnit(str, Enum):
    MINUTE = "MINUTE"
    HOUR = "HOUR"
    DAY = "DAY"
    WEEK = "WEEK"
    MONTH = "MONTH"
    YEAR = "YEAR"
    WEEKDAYS = "WEEKDAYS"

    @property
    def is_sub_day(self) -> bool:
        return self in (PeriodUnit.MINUTE, PeriodUnit.HOUR)


class TimeOfDay(str, Enum):
    AM = "AM"
    PM = "PM"


class Weekday(str, Enum):
    monday = "monday"
    tuesday = "tuesday"
    wednesday = "wednesday"
    thursday = "thursday"
    friday = "friday"
    saturday = "saturday"
    sunday = "sunday"

    @property
    def isoweekday(self) -> int:
        """ISO weekday number, Monday is 1 and Sunday is 7."""
        return list(Weekday).index(self) + 1


class MemoryParameters(BaseModel):
    """
    Immutable configuration of the memory model.

    Construction fails with a ValidationError when the weight vector does not
    hold exactly 19 finite numbers or the retention is outside (0, 1).
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    target_retention: float = Field(
        default=DEFAULT_TARGET_RETENTION,
        gt=0,
        lt=1,
        description="Probability of recall the scheduler aims for at the next review.",
    )
    max_interval_days: int = Field(
        default=DEFAULT_MAX_INTERVAL_DAYS,
        gt=0,
        description="Upper bound on any interval, in days.",
    )
    w: Tuple[float, ...] = Field(
        default=DEFAULT_WEIGHTS,
        description="Model weights w[0]..w[18].",
    )

    @field_validator("w")
    @classmethod
    def check_weight_vector(cls, w: Tuple[float, ...]) -> Tuple[float, ...]:
        """Ensure the weight vector has the expected length and finite values."""
        if len(w) != WEIGHT_COUNT:
            raise ValueError(
                f"Expected {WEIGHT_COUNT} weights, got {len(w)}."
            )
        if not all(math.isfinite(value) for value in w):
            raise ValueError("Weights must be finite numbers.")
        return w


class Card(BaseModel):
    """
    Memory state evolved by the review engine.

    Every review produces a new Card; instances are never mutated.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    due: datetime = Field(
        ...,
        description="Advisory due timestamp; not changed by the review engine.",
    )
    stability: float = Field(
        default=0.0,
        ge=0,
        description="Days until recall probability decays to the target retention.",
    )
    difficulty: float = Field(
        default=0.0,
        description="0 while New, otherwise clamped to [1, 10].",
    )
    elapsed_days: float = Field(
        default=0.0,
        ge=0,
        description="Days between the two most recent reviews.",
    )
    scheduled_days: float = Field(
        default=0.0,
        ge=0,
        description="Interval chosen by the most recent review.",
    )
    reps: int = Field(default=0, ge=0)
    lapses: int = Field(default=0, ge=0)
    state: CardState = Field(default=CardState.New)
    last_review: datetime = Field(
        ...,
        description="Timestamp of the most recent review (creation time while New).",
    )


class AdaptiveHistory(BaseModel):
    """
    Adaptive-model fields embedded in a repetition record once at least one
    review has happened. A record without history carries ``adaptive=None``.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    stability: float
    difficulty: Optional[float] = None
    reps: Optional[int] = None
    lapses: Optional[int] = None
    last_review: Optional[datetime] = None
    state: Optional[CardState] = None

    def to_card(self, now: datetime) -> Card:
        """
        Rebuild a Card from the stored fields.

        Missing counters default to 0 and a missing last review to ``now``.
        A missing state is inferred from reps and stability.
        """
        stability = max(0.0, self.stability)
        difficulty = self.difficulty or 0.0
        if difficulty:
            difficulty = min(10.0, max(1.0, difficulty))
        reps = max(0, self.reps or 0)
        lapses = max(0, self.lapses or 0)
        last_review = self.last_review or now

        state = self.state
        if state is None:
            if reps == 0:
                state = CardState.New
            elif reps < 3 and stability < 1:
                state = CardState.Learning
            else:
                state = CardState.Review

        return Card(
            due=now,
            stability=stability,
            difficulty=difficulty,
            reps=reps,
            lapses=lapses,
            state=state,
            last_review=last_review,
        )

    @classmethod
    def from_card(cls, card: Card) -> "AdaptiveHistory":
        return cls(
            stability=card.stability,
            difficulty=card.difficulty,
            reps=card.reps,
            lapses=card.lapses,
            last_review=card.last_review,
            state=card.state,
        )


class Repeat(BaseModel):
    """
    A parsed ``repeat`` phrase: the strategy and its period, without a due time.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    strategy: Strategy = Strategy.PERIODIC
    period: int = Field(
        default=1,
        description="Number of period units; values below 1 are treated as 1.",
    )
    period_unit: PeriodUnit = PeriodUnit.DAY
    time_of_day: TimeOfDay = TimeOfDay.AM
    weekdays: Optional[Tuple[Weekday, ...]] = Field(
        default=None,
        description="Target weekdays; authoritative only for the WEEKDAYS unit.",
    )

    @field_validator("weekdays")
    @classmethod
    def normalize_weekdays(
        cls, weekdays: Optional[Tuple[Weekday, ...]]
    ) -> Optional[Tuple[Weekday, ...]]:
        """Deduplicate and order weekdays Monday first."""
        if weekdays is None:
            return None
        return tuple(sorted(set(weekdays), key=lambda day: day.isoweekday))

    @model_validator(mode="after")
    def check_weekdays_for_unit(self) -> "Repeat":
        if self.period_unit == PeriodUnit.WEEKDAYS and not self.weekdays:
            raise ValueError("The WEEKDAYS unit requires at least one weekday.")
        return self

    @property
    def uses_weekdays(self) -> bool:
        return self.period_unit == PeriodUnit.WEEKDAYS


class Repetition(Repeat):
    """
    A complete scheduling record for a note.
    """

    due_at: datetime = Field(..., description="When the note is next due.")
    hidden: bool = Field(
        default=False,
        description="Whether the note content is blurred until clicked.",
    )
    virtual: bool = Field(
        default=False,
        description="True for a synthesized default record, not authored in the note.",
    )
    adaptive: Optional[AdaptiveHistory] = Field(
        default=None,
        description="Adaptive-model history; None until the first adaptive review.",
    )


class ChoiceAction(str, Enum):
    RECORD = "record"
    DISMISS = "dismiss"
    NEVER = "never"


class Choice(BaseModel):
    """
    A next-repetition option offered to the reviewer.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    label: str
    action: ChoiceAction = ChoiceAction.RECORD
    next_repetition: Optional[Repetition] = None
    rating: Optional[Rating] = Field(
        default=None,
        description="Present only for adaptive-strategy choices.",
    )

    @model_validator(mode="after")
    def check_action_payload(self) -> "Choice":
        if self.action == ChoiceAction.RECORD and self.next_repetition is None:
            raise ValueError("A RECORD choice needs a next repetition.")
        if self.action != ChoiceAction.RECORD and self.next_repetition is not None:
            raise ValueError(
                f"A {self.action.value} choice cannot carry a repetition."
            )
        return self


class RevlogEntry(BaseModel):
    """
    One row of the append-only review log.

    ``state`` is the card state that resulted from the review.
    """

    model_config = ConfigDict(extra="forbid")

    review_id: Optional[int] = None
    note_id: str = Field(..., min_length=1, description="Vault-relative note path.")
    review_ts: datetime
    rating: Rating
    state: CardState
    duration_ms: int = Field(default=0, ge=0)
