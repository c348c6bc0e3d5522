"""
Encoding of repetition records back into frontmatter fields.

``serialize_repeat`` produces a phrase that ``parsers.parse_repeat`` reads
back to the same strategy, period and time of day.
"""

from typing import Any, Dict, Optional

from .models import (
    Choice,
    ChoiceAction,
    PeriodUnit,
    Repeat,
    Repetition,
    Strategy,
    TimeOfDay,
)
from .parsers import ADAPTIVE_FIELD_KEYS

SERIALIZED_TRUE = "true"
SERIALIZED_FALSE = "false"

_SHORT_FORMS = {
    PeriodUnit.DAY: "daily",
    PeriodUnit.WEEK: "weekly",
    PeriodUnit.MONTH: "monthly",
    PeriodUnit.YEAR: "yearly",
}


def serialize_repeat(repeat: Repeat) -> str:
    """Encode the strategy, period and time of day as a ``repeat`` phrase."""
    if repeat.strategy == Strategy.ADAPTIVE:
        return "fsrs"

    prefix = "spaced " if repeat.strategy == Strategy.SPACED else ""
    suffix = " in the evening" if repeat.time_of_day == TimeOfDay.PM else ""

    if repeat.uses_weekdays:
        weekdays = ", ".join(day.value for day in repeat.weekdays or ())
        return f"{prefix}every {weekdays}{suffix}"

    unit = repeat.period_unit.value.lower()
    if repeat.period == 1:
        if (
            repeat.strategy == Strategy.PERIODIC
            and repeat.time_of_day == TimeOfDay.AM
            and repeat.period_unit in _SHORT_FORMS
        ):
            return _SHORT_FORMS[repeat.period_unit]
        return f"{prefix}every {unit}{suffix}"
    return f"{prefix}every {repeat.period} {unit}s{suffix}"


def serialize_adaptive_fields(repetition: Repetition) -> Dict[str, Any]:
    """
    The ``fsrs_*`` fields of a record. Every key is present; keys mapped to
    None are removed from the note.
    """
    fields: Dict[str, Any] = {key: None for key in ADAPTIVE_FIELD_KEYS}
    history = repetition.adaptive
    if repetition.strategy != Strategy.ADAPTIVE or history is None:
        return fields

    fields["fsrs_stability"] = history.stability
    if history.difficulty is not None:
        fields["fsrs_difficulty"] = history.difficulty
    if history.reps is not None:
        fields["fsrs_reps"] = history.reps
    if history.lapses is not None:
        fields["fsrs_lapses"] = history.lapses
    if history.last_review is not None:
        fields["fsrs_last_review"] = history.last_review.isoformat()
    if history.state is not None:
        fields["fsrs_state"] = int(history.state)
    return fields


def serialize_repetition(repetition: Repetition) -> Dict[str, Any]:
    """Frontmatter fields for a record, including ``fsrs_*`` removals."""
    fields: Dict[str, Any] = {
        "repeat": serialize_repeat(repetition),
        "due_at": repetition.due_at.isoformat(),
        "hidden": SERIALIZED_TRUE if repetition.hidden else SERIALIZED_FALSE,
    }
    fields.update(serialize_adaptive_fields(repetition))
    return fields


def serialize_choice(choice: Choice) -> Dict[str, Optional[Any]]:
    """
    Frontmatter updates that commit a choice.

    Dismiss changes nothing. Never disables repetition and removes the due
    time and hidden flag.
    """
    if choice.action == ChoiceAction.DISMISS:
        return {}
    if choice.action == ChoiceAction.NEVER:
        return {"repeat": "never", "due_at": None, "hidden": None}
    return serialize_repetition(choice.next_repetition)
