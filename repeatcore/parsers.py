"""
Decoding of human-authored repetition fields.

A note's frontmatter carries a short ``repeat`` phrase ("daily",
"every 3 days in the evening", "spaced every 2 weeks", "every monday,
thursday", "fsrs"), an optional ``due_at`` timestamp, a ``hidden`` flag and,
for adaptive notes, ``fsrs_*`` memory-model fields.
"""

import logging
import re
from datetime import date, datetime, time
from pathlib import Path
from typing import Any, List, Mapping, Optional, Union

from pydantic import ValidationError

from .frontmatter import split_frontmatter
from .models import (
    AdaptiveHistory,
    CardState,
    PeriodUnit,
    Repeat,
    Repetition,
    Strategy,
    TimeOfDay,
    Weekday,
)
from .scheduler import effective_period, next_matching_weekday, shift
from .timeutils import align_to

logger = logging.getLogger(__name__)

JOINED_UNITS = "minute|hour|day|week|month|year"

WEEKDAY_NAMES = {
    "monday": Weekday.monday,
    "mon": Weekday.monday,
    "tuesday": Weekday.tuesday,
    "tue": Weekday.tuesday,
    "tues": Weekday.tuesday,
    "wednesday": Weekday.wednesday,
    "wed": Weekday.wednesday,
    "thursday": Weekday.thursday,
    "thu": Weekday.thursday,
    "thur": Weekday.thursday,
    "thurs": Weekday.thursday,
    "friday": Weekday.friday,
    "fri": Weekday.friday,
    "saturday": Weekday.saturday,
    "sat": Weekday.saturday,
    "sunday": Weekday.sunday,
    "sun": Weekday.sunday,
}

SHORT_FORM_UNITS = {
    "daily": PeriodUnit.DAY,
    "weekly": PeriodUnit.WEEK,
    "monthly": PeriodUnit.MONTH,
    "yearly": PeriodUnit.YEAR,
    "annually": PeriodUnit.YEAR,
}

ADAPTIVE_KEYWORDS = ("fsrs", "adaptive")

ADAPTIVE_FIELD_KEYS = (
    "fsrs_stability",
    "fsrs_difficulty",
    "fsrs_reps",
    "fsrs_lapses",
    "fsrs_last_review",
    "fsrs_state",
)

_SPACED_RE = re.compile(r"^spaced ?")
_WEEKDAY_SPLIT_RE = re.compile(r",\s*|\s+and\s+|\s*&\s*")
_WEEKDAY_RE = re.compile(
    r"^every\s+(?P<weekdays>.+?)"
    r"(?P<time_of_day_suffix>\s+in\s+the\s+(?:morning|evening)|\s+(?:am|pm))?$"
)
_UNIT_RE = re.compile(rf"every (\d+ )?(?P<unit>{JOINED_UNITS})s?")
_REPETITION_RE = re.compile(
    r"(?P<description>"
    r"daily|weekly|monthly|yearly|annually"
    rf"|(every ({JOINED_UNITS})|every (?P<period>\d+) ({JOINED_UNITS})s?)"
    r")"
    r"(?P<time_of_day_suffix>.*)"
)
_DISABLED_RE = re.compile(r"^(n|no|false|off|never)$", re.IGNORECASE)
_YAML_TRUE_RE = re.compile(r"^(y|yes|true|on)$")


def parse_weekdays(weekday_string: str) -> List[Weekday]:
    """Parse ``"monday, thu and sat"`` style lists; unknown names are ignored."""
    weekdays = []
    for part in _WEEKDAY_SPLIT_RE.split(weekday_string.lower()):
        weekday = WEEKDAY_NAMES.get(part.strip())
        if weekday is not None:
            weekdays.append(weekday)
    return weekdays


def parse_period_unit(unit_description: str) -> PeriodUnit:
    description = unit_description.strip()
    if description in SHORT_FORM_UNITS:
        return SHORT_FORM_UNITS[description]
    match = _UNIT_RE.search(description)
    if match:
        return PeriodUnit(match.group("unit").upper())
    return PeriodUnit.DAY


def parse_time_of_day(time_of_day_suffix: str) -> TimeOfDay:
    suffix = time_of_day_suffix.strip()
    if suffix in ("in the evening", "pm"):
        return TimeOfDay.PM
    return TimeOfDay.AM


def parse_repeat(repeat: str) -> Repeat:
    """
    Parse a ``repeat`` phrase.

    Unrecognized phrases fall back to every day in the morning, keeping the
    strategy implied by a ``spaced`` prefix.
    """
    processed = str(repeat).strip().lower()
    strategy = Strategy.PERIODIC
    if _SPACED_RE.match(processed):
        strategy = Strategy.SPACED
        processed = _SPACED_RE.sub("", processed, count=1)

    if processed in ADAPTIVE_KEYWORDS:
        return Repeat(
            strategy=Strategy.ADAPTIVE,
            period=1,
            period_unit=PeriodUnit.DAY,
            time_of_day=TimeOfDay.AM,
        )

    match = _WEEKDAY_RE.match(processed)
    if match:
        weekdays = parse_weekdays(match.group("weekdays"))
        if weekdays:
            return Repeat(
                strategy=strategy,
                period=1,
                period_unit=PeriodUnit.WEEKDAYS,
                time_of_day=parse_time_of_day(
                    match.group("time_of_day_suffix") or ""
                ),
                weekdays=tuple(weekdays),
            )

    match = _REPETITION_RE.search(processed)
    if match:
        return Repeat(
            strategy=strategy,
            period=int(match.group("period") or 1),
            period_unit=parse_period_unit(match.group("description")),
            time_of_day=parse_time_of_day(
                match.group("time_of_day_suffix") or ""
            ),
        )

    logger.debug(f"Unrecognized repeat phrase '{repeat}'; using every day.")
    return Repeat(strategy=strategy)


def is_repeat_disabled(repeat_field_value: Any) -> bool:
    """True for YAML-style false values and ``never``."""
    if repeat_field_value is False:
        return True
    if not isinstance(repeat_field_value, str):
        return False
    return bool(_DISABLED_RE.match(repeat_field_value.strip()))


def parse_yaml_boolean(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if not value:
        return False
    return bool(_YAML_TRUE_RE.match(str(value).strip()))


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse an ISO 8601 timestamp, or pass through a datetime already decoded
    by the YAML loader. Returns None when the value cannot be read.
    """
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, time())
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


def parse_due_at(
    due_at: Any, repeat: Optional[Repeat], reference: datetime
) -> datetime:
    """
    Parse a ``due_at`` field. When it is missing or unreadable, the record is
    due one period after ``reference`` (the next matching weekday for weekday
    repetitions).
    """
    parsed = parse_timestamp(due_at)
    if parsed is not None:
        return parsed
    if due_at:
        logger.debug(f"Unparsable due_at '{due_at}'; deriving from reference.")
    if repeat is None:
        return reference
    if repeat.uses_weekdays:
        return next_matching_weekday(reference, repeat.weekdays or ())
    return shift(reference, repeat.period_unit, effective_period(repeat))


def _parse_number(value: Any, kind: type, key: str) -> Optional[Any]:
    if value is None or value == "":
        return None
    try:
        return kind(value)
    except (TypeError, ValueError):
        logger.warning(f"Ignoring malformed {key}: {value!r}")
        return None


def parse_adaptive_fields(
    fields: Mapping[str, Any], reference: Optional[datetime] = None
) -> Optional[AdaptiveHistory]:
    """
    Read ``fsrs_*`` fields. Returns None when no stability is recorded, which
    marks the note as having no adaptive history yet.
    """
    stability = _parse_number(
        fields.get("fsrs_stability"), float, "fsrs_stability"
    )
    if stability is None:
        return None

    last_review = parse_timestamp(fields.get("fsrs_last_review"))
    if last_review is not None and reference is not None:
        last_review = align_to(last_review, reference)

    state = None
    state_value = _parse_number(fields.get("fsrs_state"), int, "fsrs_state")
    if state_value is not None:
        try:
            state = CardState(state_value)
        except ValueError:
            logger.warning(f"Ignoring unknown fsrs_state: {state_value}")

    reps = _parse_number(fields.get("fsrs_reps"), int, "fsrs_reps")
    lapses = _parse_number(fields.get("fsrs_lapses"), int, "fsrs_lapses")

    return AdaptiveHistory(
        stability=max(0.0, stability),
        difficulty=_parse_number(
            fields.get("fsrs_difficulty"), float, "fsrs_difficulty"
        ),
        reps=max(0, reps) if reps is not None else None,
        lapses=max(0, lapses) if lapses is not None else None,
        last_review=last_review,
        state=state,
    )


def form_repetition(
    repeat: Repeat,
    due_at: Any = None,
    hidden: Any = None,
    reference: Optional[datetime] = None,
    virtual: bool = False,
    adaptive: Optional[AdaptiveHistory] = None,
) -> Repetition:
    """Combine a parsed repeat phrase with the remaining repetition fields."""
    if reference is None:
        reference = datetime.now().astimezone()
    return Repetition(
        **repeat.model_dump(),
        due_at=parse_due_at(due_at, repeat, reference),
        hidden=parse_yaml_boolean(hidden),
        virtual=virtual,
        adaptive=adaptive,
    )


def parse_repetition_fields(
    repeat: str,
    due_at: Any = None,
    hidden: Any = None,
    reference: Optional[datetime] = None,
) -> Repetition:
    return form_repetition(parse_repeat(repeat), due_at, hidden, reference)


def parse_repetition_from_frontmatter(
    frontmatter: Mapping[str, Any], reference: Optional[datetime] = None
) -> Optional[Repetition]:
    """
    Build a Repetition from frontmatter fields, or None when the note has no
    ``repeat`` field or repetition is disabled.
    """
    repeat = frontmatter.get("repeat")
    if not repeat or is_repeat_disabled(repeat):
        return None
    try:
        return form_repetition(
            parse_repeat(str(repeat)),
            frontmatter.get("due_at"),
            frontmatter.get("hidden"),
            reference,
            adaptive=parse_adaptive_fields(frontmatter, reference),
        )
    except ValidationError as e:
        logger.warning(f"Could not form repetition from {dict(frontmatter)}: {e}")
        return None


def parse_repetition_from_markdown(
    markdown: str,
    reference: Optional[datetime] = None,
    path: Optional[Union[str, Path]] = None,
) -> Optional[Repetition]:
    """
    Parse the repetition of a markdown note.

    Raises:
        NoteParsingError: If the note's frontmatter is not valid YAML.
    """
    frontmatter, _ = split_frontmatter(markdown, path)
    return parse_repetition_from_frontmatter(frontmatter, reference)
