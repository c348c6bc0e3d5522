"""
Marshalling between RevlogEntry models and review log rows.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Tuple

from pydantic import ValidationError

from ..exceptions import MarshallingError
from ..models import CardState, RevlogEntry


def to_db_timestamp(ts: datetime) -> datetime:
    """
    Convert a timestamp to the naive UTC form stored in the log. Naive
    values are read as local time.
    """
    return ts.astimezone(timezone.utc).replace(tzinfo=None)


def from_db_timestamp(ts: datetime) -> datetime:
    return ts.replace(tzinfo=timezone.utc)


def entry_to_db_params_tuple(entry: RevlogEntry) -> Tuple:
    """
    Returns:
        Tuple: (note_id, review_ts, rating, state_name, duration_ms).
    """
    try:
        return (
            entry.note_id,
            to_db_timestamp(entry.review_ts),
            int(entry.rating),
            entry.state.name,
            entry.duration_ms,
        )
    except (AttributeError, TypeError, ValueError, OverflowError) as e:
        raise MarshallingError(
            f"Failed to marshal review log entry for note {entry.note_id}: {e}",
            original_exception=e,
        ) from e


def db_row_to_entry(row_dict: Dict[str, Any]) -> RevlogEntry:
    """Build a RevlogEntry from a ``SELECT *`` row of the reviews table."""
    data = dict(row_dict)
    try:
        if data.get("review_ts") is not None:
            data["review_ts"] = from_db_timestamp(data["review_ts"])
        if data.get("state") is not None:
            data["state"] = CardState[data["state"]]
        return RevlogEntry(**data)
    except (KeyError, TypeError, ValidationError) as e:
        raise MarshallingError(
            f"Failed to parse review log row {row_dict}: {e}",
            original_exception=e,
        ) from e


def entry_to_csv_row(entry: RevlogEntry) -> Tuple:
    """
    Returns:
        Tuple: (note_id, review_time in epoch milliseconds, rating, state
        number, duration in milliseconds).
    """
    epoch_ms = int(round(entry.review_ts.timestamp() * 1000))
    return (
        entry.note_id,
        epoch_ms,
        int(entry.rating),
        int(entry.state),
        entry.duration_ms,
    )
