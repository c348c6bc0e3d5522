"""
Queries over a vault: a directory tree of markdown notes whose frontmatter
carries repetition fields.
"""

import logging
import re
from collections import Counter
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field

from .config import Settings
from .exceptions import NoteParsingError
from .frontmatter import split_frontmatter
from .models import Repetition
from .parsers import (
    form_repetition,
    is_repeat_disabled,
    parse_repeat,
    parse_repetition_from_frontmatter,
)
from .timeutils import align_to

logger = logging.getLogger(__name__)

NOTE_SUFFIX = ".md"

INLINE_TAG_RE = re.compile(r"(?<![\w#&/])#([A-Za-z_][\w/-]*)")
_FRONTMATTER_TAG_SPLIT_RE = re.compile(r"[,\s]+")


class Note(BaseModel):
    """A markdown note read from the vault."""

    model_config = ConfigDict(frozen=True)

    path: str = Field(..., description="Vault-relative POSIX path; also the review log note id.")
    title: str
    tags: Tuple[str, ...] = ()
    frontmatter: Dict[str, Any] = Field(default_factory=dict)
    body: str = ""
    repetition: Optional[Repetition] = None
    created_at: datetime


class TagStats(BaseModel):
    model_config = ConfigDict(frozen=True)

    tag: str
    count: int


def normalize_tag(tag: str) -> str:
    tag = str(tag).strip()
    return tag if tag.startswith("#") else f"#{tag}"


def _frontmatter_tags(value: Any) -> List[str]:
    if not value:
        return []
    if isinstance(value, str):
        parts = _FRONTMATTER_TAG_SPLIT_RE.split(value)
    elif isinstance(value, (list, tuple)):
        parts = [str(part) for part in value]
    else:
        return []
    return [normalize_tag(part) for part in parts if part.strip()]


def extract_tags(frontmatter: Dict[str, Any], body: str) -> Tuple[str, ...]:
    """Frontmatter ``tags`` followed by inline ``#tags``, without duplicates."""
    tags = _frontmatter_tags(frontmatter.get("tags"))
    tags.extend(f"#{match}" for match in INLINE_TAG_RE.findall(body))
    return tuple(dict.fromkeys(tags))


def _iter_note_paths(vault: Path) -> Iterator[Path]:
    for path in sorted(vault.rglob(f"*{NOTE_SUFFIX}")):
        relative = path.relative_to(vault)
        if any(part.startswith(".") for part in relative.parts):
            continue
        if path.is_file():
            yield path


def _creation_time(path: Path, now: datetime) -> datetime:
    # Modification time stands in for creation time.
    modified = path.stat().st_mtime
    return align_to(datetime.fromtimestamp(modified, tz=timezone.utc), now)


def _note_repetition(
    frontmatter: Dict[str, Any],
    created_at: datetime,
    settings: Settings,
) -> Optional[Repetition]:
    repeat = frontmatter.get("repeat")
    if repeat is not None and repeat != "":
        if is_repeat_disabled(repeat):
            return None
        return parse_repetition_from_frontmatter(frontmatter, created_at)
    if not settings.enqueue_non_repeating_notes:
        return None
    return form_repetition(
        parse_repeat(settings.default_repeat),
        None,
        frontmatter.get("hidden"),
        created_at,
        virtual=True,
    )


def load_note(
    vault: Path, path: Union[str, Path], settings: Settings, now: datetime
) -> Note:
    """
    Read one note.

    Args:
        vault: The vault root.
        path: The note path, absolute or relative to the vault.

    Raises:
        NoteParsingError: If the note cannot be read or its frontmatter is invalid.
    """
    vault = Path(vault).resolve()
    path = Path(path)
    if not path.is_absolute():
        path = vault / path
    path = path.resolve()
    try:
        relative = path.relative_to(vault).as_posix()
    except ValueError as e:
        raise NoteParsingError("Note is outside the vault.", path) from e
    try:
        markdown = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise NoteParsingError(f"Could not read note: {e}", relative) from e

    frontmatter, body = split_frontmatter(markdown, relative)
    created_at = _creation_time(path, now)
    return Note(
        path=relative,
        title=str(frontmatter.get("title") or path.stem),
        tags=extract_tags(frontmatter, body),
        frontmatter=frontmatter,
        body=body,
        repetition=_note_repetition(frontmatter, created_at, settings),
        created_at=created_at,
    )


def load_notes(vault: Path, settings: Settings, now: datetime) -> List[Note]:
    """Read every note in the vault, skipping hidden folders and unreadable notes."""
    notes = []
    for path in _iter_note_paths(vault):
        try:
            notes.append(load_note(vault, path, settings, now))
        except NoteParsingError as e:
            logger.warning(f"Skipping note: {e}")
    logger.debug(f"Loaded {len(notes)} notes from {vault}")
    return notes


def _is_ignored(note: Note, ignore_folder: str) -> bool:
    folder = ignore_folder.strip().strip("/")
    if not folder:
        return False
    return note.path == folder or note.path.startswith(f"{folder}/")


def get_notes_due(
    vault: Path,
    settings: Settings,
    now: datetime,
    ignore_path: Optional[str] = None,
    tag: Optional[str] = None,
) -> List[Note]:
    """
    Notes whose repetition is due at or before ``now``.

    Authored repetitions come before virtual ones; each group is ordered by
    due time.

    Args:
        ignore_path: A vault-relative note path to leave out, typically the
            note currently under review.
        tag: Only include notes carrying this tag (with or without ``#``).
    """
    wanted_tag = normalize_tag(tag) if tag else None
    due = []
    for note in load_notes(vault, settings, now):
        if note.repetition is None:
            continue
        if _is_ignored(note, settings.ignore_folder_path):
            continue
        if ignore_path is not None and note.path == ignore_path:
            continue
        if wanted_tag is not None and wanted_tag not in note.tags:
            continue
        if align_to(note.repetition.due_at, now) <= now:
            due.append(note)

    due.sort(
        key=lambda note: (
            note.repetition.virtual,
            align_to(note.repetition.due_at, now),
        )
    )
    return due


def get_next_due_note(
    vault: Path,
    settings: Settings,
    now: datetime,
    ignore_path: Optional[str] = None,
    tag: Optional[str] = None,
) -> Optional[Note]:
    due = get_notes_due(vault, settings, now, ignore_path=ignore_path, tag=tag)
    return due[0] if due else None


def get_tags_from_due_notes(
    vault: Path, settings: Settings, now: datetime
) -> List[TagStats]:
    """Tag counts over all due notes, most frequent first."""
    counts: Counter = Counter()
    for note in get_notes_due(vault, settings, now):
        counts.update(note.tags)
    return [
        TagStats(tag=tag, count=count)
        for tag, count in sorted(counts.items(), key=lambda item: (-item[1], item[0]))
    ]
