"""
Commits a reviewer's choice back to the note and the review log.

The ReviewProcessor encapsulates the steps shared by every review workflow:
1. Timestamp handling
2. Frontmatter rewrite through the text codec
3. Review log entry for rated (adaptive) choices
4. Error handling
"""

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from .db.database import ReviewLogDatabase
from .frontmatter import update_frontmatter
from .models import CardState, Choice, ChoiceAction, Repetition, RevlogEntry
from .queries import Note
from .serializers import serialize_choice

logger = logging.getLogger(__name__)


class ReviewProcessor:
    """
    Applies choices to notes in a vault, logging rated reviews.
    """

    def __init__(
        self, vault: Path, review_log: Optional[ReviewLogDatabase] = None
    ):
        """
        Args:
            vault: Root directory of the notes.
            review_log: Destination for rated reviews; None disables logging.
        """
        self.vault = Path(vault)
        self.review_log = review_log

    def apply_choice(
        self,
        note: Note,
        choice: Choice,
        reviewed_at: Optional[datetime] = None,
        duration_ms: int = 0,
    ) -> Optional[Repetition]:
        """
        Write the chosen next repetition into the note's frontmatter.

        Args:
            note: The reviewed note.
            choice: One of the choices generated for the note.
            reviewed_at: Review timestamp (defaults to current time).
            duration_ms: Time spent on the note, recorded in the review log.

        Returns:
            The repetition now stored in the note; None for Dismiss and Never.

        Raises:
            NoteParsingError: If the note's frontmatter can no longer be parsed.
            OSError: If the note cannot be read or written.
            DatabaseError: If the review log entry cannot be appended.
        """
        ts = reviewed_at or datetime.now(timezone.utc)

        if choice.action == ChoiceAction.DISMISS:
            logger.debug(f"Dismissed {note.path}; nothing to write.")
            return None

        logger.debug(f"Applying '{choice.label}' to {note.path}")
        path = self.vault / note.path
        try:
            markdown = path.read_text(encoding="utf-8")
            updated = update_frontmatter(markdown, serialize_choice(choice), note.path)
            if updated != markdown:
                path.write_text(updated, encoding="utf-8")

            if choice.rating is not None and self.review_log is not None:
                self._log_review(note, choice, ts, duration_ms)
        except Exception:
            logger.exception(f"Failed to apply choice '{choice.label}' to {note.path}")
            raise

        if choice.action == ChoiceAction.NEVER:
            logger.info(f"Disabled repetition for {note.path}")
            return None
        logger.info(
            f"Next repetition of {note.path} due {choice.next_repetition.due_at.isoformat()}"
        )
        return choice.next_repetition

    def _log_review(
        self, note: Note, choice: Choice, ts: datetime, duration_ms: int
    ) -> int:
        history = choice.next_repetition.adaptive
        state = history.state if history and history.state is not None else CardState.Review
        entry = RevlogEntry(
            note_id=note.path,
            review_ts=ts,
            rating=choice.rating,
            state=state,
            duration_ms=max(0, duration_ms),
        )
        return self.review_log.append_entry(entry)
