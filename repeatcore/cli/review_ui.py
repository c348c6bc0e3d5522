"""
Command-line interface for reviewing due notes.
"""

import logging
import time
from datetime import datetime
from pathlib import Path
from typing import Callable, List, Optional, Set

from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel

from repeatcore.choices import get_repeat_choices
from repeatcore.config import Settings
from repeatcore.db.database import ReviewLogDatabase
from repeatcore.exceptions import RepeatcoreError
from repeatcore.models import Choice, ChoiceAction
from repeatcore.queries import Note, get_notes_due
from repeatcore.review_processor import ReviewProcessor
from repeatcore.summaries import summarize_due_at

logger = logging.getLogger(__name__)
console = Console()


def local_now() -> datetime:
    return datetime.now().astimezone()


def _display_note(note: Note) -> None:
    """Show the note body, behind a reveal prompt when the note is hidden."""
    hidden = note.repetition is not None and note.repetition.hidden
    if hidden:
        console.print(
            Panel("[dim]Content hidden.[/dim]", title=note.title, border_style="yellow")
        )
        console.input("[italic]Press Enter to reveal...[/italic]")
    console.print(
        Panel(Markdown(note.body.strip() or "_(empty note)_"), title=note.title, border_style="green")
    )


def _get_user_choice(choices: List[Choice]) -> Choice:
    """Prompt until the user enters the number of one of the choices."""
    for index, choice in enumerate(choices, start=1):
        console.print(f"  [bold]{index}[/bold]. {choice.label}")
    while True:
        try:
            selected = int(console.input(f"[bold]Choice (1-{len(choices)}): [/bold]"))
            if 1 <= selected <= len(choices):
                return choices[selected - 1]
            console.print(
                f"[bold red]Invalid choice. Please enter a number between 1 and {len(choices)}.[/bold red]"
            )
        except (ValueError, TypeError):
            console.print("[bold red]Invalid input. Please enter a number.[/bold red]")


def _next_note(
    vault: Path,
    settings: Settings,
    now: datetime,
    tag: Optional[str],
    skipped: Set[str],
) -> Optional[Note]:
    for note in get_notes_due(vault, settings, now, tag=tag):
        if note.path not in skipped:
            return note
    return None


def start_review_flow(
    vault: Path,
    settings: Settings,
    review_log: Optional[ReviewLogDatabase] = None,
    tag: Optional[str] = None,
    limit: Optional[int] = None,
    clock: Callable[[], datetime] = local_now,
) -> int:
    """
    Review due notes one at a time until none remain or ``limit`` is reached.

    Returns:
        int: Number of notes reviewed.
    """
    console.print("[bold cyan]Starting review session...[/bold cyan]")
    processor = ReviewProcessor(vault, review_log)
    options = settings.choice_options()
    skipped: Set[str] = set()
    reviewed_count = 0

    while limit is None or reviewed_count < limit:
        now = clock()
        note = _next_note(vault, settings, now, tag, skipped)
        if note is None:
            break

        reviewed_count += 1
        console.rule(f"[bold]Note {reviewed_count}: {note.path}[/bold]")
        start_time = time.time()
        _display_note(note)
        choices = get_repeat_choices(note.repetition, now, options)
        choice = _get_user_choice(choices)
        duration_ms = int((time.time() - start_time) * 1000)

        try:
            next_repetition = processor.apply_choice(
                note, choice, reviewed_at=now, duration_ms=duration_ms
            )
        except (RepeatcoreError, OSError) as e:
            logger.error(f"Failed to apply choice for {note.path}: {e}")
            console.print(
                "[bold red]Error saving review. Note will be reviewed again later.[/bold red]"
            )
            skipped.add(note.path)
            continue

        if choice.action == ChoiceAction.DISMISS:
            console.print("[dim]Dismissed.[/dim]")
            skipped.add(note.path)
        elif next_repetition is not None:
            console.print(
                f"[green]Reviewed.[/green] Next due in [bold]{summarize_due_at(next_repetition.due_at, now)}[/bold]."
            )
        else:
            console.print("[green]Repetition disabled.[/green]")
        console.print("")

    if reviewed_count == 0:
        console.print("[bold yellow]No notes are due for review.[/bold yellow]")
    console.print("[bold cyan]Review session finished. Well done![/bold cyan]")
    return reviewed_count
