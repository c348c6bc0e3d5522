"""
Main CLI entry point for repeatcore.
"""

# Standard library imports
import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

# Third-party imports
import typer
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

# Local application imports
from repeatcore.choices import get_repeat_choices
from repeatcore.cli.review_ui import local_now, start_review_flow
from repeatcore.config import Settings
from repeatcore.db.database import ReviewLogDatabase
from repeatcore.exceptions import DatabaseError, RepeatcoreError
from repeatcore.models import ChoiceAction
from repeatcore.queries import get_notes_due, get_tags_from_due_notes, load_note
from repeatcore.serializers import serialize_repeat
from repeatcore.stats import compute_stats
from repeatcore.summaries import summarize_due_at
from repeatcore.timeutils import align_to

console = Console()

app = typer.Typer(
    name="repeatcore",
    help="Repeatcore: spaced repetition for markdown notes.",
    add_completion=False,
    rich_markup_mode="markdown",
)


@app.callback()
def _configure_logging(
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable debug logging."
    ),
):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


# ---------------------------------------------------------------------------
# Helpers for resolving settings, the vault and the review log
# ---------------------------------------------------------------------------

_vault_option = typer.Option(  # noqa: B008
    None,
    "--vault",
    help="Directory of markdown notes. Falls back to REPEATCORE_VAULT_PATH.",
)

_db_option = typer.Option(  # noqa: B008
    None,
    "--db",
    help="Path to the DuckDB review log. "
    "Defaults to <vault>/.repeatcore/revlog.duckdb.",
)

_tag_option = typer.Option(  # noqa: B008
    None, "--tag", help="Only include notes with this tag."
)


def _load_settings(
    vault: Optional[Path], db: Optional[Path] = None
) -> Settings:
    """Settings from the environment, overridden by CLI flags. Exits on errors."""
    try:
        settings = Settings()
    except ValidationError as e:
        console.print(f"[bold red]Invalid configuration:[/bold red] {e}")
        raise typer.Exit(code=1) from e

    updates = {}
    if vault is not None:
        updates["vault_path"] = vault
    if db is not None:
        updates["db_path"] = db
    if updates:
        settings = settings.model_copy(update=updates)

    if settings.vault_path is None:
        console.print(
            "[bold red]Error: --vault is required "
            "(or set the REPEATCORE_VAULT_PATH environment variable).[/bold red]"
        )
        raise typer.Exit(code=1)
    if not settings.vault_path.is_dir():
        console.print(
            f"[bold red]Error: vault {settings.vault_path} is not a directory.[/bold red]"
        )
        raise typer.Exit(code=1)
    return settings


def _format_due(due_at: datetime, now: datetime) -> str:
    due_at = align_to(due_at, now)
    return due_at.strftime("%Y-%m-%d %H:%M") + (
        " (overdue)" if due_at < now else ""
    )


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@app.command()
def due(
    vault: Optional[Path] = _vault_option,
    tag: Optional[str] = _tag_option,
):
    """
    List notes that are due for review.
    """
    settings = _load_settings(vault)
    now = local_now()
    notes = get_notes_due(settings.vault_path, settings, now, tag=tag)
    if not notes:
        console.print("[green]No notes are due.[/green]")
        return

    table = Table(title=f"Due Notes ({len(notes)})")
    table.add_column("Note", style="cyan", no_wrap=True)
    table.add_column("Repeat", style="magenta")
    table.add_column("Due", justify="right")
    table.add_column("Virtual", justify="center")
    for note in notes:
        repetition = note.repetition
        table.add_row(
            note.path,
            serialize_repeat(repetition),
            repetition.due_at.strftime("%Y-%m-%d %H:%M"),
            "yes" if repetition.virtual else "",
        )
    console.print(table)


@app.command()
def review(
    vault: Optional[Path] = _vault_option,
    db: Optional[Path] = _db_option,
    tag: Optional[str] = _tag_option,
    limit: Optional[int] = typer.Option(
        None, "--limit", min=1, help="Maximum number of notes to review."
    ),
):
    """
    Review due notes interactively, writing each chosen repetition back to the note.
    """
    settings = _load_settings(vault, db)
    try:
        with ReviewLogDatabase(settings.resolved_db_path()) as review_log:
            start_review_flow(
                settings.vault_path,
                settings,
                review_log=review_log,
                tag=tag,
                limit=limit,
            )
    except DatabaseError as e:
        console.print(f"[bold red]A review log error occurred: {e}[/bold red]")
        raise typer.Exit(code=1) from e


@app.command()
def preview(
    note_path: Path = typer.Argument(  # noqa: B008
        ..., help="Note to preview, relative to the vault."
    ),
    vault: Optional[Path] = _vault_option,
):
    """
    Show the repetition choices a note would offer right now, without changing it.
    """
    settings = _load_settings(vault)
    now = local_now()
    try:
        note = load_note(settings.vault_path, note_path, settings, now)
    except RepeatcoreError as e:
        console.print(f"[bold red]Error: {e}[/bold red]")
        raise typer.Exit(code=1) from e

    if note.repetition is None:
        console.print(f"[yellow]{note.path} has no repetition.[/yellow]")
        return

    console.print(
        f"[bold]{note.path}[/bold]: {serialize_repeat(note.repetition)}, "
        f"due {_format_due(note.repetition.due_at, now)}"
    )
    table = Table(title="Choices")
    table.add_column("#", justify="right")
    table.add_column("Choice", style="cyan")
    table.add_column("Next due")
    choices = get_repeat_choices(note.repetition, now, settings.choice_options())
    for index, choice in enumerate(choices, start=1):
        if choice.action == ChoiceAction.RECORD:
            next_due = summarize_due_at(choice.next_repetition.due_at, now)
        else:
            next_due = "-"
        table.add_row(str(index), choice.label, next_due)
    console.print(table)


@app.command()
def stats(
    vault: Optional[Path] = _vault_option,
    db: Optional[Path] = _db_option,
):
    """
    Show due notes and review log statistics.
    """
    settings = _load_settings(vault, db)
    now = local_now()
    db_path = settings.resolved_db_path()
    try:
        if db_path is not None and db_path.exists():
            with ReviewLogDatabase(db_path, read_only=True) as review_log:
                result = compute_stats(settings.vault_path, review_log, settings, now)
        else:
            result = compute_stats(settings.vault_path, None, settings, now)
    except DatabaseError as e:
        console.print(f"[bold red]A review log error occurred: {e}[/bold red]")
        raise typer.Exit(code=1) from e

    table = Table(title="Review Statistics")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Due now", str(result.due_now))
    table.add_row("Reviews today", str(result.reviews_today))
    table.add_row("Total reviews", str(result.total_reviews))
    table.add_row("Retention", f"{result.retention_rate:.1f}%")
    console.print(table)


@app.command()
def tags(vault: Optional[Path] = _vault_option):
    """
    Count the tags of due notes.
    """
    settings = _load_settings(vault)
    tag_stats = get_tags_from_due_notes(settings.vault_path, settings, local_now())
    if not tag_stats:
        console.print("[green]No tags on due notes.[/green]")
        return

    table = Table(title="Tags of Due Notes")
    table.add_column("Tag", style="magenta")
    table.add_column("Due", justify="right")
    for entry in tag_stats:
        table.add_row(entry.tag, str(entry.count))
    console.print(table)


@app.command("export-log")
def export_log(
    output: Path = typer.Option(  # noqa: B008
        ..., "--output", "-o", help="CSV file to write."
    ),
    vault: Optional[Path] = _vault_option,
    db: Optional[Path] = _db_option,
):
    """
    Export the review log as CSV.
    """
    if db is None:
        db = _load_settings(vault).resolved_db_path()
    if db is None or not db.exists():
        console.print(f"[bold red]Error: review log {db} does not exist.[/bold red]")
        raise typer.Exit(code=1)

    try:
        with ReviewLogDatabase(db, read_only=True) as review_log:
            count = review_log.export_csv(output)
    except (DatabaseError, IOError) as e:
        console.print(f"[bold red]An error occurred during export: {e}[/bold red]")
        raise typer.Exit(code=1) from e
    console.print(f"Exported [bold]{count}[/bold] reviews to [cyan]{output}[/cyan]")


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main():
    """
    Run the CLI application, reporting unexpected errors with exit code 1.
    """
    try:
        app()
    except Exception as e:
        console.print(f"[bold red]UNEXPECTED ERROR: {e}[/bold red]")
        raise SystemExit(1)


if __name__ == "__main__":
    main()
