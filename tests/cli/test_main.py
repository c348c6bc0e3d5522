# Standard library imports
import re
from datetime import datetime, timezone

# Third-party imports
import pytest
from typer.testing import CliRunner

# Local application imports
from repeatcore.cli.main import app
from repeatcore.db import ReviewLogDatabase
from repeatcore.frontmatter import split_frontmatter
from repeatcore.models import CardState, Rating, RevlogEntry


runner = CliRunner()

OLD = datetime(2024, 1, 1, tzinfo=timezone.utc)


def normalize_output(text: str) -> str:
    """Strip ANSI escape sequences and collapse whitespace."""
    text = re.sub(r"\x1B(?:[@-Z\\-_]|\[[0-?]*[ -/]*[@-~])", "", text)
    return re.sub(r"\s+", " ", text).strip()


def has_row(output: str, label: str, value: str) -> bool:
    """True when a table row pairs ``label`` with ``value``, whatever the border style."""
    return re.search(rf"{re.escape(label)}[\s│|]+{re.escape(value)}", output) is not None


@pytest.fixture
def cli_vault(vault, write_note):
    write_note(
        "daily.md",
        "---\nrepeat: daily\ndue_at: 2024-01-09T06:00:00+00:00\ntags: [habit]\n---\nStretch.\n",
    )
    write_note("cards/capital.md", "---\nrepeat: fsrs\n---\nCapital of France?\n", modified=OLD)
    write_note(
        "future.md",
        "---\nrepeat: yearly\ndue_at: 2999-01-01T06:00:00+00:00\n---\nLater.\n",
    )
    return vault


def test_missing_vault_exits():
    result = runner.invoke(app, ["due"])
    assert result.exit_code == 1
    assert "--vault is required" in normalize_output(result.stdout)


def test_vault_must_be_a_directory(tmp_path):
    not_a_dir = tmp_path / "note.md"
    not_a_dir.write_text("x")
    result = runner.invoke(app, ["due", "--vault", str(not_a_dir)])
    assert result.exit_code == 1
    assert "is not a directory" in normalize_output(result.stdout)


def test_vault_from_environment(cli_vault, monkeypatch):
    monkeypatch.setenv("REPEATCORE_VAULT_PATH", str(cli_vault))
    result = runner.invoke(app, ["due"])
    assert result.exit_code == 0, result.stdout
    assert "daily.md" in normalize_output(result.stdout)


def test_due_lists_due_notes(cli_vault):
    result = runner.invoke(app, ["due", "--vault", str(cli_vault)])
    assert result.exit_code == 0, result.stdout
    output = normalize_output(result.stdout)
    assert "Due Notes (2)" in output
    assert "daily.md" in output
    assert "cards/capital.md" in output
    assert "future.md" not in output


def test_due_with_tag(cli_vault):
    result = runner.invoke(app, ["due", "--vault", str(cli_vault), "--tag", "habit"])
    output = normalize_output(result.stdout)
    assert "Due Notes (1)" in output
    assert "cards/capital.md" not in output


def test_due_nothing(vault):
    result = runner.invoke(app, ["due", "--vault", str(vault)])
    assert result.exit_code == 0
    assert "No notes are due." in result.stdout


def test_preview_shows_choices(cli_vault):
    result = runner.invoke(app, ["preview", "cards/capital.md", "--vault", str(cli_vault)])
    assert result.exit_code == 0, result.stdout
    output = normalize_output(result.stdout)
    assert "5 minutes (skip)" in output
    assert "Again (10 min)" in output
    assert "Good (2 days)" in output
    # Preview never writes.
    assert (cli_vault / "cards/capital.md").read_text() == "---\nrepeat: fsrs\n---\nCapital of France?\n"


def test_preview_note_without_repetition(vault, write_note):
    write_note("plain.md", "Just text.\n")
    result = runner.invoke(app, ["preview", "plain.md", "--vault", str(vault)])
    assert result.exit_code == 0
    assert "has no repetition" in normalize_output(result.stdout)


def test_preview_missing_note(vault):
    result = runner.invoke(app, ["preview", "missing.md", "--vault", str(vault)])
    assert result.exit_code == 1
    assert "Could not read note" in normalize_output(result.stdout)


def test_review_periodic_note(cli_vault, tmp_path):
    db_path = tmp_path / "revlog.duckdb"
    result = runner.invoke(
        app,
        ["review", "--vault", str(cli_vault), "--db", str(db_path), "--tag", "habit"],
        input="2\n",
    )
    assert result.exit_code == 0, result.stdout
    output = normalize_output(result.stdout)
    assert "Reviewed." in output
    assert "Review session finished" in output

    frontmatter, body = split_frontmatter((cli_vault / "daily.md").read_text())
    assert frontmatter["repeat"] == "daily"
    assert str(frontmatter["due_at"]) > "2024-01-09"
    assert body == "Stretch.\n"

    with ReviewLogDatabase(db_path) as review_log:
        assert review_log.count_entries() == 0


def test_review_adaptive_note_is_logged(cli_vault, tmp_path):
    db_path = tmp_path / "revlog.duckdb"
    result = runner.invoke(
        app,
        ["review", "--vault", str(cli_vault), "--db", str(db_path), "--limit", "1"],
        input="4\n",
    )
    assert result.exit_code == 0, result.stdout

    # Authored notes are ordered by due time; the adaptive card is older.
    frontmatter, _ = split_frontmatter((cli_vault / "cards/capital.md").read_text())
    assert frontmatter["fsrs_stability"] == pytest.approx(2.4)
    assert frontmatter["fsrs_reps"] == 1

    with ReviewLogDatabase(db_path, read_only=True) as review_log:
        (entry,) = review_log.get_entries()
    assert entry.note_id == "cards/capital.md"
    assert entry.rating == Rating.Good


def test_review_invalid_input_reprompts(cli_vault, tmp_path):
    result = runner.invoke(
        app,
        ["review", "--vault", str(cli_vault), "--db", str(tmp_path / "log.duckdb"),
         "--tag", "habit"],
        input="abc\n9\n1\n",
    )
    assert result.exit_code == 0, result.stdout
    output = normalize_output(result.stdout)
    assert "Invalid input. Please enter a number." in output
    assert "Invalid choice." in output


def test_review_nothing_due(vault, tmp_path):
    result = runner.invoke(
        app, ["review", "--vault", str(vault), "--db", str(tmp_path / "log.duckdb")]
    )
    assert result.exit_code == 0
    assert "No notes are due for review." in normalize_output(result.stdout)


def test_stats_without_review_log(cli_vault):
    result = runner.invoke(app, ["stats", "--vault", str(cli_vault)])
    assert result.exit_code == 0, result.stdout
    output = normalize_output(result.stdout)
    assert has_row(output, "Due now", "2")
    assert has_row(output, "Retention", "0.0%")


def test_stats_with_review_log(cli_vault, tmp_path):
    db_path = tmp_path / "revlog.duckdb"
    with ReviewLogDatabase(db_path) as review_log:
        for rating in (Rating.Good, Rating.Again):
            review_log.append_entry(
                RevlogEntry(note_id="cards/capital.md", review_ts=OLD, rating=rating,
                            state=CardState.Review)
            )
    result = runner.invoke(app, ["stats", "--vault", str(cli_vault), "--db", str(db_path)])
    assert result.exit_code == 0, result.stdout
    output = normalize_output(result.stdout)
    assert has_row(output, "Total reviews", "2")
    assert has_row(output, "Retention", "50.0%")


def test_tags(cli_vault):
    result = runner.invoke(app, ["tags", "--vault", str(cli_vault)])
    assert result.exit_code == 0
    assert has_row(normalize_output(result.stdout), "#habit", "1")


def test_export_log(tmp_path):
    db_path = tmp_path / "revlog.duckdb"
    with ReviewLogDatabase(db_path) as review_log:
        review_log.append_entry(
            RevlogEntry(note_id="a.md", review_ts=OLD, rating=Rating.Hard, state=CardState.Review)
        )
    output_path = tmp_path / "out.csv"
    result = runner.invoke(app, ["export-log", "--db", str(db_path), "-o", str(output_path)])
    assert result.exit_code == 0, result.stdout
    assert "Exported 1 reviews" in normalize_output(result.stdout)
    assert output_path.read_text().splitlines()[1] == "a.md,1704067200000,2,2,0"


def test_export_log_missing_database(tmp_path):
    result = runner.invoke(
        app, ["export-log", "--db", str(tmp_path / "none.duckdb"), "-o", str(tmp_path / "o.csv")]
    )
    assert result.exit_code == 1
    assert "does not exist" in normalize_output(result.stdout)
