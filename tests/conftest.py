import os
import sys
import logging
import pytest
from pathlib import Path
from typing import Callable, Generator, Optional
from datetime import datetime, timezone

from repeatcore.config import ChoiceOptions, ReviewTimes, Settings
from repeatcore.db import ReviewLogDatabase
from repeatcore.models import (
    CardState,
    PeriodUnit,
    Rating,
    Repetition,
    RevlogEntry,
    Strategy,
    TimeOfDay,
)

UTC = timezone.utc


# each test runs on cwd to its temp dir
@pytest.fixture(autouse=True)
def go_to_tmpdir(request):
    """
    Run each test from its own tmpdir so no stray .env file or review log in
    the repository leaks into the test.
    """
    tmpdir = request.getfixturevalue("tmpdir")
    sys.path.insert(0, str(tmpdir))
    with tmpdir.as_cwd():
        yield


@pytest.fixture(autouse=True)
def clean_repeatcore_env(monkeypatch):
    """Remove REPEATCORE_* variables so Settings() only sees test input."""
    for key in list(os.environ):
        if key.startswith("REPEATCORE_"):
            monkeypatch.delenv(key, raising=False)


# --- Reference times ---
@pytest.fixture
def now() -> datetime:
    """Wednesday 2024-01-10 12:00 UTC."""
    return datetime(2024, 1, 10, 12, 0, tzinfo=UTC)


@pytest.fixture
def review_times() -> ReviewTimes:
    return ReviewTimes()


@pytest.fixture
def options() -> ChoiceOptions:
    return ChoiceOptions()


@pytest.fixture
def make_repetition() -> Callable[..., Repetition]:
    """Factory for repetition records with daily-morning defaults."""

    def _make(
        due_at: datetime,
        strategy: Strategy = Strategy.PERIODIC,
        period: int = 1,
        period_unit: PeriodUnit = PeriodUnit.DAY,
        time_of_day: TimeOfDay = TimeOfDay.AM,
        **kwargs,
    ) -> Repetition:
        return Repetition(
            strategy=strategy,
            period=period,
            period_unit=period_unit,
            time_of_day=time_of_day,
            due_at=due_at,
            **kwargs,
        )

    return _make


# --- Vault Fixtures ---
@pytest.fixture
def vault(tmp_path: Path) -> Path:
    path = tmp_path / "vault"
    path.mkdir()
    return path


@pytest.fixture
def write_note(vault: Path) -> Callable[..., Path]:
    """
    Write a markdown note into the vault. ``modified`` sets the file's
    modification time, which stands in for its creation time.
    """

    def _write(
        relative: str, content: str, modified: Optional[datetime] = None
    ) -> Path:
        path = vault / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        if modified is not None:
            ts = modified.timestamp()
            os.utime(path, (ts, ts))
        return path

    return _write


@pytest.fixture
def settings(vault: Path) -> Settings:
    return Settings(vault_path=vault)


# --- Database Fixtures ---
@pytest.fixture
def db_path_memory() -> str:
    return ":memory:"


@pytest.fixture
def db_path_file(tmp_path: Path) -> Path:
    return tmp_path / "revlog.duckdb"


@pytest.fixture(params=["memory", "file"])
def review_log(
    request, db_path_memory: str, db_path_file: Path
) -> Generator[ReviewLogDatabase, None, None]:
    """An initialized review log, either in-memory or file-backed."""
    if request.param == "memory":
        log = ReviewLogDatabase(db_path_memory)
    else:
        log = ReviewLogDatabase(db_path_file)
    try:
        log.initialize_schema()
        yield log
    finally:
        log.close_connection()
        if request.param == "file" and db_path_file.exists():
            try:
                db_path_file.unlink()
            except OSError as e:
                logging.warning(
                    f"Error removing temporary DB file in test fixture teardown: {e}"
                )


@pytest.fixture
def sample_entry(now: datetime) -> RevlogEntry:
    return RevlogEntry(
        note_id="notes/alpha.md",
        review_ts=now,
        rating=Rating.Good,
        state=CardState.Review,
        duration_ms=1500,
    )
