"""
Centralized configuration management for repeatcore.
"""
from datetime import time
from pathlib import Path
from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .constants import (
    DEFAULT_EVENING_REVIEW_TIME,
    DEFAULT_MAX_INTERVAL_DAYS,
    DEFAULT_MORNING_REVIEW_TIME,
    DEFAULT_REPEAT_PHRASE,
    DEFAULT_TARGET_RETENTION,
    DEFAULT_WEIGHTS,
)
from .models import MemoryParameters, TimeOfDay
from .timeutils import parse_time

DEFAULT_DB_DIRNAME = ".repeatcore"
DEFAULT_DB_FILENAME = "revlog.duckdb"


class ReviewTimes(BaseModel):
    """Clock times that morning and evening repetitions snap to."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    morning: time = Field(
        default_factory=lambda: parse_time(DEFAULT_MORNING_REVIEW_TIME)
    )
    evening: time = Field(
        default_factory=lambda: parse_time(DEFAULT_EVENING_REVIEW_TIME)
    )

    @classmethod
    def from_strings(cls, morning: str, evening: str) -> "ReviewTimes":
        return cls(morning=parse_time(morning), evening=parse_time(evening))

    def for_time_of_day(self, time_of_day: TimeOfDay) -> time:
        return self.morning if time_of_day == TimeOfDay.AM else self.evening


class ChoiceOptions(BaseModel):
    """Everything the choice generator needs besides the record and the time."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    review_times: ReviewTimes = Field(default_factory=ReviewTimes)
    parameters: MemoryParameters = Field(default_factory=MemoryParameters)
    enqueue_non_repeating_notes: bool = False


class Settings(BaseSettings):
    """
    Defines application settings, loaded from environment variables or .env files.
    """

    model_config = SettingsConfigDict(
        env_prefix="REPEATCORE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # --- Core Paths ---
    # Directory of markdown notes. Overridden by REPEATCORE_VAULT_PATH.
    vault_path: Optional[Path] = None

    # Review log database. Defaults to <vault>/.repeatcore/revlog.duckdb.
    db_path: Optional[Path] = None

    # Notes under this vault-relative folder are never offered for review.
    ignore_folder_path: str = ""

    # --- Review Configuration ---
    morning_review_time: str = DEFAULT_MORNING_REVIEW_TIME
    evening_review_time: str = DEFAULT_EVENING_REVIEW_TIME

    # When True, notes without a repeat field are queued with default_repeat.
    enqueue_non_repeating_notes: bool = False
    default_repeat: str = DEFAULT_REPEAT_PHRASE

    # --- Memory Model ---
    target_retention: float = Field(
        default=DEFAULT_TARGET_RETENTION, gt=0, lt=1
    )
    max_interval_days: int = Field(default=DEFAULT_MAX_INTERVAL_DAYS, gt=0)
    weights: Optional[Tuple[float, ...]] = None

    @field_validator("morning_review_time", "evening_review_time")
    @classmethod
    def check_review_time(cls, value: str) -> str:
        parse_time(value)
        return value.strip()

    def resolved_db_path(self) -> Optional[Path]:
        """The configured database path, or the default inside the vault."""
        if self.db_path is not None:
            return self.db_path
        if self.vault_path is not None:
            return self.vault_path / DEFAULT_DB_DIRNAME / DEFAULT_DB_FILENAME
        return None

    def review_times(self) -> ReviewTimes:
        return ReviewTimes.from_strings(
            self.morning_review_time, self.evening_review_time
        )

    def memory_parameters(self) -> MemoryParameters:
        """
        Build validated memory parameters from the settings.

        Raises:
            pydantic.ValidationError: If the weights or retention are invalid.
        """
        return MemoryParameters(
            target_retention=self.target_retention,
            max_interval_days=self.max_interval_days,
            w=tuple(self.weights) if self.weights else DEFAULT_WEIGHTS,
        )

    def choice_options(self) -> ChoiceOptions:
        return ChoiceOptions(
            review_times=self.review_times(),
            parameters=self.memory_parameters(),
            enqueue_non_repeating_notes=self.enqueue_non_repeating_notes,
        )
