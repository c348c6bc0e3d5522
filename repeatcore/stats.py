"""
Review statistics over a vault and its review log.
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from .config import Settings
from .db.database import ReviewLogDatabase
from .queries import get_notes_due
from .timeutils import start_of_day

logger = logging.getLogger(__name__)


class ReviewStats(BaseModel):
    model_config = ConfigDict(frozen=True)

    due_now: int = Field(default=0, ge=0)
    reviews_today: int = Field(default=0, ge=0)
    total_reviews: int = Field(default=0, ge=0)
    retention_rate: float = Field(
        default=0.0,
        ge=0,
        le=100,
        description="Percentage of logged reviews rated Hard or better.",
    )


def retention_rate(passes: int, fails: int) -> float:
    total = passes + fails
    if total == 0:
        return 0.0
    return passes / total * 100


def compute_stats(
    vault: Path,
    review_log: Optional[ReviewLogDatabase],
    settings: Settings,
    now: datetime,
) -> ReviewStats:
    """
    Count due notes and summarize the review log. Reviews since local
    midnight of ``now`` count as today's.
    """
    due_now = len(get_notes_due(vault, settings, now))
    if review_log is None:
        logger.debug("No review log; reporting due notes only.")
        return ReviewStats(due_now=due_now)

    counts = review_log.get_review_stats(start_of_day(now))
    return ReviewStats(
        due_now=due_now,
        reviews_today=counts["reviews_today"],
        total_reviews=counts["total_reviews"],
        retention_rate=retention_rate(counts["passes"], counts["fails"]),
    )
