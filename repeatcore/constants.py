"""
Scheduling constants.

This module contains the static defaults of the memory model and the fixed
steps and labels used when building review choices.
No runtime configuration or path defaults - pure constants only.
"""
from typing import Tuple

# Default memory-model weights ('w').
# Indices 0-3 seed stability per first rating, 4-5 seed difficulty,
# 6-7 drive difficulty mean reversion, 8-10 growth on success,
# 11-14 stability after a lapse, 15-16 hard/easy multipliers and
# 17-18 the same-day stability adjustment.
DEFAULT_WEIGHTS: Tuple[float, ...] = (
    0.4,   # w[0]
    0.6,   # w[1]
    2.4,   # w[2]
    5.8,   # w[3]
    4.93,  # w[4]
    0.94,  # w[5]
    0.86,  # w[6]
    0.01,  # w[7]
    1.49,  # w[8]
    0.14,  # w[9]
    0.94,  # w[10]
    2.18,  # w[11]
    0.05,  # w[12]
    0.34,  # w[13]
    1.26,  # w[14]
    0.29,  # w[15]
    2.61,  # w[16]
    0.09,  # w[17]
    0.03,  # w[18]
)

WEIGHT_COUNT: int = 19

# Default target probability of recall at the scheduled review.
DEFAULT_TARGET_RETENTION: float = 0.9

# Upper bound on any interval produced by the memory model, in days.
DEFAULT_MAX_INTERVAL_DAYS: int = 36500

# Power-law forgetting curve constants: R = (1 + FACTOR * t / S) ^ DECAY
FORGETTING_CURVE_FACTOR: float = 19 / 81
FORGETTING_CURVE_DECAY: float = -0.5

# Fixed steps used by the choice generator.
SKIP_PERIOD_MINUTES: int = 5
RELEARNING_STEP_MINUTES: int = 10
SPACED_MULTIPLIERS: Tuple[float, ...] = (0.5, 1.0, 1.5, 2.0)
SPACED_SNAP_THRESHOLD_DAYS: int = 7

# Approximate lengths used when a month or year must be measured as a duration.
DAYS_PER_MONTH: int = 30
DAYS_PER_YEAR: int = 365

DISMISS_BUTTON_TEXT: str = "Dismiss"
NEVER_BUTTON_TEXT: str = "Never"
SKIP_BUTTON_TEXT: str = f"{SKIP_PERIOD_MINUTES} minutes (skip)"

DEFAULT_MORNING_REVIEW_TIME: str = "06:00"
DEFAULT_EVENING_REVIEW_TIME: str = "18:00"
DEFAULT_REPEAT_PHRASE: str = "spaced every day"
