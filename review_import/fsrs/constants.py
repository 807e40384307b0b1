"""
FSRS Constants and Parameters

All configurable parameters for the scheduling model in one place,
plus the rating / control-action vocabulary shared by the import pipeline.
"""

from enum import Enum, IntEnum


# ---- Ratings ----

class Rating(IntEnum):
    """Recall outcome fed to the scheduler."""
    AGAIN = 1   # Retrieval failed
    HARD = 2    # Retrieved with high effort
    GOOD = 3    # Retrieved normally
    EASY = 4    # Retrieved fluently


class ControlAction(Enum):
    """
    Non-rating outcomes of an imported review.

    These never reach the scheduler's rating path.
    """
    IGNORE = "ignore"              # No-op
    FORGET = "forget"              # Reset the card to New
    NEVER_FORGET = "never-forget"  # Retire the card permanently


class SchedulingState(IntEnum):
    """Lifecycle state of a card."""
    NEW = 0
    LEARNING = 1
    REVIEW = 2
    RELEARNING = 3


# ---- Global Constants ----

DEFAULT_REQUEST_RETENTION = 0.80  # Retrievability at which a card becomes due
S_MIN = 0.5      # Minimum stability (days)
D_MIN = 1.0      # Minimum difficulty
D_MAX = 10.0     # Maximum difficulty
D_INIT = 5.0     # Difficulty of a card on its first review

MAXIMUM_INTERVAL_DAYS = 36500  # Cap on scheduled interval
GRADUATION_THRESHOLD_DAYS = 1.0  # Learning cards move to Review at this interval
NEVER_FORGET_YEARS = 10  # How far a retired card's due date is pushed


# ---- Learning Parameters ----

K = 1.2          # Stability learning rate
K_FAIL = 0.6     # Stability penalty rate on failure
ALPHA = 0.15     # Difficulty penalty factor (higher = slower learning for hard cards)
ETA = 0.8        # Difficulty adaptation rate (higher = faster difficulty changes)


# ---- Base Learning Gain by Rating ----
# Multiplier for stability increase on successful retrieval

BASE_GAIN = {
    Rating.HARD: 0.5,
    Rating.GOOD: 1.0,
    Rating.EASY: 1.8,
}


# ---- Difficulty Update Direction by Rating ----

U_RATING = {
    Rating.AGAIN: +1.0,
    Rating.HARD: +0.35,
    Rating.GOOD: -0.20,
    Rating.EASY: -0.60,
}
