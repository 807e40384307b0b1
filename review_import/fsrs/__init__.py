"""
FSRS - Scheduling capability used to replay imported review histories

This package implements:
- Exponential forgetting curve: R = exp(-Δt/S)
- Interpretable memory state (Stability, Difficulty, Retrievability)
- Card lifecycle New -> Learning -> Review <-> Relearning
- A SQLAlchemy card store (review_import.fsrs.database)

Quick start:
    from review_import import fsrs

    scheduler = fsrs.FsrsScheduler(desired_retention=0.8)
    card = fsrs.create_empty_card(now)
    card, log = scheduler.next(card, now, fsrs.Rating.GOOD)
    card, log = scheduler.forget(card, later)

The store lives in its own module so the algorithm can be imported
without a database driver:

    from review_import.fsrs.database import SqlCardStore, init_db
"""

# Scheduling capability
from review_import.fsrs.scheduler import FsrsScheduler, SchedulingCapability

# Constants and parameters
from review_import.fsrs.constants import (
    Rating,
    ControlAction,
    SchedulingState,
    DEFAULT_REQUEST_RETENTION,
    NEVER_FORGET_YEARS,
    S_MIN,
    D_MIN,
    D_MAX,
    D_INIT,
)

# Memory state
from review_import.fsrs.memory_state import (
    CardState,
    SimulationLog,
    calculate_retrievability,
    create_empty_card,
    days_between,
    ensure_utc,
)


__all__ = [
    # Scheduler
    "FsrsScheduler",
    "SchedulingCapability",

    # Enums
    "Rating",
    "ControlAction",
    "SchedulingState",

    # Memory state
    "CardState",
    "SimulationLog",
    "calculate_retrievability",
    "create_empty_card",
    "days_between",
    "ensure_utc",

    # Parameters
    "DEFAULT_REQUEST_RETENTION",
    "NEVER_FORGET_YEARS",
    "S_MIN",
    "D_MIN",
    "D_MAX",
    "D_INIT",
]
