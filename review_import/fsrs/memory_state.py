"""
Memory State - Card State, Simulation Log and Retrievability

Defines the immutable memory state of a card and the derived quantities
the scheduler works with.

Key concepts:
- Stability (S): How slowly memory decays (in days, +inf for retired cards)
- Difficulty (D): How hard the card is to learn (1-10 scale, 0 for new cards)
- Retrievability (R): Probability of successful recall at time t

Every update produces a new CardState; instances are never mutated.
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Union
import math

from review_import.fsrs.constants import ControlAction, Rating, SchedulingState


@dataclass(frozen=True)
class CardState:
    """Scheduling state for a single card."""
    stability: float
    difficulty: float
    due: datetime
    last_review: Optional[datetime]
    state: SchedulingState = SchedulingState.NEW
    reps: int = 0
    lapses: int = 0


@dataclass(frozen=True)
class SimulationLog:
    """
    Record of one applied transition.

    `rating` is a ControlAction for forget transitions replayed from history.
    """
    previous_state: SchedulingState
    new_state: SchedulingState
    rating: Union[Rating, ControlAction]
    timestamp: datetime
    stability: float = 0.0
    difficulty: float = 0.0
    scheduled_days: float = 0.0


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def create_empty_card(now: datetime) -> CardState:
    """
    Create a never-reviewed card, due immediately.

    Args:
        now: Creation time; becomes the card's due date

    Returns:
        New CardState in the NEW state
    """
    return CardState(
        stability=0.0,
        difficulty=0.0,
        due=ensure_utc(now),
        last_review=None,
        state=SchedulingState.NEW,
    )


def days_between(start: Optional[datetime], end: datetime) -> float:
    """Fractional days from start to end (0 when start is unknown or later)."""
    if start is None:
        return 0.0
    delta = ensure_utc(end) - ensure_utc(start)
    return max(0.0, delta.total_seconds() / 86400.0)


def calculate_retrievability(stability: float, elapsed_days: float) -> float:
    """
    Calculate retrievability using exponential decay.

    Formula: R = exp(-Δt / S)

    Args:
        stability: Current stability in days
        elapsed_days: Time since last review in days

    Returns:
        Retrievability between 0 and 1
    """
    if elapsed_days <= 0 or math.isinf(stability):
        return 1.0
    if stability <= 0:
        return 0.0

    return math.exp(-elapsed_days / stability)
