"""
Scheduler - Scheduling Capability

Pure scheduling and state transitions (no database calls).

The import pipeline only depends on the SchedulingCapability protocol:

    next(card, now, rating)            -> (card, log or None)
    forget(card, now, reset_count)     -> (card, log or None)

FsrsScheduler is the default implementation, built on the exponential
forgetting curve in memory_state and the update rules in memory_updates.

Main workflow of next():
1. Seed New cards, otherwise compute retrievability at review time
2. Apply stability / difficulty updates
3. Derive the interval at which R falls to the requested retention
4. Transition New -> Learning -> Review <-> Relearning
5. Return a new card and its SimulationLog (input card is untouched)
"""

from __future__ import annotations
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Optional, Protocol, Tuple
import math

from review_import.fsrs import memory_state, memory_updates
from review_import.fsrs.constants import (
    ControlAction,
    Rating,
    SchedulingState,
    DEFAULT_REQUEST_RETENTION,
    D_INIT,
    GRADUATION_THRESHOLD_DAYS,
    MAXIMUM_INTERVAL_DAYS,
    S_MIN,
)
from review_import.fsrs.memory_state import CardState, SimulationLog


Transition = Tuple[CardState, Optional[SimulationLog]]


class SchedulingCapability(Protocol):
    """Anything that can advance a card by a rating or reset it."""

    def next(self, card: CardState, now: datetime, rating: Rating) -> Transition:
        ...

    def forget(self, card: CardState, now: datetime, reset_count: bool = False) -> Transition:
        ...


class FsrsScheduler:
    """
    Default scheduling capability.

    Args:
        desired_retention: Retrievability at which a card becomes due (0 < r < 1)
        maximum_interval_days: Upper bound on any scheduled interval
    """

    def __init__(
        self,
        desired_retention: float = DEFAULT_REQUEST_RETENTION,
        maximum_interval_days: float = MAXIMUM_INTERVAL_DAYS,
    ):
        if not 0.0 < desired_retention < 1.0:
            raise ValueError(f"desired_retention must be in (0, 1), got {desired_retention}")
        if maximum_interval_days <= 0:
            raise ValueError("maximum_interval_days must be positive")
        self.desired_retention = desired_retention
        self.maximum_interval_days = maximum_interval_days

    def next_interval(self, stability: float) -> float:
        """Days until R = exp(-t/S) decays to the desired retention."""
        if math.isinf(stability):
            return float(self.maximum_interval_days)
        interval = -stability * math.log(self.desired_retention)
        return min(max(interval, 0.0), float(self.maximum_interval_days))

    def next(self, card: CardState, now: datetime, rating: Rating) -> Transition:
        """
        Advance a card by one rated review.

        Args:
            card: Current state (never modified)
            now: Review timestamp
            rating: AGAIN, HARD, GOOD or EASY

        Returns:
            Tuple of (new_card, log)
        """
        now = memory_state.ensure_utc(now)
        rating = Rating(rating)

        is_new_card = card.state == SchedulingState.NEW
        if is_new_card:
            stability = S_MIN
            difficulty = D_INIT
            retrievability = 1.0
        else:
            stability = card.stability if math.isinf(card.stability) else max(card.stability, S_MIN)
            difficulty = card.difficulty or D_INIT
            elapsed = memory_state.days_between(card.last_review, now)
            retrievability = memory_state.calculate_retrievability(stability, elapsed)

        if math.isinf(stability) and rating != Rating.AGAIN:
            new_stability = stability
            new_difficulty = memory_updates.update_difficulty(difficulty, retrievability, rating)
        else:
            new_stability, new_difficulty = memory_updates.apply_memory_update(
                stability=stability,
                difficulty=difficulty,
                retrievability=retrievability,
                rating=rating,
                is_new_card=is_new_card,
            )

        interval = self.next_interval(new_stability)
        new_state = _next_state(card.state, rating, interval)

        lapses = card.lapses
        if rating == Rating.AGAIN and card.state == SchedulingState.REVIEW:
            lapses += 1

        new_card = replace(
            card,
            stability=new_stability,
            difficulty=new_difficulty,
            due=now + timedelta(days=interval),
            last_review=now,
            state=new_state,
            reps=card.reps + 1,
            lapses=lapses,
        )
        log = SimulationLog(
            previous_state=card.state,
            new_state=new_state,
            rating=rating,
            timestamp=now,
            stability=new_stability,
            difficulty=new_difficulty,
            scheduled_days=interval,
        )
        return new_card, log

    def forget(self, card: CardState, now: datetime, reset_count: bool = False) -> Transition:
        """
        Reset a card to New, due immediately.

        Review and lapse counters survive unless reset_count is set.
        """
        now = memory_state.ensure_utc(now)
        new_card = replace(
            card,
            stability=0.0,
            difficulty=0.0,
            due=now,
            state=SchedulingState.NEW,
            reps=0 if reset_count else card.reps,
            lapses=0 if reset_count else card.lapses,
        )
        log = SimulationLog(
            previous_state=card.state,
            new_state=SchedulingState.NEW,
            rating=ControlAction.FORGET,
            timestamp=now,
        )
        return new_card, log


def _next_state(
    state: SchedulingState,
    rating: Rating,
    interval_days: float
) -> SchedulingState:
    """Lifecycle transition for a rated review."""
    if rating == Rating.AGAIN:
        if state in (SchedulingState.REVIEW, SchedulingState.RELEARNING):
            return SchedulingState.RELEARNING
        return SchedulingState.LEARNING

    if rating == Rating.EASY and state == SchedulingState.NEW:
        return SchedulingState.REVIEW

    if interval_days >= GRADUATION_THRESHOLD_DAYS:
        return SchedulingState.REVIEW

    if state == SchedulingState.NEW:
        return SchedulingState.LEARNING
    return state
