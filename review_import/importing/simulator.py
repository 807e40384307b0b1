"""
Review Simulator - Replay a review history through the scheduler

Turns an ordered list of ReviewEvents into a final CardState plus the
transition logs the scheduler produced along the way.

Main workflow:
1. Start from a fresh card created at the first event's timestamp
2. Map each event's grade (see grades.map_grade)
3. IGNORE      -> skip
   FORGET      -> scheduler.forget()
   NEVER_FORGET-> retire the card and stop
   Rating      -> scheduler.next()
4. Return the final card and logs

A failed transition aborts the replay with a SimulationError that carries
the last fully-applied card; a transition is never half applied.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field, replace
from datetime import MAXYEAR, datetime
from typing import List, Optional, Sequence

from review_import.errors import SimulationError
from review_import.fsrs.constants import ControlAction, NEVER_FORGET_YEARS, SchedulingState
from review_import.fsrs.memory_state import CardState, SimulationLog, create_empty_card
from review_import.fsrs.scheduler import SchedulingCapability
from review_import.importing.grades import map_grade
from review_import.schemas import ReviewEvent

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SimulationResult:
    """Final card plus the logs of every applied transition."""
    final_card: CardState
    logs: List[SimulationLog] = field(default_factory=list)


def add_years(moment: datetime, years: int) -> datetime:
    """
    Same calendar date `years` later.

    Feb 29 falls back to Feb 28. Dates past year 9999 clamp to datetime.max.
    """
    if moment.year + years > MAXYEAR:
        return datetime.max.replace(tzinfo=moment.tzinfo)
    try:
        return moment.replace(year=moment.year + years)
    except ValueError:
        return moment.replace(year=moment.year + years, day=28)


def retire_card(card: CardState, now: datetime) -> CardState:
    """Mark a card as permanently known."""
    return replace(
        card,
        state=SchedulingState.REVIEW,
        due=add_years(now, NEVER_FORGET_YEARS),
        stability=math.inf,
        last_review=now,
    )


def simulate_reviews(
    initial_card: CardState,
    events: Sequence[ReviewEvent],
    scheduler: SchedulingCapability,
    card_id: Optional[str] = None,
) -> SimulationResult:
    """
    Replay events through the scheduler.

    With no events the initial card is returned unchanged. Otherwise the
    replay starts from a fresh card dated at the first event, so the
    caller's initial card only matters for empty histories.

    Args:
        initial_card: Card returned when there is nothing to replay
        events: Reviews in non-decreasing timestamp order
        scheduler: Scheduling capability to apply ratings and resets
        card_id: Identifier used in log messages and errors

    Returns:
        SimulationResult with the final card and logs

    Raises:
        SimulationError: a transition failed on one of the events
    """
    if not events:
        return SimulationResult(final_card=initial_card, logs=[])

    card = create_empty_card(events[0].timestamp)
    logs: List[SimulationLog] = []

    for index, event in enumerate(events):
        action = map_grade(event.grade)
        now = event.timestamp

        if action is ControlAction.IGNORE:
            continue

        try:
            if action is ControlAction.NEVER_FORGET:
                card_next, log = retire_card(card, now), None
            elif action is ControlAction.FORGET:
                card_next, log = scheduler.forget(card, now, reset_count=False)
            else:
                card_next, log = scheduler.next(card, now, action)
        except Exception as e:
            raise SimulationError(
                f"Transition failed on review {index} ({event.grade!r} at {now.isoformat()}) for {card_id}: {e}",
                card_id=card_id,
                last_card=card,
                logs=logs,
            ) from e

        card = card_next
        if log is not None:
            logs.append(log)

        if action is ControlAction.NEVER_FORGET:
            remaining = len(events) - index - 1
            if remaining:
                logger.debug(f"[Simulator] {card_id}: never-forget at {now.isoformat()}, {remaining} later reviews not replayed")
            break

    return SimulationResult(final_card=card, logs=logs)
