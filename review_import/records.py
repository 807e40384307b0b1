"""
Records exchanged with the persistent store.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

from review_import.fsrs.memory_state import CardState, SimulationLog
from review_import.schemas import ItemType, PracticeMode


@dataclass(frozen=True)
class UpsertRecord:
    """Final state of one (key, type) item, ready to be written."""
    key: str
    type: ItemType
    card: CardState
    mode: PracticeMode
    logs: List[SimulationLog] = field(default_factory=list)
    lesson_id: Optional[str] = None
    source: str = ""


@dataclass(frozen=True)
class ExistingCard:
    """A card already stored for the user."""
    key: str
    type: ItemType
    card: CardState
    logs: List[SimulationLog] = field(default_factory=list)
    mode: Optional[PracticeMode] = None
