"""
Pydantic models for the data crossing the import pipeline boundary.

NormalizedCard / ReviewEvent are what source adapters produce;
CanonicalItem is what the resolution service returns;
ImportResult is what import_reviews() reports back.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from review_import.fsrs.constants import ControlAction, Rating


class ItemType(str, Enum):
    """Kind of canonical study item."""
    VOCABULARY = "vocabulary"
    KANJI = "kanji"
    RADICAL = "radical"


class PracticeMode(str, Enum):
    """How an item is practiced."""
    READINGS = "readings"
    KANA = "kana"


# ---- Adapter output ----

class ReviewEvent(BaseModel):
    """One review from an external history (or replayed from a stored log)."""
    model_config = ConfigDict(frozen=True)

    timestamp: datetime = Field(..., description="Review time, UTC")
    grade: Union[str, Rating, ControlAction] = Field(..., description="External grade or an already-mapped value")
    source: str = ""

    @field_validator("timestamp")
    @classmethod
    def timestamp_as_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


class NormalizedCard(BaseModel):
    """A vendor card reduced to a search term and its review history."""
    search_term: str = Field(..., min_length=1)
    reviews: List[ReviewEvent] = Field(default_factory=list)
    source: str = Field(..., min_length=1)
    card_type: Optional[str] = Field(None, description="Per-source-type grouping; defaults to source")

    @field_validator("search_term")
    @classmethod
    def search_term_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("search_term must not be blank")
        return value

    @property
    def group(self) -> str:
        return self.card_type or self.source


# ---- Resolution ----

class CanonicalItem(BaseModel):
    """A study item in the local catalog."""
    model_config = ConfigDict(frozen=True)

    key: str
    type: ItemType


# ---- Results ----

class SourceTypeStats(BaseModel):
    """Counters for one source-type group."""
    cards: int = 0
    processed: int = 0
    skipped: int = 0
    duplicates_removed: int = 0
    failed: int = 0
    duration_ms: int = 0


class ImportResult(BaseModel):
    """Outcome of a completed import run."""
    success: bool
    message: str
    processed_count: int = 0
    duplicates_removed: int = 0
    skipped_count: int = 0
    failed_count: int = 0
    duration_ms: int = 0
    by_source_type: Dict[str, SourceTypeStats] = Field(default_factory=dict)
