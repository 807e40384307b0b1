"""
Exceptions raised by the review import pipeline.

Only ImportInputError and ImportFailedError escape import_reviews();
the others are caught and handled at the stage that owns them.
"""

from __future__ import annotations

from typing import Optional, Sequence


class ReviewImportError(Exception):
    """Base class for pipeline errors."""


class ImportInputError(ReviewImportError):
    """Malformed import input, raised before any processing starts."""


class ResolutionError(ReviewImportError):
    """A lookup against the item resolution service failed."""


class SimulationError(ReviewImportError):
    """
    The scheduler failed while replaying one card's history.

    Attributes:
        card_id: Identifier of the card being replayed, if known
        last_card: Last fully-applied CardState
        logs: Logs of the transitions applied before the failure
    """

    def __init__(
        self,
        message: str,
        card_id: Optional[str] = None,
        last_card=None,
        logs: Sequence = (),
    ):
        super().__init__(message)
        self.card_id = card_id
        self.last_card = last_card
        self.logs = list(logs)


class PersistenceError(ReviewImportError):
    """The persistent store rejected a read or write."""


class ImportFailedError(ReviewImportError):
    """Terminal failure of an import run, naming the stage that failed."""

    def __init__(self, stage: str, message: str):
        super().__init__(f"Import failed during {stage}: {message}")
        self.stage = stage
