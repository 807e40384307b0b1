"""
Source adapter interface.

An adapter turns one vendor's raw export into NormalizedCards. Grades are
passed through untouched; they are mapped during replay.
"""

from __future__ import annotations

from typing import Any, List, Protocol

from review_import.schemas import NormalizedCard


class SourceAdapter(Protocol):
    name: str

    def validate(self, raw: Any) -> bool:
        """True if raw has the shape this adapter understands."""
        ...

    def normalize(self, raw: Any) -> List[NormalizedCard]:
        ...

    def supported_card_types(self) -> List[str]:
        ...
