"""
jpdb.io export adapter.

A jpdb export is a JSON object with four card arrays:

    cards_vocabulary_jp_en, cards_vocabulary_en_jp   {vid, spelling, reading, reviews}
    cards_kanji_keyword_char, cards_kanji_char_keyword   {character, reviews}

Each review is {timestamp (unix seconds), grade, from_anki}.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, List, Optional

from pydantic import BaseModel, Field, ValidationError

from review_import.errors import ImportInputError
from review_import.schemas import NormalizedCard, ReviewEvent

logger = logging.getLogger(__name__)


VOCABULARY_ARRAYS = {
    "cards_vocabulary_jp_en": "vocabulary-jp-en",
    "cards_vocabulary_en_jp": "vocabulary-en-jp",
}
KANJI_ARRAYS = {
    "cards_kanji_keyword_char": "kanji-keyword-char",
    "cards_kanji_char_keyword": "kanji-char-keyword",
}


# ---- Raw export shapes ----

class JpdbReview(BaseModel):
    timestamp: int = Field(..., description="Unix timestamp in seconds")
    grade: str
    from_anki: bool = False


class JpdbVocabularyCard(BaseModel):
    vid: int
    spelling: Optional[str] = None
    reading: Optional[str] = None
    reviews: List[JpdbReview] = Field(default_factory=list)


class JpdbKanjiCard(BaseModel):
    character: Optional[str] = None
    reviews: List[JpdbReview] = Field(default_factory=list)


def _to_events(reviews: List[JpdbReview], source: str) -> List[ReviewEvent]:
    return [
        ReviewEvent(
            timestamp=datetime.fromtimestamp(review.timestamp, tz=timezone.utc),
            grade=review.grade,
            source=source,
        )
        for review in reviews
    ]


class JpdbAdapter:
    """SourceAdapter for jpdb.io JSON exports."""

    name = "jpdb"

    def validate(self, raw: Any) -> bool:
        if not isinstance(raw, dict):
            return False
        return all(
            isinstance(raw.get(array_name), list)
            for array_name in [*VOCABULARY_ARRAYS, *KANJI_ARRAYS]
        )

    def supported_card_types(self) -> List[str]:
        return [*VOCABULARY_ARRAYS.values(), *KANJI_ARRAYS.values()]

    def normalize(self, raw: Any) -> List[NormalizedCard]:
        """
        Convert a jpdb export into NormalizedCards.

        Cards with a blank spelling / character are dropped.

        Raises:
            ImportInputError: missing arrays or malformed cards
        """
        if not self.validate(raw):
            raise ImportInputError(
                "Invalid jpdb export: expected arrays "
                + ", ".join([*VOCABULARY_ARRAYS, *KANJI_ARRAYS])
            )

        cards: List[NormalizedCard] = []
        dropped = 0
        try:
            for array_name, card_type in VOCABULARY_ARRAYS.items():
                for entry in raw[array_name]:
                    vocab = JpdbVocabularyCard.model_validate(entry)
                    if not vocab.spelling or not vocab.spelling.strip():
                        dropped += 1
                        continue
                    source = f"jpdb-{card_type}-{vocab.vid}"
                    cards.append(NormalizedCard(
                        search_term=vocab.spelling,
                        reviews=_to_events(vocab.reviews, source),
                        source=source,
                        card_type=card_type,
                    ))

            for array_name, card_type in KANJI_ARRAYS.items():
                for entry in raw[array_name]:
                    kanji = JpdbKanjiCard.model_validate(entry)
                    if not kanji.character or not kanji.character.strip():
                        dropped += 1
                        continue
                    source = f"jpdb-{card_type}-{kanji.character}"
                    cards.append(NormalizedCard(
                        search_term=kanji.character,
                        reviews=_to_events(kanji.reviews, source),
                        source=source,
                        card_type=card_type,
                    ))
        except ValidationError as e:
            raise ImportInputError(f"Invalid jpdb card: {e}") from e

        if dropped:
            logger.info(f"[Jpdb] Dropped {dropped} cards with blank terms")
        logger.info(f"[Jpdb] Normalized {len(cards)} cards")
        return cards
