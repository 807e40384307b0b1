"""
Deduplicate upsert records by (key, type).

Several external cards can resolve to the same canonical item (e.g. the
jp->en and en->jp cards of one word). Only the best-retained card is kept:
the one with the highest stability, the first seen on ties.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Dict, List, Sequence, Tuple

from review_import.records import UpsertRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DedupeResult:
    kept: List[UpsertRecord] = field(default_factory=list)
    discarded: int = 0


def _stability(record: UpsertRecord) -> float:
    value = getattr(record.card, "stability", None)
    if value is None or math.isnan(value):
        return 0.0
    return value


def dedupe_records(records: Sequence[UpsertRecord]) -> DedupeResult:
    """
    Keep one record per (key, type).

    Args:
        records: Candidate records in processing order

    Returns:
        DedupeResult with survivors in first-seen group order and the
        number of records dropped
    """
    groups: Dict[Tuple[str, str], List[UpsertRecord]] = {}
    for record in records:
        groups.setdefault((record.key, record.type.value), []).append(record)

    kept: List[UpsertRecord] = []
    discarded = 0
    for (key, item_type), members in groups.items():
        best = members[0]
        for candidate in members[1:]:
            if _stability(candidate) > _stability(best):
                best = candidate
        kept.append(best)

        if len(members) > 1:
            discarded += len(members) - 1
            logger.info(
                f"[DuplicateHandling] {key}-{item_type}: kept {best.source} "
                f"(stability {_stability(best):.2f}) over {len(members) - 1} others"
            )

    return DedupeResult(kept=kept, discarded=discarded)
