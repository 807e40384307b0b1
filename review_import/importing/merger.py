"""
Merge a card's stored history with newly imported reviews.
"""

from __future__ import annotations

from typing import Iterable, List

from review_import.schemas import ReviewEvent


def merge_reviews(
    existing: Iterable[ReviewEvent],
    incoming: Iterable[ReviewEvent]
) -> List[ReviewEvent]:
    """
    Combine two review streams into one chronological stream.

    Ordering is by timestamp. At equal timestamps existing reviews come
    before incoming ones, and each input keeps its own relative order.
    Nothing is deduplicated.

    Args:
        existing: Reviews replayed from the stored card
        incoming: Reviews from the import

    Returns:
        New list, sorted ascending by timestamp
    """
    # sorted() is stable, so concatenation order decides ties
    return sorted([*existing, *incoming], key=lambda event: event.timestamp)
