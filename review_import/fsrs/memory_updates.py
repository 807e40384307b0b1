"""
Memory Updates

Implements stability and difficulty updates for a single review.

Key principles:
- Spaced, effortful success produces largest stability gains
- Failures are penalized more when recall was expected (high R)
- Difficulty reflects learning efficiency, not forgetting speed
"""

from __future__ import annotations

from review_import.fsrs.constants import (
    Rating,
    S_MIN,
    D_MIN,
    D_MAX,
    K,
    K_FAIL,
    ALPHA,
    ETA,
    BASE_GAIN,
    U_RATING
)


def update_stability_on_success(
    stability: float,
    retrievability: float,
    difficulty: float,
    rating: Rating,
    is_new_card: bool = False
) -> float:
    """
    Update stability after successful retrieval (Hard/Good/Easy).

    Formula:
        ΔS = k * S * base_gain(rating) * (1 - R) * f(D)
        S_new = S + ΔS
        f(D) = 1 / (1 + alpha * (D - 1))

    New cards have no history to grow from, so their stability is seeded
    from the rating instead: S_new = 2 * S_MIN * base_gain(rating).

    Args:
        stability: Current stability (S)
        retrievability: Current retrievability (R)
        difficulty: Difficulty used for this update
        rating: HARD, GOOD or EASY
        is_new_card: True if this is the first review

    Returns:
        New stability value
    """
    if rating == Rating.AGAIN:
        raise ValueError("Use update_stability_on_failure for AGAIN ratings")

    base_gain = BASE_GAIN[rating]

    if is_new_card:
        return max(S_MIN, S_MIN * base_gain * 2.0)

    f_d = 1.0 / (1.0 + ALPHA * (difficulty - 1.0))
    delta_s = K * stability * base_gain * (1.0 - retrievability) * f_d

    return max(S_MIN, stability + delta_s)


def update_stability_on_failure(
    stability: float,
    retrievability: float
) -> float:
    """
    Update stability after failed retrieval (Again).

    Formula:
        S_new = max(S_min, S * (1 - k_fail * R))
    """
    new_stability = stability * (1.0 - K_FAIL * retrievability)
    return max(S_MIN, new_stability)


def update_difficulty(
    difficulty: float,
    retrievability: float,
    rating: Rating
) -> float:
    """
    Update difficulty based on retrieval outcome.

    Formula:
        D_new = clip(D + eta * surprise * u(rating), 1, 10)

    Where surprise = R on failure, (1-R) on success.

    Args:
        difficulty: Current difficulty
        retrievability: Current retrievability
        rating: Recall outcome

    Returns:
        New difficulty value (clipped to [1, 10])
    """
    if rating == Rating.AGAIN:
        surprise = retrievability
    else:
        surprise = 1.0 - retrievability

    new_difficulty = difficulty + ETA * surprise * U_RATING[rating]
    return max(D_MIN, min(D_MAX, new_difficulty))


def apply_memory_update(
    stability: float,
    difficulty: float,
    retrievability: float,
    rating: Rating,
    is_new_card: bool = False
) -> tuple[float, float]:
    """
    Apply the update rules to get new S and D.

    Returns:
        (new_stability, new_difficulty)
    """
    if rating == Rating.AGAIN:
        new_stability = update_stability_on_failure(stability, retrievability)
    else:
        new_stability = update_stability_on_success(
            stability, retrievability, difficulty, rating, is_new_card
        )

    new_difficulty = update_difficulty(difficulty, retrievability, rating)

    return new_stability, new_difficulty
