"""
Grade mapping for imported review histories.

External tools grade reviews with their own vocabulary; map_grade turns
every value into either a Rating for the scheduler or a ControlAction.
"""

from __future__ import annotations

import logging
from typing import Union

from review_import.fsrs.constants import ControlAction, Rating

logger = logging.getLogger(__name__)


GradeResult = Union[Rating, ControlAction]

GRADE_MAP: dict[str, GradeResult] = {
    "okay": Rating.GOOD,
    "known": Rating.GOOD,
    "hard": Rating.HARD,
    "something": Rating.AGAIN,
    "fail": Rating.AGAIN,
    "easy": Rating.EASY,
    "unknown": ControlAction.IGNORE,
    "nothing": ControlAction.FORGET,
    "never-forget": ControlAction.NEVER_FORGET,
}


def map_grade(grade) -> GradeResult:
    """
    Map an external grade to a Rating or ControlAction.

    Never raises: anything unrecognized is treated as a failed recall.

    Args:
        grade: Grade string, Rating, ControlAction or rating number (1-4)

    Returns:
        The mapped Rating or ControlAction
    """
    if isinstance(grade, (Rating, ControlAction)):
        return grade

    if isinstance(grade, int) and not isinstance(grade, bool):
        try:
            return Rating(grade)
        except ValueError:
            pass
    elif isinstance(grade, str):
        mapped = GRADE_MAP.get(grade.strip().lower())
        if mapped is not None:
            return mapped

    logger.warning(f"[Grades] Unknown grade {grade!r}, using AGAIN")
    return Rating.AGAIN
