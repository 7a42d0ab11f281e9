"""
XP formulas for completed sessions.

All adaptive-exam bonus categories are independent and additive; within one
category at most one tier applies.
"""

import math
from typing import Iterable, Mapping, Optional

from growora.kernel.models.practice import PracticeSection

PRACTICE_XP_PER_CORRECT = 10
SECTIONAL_XP_PER_PASSED_SECTION = 50

ADAPTIVE_BASE_XP = 50
ADAPTIVE_XP_PER_CORRECT = 10
# (minimum accuracy, bonus), highest first
ADAPTIVE_ACCURACY_TIERS = ((90.0, 100), (80.0, 75), (70.0, 50), (60.0, 25))
ADAPTIVE_DIFFICULT_BONUS = 20
ADAPTIVE_MODERATE_BONUS = 10
ADAPTIVE_SPEED_BONUS = 50
ADAPTIVE_SPEED_MAX_AVERAGE_SECONDS = 15.0
ADAPTIVE_SPEED_MIN_ACCURACY = 70.0
# (minimum final ability, bonus), highest first
ADAPTIVE_ABILITY_TIERS = ((2.0, 100), (1.5, 50))

TUTORING_BASE_XP = 50
TUTORING_XP_PER_HOUR = 25


def practice_xp(correct_answers: int, per_correct: int = PRACTICE_XP_PER_CORRECT) -> int:
    return correct_answers * per_correct


def sectional_xp(
    sections: Iterable[PracticeSection],
    per_passed_section: int = SECTIONAL_XP_PER_PASSED_SECTION,
) -> int:
    """Only sections that are both completed and passed earn XP."""
    passed = sum(1 for s in sections if s.completed and s.passed)
    return passed * per_passed_section


def section_passed(correct: int, total: int, pass_percentage: float = 40.0) -> bool:
    """Inclusive pass threshold: exactly 40% passes."""
    if total <= 0:
        return False
    return correct / total * 100 >= pass_percentage


def _tier_bonus(value: float, tiers) -> int:
    for threshold, bonus in tiers:
        if value >= threshold:
            return bonus
    return 0


def adaptive_exam_xp(
    correct_answers: int,
    accuracy: float,
    difficulty_breakdown: Mapping[str, Mapping[str, float]],
    average_time_per_question: float,
    final_ability: Optional[float],
) -> int:
    """XP for a completed or saved adaptive exam."""
    xp = ADAPTIVE_BASE_XP
    xp += correct_answers * ADAPTIVE_XP_PER_CORRECT
    xp += _tier_bonus(accuracy, ADAPTIVE_ACCURACY_TIERS)

    xp += int(difficulty_breakdown.get("difficult", {}).get("correct", 0)) * ADAPTIVE_DIFFICULT_BONUS
    xp += int(difficulty_breakdown.get("moderate", {}).get("correct", 0)) * ADAPTIVE_MODERATE_BONUS

    if average_time_per_question < ADAPTIVE_SPEED_MAX_AVERAGE_SECONDS and accuracy >= ADAPTIVE_SPEED_MIN_ACCURACY:
        xp += ADAPTIVE_SPEED_BONUS

    if final_ability is not None:
        xp += _tier_bonus(final_ability, ADAPTIVE_ABILITY_TIERS)

    return int(round(xp))


def tutoring_session_xp(hours: float) -> int:
    """XP for attending a tutoring session: flat base plus a per-hour share."""
    return TUTORING_BASE_XP + math.floor(max(hours, 0.0) * TUTORING_XP_PER_HOUR)


def validated_duration(requested: Optional[int], default: int, minimum: int, maximum: int) -> int:
    """Caller-supplied duration if within [minimum, maximum], otherwise the default."""
    if requested is None:
        return default
    if minimum <= requested <= maximum:
        return int(requested)
    return default
