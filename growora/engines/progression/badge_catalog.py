"""
Badge Catalog - immutable badge definitions and their threshold predicates.

Cumulative metrics are read from the user's progress record after the update
that triggered evaluation; per-exam metrics are read from the just-completed
session's stats and only apply to adaptive exams.
"""

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Optional, Tuple

from growora.kernel.models.progress import ProgressRecord


class BadgeCategory(str, Enum):
    EXPERIENCE = "experience"
    SESSION = "session"
    ACHIEVEMENT = "achievement"
    PRACTICE = "practice"
    ADAPTIVE_EXAM = "adaptive_exam"


class BadgeMetric(str, Enum):
    """What a badge threshold is compared against."""

    EXPERIENCE_POINTS = "experience_points"
    SESSIONS_COMPLETED = "sessions_completed"
    LIVE_SESSIONS = "live_sessions_attended"
    STREAK = "streak_current"
    HOURS = "total_hours"
    PRACTICE_COMPLETED = "practice_completed"
    ADAPTIVE_COMPLETED = "adaptive_exams_completed"
    EXAM_ACCURACY = "exam_accuracy"
    EXAM_ABILITY = "exam_final_ability"


PER_EXAM_METRICS = frozenset((BadgeMetric.EXAM_ACCURACY, BadgeMetric.EXAM_ABILITY))


@dataclass(frozen=True)
class BadgeDefinition:
    badge_id: str
    name: str
    description: str
    category: BadgeCategory
    icon: str
    xp_reward: int
    metric: BadgeMetric
    threshold: float


@dataclass(frozen=True)
class ExamSnapshot:
    """Figures of the just-completed adaptive exam used by per-exam badges."""

    accuracy: float
    final_ability: Optional[float]


def _badge(badge_id, name, description, category, icon, xp_reward, metric, threshold) -> BadgeDefinition:
    return BadgeDefinition(badge_id, name, description, category, icon, xp_reward, metric, threshold)


_E, _S, _A, _P, _X = (
    BadgeCategory.EXPERIENCE,
    BadgeCategory.SESSION,
    BadgeCategory.ACHIEVEMENT,
    BadgeCategory.PRACTICE,
    BadgeCategory.ADAPTIVE_EXAM,
)

CATALOG: Tuple[BadgeDefinition, ...] = (
    # Experience
    _badge("noobie", "Noobie", "Welcome to Growora! Your learning journey begins.",
           _E, "🌱", 50, BadgeMetric.EXPERIENCE_POINTS, 0),
    _badge("early-bird", "Early Bird", "You're making great progress! Keep it up!",
           _E, "🐦", 100, BadgeMetric.EXPERIENCE_POINTS, 500),
    _badge("expert", "Expert", "You've mastered the fundamentals. Impressive!",
           _E, "🎓", 200, BadgeMetric.EXPERIENCE_POINTS, 2000),
    _badge("master", "Master", "True mastery achieved. You're an inspiration!",
           _E, "👑", 500, BadgeMetric.EXPERIENCE_POINTS, 5000),
    # Tutoring sessions
    _badge("first-session", "First Steps", "Congratulations on completing your first session!",
           _S, "🎯", 25, BadgeMetric.SESSIONS_COMPLETED, 1),
    _badge("session-warrior", "Session Warrior", "Completed 10 sessions. You're on fire!",
           _S, "⚡", 150, BadgeMetric.SESSIONS_COMPLETED, 10),
    _badge("session-champion", "Session Champion", "Completed 50 sessions. Truly dedicated!",
           _S, "🏆", 300, BadgeMetric.SESSIONS_COMPLETED, 50),
    _badge("live-enthusiast", "Live Enthusiast", "Attended 5 live sessions. Love the interaction!",
           _S, "📺", 100, BadgeMetric.LIVE_SESSIONS, 5),
    # Achievements
    _badge("consistent-learner", "Consistent Learner", "Maintained a 7-day learning streak!",
           _A, "🔥", 200, BadgeMetric.STREAK, 7),
    _badge("time-master", "Time Master", "Completed 100+ hours of learning. Incredible!",
           _A, "⏰", 400, BadgeMetric.HOURS, 100),
    # Practice
    _badge("practice-first", "First Practice", "Completed your first practice exam",
           _P, "🎯", 0, BadgeMetric.PRACTICE_COMPLETED, 1),
    _badge("practice-warrior-1", "Practice Warrior I", "Completed 10 practice exams",
           _P, "⚔️", 0, BadgeMetric.PRACTICE_COMPLETED, 10),
    _badge("practice-warrior-2", "Practice Warrior II", "Completed 25 practice exams",
           _P, "🛡️", 0, BadgeMetric.PRACTICE_COMPLETED, 25),
    _badge("practice-warrior-3", "Practice Warrior III", "Completed 50 practice exams",
           _P, "👑", 0, BadgeMetric.PRACTICE_COMPLETED, 50),
    _badge("practice-legend", "Practice Legend", "Completed 100 practice exams",
           _P, "🏆", 0, BadgeMetric.PRACTICE_COMPLETED, 100),
    # Adaptive exams
    _badge("adaptive_first", "First Adaptive Attempt", "Completed your first adaptive exam",
           _X, "🎯", 0, BadgeMetric.ADAPTIVE_COMPLETED, 1),
    _badge("adaptive_persistent", "Persistent Learner", "Completed 5 adaptive exams",
           _X, "📚", 0, BadgeMetric.ADAPTIVE_COMPLETED, 5),
    _badge("adaptive_dedicated", "Dedicated Student", "Completed 10 adaptive exams",
           _X, "🌟", 0, BadgeMetric.ADAPTIVE_COMPLETED, 10),
    _badge("adaptive_master", "Master Learner", "Completed 25 adaptive exams",
           _X, "🏆", 0, BadgeMetric.ADAPTIVE_COMPLETED, 25),
    _badge("adaptive_legend", "Adaptive Legend", "Completed 50 adaptive exams",
           _X, "👑", 0, BadgeMetric.ADAPTIVE_COMPLETED, 50),
    _badge("adaptive_accuracy_80", "Accuracy Expert", "Achieved 80%+ accuracy",
           _X, "🎓", 0, BadgeMetric.EXAM_ACCURACY, 80),
    _badge("adaptive_ability_high", "High Ability", "Reached ability level 2.0+",
           _X, "⚡", 0, BadgeMetric.EXAM_ABILITY, 2.0),
)

BADGES_BY_ID: Mapping[str, BadgeDefinition] = MappingProxyType({b.badge_id: b for b in CATALOG})


def metric_value(
    metric: BadgeMetric,
    progress: ProgressRecord,
    exam: Optional[ExamSnapshot] = None,
) -> Optional[float]:
    """Current value of ``metric``; None when a per-exam metric has no exam to read."""
    if metric is BadgeMetric.EXPERIENCE_POINTS:
        return progress.experience_points
    if metric is BadgeMetric.SESSIONS_COMPLETED:
        return progress.sessions_completed
    if metric is BadgeMetric.LIVE_SESSIONS:
        return progress.live_sessions_attended
    if metric is BadgeMetric.STREAK:
        return progress.streak_current
    if metric is BadgeMetric.HOURS:
        return progress.total_hours
    if metric is BadgeMetric.PRACTICE_COMPLETED:
        # Sectional tests are practice sessions in sectional mode
        return progress.practice_sessions_completed + progress.sectional_tests_completed
    if metric is BadgeMetric.ADAPTIVE_COMPLETED:
        return progress.adaptive_exams_completed
    if exam is None:
        return None
    if metric is BadgeMetric.EXAM_ACCURACY:
        return exam.accuracy
    if metric is BadgeMetric.EXAM_ABILITY:
        return exam.final_ability
    return None


def is_satisfied(
    badge: BadgeDefinition,
    progress: ProgressRecord,
    exam: Optional[ExamSnapshot] = None,
) -> bool:
    value = metric_value(badge.metric, progress, exam)
    if value is None:
        return False
    return value >= badge.threshold
