"""
Kernel Data Models

SQLAlchemy models for questions, practice/sectional sessions, adaptive exams,
per-user progress and the audit log.
"""

from growora.kernel.models.base import Base, TimestampMixin, UTCDateTime, generate_uuid, utcnow
from growora.kernel.models.question import Question
from growora.kernel.models.practice import (
    FreePracticeSession,
    PracticeAttempt,
    PracticeSection,
    PracticeSession,
    SectionalTestSession,
)
from growora.kernel.models.adaptive_exam import (
    DIFFICULTY_BUCKETS,
    AdaptiveExamResponse,
    AdaptiveExamSession,
    empty_breakdown,
)
from growora.kernel.models.progress import EarnedBadge, Milestone, ProgressRecord
from growora.kernel.models.event_log import EventLog, EventType

__all__ = [
    # Base
    "Base",
    "TimestampMixin",
    "UTCDateTime",
    "generate_uuid",
    "utcnow",
    # Question bank
    "Question",
    # Practice
    "PracticeSession",
    "FreePracticeSession",
    "SectionalTestSession",
    "PracticeAttempt",
    "PracticeSection",
    # Adaptive exams
    "AdaptiveExamSession",
    "AdaptiveExamResponse",
    "DIFFICULTY_BUCKETS",
    "empty_breakdown",
    # Progress
    "ProgressRecord",
    "EarnedBadge",
    "Milestone",
    # Event Log
    "EventLog",
    "EventType",
]
