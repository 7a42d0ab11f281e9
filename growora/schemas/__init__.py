"""
Pydantic result schemas returned by the engines.
"""

from growora.schemas.progression import (
    BadgeAward,
    CompletionOutcome,
    MilestoneEntry,
    ProgressSummary,
)
from growora.schemas.assessment import (
    AttemptDetail,
    CompletionSummary,
    PracticeResults,
    PracticeSessionSummary,
    PracticeStart,
    PracticeStep,
    QuestionPayload,
    SectionalCompletion,
    SectionalResults,
    SectionResult,
    SectionStart,
    SectionStep,
)
from growora.schemas.adaptive_exam import (
    AbandonResult,
    ActiveExamInfo,
    AdaptiveAnswerResult,
    AdaptiveExamAnalytics,
    AdaptiveExamHistory,
    AdaptiveExamResults,
    AdaptiveExamStart,
    AdaptiveExamSummary,
    AdaptiveUserStats,
    OracleQuestion,
    ResumeResult,
)

__all__ = [
    "BadgeAward",
    "CompletionOutcome",
    "MilestoneEntry",
    "ProgressSummary",
    "AttemptDetail",
    "CompletionSummary",
    "PracticeResults",
    "PracticeSessionSummary",
    "PracticeStart",
    "PracticeStep",
    "QuestionPayload",
    "SectionalCompletion",
    "SectionalResults",
    "SectionResult",
    "SectionStart",
    "SectionStep",
    "AbandonResult",
    "ActiveExamInfo",
    "AdaptiveAnswerResult",
    "AdaptiveExamAnalytics",
    "AdaptiveExamHistory",
    "AdaptiveExamResults",
    "AdaptiveExamStart",
    "AdaptiveExamSummary",
    "AdaptiveUserStats",
    "OracleQuestion",
    "ResumeResult",
]
