"""
Assessment Engine - the three timed session state machines.

Machines:
- Practice: free-running, one ladder step per answer
- Sectional: fixed-size blocks at a fixed tier, pass/fail per block
- Adaptive exam: local tracker around the remote ability-scoring oracle
"""

from growora.engines.assessment.errors import (
    AssessmentError,
    NoQuestionsAvailable,
    InsufficientQuestions,
    SessionNotFound,
    InvalidState,
    SessionExpired,
    DuplicateActiveSession,
    OracleUnavailable,
    CannotResume,
    NoMoreQuestionsInSection,
    ConcurrentUpdate,
)
from growora.engines.assessment.difficulty import Tier, next_tier, tier_from_numeric
from growora.engines.assessment.question_bank import QuestionBank, is_correct
from growora.engines.assessment.practice_session import PracticeSessionMachine
from growora.engines.assessment.sectional_test import SectionalTestMachine
from growora.engines.assessment.oracle_client import OracleClient
from growora.engines.assessment.adaptive_exam import AdaptiveExamTracker

__all__ = [
    "AssessmentError",
    "NoQuestionsAvailable",
    "InsufficientQuestions",
    "SessionNotFound",
    "InvalidState",
    "SessionExpired",
    "DuplicateActiveSession",
    "OracleUnavailable",
    "CannotResume",
    "NoMoreQuestionsInSection",
    "ConcurrentUpdate",
    "Tier",
    "next_tier",
    "tier_from_numeric",
    "QuestionBank",
    "is_correct",
    "PracticeSessionMachine",
    "SectionalTestMachine",
    "OracleClient",
    "AdaptiveExamTracker",
]
