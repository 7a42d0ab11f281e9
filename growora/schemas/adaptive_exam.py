"""
Pydantic schemas for adaptive exams: oracle wire bodies and tracker results.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from growora.schemas.progression import BadgeAward


# Oracle wire bodies


class OracleQuestion(BaseModel):
    """A question as served by the ability-scoring oracle."""

    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)

    id: str
    question: str = ""
    options: Dict[str, Any] = Field(default_factory=dict)
    difficulty: str = ""
    difficulty_numeric: Optional[int] = None


class OracleStart(BaseModel):
    model_config = ConfigDict(extra="ignore")

    success: bool
    session_id: str
    question: OracleQuestion
    user_ability: Optional[float] = None


class OracleSubmission(BaseModel):
    model_config = ConfigDict(extra="ignore")

    success: bool
    is_correct: bool
    correct_answer: Optional[str] = None
    user_ability: float
    next_question: Optional[OracleQuestion] = None
    quiz_complete: bool = False


class OracleResume(BaseModel):
    model_config = ConfigDict(extra="ignore")

    success: bool
    question: Optional[OracleQuestion] = None


# Tracker results


class TimeStats(BaseModel):
    fastest: float = 0.0
    average: float = 0.0
    slowest: float = 0.0


class AdaptiveExamStart(BaseModel):
    session_id: str
    exam_number: int
    duration: int
    question: OracleQuestion
    user_ability: float
    previous_ability: float


class AdaptiveProgress(BaseModel):
    questions_answered: int
    correct_answers: int
    current_accuracy: float


class AdaptiveExamResults(BaseModel):
    """Final figures of a completed (or saved) exam."""

    session_id: str
    total_questions: int
    correct_answers: int
    accuracy: float
    final_ability: Optional[float] = None
    xp_earned: int
    badges_earned: List[BadgeAward] = []
    time_spent: float = 0.0
    total_xp: int = 0
    level: int = 1
    level_up: bool = False


class AdaptiveAnswerResult(BaseModel):
    """
    Result of one submitted answer.

    ``quiz_complete`` selects between ``next_question``/``progress`` and
    ``results``.
    """

    session_id: str
    is_correct: bool
    correct_answer: Optional[str] = None
    user_ability: float
    quiz_complete: bool = False
    next_question: Optional[OracleQuestion] = None
    progress: Optional[AdaptiveProgress] = None
    results: Optional[AdaptiveExamResults] = None


class AbandonResult(BaseModel):
    session_id: str
    status: str
    message: str
    results: Optional[AdaptiveExamResults] = None


class ResumeResult(BaseModel):
    session_id: str
    exam_number: int
    question: OracleQuestion
    user_ability: float
    previous_ability: float


class AdaptiveResponseDetail(BaseModel):
    question_id: str
    question: str
    options: Dict[str, Any] = {}
    difficulty: str
    difficulty_numeric: Optional[int] = None
    user_answer: str
    correct_answer: Optional[str] = None
    is_correct: bool
    time_spent: float
    ability_before: float
    ability_after: float
    timestamp: datetime


class AdaptiveExamAnalytics(BaseModel):
    session_id: str
    status: str
    exam_number: int
    total_questions: int
    correct_answers: int
    wrong_answers: int
    accuracy: float
    total_time_spent: float
    average_time_per_question: float
    time_stats: TimeStats
    initial_ability: float
    final_ability: float
    ability_change: float
    difficulty_breakdown: Dict[str, Dict[str, float]]
    xp_earned: int
    badges_earned: List[str] = []
    earned_badges: List[BadgeAward] = []
    responses: List[AdaptiveResponseDetail] = []
    start_time: datetime
    end_time: Optional[datetime] = None


class AdaptiveExamSummary(BaseModel):
    """History row; omits the response log."""

    session_id: str
    status: str
    exam_number: int
    total_questions: int
    correct_answers: int
    accuracy: float
    initial_ability: float
    final_ability: Optional[float] = None
    xp_earned: int
    start_time: datetime
    end_time: Optional[datetime] = None


class AdaptiveExamHistory(BaseModel):
    exams: List[AdaptiveExamSummary] = []
    total_exams: int
    has_more: bool = False


class RecentExam(BaseModel):
    session_id: str
    exam_number: int
    accuracy: float
    final_ability: Optional[float] = None
    xp_earned: int
    completed_at: Optional[datetime] = None


class AdaptiveUserStats(BaseModel):
    total_exams: int = 0
    average_accuracy: float = 0.0
    average_ability: float = 0.0
    highest_ability: float = 0.0
    total_questions: int = 0
    total_correct_answers: int = 0
    total_xp: int = 0
    badges_earned: int = 0
    recent_exams: List[RecentExam] = []


class ActiveExamInfo(BaseModel):
    session_id: str
    exam_number: int
    total_questions: int
    correct_answers: int
    accuracy: float
    current_ability: float
    start_time: datetime
    time_remaining: int
