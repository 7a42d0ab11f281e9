"""
Pydantic schemas returned by the practice and sectional state machines.
"""

import uuid
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel

from growora.kernel.models.practice import PracticeAttempt, PracticeSection
from growora.kernel.models.question import Question
from growora.schemas.progression import BadgeAward


class QuestionPayload(BaseModel):
    """A question as shown to the learner; never carries the answer."""

    id: uuid.UUID
    question_text: str
    options: Dict[str, str]
    difficulty: str
    tags: str = ""
    blooms_taxonomy: str = "Understand"

    @classmethod
    def from_model(cls, question: Question) -> "QuestionPayload":
        return cls(
            id=question.id,
            question_text=question.question_text,
            options=question.options,
            difficulty=question.difficulty,
            tags=question.tags,
            blooms_taxonomy=question.blooms_taxonomy,
        )


class AttemptDetail(BaseModel):
    """One served question in a results read."""

    position: int
    question_id: uuid.UUID
    question_text: str
    difficulty: str
    tags: str = ""
    user_answer: Optional[str] = None
    correct_answer: str
    correct: Optional[bool] = None
    time_taken: Optional[float] = None
    answered: bool = False
    section_index: Optional[int] = None

    @classmethod
    def from_model(cls, attempt: PracticeAttempt) -> "AttemptDetail":
        question = attempt.question
        return cls(
            position=attempt.position,
            question_id=attempt.question_id,
            question_text=question.question_text,
            difficulty=question.difficulty,
            tags=question.tags,
            user_answer=attempt.user_answer,
            correct_answer=question.answer,
            correct=attempt.is_correct,
            time_taken=attempt.time_taken,
            answered=attempt.answered,
            section_index=attempt.section_index,
        )


class CompletionSummary(BaseModel):
    """Final figures handed back when a session completes."""

    session_id: uuid.UUID
    score: int
    total_questions: int
    xp_earned: int
    accuracy: float
    new_badges: List[BadgeAward] = []
    total_xp: int
    level: int
    level_up: bool = False


# Practice


class PracticeStart(BaseModel):
    session_id: uuid.UUID
    question: QuestionPayload
    time_remaining: int
    current_score: int = 0
    question_number: int = 1
    current_difficulty: str


class PracticeStep(BaseModel):
    """
    Result of answering one practice question.

    Either ``next_question`` is set and the session is still active, or
    ``completed`` is True and ``summary`` holds the final figures.
    """

    session_id: uuid.UUID
    is_correct: bool
    correct_answer: str
    completed: bool = False
    next_question: Optional[QuestionPayload] = None
    time_remaining: int = 0
    current_score: int
    question_number: int
    current_difficulty: str
    summary: Optional[CompletionSummary] = None


class PracticeResults(BaseModel):
    """Read-only summary of one session, counted from answered attempts only."""

    session_id: uuid.UUID
    mode: str
    status: str
    start_time: datetime
    end_time: datetime
    duration: int
    correct_answers: int
    total_questions: int
    accuracy: float
    xp_earned: int
    questions: List[AttemptDetail] = []
    total_xp: int = 0
    level: int = 1


class PracticeSessionSummary(BaseModel):
    """List-view row for a user's session history."""

    session_id: uuid.UUID
    mode: str
    status: str
    start_time: datetime
    duration: int
    total_questions: int
    correct_answers: int
    accuracy: float
    xp_earned: int


# Sectional


class SectionResult(BaseModel):
    section_index: int
    section_key: str
    difficulty: str
    correct: int
    total: int
    accuracy: float
    completed: bool
    passed: bool

    @classmethod
    def from_model(cls, section: PracticeSection) -> "SectionResult":
        return cls(
            section_index=section.section_index,
            section_key=section.section_key,
            difficulty=section.difficulty,
            correct=section.correct,
            total=section.total,
            accuracy=round(section.accuracy, 2),
            completed=section.completed,
            passed=section.passed,
        )


class SectionStart(BaseModel):
    """First question of a freshly started section."""

    session_id: uuid.UUID
    section_id: Optional[str] = None
    section: SectionResult
    question: QuestionPayload
    question_number: int = 1
    time_remaining: int


class SectionStep(BaseModel):
    """
    Result of answering one sectional question.

    When ``section_completed`` is True there is no next question; the caller
    decides whether to start another section or end the test.
    """

    session_id: uuid.UUID
    is_correct: bool
    correct_answer: str
    section_completed: bool = False
    section: SectionResult
    next_question: Optional[QuestionPayload] = None
    question_number: int
    time_remaining: int = 0


class SectionalResults(BaseModel):
    session_id: uuid.UUID
    section_id: Optional[str] = None
    status: str
    sections: List[SectionResult] = []
    passed_sections: int
    correct_answers: int
    total_questions: int
    accuracy: float
    xp_earned: int
    questions: List[AttemptDetail] = []


class SectionalCompletion(CompletionSummary):
    sections: List[SectionResult] = []
    passed_sections: int = 0
