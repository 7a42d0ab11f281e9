"""
Practice models - free-running adaptive practice and sectional tests.

Both session kinds share the practice_sessions table and are told apart by
the ``mode`` discriminator (single-table inheritance). Section records only
exist on the sectional variant.
"""

import uuid
from datetime import datetime
from typing import List, Optional

from sqlalchemy import Boolean, Float, ForeignKey, Index, Integer, JSON, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from growora.kernel.models.base import Base, TimestampMixin, generate_uuid
from growora.kernel.models.question import Question


class PracticeSession(Base, TimestampMixin):
    """
    A timed practice session owned by one user.

    Retained after completion/expiry for history; ``version`` guards against
    two writers advancing the same session from the same prior state.
    """

    __tablename__ = "practice_sessions"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=generate_uuid,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(nullable=False, index=True)
    mode: Mapped[str] = mapped_column(String(20), nullable=False)

    start_time: Mapped[datetime] = mapped_column(nullable=False)
    end_time: Mapped[datetime] = mapped_column(nullable=False)
    duration: Mapped[int] = mapped_column(Integer, nullable=False)  # minutes

    current_question_index: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    current_difficulty: Mapped[str] = mapped_column(String(20), nullable=False)
    total_questions: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    correct_answers: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active")
    xp_earned: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    completed_at: Mapped[Optional[datetime]] = mapped_column(nullable=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    attempts: Mapped[List["PracticeAttempt"]] = relationship(
        back_populates="session",
        order_by="PracticeAttempt.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __mapper_args__ = {
        "polymorphic_on": "mode",
        "version_id_col": version,
    }

    __table_args__ = (
        Index("ix_practice_sessions_user_status_created", "user_id", "status", "created_at"),
    )

    @property
    def wrong_answers(self) -> int:
        return self.total_questions - self.correct_answers

    @property
    def accuracy(self) -> float:
        if self.total_questions == 0:
            return 0.0
        return self.correct_answers / self.total_questions * 100

    @property
    def current_attempt(self) -> Optional["PracticeAttempt"]:
        if 0 <= self.current_question_index < len(self.attempts):
            return self.attempts[self.current_question_index]
        return None

    def served_question_ids(self) -> List[uuid.UUID]:
        return [a.question_id for a in self.attempts]


class FreePracticeSession(PracticeSession):
    """Free-running session walking the difficulty ladder."""

    __mapper_args__ = {"polymorphic_identity": "practice"}


class SectionalTestSession(PracticeSession):
    """Session made of fixed-size blocks at one difficulty each."""

    # Id the test was opened with; later sections are identified by section_key
    section_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    sections: Mapped[List["PracticeSection"]] = relationship(
        back_populates="session",
        order_by="PracticeSection.section_index",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __mapper_args__ = {"polymorphic_identity": "sectional"}

    @property
    def active_section(self) -> Optional["PracticeSection"]:
        for section in self.sections:
            if not section.completed:
                return section
        return None


class PracticeAttempt(Base):
    """One served question inside a practice session; unanswered while answered_at is null."""

    __tablename__ = "practice_attempts"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=generate_uuid,
    )
    session_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("practice_sessions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    question_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("questions.id"),
        nullable=False,
    )
    user_answer: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    is_correct: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)
    time_taken: Mapped[Optional[float]] = mapped_column(Float, nullable=True)  # seconds
    answered_at: Mapped[Optional[datetime]] = mapped_column(nullable=True)
    section_index: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    session: Mapped[PracticeSession] = relationship(back_populates="attempts")
    question: Mapped[Question] = relationship(lazy="selectin")

    @property
    def answered(self) -> bool:
        return self.answered_at is not None


class PracticeSection(Base):
    """A pre-fetched block of questions at one difficulty within a sectional test."""

    __tablename__ = "practice_sections"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=generate_uuid,
    )
    session_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("practice_sessions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    section_index: Mapped[int] = mapped_column(Integer, nullable=False)
    section_key: Mapped[str] = mapped_column(String(100), nullable=False)
    difficulty: Mapped[str] = mapped_column(String(20), nullable=False)
    question_ids: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)
    correct: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    passed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    session: Mapped[SectionalTestSession] = relationship(back_populates="sections")

    @property
    def accuracy(self) -> float:
        if self.total == 0:
            return 0.0
        return self.correct / self.total * 100
