"""
Adaptive exam models - local bookkeeping for oracle-scored exams.
"""

import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import (
    Boolean,
    Float,
    ForeignKey,
    Index,
    Integer,
    JSON,
    String,
    Text,
    event,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from growora.kernel.models.base import Base, TimestampMixin, generate_uuid, utcnow

DIFFICULTY_BUCKETS = ("very_easy", "easy", "moderate", "difficult")


def empty_breakdown() -> Dict[str, Dict[str, float]]:
    return {key: {"attempted": 0, "correct": 0, "accuracy": 0.0} for key in DIFFICULTY_BUCKETS}


class AdaptiveExamSession(Base, TimestampMixin):
    """
    One adaptive exam, correlated with the oracle through ``session_id``.

    At most one row per user may be ``active``; the partial unique index
    enforces it at storage level.
    """

    __tablename__ = "adaptive_exams"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=generate_uuid,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(nullable=False, index=True)
    session_id: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active")
    duration: Mapped[int] = mapped_column(Integer, nullable=False, default=20)  # minutes
    start_time: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)
    end_time: Mapped[Optional[datetime]] = mapped_column(nullable=True)

    initial_ability: Mapped[float] = mapped_column(Float, nullable=False, default=0.5)
    current_ability: Mapped[float] = mapped_column(Float, nullable=False, default=0.5)
    final_ability: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    total_questions: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    correct_answers: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    wrong_answers: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    accuracy: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    total_time_seconds: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    average_time_per_question: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    fastest_answer: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    slowest_answer: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    # Reassigned (never mutated in place) so the change is flushed
    difficulty_breakdown: Mapped[Dict[str, Any]] = mapped_column(
        JSON, nullable=False, default=empty_breakdown
    )
    current_question: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)

    xp_earned: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    badges_earned: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)
    exam_number: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    responses: Mapped[List["AdaptiveExamResponse"]] = relationship(
        back_populates="exam",
        order_by="AdaptiveExamResponse.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        Index("ix_adaptive_exams_user_status", "user_id", "status"),
        Index("ix_adaptive_exams_user_created", "user_id", "created_at"),
        Index(
            "uq_adaptive_exams_one_active_per_user",
            "user_id",
            unique=True,
            sqlite_where=text("status = 'active'"),
            postgresql_where=text("status = 'active'"),
        ),
    )

    @property
    def ability_change(self) -> float:
        final = self.final_ability if self.final_ability is not None else self.current_ability
        return final - self.initial_ability


class AdaptiveExamResponse(Base):
    """One answered question in an adaptive exam's response log."""

    __tablename__ = "adaptive_exam_responses"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=generate_uuid,
    )
    exam_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("adaptive_exams.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    question_id: Mapped[str] = mapped_column(String(100), nullable=False)
    question: Mapped[str] = mapped_column(Text, nullable=False, default="")
    options: Mapped[Dict[str, str]] = mapped_column(JSON, nullable=False, default=dict)
    difficulty: Mapped[str] = mapped_column(String(20), nullable=False, default="")
    difficulty_numeric: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    user_answer: Mapped[str] = mapped_column(String(255), nullable=False)
    correct_answer: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    is_correct: Mapped[bool] = mapped_column(Boolean, nullable=False)
    time_spent: Mapped[float] = mapped_column(Float, nullable=False)
    ability_before: Mapped[float] = mapped_column(Float, nullable=False)
    ability_after: Mapped[float] = mapped_column(Float, nullable=False)
    timestamp: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)

    exam: Mapped[AdaptiveExamSession] = relationship(back_populates="responses")


@event.listens_for(AdaptiveExamSession, "before_insert")
@event.listens_for(AdaptiveExamSession, "before_update")
def _recompute_accuracy(mapper, connection, target: AdaptiveExamSession) -> None:
    """Accuracy is derived from the counters on every persist, never stored stale."""
    if target.total_questions > 0:
        target.accuracy = target.correct_answers / target.total_questions * 100
