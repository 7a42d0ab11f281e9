"""
Question bank model - shared multiple-choice questions with attempt statistics.
"""

import uuid

from sqlalchemy import Boolean, Float, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from growora.kernel.models.base import Base, TimestampMixin, generate_uuid


class Question(Base, TimestampMixin):
    """
    A four-option question.

    Never deleted; deactivated through is_active. Attempt counters are shared
    by every session that serves the question.
    """

    __tablename__ = "questions"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=generate_uuid,
    )
    question_text: Mapped[str] = mapped_column(Text, nullable=False)
    option_a: Mapped[str] = mapped_column(Text, nullable=False)
    option_b: Mapped[str] = mapped_column(Text, nullable=False)
    option_c: Mapped[str] = mapped_column(Text, nullable=False)
    option_d: Mapped[str] = mapped_column(Text, nullable=False)
    answer: Mapped[str] = mapped_column(String(1), nullable=False)  # a|b|c|d
    difficulty: Mapped[str] = mapped_column(String(20), nullable=False)
    blooms_taxonomy: Mapped[str] = mapped_column(String(50), nullable=False, default="Understand")
    tags: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    total_attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    correct_attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    success_rate: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    __table_args__ = (
        Index("ix_questions_difficulty_tags_active", "difficulty", "tags", "is_active"),
    )

    @property
    def options(self) -> dict:
        return {
            "a": self.option_a,
            "b": self.option_b,
            "c": self.option_c,
            "d": self.option_d,
        }
