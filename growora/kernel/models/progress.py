"""
Progress models - per-user XP, level, streak, badges and milestones.
"""

import uuid
from datetime import datetime
from typing import List, Optional

from sqlalchemy import Float, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from growora.kernel.models.base import Base, TimestampMixin, generate_uuid, utcnow


class ProgressRecord(Base, TimestampMixin):
    """
    One progression ledger row per user.

    current_level is always floor(experience_points / 1000) + 1 after any
    mutation made through the ledger.

    ``version`` guards against two completions updating the record from the
    same prior state.
    """

    __tablename__ = "progress_records"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=generate_uuid,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(nullable=False, unique=True)

    # Tutoring sessions
    sessions_completed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    live_sessions_attended: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    normal_sessions_completed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_hours: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    # Assessment completions
    practice_sessions_completed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    sectional_tests_completed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    adaptive_exams_completed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    courses_completed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Experience system
    current_level: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    experience_points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    xp_from_practice: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    xp_from_sectional: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    xp_from_exams: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    xp_from_sessions: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    xp_from_badges: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Streak
    streak_current: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    streak_longest: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    streak_last_activity: Mapped[Optional[datetime]] = mapped_column(nullable=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    badges: Mapped[List["EarnedBadge"]] = relationship(
        back_populates="progress",
        order_by="EarnedBadge.earned_at",
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    milestones: Mapped[List["Milestone"]] = relationship(
        back_populates="progress",
        order_by="Milestone.achieved_at",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __mapper_args__ = {"version_id_col": version}

    def has_badge(self, badge_id: str) -> bool:
        return any(b.badge_id == badge_id for b in self.badges)


class EarnedBadge(Base):
    """A badge granted to one user; (progress_id, badge_id) is unique."""

    __tablename__ = "earned_badges"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=generate_uuid,
    )
    progress_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("progress_records.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    badge_id: Mapped[str] = mapped_column(String(64), nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str] = mapped_column(String(32), nullable=False)
    icon: Mapped[str] = mapped_column(String(16), nullable=False, default="🏆")
    xp_reward: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    earned_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)
    granted_by: Mapped[Optional[uuid.UUID]] = mapped_column(nullable=True)

    progress: Mapped[ProgressRecord] = relationship(back_populates="badges")

    __table_args__ = (
        UniqueConstraint("progress_id", "badge_id", name="uq_earned_badges_progress_badge"),
    )


class Milestone(Base):
    """Human-readable progress marker, e.g. '10 practice sessions completed'."""

    __tablename__ = "milestones"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=generate_uuid,
    )
    progress_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("progress_records.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    milestone: Mapped[str] = mapped_column(String(255), nullable=False)
    achieved_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)

    progress: Mapped[ProgressRecord] = relationship(back_populates="milestones")
