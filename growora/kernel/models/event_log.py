"""
Immutable event log for audit trail.

Session transitions and progression changes are logged here BEFORE commit,
so the audit row commits atomically with the state it describes.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import Index, JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from growora.kernel.models.base import Base, generate_uuid, utcnow


class EventType(str, Enum):
    """All event types for the audit log."""

    # Practice sessions
    PRACTICE_STARTED = "practice.started"
    PRACTICE_COMPLETED = "practice.completed"
    PRACTICE_EXPIRED = "practice.expired"

    # Sectional tests
    SECTIONAL_STARTED = "sectional.started"
    SECTION_STARTED = "sectional.section_started"
    SECTION_COMPLETED = "sectional.section_completed"
    SECTIONAL_COMPLETED = "sectional.completed"
    SECTIONAL_EXPIRED = "sectional.expired"

    # Adaptive exams
    ADAPTIVE_EXAM_STARTED = "adaptive_exam.started"
    ADAPTIVE_EXAM_COMPLETED = "adaptive_exam.completed"
    ADAPTIVE_EXAM_ABANDONED = "adaptive_exam.abandoned"
    ADAPTIVE_EXAM_TIME_EXPIRED = "adaptive_exam.time_expired"

    # Progression
    PROGRESS_CREATED = "progress.created"
    XP_AWARDED = "progress.xp_awarded"
    LEVEL_UP = "progress.level_up"
    BADGE_AWARDED = "progress.badge_awarded"
    STREAK_UPDATED = "progress.streak_updated"


class EventLog(Base):
    """
    Immutable audit event log.

    This table is append-only - no updates or deletes allowed.
    """

    __tablename__ = "event_logs"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=generate_uuid,
    )

    event_type: Mapped[EventType] = mapped_column(
        String(100),
        nullable=False,
        index=True,
    )

    # Entity reference
    entity_type: Mapped[str] = mapped_column(String(50), nullable=False)
    entity_id: Mapped[uuid.UUID] = mapped_column(nullable=False, index=True)

    # Actor; system events may not have one
    user_id: Mapped[Optional[uuid.UUID]] = mapped_column(nullable=True, index=True)

    payload: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)

    created_at: Mapped[datetime] = mapped_column(
        nullable=False,
        default=utcnow,
        index=True,
    )

    __table_args__ = (
        Index("ix_event_logs_entity", "entity_type", "entity_id"),
        Index("ix_event_logs_user_time", "user_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<EventLog {self.event_type} {self.entity_type}:{self.entity_id}>"
