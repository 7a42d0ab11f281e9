"""
Progression Ledger - XP, level, streak, badge and milestone bookkeeping.

apply_completion() is invoked exactly once per completed session by the
owning state machine. The ledger only flushes: the state machine commits the
session transition and the progression changes as one unit of work.
"""

import uuid
from datetime import datetime, timedelta
from enum import Enum
from typing import List, Optional, Union

from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from growora.config import Settings, get_settings
from growora.engines.progression.badge_catalog import (
    CATALOG,
    ExamSnapshot,
    is_satisfied,
)
from growora.kernel.events.event_store import EventStore
from growora.kernel.models.event_log import EventType
from growora.kernel.models.base import utcnow
from growora.kernel.models.progress import EarnedBadge, Milestone, ProgressRecord
from growora.logging_config import get_logger
from growora.schemas.progression import (
    BadgeAward,
    CompletionOutcome,
    MilestoneEntry,
    ProgressSummary,
)

logger = get_logger(__name__)

MILESTONE_COUNTS = (1, 10, 25, 50, 100)
STREAK_WINDOW = timedelta(hours=24)


class SessionKind(str, Enum):
    PRACTICE = "practice"
    SECTIONAL = "sectional"
    ADAPTIVE_EXAM = "adaptive_exam"
    SESSION = "session"
    LIVE_SESSION = "live_session"


_MILESTONE_LABELS = {
    SessionKind.PRACTICE: "practice sessions completed",
    SessionKind.SECTIONAL: "sectional tests completed",
    SessionKind.ADAPTIVE_EXAM: "adaptive exams completed",
    SessionKind.SESSION: "sessions completed",
    SessionKind.LIVE_SESSION: "live sessions attended",
}


class SessionStats(BaseModel):
    """Summary of the just-completed session handed to the ledger."""

    session_id: Optional[Union[uuid.UUID, str]] = None
    correct_answers: int = 0
    total_questions: int = 0
    accuracy: Optional[float] = None
    final_ability: Optional[float] = None
    hours: float = 0.0


def level_for(experience_points: int, xp_per_level: int = 1000) -> int:
    return experience_points // xp_per_level + 1


def badge_award(badge: EarnedBadge) -> BadgeAward:
    return BadgeAward(
        badge_id=badge.badge_id,
        name=badge.name,
        description=badge.description,
        category=badge.category,
        icon=badge.icon,
        xp_reward=badge.xp_reward,
        earned_at=badge.earned_at,
    )


class ProgressionLedger:
    """
    Applies XP, level, streak and badge rules to a user's progress record.

    Usage:
        ledger = ProgressionLedger(session)
        outcome = await ledger.apply_completion(
            user_id, xp_earned=30, session_kind=SessionKind.PRACTICE,
            session_stats=SessionStats(correct_answers=3, total_questions=5),
        )
    """

    def __init__(
        self,
        session: AsyncSession,
        settings: Optional[Settings] = None,
        event_store: Optional[EventStore] = None,
    ):
        self.session = session
        self.settings = settings or get_settings()
        self.event_store = event_store or EventStore(session)

    async def find_progress(self, user_id: uuid.UUID, for_update: bool = False) -> Optional[ProgressRecord]:
        """
        Load the user's progress record. ``for_update`` locks the row where the
        backend supports it and refreshes any copy already in the session.
        """
        query = select(ProgressRecord).where(ProgressRecord.user_id == user_id)
        if for_update:
            query = query.with_for_update().execution_options(populate_existing=True)
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def create_progress(self, user_id: uuid.UUID) -> ProgressRecord:
        """
        Create the user's progress record and evaluate the catalog once,
        which grants the zero-threshold welcome badge.
        """
        progress = ProgressRecord(
            user_id=user_id,
            current_level=1,
            experience_points=0,
            xp_from_practice=0,
            xp_from_sectional=0,
            xp_from_exams=0,
            xp_from_sessions=0,
            xp_from_badges=0,
            sessions_completed=0,
            live_sessions_attended=0,
            normal_sessions_completed=0,
            total_hours=0.0,
            practice_sessions_completed=0,
            sectional_tests_completed=0,
            adaptive_exams_completed=0,
            courses_completed=0,
            streak_current=0,
            streak_longest=0,
            badges=[],
            milestones=[],
        )
        self.session.add(progress)
        await self.session.flush()

        await self.event_store.log(
            event_type=EventType.PROGRESS_CREATED,
            entity_type="progress",
            entity_id=progress.id,
            user_id=user_id,
        )
        await self._evaluate_badges(progress, exam=None, now=utcnow())
        await self.session.flush()
        logger.info("Progress record created", extra={"owner_id": str(user_id)})
        return progress

    async def get_or_create(self, user_id: uuid.UUID, for_update: bool = False) -> ProgressRecord:
        progress = await self.find_progress(user_id, for_update=for_update)
        if progress is None:
            progress = await self.create_progress(user_id)
        return progress

    async def get_progress(self, user_id: uuid.UUID) -> ProgressSummary:
        """Read-only snapshot; creates the record on first access."""
        progress = await self.get_or_create(user_id)
        xp_per_level = self.settings.xp_per_level
        return ProgressSummary(
            user_id=progress.user_id,
            level=progress.current_level,
            experience_points=progress.experience_points,
            xp_to_next_level=progress.current_level * xp_per_level - progress.experience_points,
            xp_from_practice=progress.xp_from_practice,
            xp_from_sectional=progress.xp_from_sectional,
            xp_from_exams=progress.xp_from_exams,
            xp_from_sessions=progress.xp_from_sessions,
            xp_from_badges=progress.xp_from_badges,
            sessions_completed=progress.sessions_completed,
            live_sessions_attended=progress.live_sessions_attended,
            normal_sessions_completed=progress.normal_sessions_completed,
            total_hours=progress.total_hours,
            practice_sessions_completed=progress.practice_sessions_completed,
            sectional_tests_completed=progress.sectional_tests_completed,
            adaptive_exams_completed=progress.adaptive_exams_completed,
            courses_completed=progress.courses_completed,
            streak_current=progress.streak_current,
            streak_longest=progress.streak_longest,
            streak_last_activity=progress.streak_last_activity,
            badges=[badge_award(b) for b in progress.badges],
            milestones=[MilestoneEntry(milestone=m.milestone, achieved_at=m.achieved_at) for m in progress.milestones],
        )

    async def apply_completion(
        self,
        user_id: uuid.UUID,
        xp_earned: int,
        session_kind: SessionKind,
        session_stats: Optional[SessionStats] = None,
    ) -> CompletionOutcome:
        """Apply one completed session to the owner's progress record."""
        stats = session_stats or SessionStats()
        kind = SessionKind(session_kind)
        now = utcnow()

        # Read-modify-write: lock and reread so a completion committed meanwhile is not lost
        progress = await self.get_or_create(user_id, for_update=True)
        previous_level = progress.current_level

        xp_earned = max(int(xp_earned), 0)
        progress.experience_points += xp_earned
        completed_count = self._count_completion(progress, kind, xp_earned, stats.hours)

        if kind.value in self.settings.streak_qualifying_kinds:
            self._update_streak(progress, now)

        self._recompute_level(progress)

        exam = None
        if kind is SessionKind.ADAPTIVE_EXAM and stats.accuracy is not None:
            exam = ExamSnapshot(accuracy=stats.accuracy, final_ability=stats.final_ability)
        new_badges = await self._evaluate_badges(progress, exam=exam, now=now)

        if completed_count in MILESTONE_COUNTS:
            progress.milestones.append(
                Milestone(milestone=f"{completed_count} {_MILESTONE_LABELS[kind]}", achieved_at=now)
            )

        await self.event_store.log(
            event_type=EventType.XP_AWARDED,
            entity_type="progress",
            entity_id=progress.id,
            user_id=user_id,
            payload={
                "xp_earned": xp_earned,
                "session_kind": kind.value,
                "session_id": str(stats.session_id) if stats.session_id else None,
                "total_xp": progress.experience_points,
            },
        )
        if progress.current_level > previous_level:
            await self.event_store.log(
                event_type=EventType.LEVEL_UP,
                entity_type="progress",
                entity_id=progress.id,
                user_id=user_id,
                payload={"from_level": previous_level, "to_level": progress.current_level},
            )
            logger.info(
                "Level up",
                extra={"owner_id": str(user_id), "from_level": previous_level, "to_level": progress.current_level},
            )

        await self.session.flush()

        return CompletionOutcome(
            new_badges=[badge_award(b) for b in new_badges],
            xp_earned=xp_earned,
            total_xp=progress.experience_points,
            level=progress.current_level,
            previous_level=previous_level,
            level_up=progress.current_level > previous_level,
        )

    def _count_completion(
        self,
        progress: ProgressRecord,
        kind: SessionKind,
        xp_earned: int,
        hours: float,
    ) -> int:
        """Bump the per-kind counter and XP source; returns the new count for that kind."""
        if kind is SessionKind.PRACTICE:
            progress.xp_from_practice += xp_earned
            progress.practice_sessions_completed += 1
            return progress.practice_sessions_completed
        if kind is SessionKind.SECTIONAL:
            progress.xp_from_sectional += xp_earned
            progress.sectional_tests_completed += 1
            return progress.sectional_tests_completed
        if kind is SessionKind.ADAPTIVE_EXAM:
            progress.xp_from_exams += xp_earned
            progress.adaptive_exams_completed += 1
            return progress.adaptive_exams_completed

        progress.xp_from_sessions += xp_earned
        progress.sessions_completed += 1
        progress.total_hours += max(hours, 0.0)
        if kind is SessionKind.LIVE_SESSION:
            progress.live_sessions_attended += 1
            return progress.live_sessions_attended
        progress.normal_sessions_completed += 1
        return progress.sessions_completed

    @staticmethod
    def _update_streak(progress: ProgressRecord, now: datetime) -> None:
        """
        Same calendar day: unchanged. Next activity within 24h on a new day:
        +1. Anything else starts a new streak of 1.
        """
        last = progress.streak_last_activity
        if last is not None and last.date() == now.date():
            return
        if last is not None and now - last <= STREAK_WINDOW:
            progress.streak_current += 1
        else:
            progress.streak_current = 1
        progress.streak_longest = max(progress.streak_longest, progress.streak_current)
        progress.streak_last_activity = now

    def _recompute_level(self, progress: ProgressRecord) -> None:
        progress.current_level = max(
            progress.current_level,
            level_for(progress.experience_points, self.settings.xp_per_level),
        )

    async def _evaluate_badges(
        self,
        progress: ProgressRecord,
        exam: Optional[ExamSnapshot],
        now: datetime,
    ) -> List[EarnedBadge]:
        """
        Award every not-yet-held badge whose predicate holds on the current
        state. Repeats until a pass awards nothing, since badge XP can unlock
        further experience badges.
        """
        awarded: List[EarnedBadge] = []
        held = {b.badge_id for b in progress.badges}

        while True:
            newly: List[EarnedBadge] = []
            for definition in CATALOG:
                if definition.badge_id in held:
                    continue
                if not is_satisfied(definition, progress, exam):
                    continue
                badge = EarnedBadge(
                    badge_id=definition.badge_id,
                    name=definition.name,
                    description=definition.description,
                    category=definition.category.value,
                    icon=definition.icon,
                    xp_reward=definition.xp_reward,
                    earned_at=now,
                )
                progress.badges.append(badge)
                held.add(definition.badge_id)
                newly.append(badge)

                progress.experience_points += definition.xp_reward
                progress.xp_from_badges += definition.xp_reward
                self._recompute_level(progress)

            if not newly:
                break
            awarded.extend(newly)

        for badge in awarded:
            await self.event_store.log(
                event_type=EventType.BADGE_AWARDED,
                entity_type="progress",
                entity_id=progress.id,
                user_id=progress.user_id,
                payload={"badge_id": badge.badge_id, "xp_reward": badge.xp_reward},
            )
            logger.info(
                "Badge awarded",
                extra={"owner_id": str(progress.user_id), "badge_id": badge.badge_id},
            )
        return awarded
