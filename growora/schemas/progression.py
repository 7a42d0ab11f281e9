"""
Pydantic schemas for the progression ledger.
"""

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel


class BadgeAward(BaseModel):
    """A badge as surfaced to the caller."""

    badge_id: str
    name: str
    description: str
    category: str
    icon: str
    xp_reward: int = 0
    earned_at: datetime


class MilestoneEntry(BaseModel):
    milestone: str
    achieved_at: datetime


class CompletionOutcome(BaseModel):
    """What the ledger did for one completed session."""

    new_badges: List[BadgeAward] = []
    xp_earned: int
    total_xp: int
    level: int
    previous_level: int
    level_up: bool = False


class ProgressSummary(BaseModel):
    """Read-only snapshot of a user's progress record."""

    user_id: uuid.UUID
    level: int
    experience_points: int
    xp_to_next_level: int
    xp_from_practice: int
    xp_from_sectional: int
    xp_from_exams: int
    xp_from_sessions: int
    xp_from_badges: int
    sessions_completed: int
    live_sessions_attended: int
    normal_sessions_completed: int
    total_hours: float
    practice_sessions_completed: int
    sectional_tests_completed: int
    adaptive_exams_completed: int
    courses_completed: int
    streak_current: int
    streak_longest: int
    streak_last_activity: Optional[datetime] = None
    badges: List[BadgeAward] = []
    milestones: List[MilestoneEntry] = []
