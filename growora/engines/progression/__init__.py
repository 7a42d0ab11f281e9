"""
Progression Engine - XP, levels, streaks, badges and milestones.
"""

from growora.engines.progression.badge_catalog import (
    BadgeCategory,
    BadgeDefinition,
    BadgeMetric,
    CATALOG,
    BADGES_BY_ID,
)
from growora.engines.progression.ledger import (
    ProgressionLedger,
    SessionKind,
    SessionStats,
    level_for,
)

__all__ = [
    "BadgeCategory",
    "BadgeDefinition",
    "BadgeMetric",
    "CATALOG",
    "BADGES_BY_ID",
    "ProgressionLedger",
    "SessionKind",
    "SessionStats",
    "level_for",
]
