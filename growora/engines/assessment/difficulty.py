"""
Difficulty Ladder - four ordered tiers and the win/lose step rule.
"""

from enum import Enum


class Tier(str, Enum):
    """Question difficulty tiers, lowest first."""

    VERY_EASY = "very_easy"
    EASY = "easy"
    MODERATE = "moderate"
    DIFFICULT = "difficult"

    @property
    def rank(self) -> int:
        return _ORDER.index(self)

    @classmethod
    def from_label(cls, label: str) -> "Tier":
        """
        Parse a tier from a stored or legacy label.

        Accepts canonical values ("very_easy") and display labels
        ("Very easy", "Very Easy", "Moderate").
        """
        key = label.strip().lower().replace(" ", "_").replace("-", "_")
        try:
            return cls(key)
        except ValueError:
            raise ValueError(f"Unknown difficulty tier: {label!r}") from None


_ORDER = (Tier.VERY_EASY, Tier.EASY, Tier.MODERATE, Tier.DIFFICULT)


def next_tier(current: Tier, correct: bool) -> Tier:
    """One step up on a correct answer, one step down otherwise, clamped at both ends."""
    index = _ORDER.index(Tier(current))
    if correct:
        index = min(index + 1, len(_ORDER) - 1)
    else:
        index = max(index - 1, 0)
    return _ORDER[index]


def tier_from_numeric(level: int) -> Tier:
    """Map the oracle's numeric difficulty class (0..3) to a tier, clamping outliers."""
    return _ORDER[max(0, min(int(level), len(_ORDER) - 1))]
