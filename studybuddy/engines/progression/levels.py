"""
Level calculator - pure functions over the fixed XP threshold table.

Levels:
- Level 1: 0-99 XP
- Level 2: 100-299 XP
- Level 3: 300-699 XP
- Level 4: 700-1199 XP
- Level 5: 1200+ XP
"""

from types import MappingProxyType
from typing import Mapping

from pydantic import BaseModel

# index + 1 = level
LEVEL_THRESHOLDS: tuple[int, ...] = (0, 100, 300, 700, 1200)

# Span shown as the "next level" target once the table is exhausted
MAX_LEVEL_SPAN = 500

LEVEL_UP_BONUS_EVENT = "level_up_bonus"
MILESTONE_BONUS_EVENT = "milestone_bonus"

XP_VALUES: Mapping[str, int] = MappingProxyType({
    "onboarding_complete": 10,
    "first_session_created": 5,
    "session_completed": 15,
    "flashcard_session_10": 10,
    "flashcard_session_bonus": 5,
    "analytics_view": 3,
    "streak_3days": 20,
    MILESTONE_BONUS_EVENT: 50,
})


class LevelProgress(BaseModel):
    """Where a total XP sits within its level."""

    total_xp: int
    level: int
    current_level_xp: int
    next_level_xp: int
    progress_percent: float


def level_of(xp: int) -> int:
    """Highest level whose threshold ``xp`` has reached; never below 1."""
    for index in range(len(LEVEL_THRESHOLDS) - 1, -1, -1):
        if xp >= LEVEL_THRESHOLDS[index]:
            return index + 1
    return 1


def xp_for_level(level: int) -> int:
    """XP threshold at which ``level`` starts."""
    if level <= 1:
        return 0
    return LEVEL_THRESHOLDS[min(level, len(LEVEL_THRESHOLDS)) - 1]


def xp_for_next_level(level: int) -> int:
    """XP threshold of the level after ``level``."""
    if level >= len(LEVEL_THRESHOLDS):
        return LEVEL_THRESHOLDS[-1] + MAX_LEVEL_SPAN
    return LEVEL_THRESHOLDS[max(level, 1)]


def progress_within_level(xp: int, level: int) -> float:
    """Percentage of the way from ``level`` to the next one, clamped to [0, 100]."""
    floor = xp_for_level(level)
    ceiling = xp_for_next_level(level)
    if ceiling <= floor:
        return 100.0
    progress = (xp - floor) / (ceiling - floor) * 100
    return min(max(progress, 0.0), 100.0)


def level_progress(xp: int) -> LevelProgress:
    level = level_of(xp)
    return LevelProgress(
        total_xp=xp,
        level=level,
        current_level_xp=xp_for_level(level),
        next_level_xp=xp_for_next_level(level),
        progress_percent=round(progress_within_level(xp, level), 2),
    )
