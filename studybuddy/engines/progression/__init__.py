"""
Progression Engine - XP values and the level calculator.

The DB-backed ledger lives in studybuddy.engines.progression.ledger.
"""

from studybuddy.engines.progression.levels import (
    LEVEL_THRESHOLDS,
    LEVEL_UP_BONUS_EVENT,
    MAX_LEVEL_SPAN,
    MILESTONE_BONUS_EVENT,
    XP_VALUES,
    LevelProgress,
    level_of,
    level_progress,
    progress_within_level,
    xp_for_level,
    xp_for_next_level,
)

__all__ = [
    "LEVEL_THRESHOLDS",
    "LEVEL_UP_BONUS_EVENT",
    "MAX_LEVEL_SPAN",
    "MILESTONE_BONUS_EVENT",
    "XP_VALUES",
    "LevelProgress",
    "level_of",
    "level_progress",
    "progress_within_level",
    "xp_for_level",
    "xp_for_next_level",
]
