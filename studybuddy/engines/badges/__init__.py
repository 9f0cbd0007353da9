"""
Badge Engine - criteria rules, one-time awards and the default catalog.
"""

from studybuddy.engines.badges.rules import (
    UNIT_ACCURACY_MIN_ATTEMPTS,
    ActivityAggregates,
    BadgeRule,
    BadgeRules,
    UnitStats,
)
from studybuddy.engines.badges.badge_engine import (
    BadgeRuleEngine,
    BadgeStatus,
    BadgeTrigger,
    UnlockedBadge,
)
from studybuddy.engines.badges.catalog import DEFAULT_BADGES, seed_badge_catalog

__all__ = [
    "UNIT_ACCURACY_MIN_ATTEMPTS",
    "ActivityAggregates",
    "BadgeRule",
    "BadgeRules",
    "UnitStats",
    "BadgeRuleEngine",
    "BadgeStatus",
    "BadgeTrigger",
    "UnlockedBadge",
    "DEFAULT_BADGES",
    "seed_badge_catalog",
]
