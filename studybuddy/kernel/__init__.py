"""
Kernel Layer

Durable state owned by the engine:
- Progression state and the append-only XP ledger
- Usage counters with periodic reset
- Badge definitions and awards (unique per user and badge)
- Recorded study sessions used as badge aggregates

Invariants:
- total_xp only ever grows, and equals the sum of the user's ledger entries
- A badge is awarded at most once per user, enforced by a unique constraint
- Subscription tiers are read here, never written
"""

from studybuddy.kernel.models import (
    BadgeAward,
    BadgeCriteria,
    BadgeDefinition,
    PeriodKind,
    QuestionAttempt,
    SessionType,
    StudySession,
    UsageCounter,
    UserProgressionState,
    UserSubscription,
    XPEvent,
)

__all__ = [
    "BadgeAward",
    "BadgeCriteria",
    "BadgeDefinition",
    "PeriodKind",
    "QuestionAttempt",
    "SessionType",
    "StudySession",
    "UsageCounter",
    "UserProgressionState",
    "UserSubscription",
    "XPEvent",
]
