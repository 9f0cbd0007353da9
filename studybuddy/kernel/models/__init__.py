"""
Kernel Data Models

Core SQLAlchemy models for the progression and entitlement engine.
"""

from studybuddy.kernel.models.base import Base, TimestampMixin, generate_uuid
from studybuddy.kernel.models.progression import UserProgressionState, XPEvent
from studybuddy.kernel.models.usage import PeriodKind, UsageCounter
from studybuddy.kernel.models.badge import BadgeAward, BadgeCriteria, BadgeDefinition
from studybuddy.kernel.models.activity import QuestionAttempt, SessionType, StudySession
from studybuddy.kernel.models.subscription import UserSubscription

__all__ = [
    # Base
    "Base",
    "TimestampMixin",
    "generate_uuid",
    # Progression
    "UserProgressionState",
    "XPEvent",
    # Usage
    "PeriodKind",
    "UsageCounter",
    # Badges
    "BadgeAward",
    "BadgeCriteria",
    "BadgeDefinition",
    # Activity
    "QuestionAttempt",
    "SessionType",
    "StudySession",
    # Subscription
    "UserSubscription",
]
