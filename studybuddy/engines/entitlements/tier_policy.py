"""
Tier Policy Table - static limits per subscription tier.

Loaded once at import and exposed as a read-only mapping. Numeric quotas use
``None`` for unlimited.
"""

from dataclasses import dataclass, fields
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Optional

from studybuddy.kernel.models.usage import PeriodKind
from studybuddy.logging_config import get_logger

logger = get_logger(__name__)


class Tier(str, Enum):
    """Subscription plans."""
    FREE = "free"
    PER_PAPER = "per_paper"
    PRO = "pro"
    ELITE = "elite"


# Cheapest first; used for fail-closed defaults and upgrade suggestions
TIER_ORDER = (Tier.FREE, Tier.PER_PAPER, Tier.PRO, Tier.ELITE)
MOST_RESTRICTIVE_TIER = Tier.FREE


class QuotaFeature(str, Enum):
    """Features gated by a periodic usage counter."""
    QUESTIONS = "questions"
    FLASHCARDS = "flashcards"
    MOCK_EXAMS = "mock_exams"


FEATURE_PERIODS: Mapping[QuotaFeature, PeriodKind] = MappingProxyType({
    QuotaFeature.QUESTIONS: PeriodKind.DAILY,
    QuotaFeature.FLASHCARDS: PeriodKind.DAILY,
    QuotaFeature.MOCK_EXAMS: PeriodKind.WEEKLY,
})

# TierLimits attribute holding the periodic quota of each feature
_PERIOD_QUOTA_ATTRS = MappingProxyType({
    QuotaFeature.QUESTIONS: "daily_questions",
    QuotaFeature.FLASHCARDS: "daily_flashcards",
    QuotaFeature.MOCK_EXAMS: "mocks_per_week",
})

_LIFETIME_QUOTA_ATTRS = MappingProxyType({
    QuotaFeature.MOCK_EXAMS: "lifetime_mocks",
})

FEATURE_FLAGS = (
    "ai_chat",
    "spaced_repetition",
    "advanced_analytics",
    "heatmaps",
    "ai_tutor",
    "predictive_analytics",
    "benchmarking",
    "exam_week_mode",
    "multi_paper_dashboard",
    "ai_copilot",
)


@dataclass(frozen=True)
class TierLimits:
    """Limits and feature flags for one tier."""

    tier: Tier
    question_bank_percent: int
    daily_questions: Optional[int]
    daily_flashcards: Optional[int]
    mocks_per_week: Optional[int]
    lifetime_mocks: Optional[int]
    study_plan_days: Optional[int]

    ai_chat: bool = False
    spaced_repetition: bool = False
    advanced_analytics: bool = False
    heatmaps: bool = False
    ai_tutor: bool = False
    predictive_analytics: bool = False
    benchmarking: bool = False
    exam_week_mode: bool = False
    multi_paper_dashboard: bool = False
    ai_copilot: bool = False

    def quota_for(self, feature: QuotaFeature) -> Optional[int]:
        """Periodic limit for a feature (None = unlimited)."""
        return getattr(self, _PERIOD_QUOTA_ATTRS[feature])

    def lifetime_quota_for(self, feature: QuotaFeature) -> Optional[int]:
        """Lifetime limit for a feature, if the tier has one."""
        attr = _LIFETIME_QUOTA_ATTRS.get(feature)
        return getattr(self, attr) if attr else None

    def as_dict(self) -> dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


TIER_LIMITS: Mapping[Tier, TierLimits] = MappingProxyType({
    Tier.FREE: TierLimits(
        tier=Tier.FREE,
        question_bank_percent=10,
        daily_questions=25,
        daily_flashcards=10,
        mocks_per_week=1,
        lifetime_mocks=1,
        study_plan_days=7,
    ),
    Tier.PER_PAPER: TierLimits(
        tier=Tier.PER_PAPER,
        question_bank_percent=100,
        daily_questions=None,
        daily_flashcards=10,
        mocks_per_week=1,
        lifetime_mocks=None,
        study_plan_days=7,
        ai_chat=True,
    ),
    Tier.PRO: TierLimits(
        tier=Tier.PRO,
        question_bank_percent=100,
        daily_questions=None,
        daily_flashcards=None,
        mocks_per_week=4,
        lifetime_mocks=None,
        study_plan_days=None,
        ai_chat=True,
        spaced_repetition=True,
        advanced_analytics=True,
        heatmaps=True,
    ),
    Tier.ELITE: TierLimits(
        tier=Tier.ELITE,
        question_bank_percent=100,
        daily_questions=None,
        daily_flashcards=None,
        mocks_per_week=None,
        lifetime_mocks=None,
        study_plan_days=None,
        ai_chat=True,
        spaced_repetition=True,
        advanced_analytics=True,
        heatmaps=True,
        ai_tutor=True,
        predictive_analytics=True,
        benchmarking=True,
        exam_week_mode=True,
        multi_paper_dashboard=True,
        ai_copilot=True,
    ),
})


def parse_tier(value: Any) -> Tier:
    """
    Coerce a raw tier value to a Tier, failing closed.

    Unknown, missing or malformed values resolve to the most restrictive tier
    so a lookup gap never grants access.
    """
    if isinstance(value, Tier):
        return value
    try:
        return Tier(str(value).strip().lower())
    except ValueError:
        logger.warning(
            "Unknown tier, falling back to most restrictive",
            extra={"tier": str(value), "fallback": MOST_RESTRICTIVE_TIER.value},
        )
        return MOST_RESTRICTIVE_TIER


def parse_feature(value: Any) -> Optional[QuotaFeature]:
    """Return the QuotaFeature for value, or None if it is not a quota feature."""
    if isinstance(value, QuotaFeature):
        return value
    try:
        return QuotaFeature(str(value))
    except ValueError:
        return None
