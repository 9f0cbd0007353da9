"""
Entitlement Resolver - answers feature-access questions from tier + counters.

Stateless and deterministic: every answer depends only on the tier and the
counter values passed in. Unknown tiers resolve to the most restrictive tier.
"""

from datetime import date
from typing import Any, Optional

from pydantic import BaseModel

from studybuddy.engines.entitlements.tier_policy import (
    FEATURE_FLAGS,
    TIER_LIMITS,
    QuotaFeature,
    Tier,
    TierLimits,
    parse_feature,
    parse_tier,
)
from studybuddy.engines.entitlements.usage_tracker import CounterState, remaining

# Numeric limits where None means unlimited; has_feature treats unlimited as granted
_NUMERIC_LIMITS = (
    "daily_questions",
    "daily_flashcards",
    "mocks_per_week",
    "lifetime_mocks",
    "study_plan_days",
)


class QuotaDecision(BaseModel):
    """Structured answer to "may this user do this now?"."""

    feature: QuotaFeature
    tier: Tier
    allowed: bool
    used: int
    limit: Optional[int] = None
    remaining: Optional[int] = None
    lifetime_used: int = 0
    lifetime_limit: Optional[int] = None
    resets_on: Optional[date] = None
    reason: Optional[str] = None


class UpgradeSuggestion(BaseModel):
    """Tier to offer when a feature is locked."""

    tier: Tier
    message: str


class EntitlementResolver:
    """
    Façade over the tier policy table and counter state.

    All methods are static; the resolver holds no state of its own.
    """

    @staticmethod
    def limits_for(tier: Any) -> TierLimits:
        """Limits for a tier; unknown tiers get the most restrictive limits."""
        return TIER_LIMITS[parse_tier(tier)]

    @classmethod
    def has_feature(cls, tier: Any, flag_name: str) -> bool:
        """True if the flag is on, or the named quota is unlimited, for this tier."""
        limits = cls.limits_for(tier)
        if flag_name in FEATURE_FLAGS:
            return bool(getattr(limits, flag_name))
        if flag_name in _NUMERIC_LIMITS:
            return getattr(limits, flag_name) is None
        return False

    @classmethod
    def can_perform_action(cls, tier: Any, feature: Any, current_usage: int) -> bool:
        """
        Check-then-act gate: is there room for one more unit at ``current_usage``?

        Features outside QuotaFeature are refused.
        """
        quota_feature = parse_feature(feature)
        if quota_feature is None:
            return False
        limit = cls.limits_for(tier).quota_for(quota_feature)
        return limit is None or current_usage < limit

    @classmethod
    def question_bank_visible_count(cls, tier: Any, total_questions: int) -> int:
        """Number of questions of a bank visible to the tier (floor of the percent cap)."""
        if total_questions <= 0:
            return 0
        return (total_questions * cls.limits_for(tier).question_bank_percent) // 100

    @classmethod
    def can_access_mock_exam(cls, tier: Any, used_this_week: int, total_completed: int = 0) -> bool:
        """
        Mock exam gate.

        Tiers with a lifetime cap (free) are limited by the lifetime total
        regardless of the weekly counter.
        """
        limits = cls.limits_for(tier)
        lifetime_cap = limits.lifetime_quota_for(QuotaFeature.MOCK_EXAMS)
        if lifetime_cap is not None and total_completed >= lifetime_cap:
            return False
        return cls.can_perform_action(limits.tier, QuotaFeature.MOCK_EXAMS, used_this_week)

    @classmethod
    def can_access_flashcards(cls, tier: Any, used_today: int) -> bool:
        return cls.can_perform_action(tier, QuotaFeature.FLASHCARDS, used_today)

    @classmethod
    def can_access_study_plan(cls, tier: Any, days_from_now: int) -> bool:
        """Study plan tasks are visible up to the tier's planning horizon."""
        horizon = cls.limits_for(tier).study_plan_days
        return horizon is None or days_from_now <= horizon

    @classmethod
    def quota_decision(cls, tier: Any, counter: CounterState) -> QuotaDecision:
        """Decision for one more unit of ``counter.feature`` given its current state."""
        limits = cls.limits_for(tier)
        feature = counter.feature
        limit = limits.quota_for(feature)
        lifetime_limit = limits.lifetime_quota_for(feature)

        allowed = limit is None or counter.used < limit
        reason = None if allowed else "period_limit_reached"
        if lifetime_limit is not None and counter.lifetime_used >= lifetime_limit:
            allowed = False
            reason = "lifetime_limit_reached"

        left = remaining(limit, counter.used)
        if lifetime_limit is not None:
            lifetime_left = max(0, lifetime_limit - counter.lifetime_used)
            left = lifetime_left if left is None else min(left, lifetime_left)

        return QuotaDecision(
            feature=feature,
            tier=limits.tier,
            allowed=allowed,
            used=counter.used,
            limit=limit,
            remaining=left,
            lifetime_used=counter.lifetime_used,
            lifetime_limit=lifetime_limit,
            # A lifetime cap never resets, and an unlimited quota has nothing to reset
            resets_on=None if reason == "lifetime_limit_reached" or limit is None else counter.resets_on,
            reason=reason,
        )

    @staticmethod
    def upgrade_suggestion(flag_name: str) -> UpgradeSuggestion:
        """Subscription tier to offer for ``flag_name``: Pro if it grants it, otherwise Elite."""
        for tier in (Tier.PRO, Tier.ELITE):
            if EntitlementResolver.has_feature(tier, flag_name):
                return UpgradeSuggestion(
                    tier=tier,
                    message=f"Upgrade to {tier.value.replace('_', ' ').title()} to access {flag_name}",
                )
        return UpgradeSuggestion(tier=Tier.ELITE, message=f"Upgrade to Elite to access {flag_name}")
