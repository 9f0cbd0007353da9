"""
Entitlement Engine - tier policy, usage quotas and access decisions.
"""

from studybuddy.engines.entitlements.tier_policy import (
    FEATURE_FLAGS,
    FEATURE_PERIODS,
    MOST_RESTRICTIVE_TIER,
    TIER_LIMITS,
    TIER_ORDER,
    QuotaFeature,
    Tier,
    TierLimits,
    parse_feature,
    parse_tier,
)
from studybuddy.engines.entitlements.usage_tracker import (
    CounterState,
    IncrementResult,
    UsageQuotaTracker,
    next_reset_date,
    period_start_for,
    remaining,
)
from studybuddy.engines.entitlements.resolver import (
    EntitlementResolver,
    QuotaDecision,
    UpgradeSuggestion,
)
from studybuddy.engines.entitlements.subscriptions import SubscriptionReader

__all__ = [
    "FEATURE_FLAGS",
    "FEATURE_PERIODS",
    "MOST_RESTRICTIVE_TIER",
    "TIER_LIMITS",
    "TIER_ORDER",
    "QuotaFeature",
    "Tier",
    "TierLimits",
    "parse_feature",
    "parse_tier",
    "CounterState",
    "IncrementResult",
    "UsageQuotaTracker",
    "next_reset_date",
    "period_start_for",
    "remaining",
    "EntitlementResolver",
    "QuotaDecision",
    "UpgradeSuggestion",
    "SubscriptionReader",
]
