"""
Entitlement schemas - tier limits, feature access and quota consumption.
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from studybuddy.engines.entitlements.resolver import QuotaDecision, UpgradeSuggestion
from studybuddy.engines.entitlements.tier_policy import Tier


class EntitlementsResponse(BaseModel):
    """Tier limits plus the user's current quota state."""

    tier: Tier
    limits: Dict[str, Any]
    quotas: Dict[str, QuotaDecision]


class FeatureAccessResponse(BaseModel):
    flag: str
    tier: Tier
    enabled: bool
    upgrade: Optional[UpgradeSuggestion] = None


class QuestionBankResponse(BaseModel):
    tier: Tier
    total_questions: int
    visible_questions: int
    question_bank_percent: int


class ConsumeRequest(BaseModel):
    by: int = Field(default=1, ge=0)
