"""
Entitlement endpoints - tier limits, feature flags, question bank and quota consumption.
"""

import uuid
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Query

from studybuddy.api.deps import Recorder
from studybuddy.engines.entitlements.resolver import EntitlementResolver, QuotaDecision
from studybuddy.schemas.common import ErrorResponse
from studybuddy.schemas.entitlements import (
    ConsumeRequest,
    EntitlementsResponse,
    FeatureAccessResponse,
    QuestionBankResponse,
)

router = APIRouter()


@router.get("/entitlements", response_model=EntitlementsResponse)
async def get_entitlements(user_id: uuid.UUID, recorder: Recorder):
    """Tier limits and the current state of every quota."""
    summary = await recorder.usage_summary(user_id, datetime.now(timezone.utc))
    return EntitlementsResponse(
        tier=summary.tier,
        limits=EntitlementResolver.limits_for(summary.tier).as_dict(),
        quotas=summary.quotas,
    )


@router.get("/entitlements/features/{flag}", response_model=FeatureAccessResponse)
async def check_feature(user_id: uuid.UUID, flag: str, recorder: Recorder):
    """Whether the user's tier grants ``flag``; locked flags carry an upgrade suggestion."""
    tier = await recorder.subscriptions.tier_for(user_id)
    enabled = EntitlementResolver.has_feature(tier, flag)
    return FeatureAccessResponse(
        flag=flag,
        tier=tier,
        enabled=enabled,
        upgrade=None if enabled else EntitlementResolver.upgrade_suggestion(flag),
    )


@router.get("/entitlements/question-bank", response_model=QuestionBankResponse)
async def question_bank_access(
    user_id: uuid.UUID,
    recorder: Recorder,
    total_questions: int = Query(..., ge=0),
):
    tier = await recorder.subscriptions.tier_for(user_id)
    return QuestionBankResponse(
        tier=tier,
        total_questions=total_questions,
        visible_questions=EntitlementResolver.question_bank_visible_count(tier, total_questions),
        question_bank_percent=EntitlementResolver.limits_for(tier).question_bank_percent,
    )


@router.post(
    "/usage/{feature}/consume",
    response_model=QuotaDecision,
    responses={429: {"model": ErrorResponse, "description": "Quota exhausted; body carries the decision"}},
)
async def consume_quota(
    user_id: uuid.UUID,
    feature: str,
    recorder: Recorder,
    body: Optional[ConsumeRequest] = None,
):
    """Take quota for an action, or refuse with 429 and the structured decision."""
    by = body.by if body else 1
    return await recorder.consume(user_id, feature, datetime.now(timezone.utc), by=by)
