"""
Progression endpoints - XP awards, progression state, ledger history and activity.
"""

import uuid
from datetime import datetime, timezone

from fastapi import APIRouter, Query, status

from studybuddy.api.deps import Ledger, Recorder
from studybuddy.engines.activity.recorder import ActivityEvent, ActivityOutcome
from studybuddy.engines.progression.ledger import AwardResult, ReconciliationReport
from studybuddy.schemas.progression import (
    ActivityRequest,
    AwardXPRequest,
    ProgressionResponse,
    XPHistoryResponse,
)

router = APIRouter()


@router.get("/progression", response_model=ProgressionResponse)
async def get_progression(user_id: uuid.UUID, ledger: Ledger):
    """Current XP, level, streak and progress toward the next level."""
    state = await ledger.get_state(user_id)
    return ProgressionResponse(
        total_xp=state.total_xp,
        level=state.level,
        study_streak=state.study_streak,
        last_study_date=state.last_study_date,
        current_level_xp=state.progress.current_level_xp,
        next_level_xp=state.progress.next_level_xp,
        progress_percent=state.progress.progress_percent,
    )


@router.post("/xp", response_model=AwardResult)
async def award_xp(user_id: uuid.UUID, body: AwardXPRequest, ledger: Ledger):
    """Credit XP for an event."""
    return await ledger.award_xp(user_id, body.event_type, body.value)


@router.get("/xp/history", response_model=XPHistoryResponse)
async def get_xp_history(
    user_id: uuid.UUID,
    ledger: Ledger,
    limit: int = Query(50, ge=1, le=500),
):
    items = await ledger.history(user_id, limit=limit)
    return XPHistoryResponse(items=items, total=len(items))


@router.get("/xp/reconcile", response_model=ReconciliationReport)
async def reconcile_xp(user_id: uuid.UUID, ledger: Ledger):
    """Compare the stored XP total with the ledger sum."""
    return await ledger.reconcile(user_id)


@router.post("/activity", response_model=ActivityOutcome, status_code=status.HTTP_201_CREATED)
async def record_activity(user_id: uuid.UUID, body: ActivityRequest, recorder: Recorder):
    """Record a completed activity: session results, usage, streak, XP and badges."""
    now = datetime.now(timezone.utc)
    event = ActivityEvent(
        user_id=user_id,
        event_type=body.event_type,
        occurred_at=body.occurred_at or now,
        xp_value=body.xp_value,
        session_stats=body.session_stats,
        count_usage=body.count_usage,
    )
    return await recorder.record(event, now=now)
