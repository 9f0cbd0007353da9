"""
Badge endpoints - catalog status and on-demand evaluation.
"""

import uuid

from fastapi import APIRouter

from studybuddy.api.deps import Ledger
from studybuddy.engines.badges.badge_engine import BadgeTrigger
from studybuddy.schemas.badges import BadgeEvaluationResponse, BadgeListResponse

router = APIRouter()


@router.get("/badges", response_model=BadgeListResponse)
async def list_badges(user_id: uuid.UUID, ledger: Ledger):
    """Every catalog badge with the user's earned ones marked."""
    badges = await ledger.badges.badge_status(user_id)
    return BadgeListResponse(
        badges=badges,
        earned_count=sum(1 for b in badges if b.earned),
        total_count=len(badges),
    )


@router.post("/badges/evaluate", response_model=BadgeEvaluationResponse)
async def evaluate_badges(user_id: uuid.UUID, ledger: Ledger):
    """Re-run badge evaluation against the user's current activity."""
    state = await ledger.get_state(user_id)
    unlocked = await ledger.badges.evaluate_badges(user_id, BadgeTrigger(new_xp_total=state.total_xp))
    return BadgeEvaluationResponse(unlocked=unlocked)
