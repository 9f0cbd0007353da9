"""
API v1 routes.
"""

from fastapi import APIRouter

from studybuddy.api.v1 import badges, entitlements, progression
from studybuddy.schemas.common import ErrorResponse

ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Engine rejected the request"},
    422: {"model": ErrorResponse, "description": "Invalid activity or request body"},
    503: {"model": ErrorResponse, "description": "Store write failed; safe to retry"},
}

router = APIRouter(responses=ERROR_RESPONSES)

router.include_router(progression.router, prefix="/users/{user_id}", tags=["Progression"])
router.include_router(badges.router, prefix="/users/{user_id}", tags=["Badges"])
router.include_router(entitlements.router, prefix="/users/{user_id}", tags=["Entitlements"])
