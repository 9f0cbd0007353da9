"""
Badge schemas.
"""

from typing import List

from pydantic import BaseModel

from studybuddy.engines.badges.badge_engine import BadgeStatus, UnlockedBadge


class BadgeListResponse(BaseModel):
    badges: List[BadgeStatus]
    earned_count: int
    total_count: int


class BadgeEvaluationResponse(BaseModel):
    unlocked: List[UnlockedBadge]
