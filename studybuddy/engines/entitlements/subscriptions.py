"""
Subscription lookup - read-only view of the billing collaborator's tier data.
"""

import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from studybuddy.engines.entitlements.tier_policy import MOST_RESTRICTIVE_TIER, Tier, parse_tier
from studybuddy.kernel.models.subscription import UserSubscription
from studybuddy.logging_config import get_logger

logger = get_logger(__name__)


class SubscriptionReader:
    """Resolves a user's tier. Never writes subscription state."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def tier_for(self, user_id: uuid.UUID) -> Tier:
        """Current tier; users without a subscription row are on the most restrictive tier."""
        q = select(UserSubscription.tier).where(UserSubscription.user_id == user_id)
        result = await self.session.execute(q)
        raw = result.scalar_one_or_none()
        if raw is None:
            logger.debug("No subscription on record", extra={"user_id": str(user_id)})
            return MOST_RESTRICTIVE_TIER
        return parse_tier(raw)
