"""
Default badge catalog and idempotent seeding.
"""

from typing import List

from sqlalchemy.ext.asyncio import AsyncSession

from studybuddy.database import dialect_insert
from studybuddy.engines.unit_of_work import atomic
from studybuddy.kernel.models.badge import BadgeCriteria, BadgeDefinition
from studybuddy.logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_BADGES: List[dict] = [
    {
        "id": "welcome_aboard",
        "name": "Welcome Aboard",
        "description": "Complete onboarding",
        "criteria_type": BadgeCriteria.ONBOARDING.value,
        "criteria_value": 0,
        "icon": "rocket",
        "tier": "bronze",
        "bonus_xp": 0,
    },
    {
        "id": "first_steps",
        "name": "First Steps",
        "description": "Complete your first study session",
        "criteria_type": BadgeCriteria.SESSIONS_COMPLETED.value,
        "criteria_value": 1,
        "icon": "target",
        "tier": "bronze",
        "bonus_xp": 0,
    },
    {
        "id": "perfect_score",
        "name": "Perfect Score",
        "description": "Answer every question in a session correctly",
        "criteria_type": BadgeCriteria.PERFECT_QUIZ.value,
        "criteria_value": 0,
        "icon": "check",
        "tier": "silver",
        "bonus_xp": 0,
    },
    {
        "id": "week_warrior",
        "name": "Week Warrior",
        "description": "Maintain a 7-day study streak",
        "criteria_type": BadgeCriteria.STREAK.value,
        "criteria_value": 7,
        "icon": "flame",
        "tier": "silver",
        "bonus_xp": 0,
    },
    {
        "id": "consistency_hero",
        "name": "Consistency Hero",
        "description": "Maintain a 30-day study streak",
        "criteria_type": BadgeCriteria.STREAK.value,
        "criteria_value": 30,
        "icon": "star",
        "tier": "gold",
        "bonus_xp": 0,
    },
    {
        "id": "quick_learner",
        "name": "Quick Learner",
        "description": "Complete 50 flashcards",
        "criteria_type": BadgeCriteria.FLASHCARDS_COMPLETED.value,
        "criteria_value": 50,
        "icon": "zap",
        "tier": "bronze",
        "bonus_xp": 0,
    },
    {
        "id": "century",
        "name": "Century",
        "description": "Answer 100 questions correctly",
        "criteria_type": BadgeCriteria.QUESTIONS_CORRECT.value,
        "criteria_value": 100,
        "icon": "hundred",
        "tier": "silver",
        "bonus_xp": 0,
    },
    {
        "id": "unit_master",
        "name": "Unit Master",
        "description": "Reach 90% accuracy in a unit",
        "criteria_type": BadgeCriteria.UNIT_ACCURACY.value,
        "criteria_value": 90,
        "icon": "award",
        "tier": "gold",
        "bonus_xp": 0,
    },
    {
        "id": "rising_star",
        "name": "ACCA Rising Star",
        "description": "Reach 500 XP",
        "criteria_type": BadgeCriteria.XP_TOTAL.value,
        "criteria_value": 500,
        "icon": "trophy",
        "tier": "gold",
        "bonus_xp": 50,
    },
]


async def seed_badge_catalog(session: AsyncSession, badges: List[dict] = DEFAULT_BADGES) -> int:
    """
    Insert badge definitions that are not present yet.

    Existing definitions are left untouched. Returns the number inserted.
    """
    inserted = 0
    async with atomic(session, "badges.seed"):
        for badge in badges:
            stmt = (
                dialect_insert(session, BadgeDefinition)
                .values(**badge)
                .on_conflict_do_nothing(index_elements=["id"])
                .returning(BadgeDefinition.id)
            )
            result = await session.execute(stmt)
            if result.scalar_one_or_none() is not None:
                inserted += 1
    if inserted:
        logger.info("Badge catalog seeded", extra={"inserted": inserted})
    return inserted
