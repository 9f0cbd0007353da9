"""
Badge Rule Engine - evaluates badge criteria and awards each badge at most once.

The (user_id, badge_id) unique constraint is the only "at most once" guard:
every award is an INSERT ... ON CONFLICT DO NOTHING RETURNING id, and a
conflict means another evaluation got there first. A badge's bonus XP is
credited in the same transaction as its award row.
"""

import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Dict, List, Optional, Tuple

from pydantic import BaseModel
from sqlalchemy import Integer, and_, case, cast, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from studybuddy.database import dialect_insert
from studybuddy.engines.badges.rules import ActivityAggregates, BadgeRule, BadgeRules, UnitStats
from studybuddy.engines.entitlements.tier_policy import QuotaFeature
from studybuddy.engines.notifications import LoggingNotifier, ProgressionNotifier
from studybuddy.engines.progression.levels import MILESTONE_BONUS_EVENT
from studybuddy.engines.unit_of_work import atomic
from studybuddy.kernel.models.activity import QuestionAttempt, SessionType, StudySession
from studybuddy.kernel.models.badge import BadgeAward, BadgeDefinition
from studybuddy.kernel.models.base import generate_uuid
from studybuddy.kernel.models.progression import UserProgressionState
from studybuddy.kernel.models.usage import UsageCounter
from studybuddy.logging_config import get_logger

if TYPE_CHECKING:
    from studybuddy.engines.progression.ledger import AwardResult, ProgressionLedger

logger = get_logger(__name__)


class BadgeTrigger(BaseModel):
    """What caused an evaluation: the latest XP total and the event type."""

    new_xp_total: int = 0
    event_type: Optional[str] = None


class UnlockedBadge(BaseModel):
    """A badge newly granted by an evaluation."""

    badge_id: str
    name: str
    description: str = ""
    icon: Optional[str] = None
    tier: str = "bronze"
    bonus_xp: int = 0


class BadgeStatus(BaseModel):
    """A catalog badge and whether the user holds it."""

    badge_id: str
    name: str
    description: str = ""
    criteria_type: str
    criteria_value: int
    icon: Optional[str] = None
    tier: str = "bronze"
    earned: bool = False
    awarded_at: Optional[datetime] = None


class BadgeRuleEngine:
    """
    Evaluates badge definitions for a user.

    Not transactional with whatever triggered it: safe to re-run, and a
    failed run is simply repeated on the next trigger.
    """

    def __init__(
        self,
        session: AsyncSession,
        ledger: "ProgressionLedger",
        notifier: Optional[ProgressionNotifier] = None,
    ):
        self.session = session
        self.ledger = ledger
        self.notifier = notifier or LoggingNotifier()

    async def _awarded_ids(self, user_id: uuid.UUID) -> set[str]:
        q = select(BadgeAward.badge_id).where(BadgeAward.user_id == user_id)
        result = await self.session.execute(q)
        return set(result.scalars().all())

    async def load_aggregates(self, user_id: uuid.UUID) -> ActivityAggregates:
        """Read the activity totals the criteria are evaluated against."""
        state = (
            await self.session.execute(
                select(UserProgressionState.total_xp, UserProgressionState.study_streak).where(
                    UserProgressionState.user_id == user_id,
                )
            )
        ).one_or_none()

        not_flashcards = StudySession.session_type != SessionType.FLASHCARDS.value
        session_totals = (
            await self.session.execute(
                select(
                    func.coalesce(func.sum(case((not_flashcards, 1), else_=0)), 0),
                    func.coalesce(func.sum(StudySession.correct_answers), 0),
                    func.coalesce(
                        func.sum(
                            case(
                                (
                                    and_(
                                        StudySession.total_questions > 0,
                                        StudySession.correct_answers == StudySession.total_questions,
                                    ),
                                    1,
                                ),
                                else_=0,
                            )
                        ),
                        0,
                    ),
                ).where(StudySession.user_id == user_id)
            )
        ).one()

        unit_rows = await self.session.execute(
            select(
                QuestionAttempt.unit,
                func.count(QuestionAttempt.id),
                func.sum(cast(QuestionAttempt.correct, Integer)),
            )
            .where(QuestionAttempt.user_id == user_id)
            .group_by(QuestionAttempt.unit)
        )
        unit_stats: Dict[str, UnitStats] = {
            unit: UnitStats(correct=int(correct or 0), total=int(total))
            for unit, total, correct in unit_rows.all()
        }

        flashcards = (
            await self.session.execute(
                select(UsageCounter.lifetime_used).where(
                    UsageCounter.user_id == user_id,
                    UsageCounter.feature == QuotaFeature.FLASHCARDS.value,
                )
            )
        ).scalar_one_or_none()

        return ActivityAggregates(
            total_xp=state[0] if state else 0,
            study_streak=state[1] if state else 0,
            sessions_completed=int(session_totals[0]),
            questions_correct=int(session_totals[1]),
            has_perfect_session=int(session_totals[2]) > 0,
            unit_stats=unit_stats,
            flashcards_completed=flashcards or 0,
        )

    async def _award(self, user_id: uuid.UUID, badge: UnlockedBadge) -> Tuple[bool, Optional["AwardResult"]]:
        """
        Insert the award and credit its bonus XP in one transaction.

        Returns (inserted, bonus). ``inserted`` is False when the user already
        holds the badge; a failed bonus credit rolls the award back with it.
        """
        async with atomic(self.session, "badges.award"):
            result = await self.session.execute(
                dialect_insert(self.session, BadgeAward)
                .values(id=generate_uuid(), user_id=user_id, badge_id=badge.badge_id)
                .on_conflict_do_nothing(index_elements=["user_id", "badge_id"])
                .returning(BadgeAward.id)
            )
            if result.scalar_one_or_none() is None:
                return False, None
            bonus = None
            if badge.bonus_xp > 0:
                bonus = await self.ledger.apply_award(user_id, MILESTONE_BONUS_EVENT, badge.bonus_xp)
        return True, bonus

    async def evaluate_badges(
        self,
        user_id: uuid.UUID,
        trigger: Optional[BadgeTrigger] = None,
    ) -> List[UnlockedBadge]:
        """
        Award every badge whose criteria are now met.

        Returns only badges this call actually inserted, including any
        unlocked by the milestone bonus XP they credited.
        """
        trigger = trigger or BadgeTrigger()
        definitions = (
            await self.session.execute(select(BadgeDefinition).execution_options(populate_existing=True))
        ).scalars().all()
        awarded = await self._awarded_ids(user_id)
        pending = [
            UnlockedBadge(
                badge_id=d.id,
                name=d.name,
                description=d.description,
                icon=d.icon,
                tier=d.tier,
                bonus_xp=d.bonus_xp,
            )
            for d in definitions
            if d.id not in awarded
        ]
        if not pending:
            return []
        rules = {
            d.id: BadgeRule(badge_id=d.id, criteria_type=d.criteria_type, criteria_value=d.criteria_value)
            for d in definitions
        }

        aggregates = await self.load_aggregates(user_id)
        aggregates.total_xp = max(aggregates.total_xp, trigger.new_xp_total)

        unlocked: List[UnlockedBadge] = []
        for badge in pending:
            if not BadgeRules.is_met(rules[badge.badge_id], aggregates, trigger.event_type):
                continue
            inserted, bonus = await self._award(user_id, badge)
            if not inserted:
                continue

            unlocked.append(badge)
            logger.info("Badge awarded", extra={"user_id": str(user_id), "badge_id": badge.badge_id})
            try:
                await self.notifier.badge_unlocked(user_id, badge.badge_id, badge.name)
            except Exception:
                logger.exception("Notifier failed", extra={"notification": "badge_unlocked"})

            if bonus is not None:
                await self.ledger.announce(bonus)
                unlocked.extend(
                    await self.evaluate_badges(
                        user_id,
                        BadgeTrigger(new_xp_total=bonus.total_after_bonus, event_type=MILESTONE_BONUS_EVENT),
                    )
                )

        return unlocked

    async def badge_status(self, user_id: uuid.UUID) -> List[BadgeStatus]:
        """Full catalog with the user's earned badges marked."""
        q = (
            select(BadgeDefinition, BadgeAward.awarded_at)
            .outerjoin(
                BadgeAward,
                and_(BadgeAward.badge_id == BadgeDefinition.id, BadgeAward.user_id == user_id),
            )
            .order_by(BadgeDefinition.criteria_type, BadgeDefinition.criteria_value)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(q)
        return [
            BadgeStatus(
                badge_id=d.id,
                name=d.name,
                description=d.description,
                criteria_type=d.criteria_type,
                criteria_value=d.criteria_value,
                icon=d.icon,
                tier=d.tier,
                earned=awarded_at is not None,
                awarded_at=awarded_at,
            )
            for d, awarded_at in result.all()
        ]
