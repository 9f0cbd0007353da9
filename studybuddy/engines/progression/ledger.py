"""
Progression Ledger - append-only XP events and the running total (DB-backed).

Rules:
- Every credit is one atomic ``total_xp = total_xp + :value`` UPDATE plus one
  XPEvent row, committed together.
- Crossing a level threshold appends a second ``level_up_bonus`` entry in the
  same transaction. The bonus never cascades into a further bonus, so a call
  writes at most two ledger entries.
- Badge evaluation runs after the XP transaction commits; its failure never
  undoes the credit.
"""

import uuid
from datetime import date, datetime, timedelta
from typing import List, Optional

from pydantic import BaseModel
from sqlalchemy import case, func, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from studybuddy.config import get_settings
from studybuddy.database import dialect_insert
from studybuddy.engines.badges.badge_engine import BadgeRuleEngine, BadgeTrigger, UnlockedBadge
from studybuddy.engines.errors import InvalidActivityError, ProgressionError
from studybuddy.engines.notifications import LoggingNotifier, ProgressionNotifier
from studybuddy.engines.progression.levels import (
    LEVEL_UP_BONUS_EVENT,
    XP_VALUES,
    LevelProgress,
    level_of,
    level_progress,
)
from studybuddy.engines.unit_of_work import atomic
from studybuddy.kernel.models.base import generate_uuid
from studybuddy.kernel.models.progression import UserProgressionState, XPEvent
from studybuddy.logging_config import get_logger

logger = get_logger(__name__)

STREAK_BONUS_DAYS = 3
STREAK_BONUS_EVENT = "streak_3days"


class AwardResult(BaseModel):
    """Outcome of award_xp."""

    user_id: uuid.UUID
    event_type: str
    xp_awarded: int
    new_total: int
    new_level: int
    leveled_up: bool = False
    bonus_xp: int = 0
    total_after_bonus: int
    unlocked_badges: List[UnlockedBadge] = []


class ProgressionSnapshot(BaseModel):
    """User's progression state with level progress."""

    user_id: uuid.UUID
    total_xp: int = 0
    level: int = 1
    study_streak: int = 0
    last_study_date: Optional[date] = None
    progress: LevelProgress


class StreakUpdate(BaseModel):
    """Outcome of recording a study day."""

    user_id: uuid.UUID
    study_streak: int
    last_study_date: Optional[date] = None
    extended: bool
    streak_bonus: Optional[AwardResult] = None


class ReconciliationReport(BaseModel):
    """Comparison of the stored total against the ledger sum."""

    user_id: uuid.UUID
    stored_total: int
    ledger_total: int
    event_count: int
    consistent: bool


class XPHistoryEntry(BaseModel):
    event_type: str
    xp_value: int
    created_at: datetime


class ProgressionLedger:
    """
    Credits XP and maintains the derived level and study streak.

    Usage:
        ledger = ProgressionLedger(session)
        result = await ledger.award_xp(user_id, "session_completed")
    """

    def __init__(
        self,
        session: AsyncSession,
        notifier: Optional[ProgressionNotifier] = None,
        with_badges: bool = True,
        level_up_bonus: Optional[int] = None,
    ):
        self.session = session
        self.notifier = notifier or LoggingNotifier()
        self.level_up_bonus = get_settings().level_up_bonus_xp if level_up_bonus is None else level_up_bonus
        self.badges = BadgeRuleEngine(session, ledger=self, notifier=self.notifier) if with_badges else None

    @staticmethod
    def resolve_xp_value(event_type: str, explicit_value: Optional[int] = None) -> int:
        """XP for an event: the explicit value if given, else the fixed table value."""
        if not isinstance(event_type, str) or not event_type.strip() or len(event_type) > 50:
            raise InvalidActivityError("event_type must be a non-empty string of at most 50 characters", field="event_type")
        if explicit_value is not None:
            if not isinstance(explicit_value, int) or isinstance(explicit_value, bool) or explicit_value < 0:
                raise InvalidActivityError(
                    f"XP value must be a non-negative integer, got {explicit_value!r}", field="value",
                )
            return explicit_value
        if event_type not in XP_VALUES:
            raise InvalidActivityError(f"Unknown event type {event_type!r} and no explicit value", field="event_type")
        return XP_VALUES[event_type]

    async def _ensure_state(self, user_id: uuid.UUID) -> None:
        stmt = (
            dialect_insert(self.session, UserProgressionState)
            .values(id=generate_uuid(), user_id=user_id, total_xp=0, level=1, study_streak=0)
            .on_conflict_do_nothing(index_elements=["user_id"])
        )
        await self.session.execute(stmt)

    async def _credit(self, user_id: uuid.UUID, event_type: str, value: int) -> int:
        """Append one ledger entry and add its value to the total. Returns the new total."""
        result = await self.session.execute(
            update(UserProgressionState)
            .where(UserProgressionState.user_id == user_id)
            .values(total_xp=UserProgressionState.total_xp + value)
            .returning(UserProgressionState.total_xp)
            .execution_options(synchronize_session=False)
        )
        new_total = result.scalar_one()
        self.session.add(XPEvent(user_id=user_id, event_type=event_type, xp_value=value))
        await self.session.flush()
        return new_total

    async def _raise_level(self, user_id: uuid.UUID, level: int) -> None:
        # Levels only move up because totals only move up
        await self.session.execute(
            update(UserProgressionState)
            .where(UserProgressionState.user_id == user_id)
            .values(level=case((UserProgressionState.level < level, level), else_=UserProgressionState.level))
            .execution_options(synchronize_session=False)
        )

    async def _notify(self, method: str, *args) -> None:
        try:
            await getattr(self.notifier, method)(*args)
        except Exception:
            logger.exception("Notifier failed", extra={"notification": method})

    async def evaluate_badges(self, user_id: uuid.UUID, trigger: BadgeTrigger) -> List[UnlockedBadge]:
        """
        Run badge evaluation; failures are logged and left for the next trigger.

        A badge and its bonus XP commit together, so a failed run leaves the
        badge unawarded and the next evaluation picks it up again.
        """
        if self.badges is None:
            return []
        try:
            return await self.badges.evaluate_badges(user_id, trigger)
        except (ProgressionError, SQLAlchemyError):
            await self.session.rollback()
            logger.exception(
                "Badge evaluation failed; will be retried on the next activity",
                extra={"user_id": str(user_id), "event_type": trigger.event_type},
            )
            return []

    async def get_state(self, user_id: uuid.UUID) -> ProgressionSnapshot:
        """Current progression state (defaults for users with no activity yet)."""
        q = select(UserProgressionState).where(UserProgressionState.user_id == user_id)
        result = await self.session.execute(q.execution_options(populate_existing=True))
        row = result.scalar_one_or_none()
        if row is None:
            return ProgressionSnapshot(user_id=user_id, progress=level_progress(0))
        return ProgressionSnapshot(
            user_id=user_id,
            total_xp=row.total_xp,
            level=level_of(row.total_xp),
            study_streak=row.study_streak,
            last_study_date=row.last_study_date,
            progress=level_progress(row.total_xp),
        )

    async def apply_award(self, user_id: uuid.UUID, event_type: str, value: int) -> AwardResult:
        """
        Write a credit (and any level-up bonus) in the caller's transaction.

        Does not commit, notify or evaluate badges; see ``announce``.
        """
        if value == 0:
            snapshot = await self.get_state(user_id)
            return AwardResult(
                user_id=user_id,
                event_type=event_type,
                xp_awarded=0,
                new_total=snapshot.total_xp,
                new_level=snapshot.level,
                total_after_bonus=snapshot.total_xp,
            )

        await self._ensure_state(user_id)
        new_total = await self._credit(user_id, event_type, value)
        leveled_up = level_of(new_total) > level_of(new_total - value)
        bonus = 0
        final_total = new_total
        if leveled_up and self.level_up_bonus > 0:
            bonus = self.level_up_bonus
            final_total = await self._credit(user_id, LEVEL_UP_BONUS_EVENT, bonus)
        final_level = level_of(final_total)
        await self._raise_level(user_id, final_level)
        return AwardResult(
            user_id=user_id,
            event_type=event_type,
            xp_awarded=value,
            new_total=new_total,
            new_level=final_level,
            leveled_up=leveled_up,
            bonus_xp=bonus,
            total_after_bonus=final_total,
        )

    async def announce(self, result: AwardResult) -> None:
        """Log and notify a committed award."""
        if result.xp_awarded == 0:
            return
        logger.info(
            "XP credited",
            extra={
                "user_id": str(result.user_id),
                "event_type": result.event_type,
                "xp": result.xp_awarded,
                "total_xp": result.total_after_bonus,
                "leveled_up": result.leveled_up,
            },
        )
        await self._notify("xp_awarded", result.user_id, result.event_type, result.xp_awarded, result.new_total)
        if result.leveled_up:
            await self._notify("level_up", result.user_id, result.new_level, result.bonus_xp)

    async def award_xp(
        self,
        user_id: uuid.UUID,
        event_type: str,
        explicit_value: Optional[int] = None,
    ) -> AwardResult:
        """
        Credit XP for an event.

        Raises:
            InvalidActivityError: unknown event without a value, or a negative value.
            StoreWriteError: the credit was rolled back; nothing was recorded.
        """
        value = self.resolve_xp_value(event_type, explicit_value)
        if value == 0:
            return await self.apply_award(user_id, event_type, 0)

        async with atomic(self.session, "xp.award"):
            result = await self.apply_award(user_id, event_type, value)

        await self.announce(result)
        result.unlocked_badges = await self.evaluate_badges(
            user_id, BadgeTrigger(new_xp_total=result.total_after_bonus, event_type=event_type),
        )
        return result

    async def apply_study_day(self, user_id: uuid.UUID, today: date) -> StreakUpdate:
        """
        Update the streak in the caller's transaction.

        Same day: unchanged. Day after the last study day: +1. Otherwise: 1.
        Reaching a 3-day streak writes the ``streak_3days`` credit as well.
        """
        yesterday = today - timedelta(days=1)
        await self._ensure_state(user_id)
        result = await self.session.execute(
            update(UserProgressionState)
            .where(
                UserProgressionState.user_id == user_id,
                or_(
                    UserProgressionState.last_study_date.is_(None),
                    UserProgressionState.last_study_date < today,
                ),
            )
            .values(
                study_streak=case(
                    (UserProgressionState.last_study_date == yesterday, UserProgressionState.study_streak + 1),
                    else_=1,
                ),
                last_study_date=today,
            )
            .returning(UserProgressionState.study_streak, UserProgressionState.last_study_date)
            .execution_options(synchronize_session=False)
        )
        row = result.one_or_none()

        if row is None:
            snapshot = await self.get_state(user_id)
            return StreakUpdate(
                user_id=user_id,
                study_streak=snapshot.study_streak,
                last_study_date=snapshot.last_study_date,
                extended=False,
            )

        streak, last_day = row[0], row[1]
        bonus = None
        if streak == STREAK_BONUS_DAYS:
            bonus = await self.apply_award(user_id, STREAK_BONUS_EVENT, XP_VALUES[STREAK_BONUS_EVENT])
        return StreakUpdate(
            user_id=user_id,
            study_streak=streak,
            last_study_date=last_day,
            extended=True,
            streak_bonus=bonus,
        )

    async def record_study_day(self, user_id: uuid.UUID, today: date) -> StreakUpdate:
        """Register study on ``today``; a streak bonus is credited in the same transaction."""
        async with atomic(self.session, "streak.record"):
            streak = await self.apply_study_day(user_id, today)

        bonus = streak.streak_bonus
        if bonus is not None:
            await self.announce(bonus)
            bonus.unlocked_badges = await self.evaluate_badges(
                user_id, BadgeTrigger(new_xp_total=bonus.total_after_bonus, event_type=STREAK_BONUS_EVENT),
            )
        return streak

    async def history(self, user_id: uuid.UUID, limit: int = 50) -> List[XPHistoryEntry]:
        """Most recent ledger entries, newest first."""
        q = (
            select(XPEvent)
            .where(XPEvent.user_id == user_id)
            .order_by(XPEvent.created_at.desc())
            .limit(limit)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(q)
        return [
            XPHistoryEntry(event_type=e.event_type, xp_value=e.xp_value, created_at=e.created_at)
            for e in result.scalars().all()
        ]

    async def reconcile(self, user_id: uuid.UUID) -> ReconciliationReport:
        """Check that the ledger sum equals the stored total."""
        q = select(func.coalesce(func.sum(XPEvent.xp_value), 0), func.count(XPEvent.id)).where(
            XPEvent.user_id == user_id,
        )
        ledger_total, event_count = (await self.session.execute(q)).one()
        snapshot = await self.get_state(user_id)
        report = ReconciliationReport(
            user_id=user_id,
            stored_total=snapshot.total_xp,
            ledger_total=int(ledger_total),
            event_count=int(event_count),
            consistent=int(ledger_total) == snapshot.total_xp,
        )
        if not report.consistent:
            logger.warning(
                "XP ledger does not reconcile",
                extra={"user_id": str(user_id), "stored": report.stored_total, "ledger": report.ledger_total},
            )
        return report
