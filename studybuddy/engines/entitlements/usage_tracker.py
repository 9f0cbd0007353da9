"""
Usage Quota Tracker - per-user, per-feature counters with periodic reset (DB-backed).

Reset rules:
- daily counters reset when the calendar date of ``now`` passes ``period_start``
- weekly counters reset when ``now`` falls in a later week (weeks start on
  ``week_start``, Monday by default)

The reset is folded into the same UPDATE as the increment, so two requests
that both see a stale counter cannot each reset it and undercount. Only
forward crossings reset; a ``now`` earlier than the stored period never does.
"""

import uuid
from datetime import date, datetime, timedelta
from typing import Optional, Union

from pydantic import BaseModel
from sqlalchemy import case, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from studybuddy.config import get_settings
from studybuddy.database import dialect_insert
from studybuddy.engines.entitlements.tier_policy import FEATURE_PERIODS, QuotaFeature
from studybuddy.engines.errors import InvalidActivityError
from studybuddy.engines.unit_of_work import atomic
from studybuddy.kernel.models.base import generate_uuid
from studybuddy.kernel.models.usage import PeriodKind, UsageCounter
from studybuddy.logging_config import get_logger

logger = get_logger(__name__)

Moment = Union[datetime, date]


class CounterState(BaseModel):
    """Current state of one usage counter, with any due reset applied."""

    user_id: uuid.UUID
    feature: QuotaFeature
    period_kind: PeriodKind
    period_start: date
    used: int = 0
    lifetime_used: int = 0
    resets_on: date


class IncrementResult(BaseModel):
    """Outcome of an increment attempt."""

    feature: QuotaFeature
    new_used: int
    lifetime_used: int
    allowed: bool
    period_start: date
    resets_on: date


def _as_date(now: Moment) -> date:
    return now.date() if isinstance(now, datetime) else now


def period_start_for(kind: PeriodKind, now: Moment, week_start: int = 0) -> date:
    """First day of the period containing ``now``."""
    today = _as_date(now)
    if kind == PeriodKind.DAILY:
        return today
    offset = (today.weekday() - week_start) % 7
    return today - timedelta(days=offset)


def next_reset_date(kind: PeriodKind, period_start: date) -> date:
    """First day of the period after the one starting at ``period_start``."""
    return period_start + timedelta(days=1 if kind == PeriodKind.DAILY else 7)


def remaining(limit: Optional[int], used: int) -> Optional[int]:
    """Units left in the period; None when the limit is unlimited."""
    if limit is None:
        return None
    return max(0, limit - used)


class UsageQuotaTracker:
    """
    Tracks quota consumption for a user (database-backed).
    Each public mutating call is its own transaction on ``session``.
    """

    def __init__(self, session: AsyncSession, week_start: Optional[int] = None):
        self.session = session
        self.week_start = get_settings().week_start if week_start is None else week_start

    def _period(self, feature: QuotaFeature, now: Moment) -> tuple[PeriodKind, date]:
        kind = FEATURE_PERIODS[feature]
        return kind, period_start_for(kind, now, self.week_start)

    def _counter_filter(self, user_id: uuid.UUID, feature: QuotaFeature):
        return (UsageCounter.user_id == user_id, UsageCounter.feature == feature.value)

    async def _ensure_counter(
        self,
        user_id: uuid.UUID,
        feature: QuotaFeature,
        kind: PeriodKind,
        boundary: date,
    ) -> None:
        """Create the counter row if absent. Concurrent creators collapse to one row."""
        stmt = (
            dialect_insert(self.session, UsageCounter)
            .values(
                id=generate_uuid(),
                user_id=user_id,
                feature=feature.value,
                period_kind=kind.value,
                period_start=boundary,
                used=0,
                lifetime_used=0,
            )
            .on_conflict_do_nothing(index_elements=["user_id", "feature"])
        )
        await self.session.execute(stmt)

    async def _select_counter(self, user_id: uuid.UUID, feature: QuotaFeature) -> Optional[UsageCounter]:
        q = select(UsageCounter).where(*self._counter_filter(user_id, feature))
        result = await self.session.execute(q.execution_options(populate_existing=True))
        return result.scalar_one_or_none()

    def _state(
        self,
        user_id: uuid.UUID,
        feature: QuotaFeature,
        row: Optional[UsageCounter],
        kind: PeriodKind,
        boundary: date,
    ) -> CounterState:
        """Project a row onto the current period without writing."""
        if row is None:
            used, lifetime, start = 0, 0, boundary
        elif row.period_start < boundary:
            used, lifetime, start = 0, row.lifetime_used, boundary
        else:
            used, lifetime, start = row.used, row.lifetime_used, row.period_start
        return CounterState(
            user_id=user_id,
            feature=feature,
            period_kind=kind,
            period_start=start,
            used=used,
            lifetime_used=lifetime,
            resets_on=next_reset_date(kind, start),
        )

    async def peek(self, user_id: uuid.UUID, feature: QuotaFeature, now: Moment) -> CounterState:
        """Read a counter as of ``now`` without creating or resetting it."""
        kind, boundary = self._period(feature, now)
        row = await self._select_counter(user_id, feature)
        return self._state(user_id, feature, row, kind, boundary)

    async def check_and_reset(self, user_id: uuid.UUID, feature: QuotaFeature, now: Moment) -> CounterState:
        """
        Return the counter for ``now``, resetting it first if its period has passed.

        The reset is conditional on the stored period, so it happens exactly
        once per boundary crossing regardless of how many periods were skipped
        or how many callers race.
        """
        kind, boundary = self._period(feature, now)
        async with atomic(self.session, "usage.check_and_reset"):
            await self._ensure_counter(user_id, feature, kind, boundary)
            result = await self.session.execute(
                update(UsageCounter)
                .where(*self._counter_filter(user_id, feature), UsageCounter.period_start < boundary)
                .values(used=0, period_start=boundary, period_kind=kind.value)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount:
                logger.info(
                    "Usage counter reset",
                    extra={"user_id": str(user_id), "feature": feature.value, "period_start": boundary.isoformat()},
                )
            row = await self._select_counter(user_id, feature)
        return self._state(user_id, feature, row, kind, boundary)

    async def _reset_and_add(
        self,
        user_id: uuid.UUID,
        feature: QuotaFeature,
        kind: PeriodKind,
        boundary: date,
        by: int,
        limit: Optional[int] = None,
        lifetime_limit: Optional[int] = None,
    ) -> Optional[tuple[int, int, date]]:
        """
        Single-statement reset-if-stale then add ``by``.

        With a limit, the check lives in the WHERE clause; None means refused.
        """
        stale = UsageCounter.period_start < boundary
        effective_used = case((stale, 0), else_=UsageCounter.used)
        stmt = (
            update(UsageCounter)
            .where(*self._counter_filter(user_id, feature))
            .values(
                used=effective_used + by,
                lifetime_used=UsageCounter.lifetime_used + by,
                period_start=case((stale, boundary), else_=UsageCounter.period_start),
                period_kind=kind.value,
            )
            .returning(UsageCounter.used, UsageCounter.lifetime_used, UsageCounter.period_start)
            .execution_options(synchronize_session=False)
        )
        if limit is not None:
            stmt = stmt.where(effective_used + by <= limit)
        if lifetime_limit is not None:
            stmt = stmt.where(UsageCounter.lifetime_used + by <= lifetime_limit)
        result = await self.session.execute(stmt)
        row = result.one_or_none()
        return (row[0], row[1], row[2]) if row is not None else None

    @staticmethod
    def _validate_amount(by: int) -> None:
        if not isinstance(by, int) or isinstance(by, bool) or by < 0:
            raise InvalidActivityError(f"Increment amount must be a non-negative integer, got {by!r}", field="by")

    async def increment(
        self,
        user_id: uuid.UUID,
        feature: QuotaFeature,
        now: Moment,
        by: int = 1,
        limit: Optional[int] = None,
    ) -> IncrementResult:
        """
        Record ``by`` units of usage. Never clamps.

        ``allowed`` reports whether the usage stayed within ``limit`` (always
        True when no limit is given or the limit is unlimited).
        """
        self._validate_amount(by)
        kind, boundary = self._period(feature, now)
        async with atomic(self.session, "usage.increment"):
            await self._ensure_counter(user_id, feature, kind, boundary)
            new_used, lifetime, start = await self._reset_and_add(user_id, feature, kind, boundary, by)
        return IncrementResult(
            feature=feature,
            new_used=new_used,
            lifetime_used=lifetime,
            allowed=limit is None or new_used <= limit,
            period_start=start,
            resets_on=next_reset_date(kind, start),
        )

    async def try_increment(
        self,
        user_id: uuid.UUID,
        feature: QuotaFeature,
        now: Moment,
        limit: Optional[int],
        lifetime_limit: Optional[int] = None,
        by: int = 1,
    ) -> IncrementResult:
        """
        Atomically add ``by`` only if the result stays within the limits.

        A refused attempt writes nothing to the counter and reports the
        current usage with ``allowed=False``.
        """
        self._validate_amount(by)
        kind, boundary = self._period(feature, now)
        async with atomic(self.session, "usage.try_increment"):
            await self._ensure_counter(user_id, feature, kind, boundary)
            applied = await self._reset_and_add(
                user_id, feature, kind, boundary, by, limit=limit, lifetime_limit=lifetime_limit,
            )
            if applied is None:
                row = await self._select_counter(user_id, feature)
                state = self._state(user_id, feature, row, kind, boundary)
        if applied is None:
            logger.info(
                "Usage refused at limit",
                extra={"user_id": str(user_id), "feature": feature.value, "used": state.used, "limit": limit},
            )
            return IncrementResult(
                feature=feature,
                new_used=state.used,
                lifetime_used=state.lifetime_used,
                allowed=False,
                period_start=state.period_start,
                resets_on=state.resets_on,
            )
        new_used, lifetime, start = applied
        return IncrementResult(
            feature=feature,
            new_used=new_used,
            lifetime_used=lifetime,
            allowed=True,
            period_start=start,
            resets_on=next_reset_date(kind, start),
        )
