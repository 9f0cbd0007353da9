"""Integration tests for UsageQuotaTracker periodic reset and atomic limits."""

import asyncio
from datetime import date, datetime, timezone

import pytest
from sqlalchemy import update

from studybuddy.engines.entitlements.tier_policy import QuotaFeature
from studybuddy.engines.entitlements.usage_tracker import (
    UsageQuotaTracker,
    next_reset_date,
    period_start_for,
)
from studybuddy.engines.errors import InvalidActivityError
from studybuddy.kernel.models.usage import PeriodKind, UsageCounter

MONDAY = datetime(2026, 10, 19, 9, 0, tzinfo=timezone.utc)
TUESDAY = datetime(2026, 10, 20, 9, 0, tzinfo=timezone.utc)
SUNDAY = datetime(2026, 10, 25, 23, 0, tzinfo=timezone.utc)
NEXT_MONDAY = datetime(2026, 10, 26, 0, 30, tzinfo=timezone.utc)


class TestPeriods:
    def test_daily_period(self):
        assert period_start_for(PeriodKind.DAILY, TUESDAY) == date(2026, 10, 20)

    def test_weekly_period_starts_monday(self):
        assert period_start_for(PeriodKind.WEEKLY, SUNDAY) == date(2026, 10, 19)
        assert period_start_for(PeriodKind.WEEKLY, NEXT_MONDAY) == date(2026, 10, 26)

    def test_weekly_period_custom_start(self):
        """Weeks starting Sunday (6)."""
        assert period_start_for(PeriodKind.WEEKLY, SUNDAY, week_start=6) == date(2026, 10, 25)

    def test_next_reset(self):
        assert next_reset_date(PeriodKind.DAILY, date(2026, 10, 19)) == date(2026, 10, 20)
        assert next_reset_date(PeriodKind.WEEKLY, date(2026, 10, 19)) == date(2026, 10, 26)


class TestReset:
    """Tests for reset-exactly-once semantics."""

    @pytest.mark.asyncio
    async def test_daily_reset_once(self, db_session, user_id):
        """used=10 yesterday reads as 0 today; a second read the same day does not reset again."""
        tracker = UsageQuotaTracker(db_session)
        await tracker.increment(user_id, QuotaFeature.FLASHCARDS, MONDAY, by=10)

        state = await tracker.check_and_reset(user_id, QuotaFeature.FLASHCARDS, TUESDAY)
        assert state.used == 0
        assert state.period_start == date(2026, 10, 20)

        await tracker.increment(user_id, QuotaFeature.FLASHCARDS, TUESDAY, by=3)
        again = await tracker.check_and_reset(user_id, QuotaFeature.FLASHCARDS, TUESDAY)
        assert again.used == 3
        assert again.lifetime_used == 13

    @pytest.mark.asyncio
    async def test_increment_applies_reset_first(self, db_session, user_id):
        tracker = UsageQuotaTracker(db_session)
        await tracker.increment(user_id, QuotaFeature.FLASHCARDS, MONDAY, by=7)
        result = await tracker.increment(user_id, QuotaFeature.FLASHCARDS, TUESDAY)
        assert result.new_used == 1
        assert result.lifetime_used == 8

    @pytest.mark.asyncio
    async def test_skipped_periods_reset_once(self, db_session, user_id):
        tracker = UsageQuotaTracker(db_session)
        await tracker.increment(user_id, QuotaFeature.QUESTIONS, datetime(2026, 10, 1, tzinfo=timezone.utc), by=5)
        state = await tracker.check_and_reset(user_id, QuotaFeature.QUESTIONS, TUESDAY)
        assert state.used == 0

    @pytest.mark.asyncio
    async def test_weekly_counter(self, db_session, user_id):
        tracker = UsageQuotaTracker(db_session)
        await tracker.increment(user_id, QuotaFeature.MOCK_EXAMS, MONDAY)
        same_week = await tracker.increment(user_id, QuotaFeature.MOCK_EXAMS, SUNDAY)
        assert same_week.new_used == 2

        next_week = await tracker.increment(user_id, QuotaFeature.MOCK_EXAMS, NEXT_MONDAY)
        assert next_week.new_used == 1
        assert next_week.resets_on == date(2026, 11, 2)

    @pytest.mark.asyncio
    async def test_backwards_clock_never_resets(self, db_session, user_id):
        tracker = UsageQuotaTracker(db_session)
        await tracker.increment(user_id, QuotaFeature.FLASHCARDS, TUESDAY, by=4)
        state = await tracker.check_and_reset(user_id, QuotaFeature.FLASHCARDS, MONDAY)
        assert state.used == 4

    @pytest.mark.asyncio
    async def test_peek_does_not_write(self, db_session, user_id):
        tracker = UsageQuotaTracker(db_session)
        await tracker.increment(user_id, QuotaFeature.FLASHCARDS, MONDAY, by=6)

        peeked = await tracker.peek(user_id, QuotaFeature.FLASHCARDS, TUESDAY)
        assert peeked.used == 0

        still_monday = await tracker.peek(user_id, QuotaFeature.FLASHCARDS, MONDAY)
        assert still_monday.used == 6

    @pytest.mark.asyncio
    async def test_concurrent_stale_increments_do_not_undercount(self, session_maker, user_id):
        """Two requests that both see a stale counter end at 2, not 1."""
        async with session_maker() as session:
            await UsageQuotaTracker(session).increment(user_id, QuotaFeature.FLASHCARDS, MONDAY, by=10)

        async def bump():
            async with session_maker() as session:
                return await UsageQuotaTracker(session).increment(user_id, QuotaFeature.FLASHCARDS, TUESDAY)

        results = await asyncio.gather(bump(), bump())
        assert sorted(r.new_used for r in results) == [1, 2]


class TestIncrement:
    @pytest.mark.asyncio
    async def test_increment_never_clamps(self, db_session, user_id):
        tracker = UsageQuotaTracker(db_session)
        result = await tracker.increment(user_id, QuotaFeature.FLASHCARDS, MONDAY, by=12, limit=10)
        assert result.new_used == 12
        assert result.allowed is False

    @pytest.mark.asyncio
    async def test_negative_amount_rejected(self, db_session, user_id):
        tracker = UsageQuotaTracker(db_session)
        with pytest.raises(InvalidActivityError):
            await tracker.increment(user_id, QuotaFeature.FLASHCARDS, MONDAY, by=-1)

    @pytest.mark.asyncio
    async def test_try_increment_refuses_at_limit(self, db_session, user_id):
        tracker = UsageQuotaTracker(db_session)
        for _ in range(3):
            assert (await tracker.try_increment(user_id, QuotaFeature.FLASHCARDS, MONDAY, limit=3)).allowed

        refused = await tracker.try_increment(user_id, QuotaFeature.FLASHCARDS, MONDAY, limit=3)
        assert refused.allowed is False
        assert refused.new_used == 3

    @pytest.mark.asyncio
    async def test_try_increment_lifetime_limit(self, db_session, user_id):
        tracker = UsageQuotaTracker(db_session)
        first = await tracker.try_increment(user_id, QuotaFeature.MOCK_EXAMS, MONDAY, limit=1, lifetime_limit=1)
        assert first.allowed is True

        later = await tracker.try_increment(user_id, QuotaFeature.MOCK_EXAMS, NEXT_MONDAY, limit=1, lifetime_limit=1)
        assert later.allowed is False
        assert later.lifetime_used == 1

    @pytest.mark.asyncio
    async def test_try_increment_unlimited(self, db_session, user_id):
        tracker = UsageQuotaTracker(db_session)
        result = await tracker.try_increment(user_id, QuotaFeature.QUESTIONS, MONDAY, limit=None, by=500)
        assert result.allowed is True
        assert result.new_used == 500

    @pytest.mark.asyncio
    async def test_fifty_concurrent_at_limit_ten(self, session_maker, user_id):
        """Exactly ten of fifty concurrent attempts succeed."""

        async def attempt():
            async with session_maker() as session:
                tracker = UsageQuotaTracker(session)
                return await tracker.try_increment(user_id, QuotaFeature.FLASHCARDS, MONDAY, limit=10)

        results = await asyncio.gather(*(attempt() for _ in range(50)))

        assert sum(1 for r in results if r.allowed) == 10
        assert sum(1 for r in results if not r.allowed) == 40
        async with session_maker() as session:
            state = await UsageQuotaTracker(session).peek(user_id, QuotaFeature.FLASHCARDS, MONDAY)
            assert state.used == 10

    @pytest.mark.asyncio
    async def test_try_increment_resets_stale_counter(self, db_session, user_id):
        tracker = UsageQuotaTracker(db_session)
        await tracker.increment(user_id, QuotaFeature.FLASHCARDS, MONDAY, by=10)
        result = await tracker.try_increment(user_id, QuotaFeature.FLASHCARDS, TUESDAY, limit=10)
        assert result.allowed is True
        assert result.new_used == 1

    @pytest.mark.asyncio
    async def test_manually_stale_row(self, db_session, user_id):
        """A row left from last week is treated as empty by peek."""
        tracker = UsageQuotaTracker(db_session)
        await tracker.increment(user_id, QuotaFeature.MOCK_EXAMS, MONDAY)
        await db_session.execute(
            update(UsageCounter)
            .where(UsageCounter.user_id == user_id)
            .values(period_start=date(2026, 10, 12))
        )
        await db_session.commit()

        state = await tracker.peek(user_id, QuotaFeature.MOCK_EXAMS, MONDAY)
        assert state.used == 0
        assert state.lifetime_used == 1
