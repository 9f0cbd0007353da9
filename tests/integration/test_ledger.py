"""Integration tests for ProgressionLedger against a real SQLite database."""

import asyncio
import uuid
from datetime import date, timedelta

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from studybuddy.engines.errors import InvalidActivityError, StoreWriteError
from studybuddy.engines.progression.ledger import ProgressionLedger
from studybuddy.kernel.models.progression import UserProgressionState, XPEvent


async def _event_types(session, user_id):
    result = await session.execute(select(XPEvent.event_type).where(XPEvent.user_id == user_id))
    return sorted(result.scalars().all())


class TestAwardXP:
    """Tests for crediting XP and the level-up bonus."""

    @pytest.mark.asyncio
    async def test_level_up_scenario(self, db_session, user_id, notifier):
        """95 XP + session_completed (15) crosses level 2 and earns one bonus."""
        ledger = ProgressionLedger(db_session, notifier=notifier, level_up_bonus=10)
        await ledger.award_xp(user_id, "manual_adjustment", 95)

        result = await ledger.award_xp(user_id, "session_completed")

        assert result.xp_awarded == 15
        assert result.new_total == 110
        assert result.leveled_up is True
        assert result.bonus_xp == 10
        assert result.total_after_bonus == 120
        assert result.new_level == 2
        assert await _event_types(db_session, user_id) == ["level_up_bonus", "manual_adjustment", "session_completed"]
        assert notifier.level_ups == [(user_id, 2, 10)]

        state = await ledger.get_state(user_id)
        assert state.total_xp == 120
        assert state.level == 2
        stored_level = await db_session.scalar(
            select(UserProgressionState.level).where(UserProgressionState.user_id == user_id)
        )
        assert stored_level == 2

    @pytest.mark.asyncio
    async def test_bonus_does_not_cascade(self, db_session, user_id, notifier):
        """A bonus that crosses another threshold earns no second bonus."""
        ledger = ProgressionLedger(db_session, notifier=notifier, level_up_bonus=250)
        await ledger.award_xp(user_id, "manual_adjustment", 95)

        result = await ledger.award_xp(user_id, "session_completed")

        assert result.total_after_bonus == 360
        assert result.new_level == 3
        assert (await _event_types(db_session, user_id)).count("level_up_bonus") == 1
        assert len(notifier.level_ups) == 1

    @pytest.mark.asyncio
    async def test_no_bonus_without_level_change(self, db_session, user_id):
        ledger = ProgressionLedger(db_session)
        result = await ledger.award_xp(user_id, "analytics_view")
        assert result.new_total == 3
        assert result.leveled_up is False
        assert result.bonus_xp == 0
        assert result.total_after_bonus == 3

    @pytest.mark.asyncio
    async def test_zero_value_is_noop(self, db_session, user_id, notifier):
        ledger = ProgressionLedger(db_session, notifier=notifier)
        result = await ledger.award_xp(user_id, "session_completed", 0)
        assert result.xp_awarded == 0
        assert result.new_total == 0
        assert await _event_types(db_session, user_id) == []
        assert notifier.xp == []

    @pytest.mark.asyncio
    async def test_unknown_event_rejected_without_write(self, db_session, user_id):
        ledger = ProgressionLedger(db_session)
        with pytest.raises(InvalidActivityError):
            await ledger.award_xp(user_id, "mystery_event")
        assert await _event_types(db_session, user_id) == []
        assert (await ledger.get_state(user_id)).total_xp == 0

    @pytest.mark.asyncio
    async def test_negative_value_rejected(self, db_session, user_id):
        ledger = ProgressionLedger(db_session)
        with pytest.raises(InvalidActivityError) as exc_info:
            await ledger.award_xp(user_id, "session_completed", -5)
        assert exc_info.value.field == "value"

    @pytest.mark.asyncio
    async def test_totals_are_monotonic(self, db_session, user_id):
        ledger = ProgressionLedger(db_session)
        totals = []
        for event in ["onboarding_complete", "first_session_created", "session_completed", "analytics_view"] * 5:
            totals.append((await ledger.award_xp(user_id, event)).total_after_bonus)
        assert totals == sorted(totals)
        assert (await ledger.reconcile(user_id)).consistent is True

    @pytest.mark.asyncio
    async def test_store_failure_rolls_back(self, db_session, user_id, monkeypatch):
        """A failing ledger append leaves no partial credit behind."""
        ledger = ProgressionLedger(db_session)
        await ledger.award_xp(user_id, "session_completed")

        async def broken_credit(*args, **kwargs):
            raise OperationalError("UPDATE user_progression_state", {}, Exception("disk I/O error"))

        monkeypatch.setattr(ledger, "_credit", broken_credit)
        with pytest.raises(StoreWriteError):
            await ledger.award_xp(user_id, "session_completed")

        state = await ledger.get_state(user_id)
        assert state.total_xp == 15

    @pytest.mark.asyncio
    async def test_badge_failure_keeps_credit(self, db_session, user_id, add_badge, monkeypatch):
        """A failed badge evaluation is logged and skipped; the XP credit stands."""
        await add_badge("xp_10", "xp_total", 10)
        ledger = ProgressionLedger(db_session)

        async def broken_evaluation(*args, **kwargs):
            raise OperationalError("SELECT badge_definitions", {}, Exception("database is locked"))

        monkeypatch.setattr(ledger.badges, "evaluate_badges", broken_evaluation)
        result = await ledger.award_xp(user_id, "session_completed")

        assert result.total_after_bonus == 15
        assert result.unlocked_badges == []
        assert await _event_types(db_session, user_id) == ["session_completed"]
        assert (await ledger.get_state(user_id)).total_xp == 15
        assert (await ledger.reconcile(user_id)).consistent is True

        monkeypatch.undo()
        retried = await ledger.award_xp(user_id, "analytics_view")
        assert [b.badge_id for b in retried.unlocked_badges] == ["xp_10"]


class TestConcurrentAwards:
    @pytest.mark.asyncio
    async def test_concurrent_credits_are_not_lost(self, session_maker, user_id):
        """Twenty parallel credits on separate sessions all land."""

        async def award():
            async with session_maker() as session:
                await ProgressionLedger(session).award_xp(user_id, "flashcard_session_bonus")

        await asyncio.gather(*(award() for _ in range(20)))

        async with session_maker() as session:
            ledger = ProgressionLedger(session, level_up_bonus=10)
            report = await ledger.reconcile(user_id)
            # 20 x 5 = 100 crosses level 2 exactly once
            assert report.stored_total == 110
            assert report.consistent is True
            bonus_count = await session.scalar(
                select(func.count(XPEvent.id)).where(
                    XPEvent.user_id == user_id, XPEvent.event_type == "level_up_bonus",
                )
            )
            assert bonus_count == 1


class TestStreak:
    """Tests for record_study_day."""

    @pytest.mark.asyncio
    async def test_streak_progression(self, db_session, user_id):
        ledger = ProgressionLedger(db_session)
        day = date(2026, 10, 1)

        first = await ledger.record_study_day(user_id, day)
        assert first.study_streak == 1
        assert first.extended is True

        same_day = await ledger.record_study_day(user_id, day)
        assert same_day.study_streak == 1
        assert same_day.extended is False

        second = await ledger.record_study_day(user_id, day + timedelta(days=1))
        assert second.study_streak == 2
        assert second.streak_bonus is None

        third = await ledger.record_study_day(user_id, day + timedelta(days=2))
        assert third.study_streak == 3
        assert third.streak_bonus is not None
        assert third.streak_bonus.xp_awarded == 20

    @pytest.mark.asyncio
    async def test_gap_resets_streak(self, db_session, user_id):
        ledger = ProgressionLedger(db_session)
        day = date(2026, 10, 1)
        await ledger.record_study_day(user_id, day)
        await ledger.record_study_day(user_id, day + timedelta(days=1))

        after_gap = await ledger.record_study_day(user_id, day + timedelta(days=5))
        assert after_gap.study_streak == 1

    @pytest.mark.asyncio
    async def test_earlier_date_is_ignored(self, db_session, user_id):
        ledger = ProgressionLedger(db_session)
        await ledger.record_study_day(user_id, date(2026, 10, 10))
        stale = await ledger.record_study_day(user_id, date(2026, 10, 9))
        assert stale.extended is False
        assert stale.last_study_date == date(2026, 10, 10)


class TestHistoryAndReconcile:
    @pytest.mark.asyncio
    async def test_history_lists_entries(self, db_session, user_id):
        ledger = ProgressionLedger(db_session)
        await ledger.award_xp(user_id, "onboarding_complete")
        await ledger.award_xp(user_id, "analytics_view")

        history = await ledger.history(user_id, limit=10)
        assert sorted(e.event_type for e in history) == ["analytics_view", "onboarding_complete"]
        assert await ledger.history(uuid.uuid4()) == []

    @pytest.mark.asyncio
    async def test_reconcile_for_new_user(self, db_session, user_id):
        report = await ProgressionLedger(db_session).reconcile(user_id)
        assert report.stored_total == 0
        assert report.ledger_total == 0
        assert report.consistent is True
