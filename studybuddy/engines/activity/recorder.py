"""
Activity Recorder - turns completed study activity into progression and usage.

Recording a session:
1. Stores the StudySession and its QuestionAttempt rows
2. Counts usage (questions, flashcards, mock exams)
3. Updates the study streak (crediting streak_3days at three days)
4. Credits the event's XP

Steps 1-4 commit as one transaction, so a StoreWriteError leaves nothing
behind. Badge evaluation runs after the commit.
"""

import uuid
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, model_validator
from sqlalchemy.ext.asyncio import AsyncSession

from studybuddy.engines.badges.badge_engine import BadgeTrigger, UnlockedBadge
from studybuddy.engines.entitlements.resolver import EntitlementResolver, QuotaDecision
from studybuddy.engines.entitlements.subscriptions import SubscriptionReader
from studybuddy.engines.entitlements.tier_policy import FEATURE_PERIODS, QuotaFeature, Tier, parse_feature
from studybuddy.engines.entitlements.usage_tracker import CounterState, IncrementResult, UsageQuotaTracker
from studybuddy.engines.errors import InvalidActivityError, QuotaExceededError
from studybuddy.engines.notifications import LoggingNotifier, ProgressionNotifier
from studybuddy.engines.progression.ledger import AwardResult, ProgressionLedger, StreakUpdate
from studybuddy.engines.unit_of_work import atomic
from studybuddy.kernel.models.activity import QuestionAttempt, SessionType, StudySession
from studybuddy.logging_config import get_logger

logger = get_logger(__name__)


class AnswerRecord(BaseModel):
    """One answered question."""

    unit: str = Field(default="unknown", max_length=100)
    correct: bool


class SessionStats(BaseModel):
    """Results of a completed study session."""

    session_type: SessionType
    total_questions: int = Field(default=0, ge=0)
    correct_answers: int = Field(default=0, ge=0)
    answers: List[AnswerRecord] = []

    @model_validator(mode="after")
    def check_counts(self) -> "SessionStats":
        if self.correct_answers > self.total_questions:
            raise ValueError("correct_answers cannot exceed total_questions")
        return self


class ActivityEvent(BaseModel):
    """A user activity reported by the front end."""

    user_id: uuid.UUID
    event_type: str = Field(min_length=1, max_length=50)
    occurred_at: datetime
    xp_value: Optional[int] = Field(default=None, ge=0)
    session_stats: Optional[SessionStats] = None
    # False when the caller already consumed the quota for this activity
    count_usage: bool = True


class ActivityOutcome(BaseModel):
    """Everything that changed because of one activity."""

    user_id: uuid.UUID
    event_type: str
    session_id: Optional[uuid.UUID] = None
    award: AwardResult
    streak: Optional[StreakUpdate] = None
    usage: List[IncrementResult] = []
    unlocked_badges: List[UnlockedBadge] = []


class UsageSummary(BaseModel):
    """Per-feature quota decisions for a user."""

    user_id: uuid.UUID
    tier: Tier
    quotas: Dict[str, QuotaDecision]


class ActivityRecorder:
    """
    Entry point for recorded activity and quota-gated actions.

    Usage:
        recorder = ActivityRecorder(session)
        outcome = await recorder.record(event, now=datetime.now(timezone.utc))
    """

    def __init__(self, session: AsyncSession, notifier: Optional[ProgressionNotifier] = None):
        self.session = session
        self.notifier = notifier or LoggingNotifier()
        self.ledger = ProgressionLedger(session, notifier=self.notifier)
        self.tracker = UsageQuotaTracker(session)
        self.subscriptions = SubscriptionReader(session)

    @staticmethod
    def usage_for(stats: SessionStats) -> Dict[QuotaFeature, int]:
        """Quota units a completed session consumes."""
        if stats.session_type == SessionType.FLASHCARDS:
            return {QuotaFeature.FLASHCARDS: stats.total_questions}
        usage = {QuotaFeature.QUESTIONS: max(stats.total_questions, len(stats.answers))}
        if stats.session_type == SessionType.MOCK_EXAM:
            usage[QuotaFeature.MOCK_EXAMS] = 1
        return usage

    async def _store_session(self, user_id: uuid.UUID, stats: SessionStats, completed_at: datetime) -> uuid.UUID:
        study_session = StudySession(
            user_id=user_id,
            session_type=stats.session_type.value,
            total_questions=stats.total_questions,
            correct_answers=stats.correct_answers,
            completed_at=completed_at,
        )
        study_session.attempts = [
            QuestionAttempt(user_id=user_id, unit=answer.unit, correct=answer.correct)
            for answer in stats.answers
        ]
        self.session.add(study_session)
        await self.session.flush()
        return study_session.id

    async def record(self, event: ActivityEvent, now: Optional[datetime] = None) -> ActivityOutcome:
        """
        Apply a completed activity.

        The XP value is validated before anything is written, so an unknown
        event without a value leaves no trace. All writes commit together;
        a StoreWriteError means nothing was recorded and the call can be
        retried. Badges are evaluated after the commit.
        """
        now = now or event.occurred_at
        value = ProgressionLedger.resolve_xp_value(event.event_type, event.xp_value)

        session_id = None
        usage: List[IncrementResult] = []
        streak = None
        async with atomic(self.session, "activity.record"):
            if event.session_stats is not None:
                stats = event.session_stats
                session_id = await self._store_session(event.user_id, stats, event.occurred_at)
                if event.count_usage:
                    for feature, amount in self.usage_for(stats).items():
                        if amount > 0:
                            usage.append(await self.tracker.increment(event.user_id, feature, now, by=amount))
                streak = await self.ledger.apply_study_day(event.user_id, now.date())
            award = await self.ledger.apply_award(event.user_id, event.event_type, value)

        if streak is not None and streak.streak_bonus is not None:
            await self.ledger.announce(streak.streak_bonus)
        await self.ledger.announce(award)
        # Zero-XP activity still counts toward activity-based badges
        unlocked = await self.ledger.evaluate_badges(
            event.user_id, BadgeTrigger(new_xp_total=award.total_after_bonus, event_type=event.event_type),
        )
        award.unlocked_badges = unlocked

        logger.info(
            "Activity recorded",
            extra={
                "user_id": str(event.user_id),
                "event_type": event.event_type,
                "xp": award.xp_awarded,
                "badges": len(unlocked),
            },
        )
        return ActivityOutcome(
            user_id=event.user_id,
            event_type=event.event_type,
            session_id=session_id,
            award=award,
            streak=streak,
            usage=usage,
            unlocked_badges=unlocked,
        )

    async def consume(
        self,
        user_id: uuid.UUID,
        feature: str,
        now: datetime,
        by: int = 1,
    ) -> QuotaDecision:
        """
        Gate a quota-limited action: take ``by`` units or refuse.

        Returns the decision as of after the consumption.

        Raises:
            InvalidActivityError: ``feature`` is not a quota feature.
            QuotaExceededError: the tier's period or lifetime limit is reached.
        """
        quota_feature = parse_feature(feature)
        if quota_feature is None:
            raise InvalidActivityError(f"Unknown quota feature {feature!r}", field="feature")

        tier = await self.subscriptions.tier_for(user_id)
        limits = EntitlementResolver.limits_for(tier)
        result = await self.tracker.try_increment(
            user_id,
            quota_feature,
            now,
            limit=limits.quota_for(quota_feature),
            lifetime_limit=limits.lifetime_quota_for(quota_feature),
            by=by,
        )
        state = CounterState(
            user_id=user_id,
            feature=quota_feature,
            period_kind=FEATURE_PERIODS[quota_feature],
            period_start=result.period_start,
            used=result.new_used,
            lifetime_used=result.lifetime_used,
            resets_on=result.resets_on,
        )
        decision = EntitlementResolver.quota_decision(tier, state)
        if not result.allowed:
            refused = decision.model_copy(
                update={"allowed": False, "reason": decision.reason or "period_limit_reached"},
            )
            raise QuotaExceededError(refused)
        return decision

    async def usage_summary(self, user_id: uuid.UUID, now: datetime) -> UsageSummary:
        """Read-only quota picture for every quota feature."""
        tier = await self.subscriptions.tier_for(user_id)
        quotas = {}
        for feature in QuotaFeature:
            state = await self.tracker.peek(user_id, feature, now)
            quotas[feature.value] = EntitlementResolver.quota_decision(tier, state)
        return UsageSummary(user_id=user_id, tier=tier, quotas=quotas)
