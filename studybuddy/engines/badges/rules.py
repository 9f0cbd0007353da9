"""
Badge Rules - pure criteria evaluation over a user's activity aggregates.
"""

from typing import Dict, Optional

from pydantic import BaseModel

from studybuddy.kernel.models.badge import BadgeCriteria

ONBOARDING_EVENT = "onboarding_complete"

# A unit needs this many attempts before its accuracy counts
UNIT_ACCURACY_MIN_ATTEMPTS = 10


class UnitStats(BaseModel):
    """Answer counts for one syllabus unit."""

    correct: int = 0
    total: int = 0

    @property
    def accuracy(self) -> float:
        if self.total <= 0:
            return 0.0
        return self.correct / self.total * 100


class ActivityAggregates(BaseModel):
    """Everything the badge criteria read for one user."""

    total_xp: int = 0
    study_streak: int = 0
    questions_correct: int = 0
    sessions_completed: int = 0
    flashcards_completed: int = 0
    has_perfect_session: bool = False
    unit_stats: Dict[str, UnitStats] = {}


class BadgeRule(BaseModel):
    """Criteria half of a badge definition."""

    badge_id: str
    criteria_type: str
    criteria_value: int = 0


class BadgeRules:
    """
    Decides whether a badge's criteria are met.

    Criteria:
    - streak: study streak >= value
    - questions_correct: cumulative correct answers >= value
    - unit_accuracy: any unit with enough attempts at >= value percent
    - perfect_quiz: any session answered fully correctly
    - xp_total: total XP >= value
    - onboarding: only on the onboarding_complete event
    - sessions_completed / flashcards_completed: lifetime counts >= value

    Unknown criteria never unlock.
    """

    @classmethod
    def best_unit_accuracy(cls, unit_stats: Dict[str, UnitStats]) -> Optional[float]:
        """Highest accuracy among units past the attempt floor, None if none qualify."""
        eligible = [s.accuracy for s in unit_stats.values() if s.total >= UNIT_ACCURACY_MIN_ATTEMPTS]
        return max(eligible) if eligible else None

    @classmethod
    def is_met(
        cls,
        rule: BadgeRule,
        aggregates: ActivityAggregates,
        event_type: Optional[str] = None,
    ) -> bool:
        value = rule.criteria_value
        criteria = rule.criteria_type

        if criteria == BadgeCriteria.STREAK.value:
            return aggregates.study_streak >= value
        if criteria == BadgeCriteria.QUESTIONS_CORRECT.value:
            return aggregates.questions_correct >= value
        if criteria == BadgeCriteria.UNIT_ACCURACY.value:
            best = cls.best_unit_accuracy(aggregates.unit_stats)
            return best is not None and best >= value
        if criteria == BadgeCriteria.PERFECT_QUIZ.value:
            return aggregates.has_perfect_session
        if criteria == BadgeCriteria.XP_TOTAL.value:
            return aggregates.total_xp >= value
        if criteria == BadgeCriteria.ONBOARDING.value:
            return event_type == ONBOARDING_EVENT
        if criteria == BadgeCriteria.SESSIONS_COMPLETED.value:
            return aggregates.sessions_completed >= value
        if criteria == BadgeCriteria.FLASHCARDS_COMPLETED.value:
            return aggregates.flashcards_completed >= value
        return False
