"""Unit tests for badge criteria evaluation."""

from studybuddy.engines.badges.rules import (
    UNIT_ACCURACY_MIN_ATTEMPTS,
    ActivityAggregates,
    BadgeRule,
    BadgeRules,
    UnitStats,
)


def _rule(criteria_type: str, value: int = 0) -> BadgeRule:
    return BadgeRule(badge_id="b", criteria_type=criteria_type, criteria_value=value)


class TestBadgeRules:
    """Tests for each criteria type."""

    def test_streak(self):
        assert BadgeRules.is_met(_rule("streak", 7), ActivityAggregates(study_streak=7))
        assert not BadgeRules.is_met(_rule("streak", 7), ActivityAggregates(study_streak=6))

    def test_questions_correct(self):
        assert BadgeRules.is_met(_rule("questions_correct", 100), ActivityAggregates(questions_correct=120))

    def test_xp_total(self):
        assert BadgeRules.is_met(_rule("xp_total", 500), ActivityAggregates(total_xp=500))
        assert not BadgeRules.is_met(_rule("xp_total", 500), ActivityAggregates(total_xp=499))

    def test_onboarding_only_on_event(self):
        aggregates = ActivityAggregates()
        assert BadgeRules.is_met(_rule("onboarding"), aggregates, event_type="onboarding_complete")
        assert not BadgeRules.is_met(_rule("onboarding"), aggregates, event_type="session_completed")
        assert not BadgeRules.is_met(_rule("onboarding"), aggregates)

    def test_perfect_quiz(self):
        assert BadgeRules.is_met(_rule("perfect_quiz"), ActivityAggregates(has_perfect_session=True))
        assert not BadgeRules.is_met(_rule("perfect_quiz"), ActivityAggregates())

    def test_unit_accuracy_needs_minimum_attempts(self):
        """9/9 correct is not enough evidence; 9/10 at 90% is."""
        few = ActivityAggregates(unit_stats={"budgeting": UnitStats(correct=9, total=9)})
        assert not BadgeRules.is_met(_rule("unit_accuracy", 90), few)

        enough = ActivityAggregates(
            unit_stats={"budgeting": UnitStats(correct=9, total=UNIT_ACCURACY_MIN_ATTEMPTS)},
        )
        assert BadgeRules.is_met(_rule("unit_accuracy", 90), enough)

    def test_unit_accuracy_any_unit(self):
        aggregates = ActivityAggregates(
            unit_stats={
                "a": UnitStats(correct=2, total=20),
                "b": UnitStats(correct=19, total=20),
            },
        )
        assert BadgeRules.best_unit_accuracy(aggregates.unit_stats) == 95.0
        assert BadgeRules.is_met(_rule("unit_accuracy", 90), aggregates)

    def test_sessions_and_flashcards(self):
        aggregates = ActivityAggregates(sessions_completed=1, flashcards_completed=49)
        assert BadgeRules.is_met(_rule("sessions_completed", 1), aggregates)
        assert not BadgeRules.is_met(_rule("flashcards_completed", 50), aggregates)

    def test_unknown_criteria_never_unlock(self):
        assert not BadgeRules.is_met(_rule("moon_landing", 0), ActivityAggregates(total_xp=10**6))
