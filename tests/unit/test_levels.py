"""Unit tests for the level calculator and XP value table."""

import pytest

from studybuddy.engines.progression.levels import (
    LEVEL_THRESHOLDS,
    MAX_LEVEL_SPAN,
    XP_VALUES,
    level_of,
    level_progress,
    progress_within_level,
    xp_for_level,
    xp_for_next_level,
)


class TestLevelOf:
    """Tests for level_of threshold lookup."""

    @pytest.mark.parametrize(
        "xp,expected",
        [(0, 1), (99, 1), (100, 2), (299, 2), (300, 3), (699, 3), (700, 4), (1199, 4), (1200, 5), (5000, 5)],
    )
    def test_threshold_table(self, xp, expected):
        assert level_of(xp) == expected

    def test_never_below_one(self):
        """Negative totals cannot occur, but still map to level 1."""
        assert level_of(-5) == 1

    def test_monotonic(self):
        levels = [level_of(xp) for xp in range(0, 2000, 7)]
        assert levels == sorted(levels)


class TestNextLevel:
    """Tests for next-level targets and progress."""

    def test_next_level_within_table(self):
        assert xp_for_next_level(1) == 100
        assert xp_for_next_level(2) == 300
        assert xp_for_next_level(4) == 1200

    def test_next_level_beyond_table(self):
        """Past the last threshold the target is a fixed span above it."""
        assert xp_for_next_level(5) == LEVEL_THRESHOLDS[-1] + MAX_LEVEL_SPAN == 1700

    def test_xp_for_level(self):
        assert xp_for_level(1) == 0
        assert xp_for_level(3) == 300

    def test_progress_midway(self):
        assert progress_within_level(200, 2) == 50.0

    def test_progress_clamped(self):
        """Progress stays within [0, 100] even for an inconsistent level."""
        assert progress_within_level(5000, 5) == 100.0
        assert progress_within_level(0, 3) == 0.0

    def test_level_progress_summary(self):
        summary = level_progress(110)
        assert summary.level == 2
        assert summary.current_level_xp == 100
        assert summary.next_level_xp == 300
        assert summary.progress_percent == 5.0


class TestXPValues:
    def test_fixed_values(self):
        assert XP_VALUES["session_completed"] == 15
        assert XP_VALUES["onboarding_complete"] == 10
        assert XP_VALUES["streak_3days"] == 20
        assert XP_VALUES["milestone_bonus"] == 50

    def test_table_is_read_only(self):
        with pytest.raises(TypeError):
            XP_VALUES["session_completed"] = 1000
