"""
Unit tests for personalized difficulty.

Tests:
- Recency-weighted performance trend
- Factor nudging and bounds
- Difficulty rescaling and the significance threshold
"""

import pytest

from companion.adaptive.difficulty import (
    DifficultyPersonalizer,
    difficulty_multiplier,
    nudge_factor,
    performance_trend,
)
from companion.adaptive.models import ContentType, LearningContent


def item(content_id: str, difficulty: float) -> LearningContent:
    return LearningContent(content_id, ContentType.EXERCISE, content_id, "", difficulty, 10)


@pytest.fixture
def personalizer():
    return DifficultyPersonalizer(history_size=50, shards=4)


class TestTrend:
    """Tests for the weighted trend."""

    def test_single_score(self):
        assert performance_trend([0.42]) == 0.42

    def test_uses_last_five_weighted(self):
        """[0.4, 0.6, 0.8, 1.0, 1.0] with weights 1..5 = 13 / 15."""
        assert performance_trend([0.2, 0.4, 0.6, 0.8, 1.0, 1.0]) == pytest.approx(13 / 15)

    @pytest.mark.parametrize(
        "trend,factor,expected",
        [
            (0.9, 1.0, 1.2),
            (0.4, 1.0, 0.8),
            (0.6, 1.5, 1.5),
            (0.8, 1.0, 1.0),
            (0.5, 1.0, 1.0),
        ],
    )
    def test_multiplier(self, trend, factor, expected):
        assert difficulty_multiplier(trend, factor) == pytest.approx(expected)


class TestFactor:
    """Tests for factor nudging."""

    def test_nudges(self):
        assert nudge_factor(1.0, 0.9) == pytest.approx(1.05)
        assert nudge_factor(1.0, 0.3) == pytest.approx(0.95)
        assert nudge_factor(1.0, 0.6) == 1.0

    def test_bounds(self):
        assert nudge_factor(2.0, 0.95) == 2.0
        assert nudge_factor(0.5, 0.1) == 0.5

    def test_factor_bounded_over_many_updates(self, personalizer):
        for _ in range(100):
            personalizer.record_performance("alice", 1.0)
        for _ in range(100):
            personalizer.record_performance("bob", 0.0)

        assert personalizer.factor("alice") == pytest.approx(2.0)
        assert personalizer.factor("bob") == pytest.approx(0.5)

    def test_history_is_bounded(self):
        personalizer = DifficultyPersonalizer(history_size=3, shards=2)
        for score in (0.1, 0.2, 0.3, 0.4, 0.5):
            personalizer.record_performance("alice", score)

        assert personalizer.performance("alice").history == pytest.approx((0.3, 0.4, 0.5))


class TestAdjust:
    """Tests for difficulty rescaling."""

    def test_no_history_leaves_content(self, personalizer):
        content = [item("a", 0.5)]

        assert personalizer.adjust(content, "alice") == content

    def test_strong_learner_gets_harder_content(self, personalizer):
        for _ in range(3):
            personalizer.record_performance("alice", 0.9)  # factor 1.15, trend 0.9

        adjusted = personalizer.adjust([item("a", 0.5), item("b", 0.05), item("c", 0.8)], "alice")

        assert adjusted[0].difficulty == pytest.approx(0.5 * 1.2 * 1.15)
        assert adjusted[1].difficulty == 0.05  # 0.1 after clamping, change not significant
        assert adjusted[2].difficulty == 1.0

    def test_struggling_learner_gets_easier_content(self, personalizer):
        for _ in range(2):
            personalizer.record_performance("alice", 0.2)  # factor 0.9, trend 0.2

        adjusted = personalizer.adjust([item("a", 0.8)], "alice")

        assert adjusted[0].difficulty == pytest.approx(0.8 * 0.8 * 0.9)

    def test_average_learner_unchanged(self, personalizer):
        personalizer.record_performance("alice", 0.6)

        content = [item("a", 0.5)]

        assert personalizer.adjust(content, "alice") == content
