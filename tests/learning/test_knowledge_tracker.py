"""
Unit tests for KnowledgeStateTracker.

Tests:
- Bayesian update formula (correct and incorrect responses)
- Probability bounds over arbitrary response sequences
- Success prediction and opportunities to mastery
- Parameter adaptation and resets
- Learner isolation and concurrent updates
"""

import random
import sys
from concurrent.futures import ThreadPoolExecutor

import pytest

from companion.core.errors import ValidationError
from companion.learning.knowledge_tracker import KnowledgeState, KnowledgeStateTracker

PRIORS = {"p_l0": 0.1, "p_t": 0.3, "p_g": 0.2, "p_s": 0.1}


@pytest.fixture
def tracker():
    """Create KnowledgeStateTracker with default priors."""
    return KnowledgeStateTracker(priors=dict(PRIORS), shards=8)


class TestBayesianUpdate:
    """Tests for the BKT posterior and learning transition."""

    def test_correct_response_from_prior(self, tracker):
        """Correct answer: posterior 1/3, then + (2/3) * 0.3."""
        state = tracker.update_knowledge("alice", "python", True)

        assert state.knowledge_probability == pytest.approx(0.5333, abs=1e-4)
        assert state.observations == 1

    def test_incorrect_response_uses_half_learning_rate(self, tracker):
        """Incorrect answer: posterior 0.01/0.73, then + (1 - posterior) * 0.15."""
        state = tracker.update_knowledge("alice", "python", False)

        posterior = 0.01 / 0.73
        expected = posterior + (1 - posterior) * 0.15
        assert state.knowledge_probability == pytest.approx(expected)

    def test_zero_likelihood_keeps_probability(self):
        """Degenerate parameters leave P(L) unchanged before the transition."""
        state = KnowledgeState("s", knowledge_probability=0.0, learning_rate=0.0, guess_rate=0.0, slip_rate=0.1)

        assert KnowledgeStateTracker.bayesian_update(state, True) == 0.0

    def test_probability_stays_in_bounds(self, tracker):
        """Any mix of responses keeps P(L) within [0, 1]."""
        rng = random.Random(7)
        for _ in range(500):
            state = tracker.update_knowledge("alice", "python", rng.random() < 0.5)
            assert 0.0 <= state.knowledge_probability <= 1.0

    def test_repeated_success_approaches_mastery(self, tracker):
        for _ in range(10):
            tracker.update_knowledge("alice", "python", True)

        assert tracker.get_knowledge_probability("alice", "python") > 0.95

    def test_update_from_progress_threshold(self, tracker):
        """Completion above 0.7 counts as correct."""
        above = tracker.update_from_progress("alice", "python", 0.8)
        below = tracker.update_from_progress("bob", "python", 0.7)

        assert above.knowledge_probability > PRIORS["p_l0"]
        assert below.knowledge_probability == pytest.approx(0.01 / 0.73 + (1 - 0.01 / 0.73) * 0.15)


class TestPredictions:
    """Tests for success prediction and mastery estimates."""

    def test_unseen_skill_success_probability(self, tracker):
        """0.1 * 0.9 + 0.9 * 0.2 = 0.27."""
        assert tracker.predict_success_probability("alice", "unseen") == pytest.approx(0.27)
        assert tracker.get_knowledge_probability("alice", "unseen") == pytest.approx(0.1)

    def test_success_probability_monotonic_in_knowledge(self):
        probabilities = [i / 20 for i in range(21)]
        predictions = [
            KnowledgeState("s", p, learning_rate=0.3, guess_rate=0.2, slip_rate=0.1).success_probability
            for p in probabilities
        ]

        assert predictions == sorted(predictions)

    def test_opportunities_to_mastery_from_prior(self, tracker):
        """ceil((0.95 - 0.1) / 0.3) + 1 = 4."""
        assert tracker.estimate_opportunities_to_mastery("alice", "python", 0.95) == 4

    def test_opportunities_zero_when_mastered(self, tracker):
        assert tracker.estimate_opportunities_to_mastery("alice", "python", 0.05) == 0

    def test_opportunities_unreachable_without_learning(self, tracker):
        tracker.adapt_model_parameters("alice", "python", -0.3, 0.2, 0.1)  # T -> (0.3 - 0.3) / 2 = 0

        assert tracker.estimate_opportunities_to_mastery("alice", "python", 0.95) == sys.maxsize


class TestParameterAdaptation:
    """Tests for T/G/S adaptation and resets."""

    def test_adapt_takes_mean_of_current_and_observed(self, tracker):
        state = tracker.adapt_model_parameters("alice", "python", 0.5, 0.4, 0.3)

        assert state.learning_rate == pytest.approx(0.4)
        assert state.guess_rate == pytest.approx(0.3)
        assert state.slip_rate == pytest.approx(0.2)
        assert state.knowledge_probability == pytest.approx(0.1)

    def test_adapt_clamps_out_of_range_observations(self, tracker):
        state = tracker.adapt_model_parameters("alice", "python", 5.0, -5.0, 3.0)

        assert state.learning_rate == 1.0
        assert state.guess_rate == 0.0
        assert state.slip_rate == 1.0

    def test_reset_falls_back_to_priors(self, tracker):
        tracker.update_knowledge("alice", "python", True)

        assert tracker.reset_knowledge_state("alice", "python") is True
        assert tracker.get_knowledge_probability("alice", "python") == pytest.approx(0.1)
        assert tracker.reset_knowledge_state("alice", "python") is False

    def test_reset_learner_only_touches_that_learner(self, tracker):
        tracker.update_knowledge("alice", "python", True)
        tracker.update_knowledge("alice", "testing", True)
        tracker.update_knowledge("bob", "python", True)

        assert tracker.reset_learner("alice") == 2
        assert tracker.get_all_knowledge_probabilities("alice") == {}
        assert "python" in tracker.get_all_knowledge_probabilities("bob")


class TestLearnerIsolation:
    """Knowledge is keyed by (learner, skill)."""

    def test_learners_do_not_share_state(self, tracker):
        tracker.update_knowledge("alice", "python", True)

        assert tracker.get_knowledge_probability("bob", "python") == pytest.approx(0.1)

    def test_skill_gaps_sorted_largest_first(self, tracker):
        for _ in range(3):
            tracker.update_knowledge("alice", "python", True)

        gaps = tracker.skill_gaps("alice", {"python": 1.0, "testing": 0.8, "git": 0.05})

        assert [g.skill_domain for g in gaps] == ["testing", "python"]
        assert gaps[0].gap_size == pytest.approx(0.7)

    @pytest.mark.parametrize("learner_id", ["", "   ", None, 42])
    def test_invalid_learner_rejected(self, tracker, learner_id):
        with pytest.raises(ValidationError):
            tracker.update_knowledge(learner_id, "python", True)

    def test_non_finite_completion_rejected(self, tracker):
        with pytest.raises(ValidationError):
            tracker.update_from_progress("alice", "python", float("nan"))

        assert tracker.get_all_knowledge_probabilities("alice") == {}

    def test_concurrent_updates_are_not_lost(self, tracker):
        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(lambda _: tracker.update_knowledge("alice", "python", True), range(200)))

        assert tracker.get_knowledge_state("alice", "python").observations == 200
