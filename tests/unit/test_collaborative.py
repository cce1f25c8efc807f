"""
Unit tests for collaborative filtering.

Tests:
- Pearson similarity over common ratings
- Similar learner discovery and suggestion thresholds
- Generation-counter cache invalidation
"""

import pytest

from companion.adaptive.collaborative import CollaborativeFilter, SimilarityCache, pearson_similarity


@pytest.fixture
def cf():
    return CollaborativeFilter(similarity_threshold=0.6, score_threshold=0.7, shards=4)


def rate(cf, learner, ratings):
    for content_id, score in ratings.items():
        cf.record_rating(learner, content_id, score)


class TestPearsonSimilarity:
    """Tests for the similarity measure."""

    def test_identical_ratings(self):
        ratings = {"a": 0.2, "b": 0.5, "c": 0.9}

        assert pearson_similarity(ratings, ratings) == pytest.approx(1.0)

    def test_opposite_ratings(self):
        assert pearson_similarity({"a": 0.1, "b": 0.9}, {"a": 0.9, "b": 0.1}) == pytest.approx(-1.0)

    def test_requires_two_common_items(self):
        assert pearson_similarity({"a": 0.1, "b": 0.9}, {"a": 0.2, "c": 0.8}) == 0.0

    def test_zero_variance_is_zero(self):
        assert pearson_similarity({"a": 0.5, "b": 0.5}, {"a": 0.1, "b": 0.9}) == 0.0


class TestSuggestions:
    """Tests for similar learners and suggested content."""

    def test_similar_learner_content_suggested(self, cf):
        rate(cf, "alice", {"a": 0.2, "b": 0.9})
        rate(cf, "bob", {"a": 0.3, "b": 0.95, "c": 0.9, "d": 0.5})

        assert cf.find_similar_learners("alice") == frozenset({"bob"})
        assert cf.suggest("alice", exclude=["a"]) == [("b", 0.95), ("c", 0.9)]

    def test_excluded_content_never_suggested(self, cf):
        rate(cf, "alice", {"a": 0.2, "b": 0.9})
        rate(cf, "bob", {"a": 0.3, "b": 0.95, "c": 0.9})

        suggested = [cid for cid, _ in cf.suggest("alice", exclude=["b", "c"])]

        assert suggested == []

    def test_dissimilar_learners_ignored(self, cf):
        rate(cf, "alice", {"a": 0.2, "b": 0.9})
        rate(cf, "carol", {"a": 0.9, "b": 0.2, "c": 0.95})

        assert cf.find_similar_learners("alice") == frozenset()
        assert cf.suggest("alice") == []

    def test_learner_without_ratings(self, cf):
        rate(cf, "bob", {"a": 0.3, "b": 0.95})

        assert cf.find_similar_learners("alice") == frozenset()

    def test_rating_overwrites(self, cf):
        cf.record_rating("alice", "a", 0.2)
        cf.record_rating("alice", "a", 0.8)

        assert cf.ratings_for("alice") == {"a": 0.8}


class TestSimilarityCache:
    """Tests for generation-counter invalidation."""

    def test_cached_until_own_ratings_change(self, cf):
        rate(cf, "alice", {"a": 0.2, "b": 0.9})
        rate(cf, "bob", {"a": 0.3, "b": 0.95})
        assert cf.find_similar_learners("alice") == frozenset({"bob"})

        # Another learner's ratings do not invalidate alice's cache
        rate(cf, "dave", {"a": 0.1, "b": 0.8})
        assert cf.find_similar_learners("alice") == frozenset({"bob"})

        cf.record_rating("alice", "c", 0.5)
        assert cf.find_similar_learners("alice") == frozenset({"bob", "dave"})

    def test_stale_result_discarded(self):
        cache = SimilarityCache(shards=2)
        generation = cache.generation("alice")
        cache.invalidate("alice")

        assert cache.store("alice", generation, frozenset({"bob"})) is False
        assert cache.get("alice") is None

    def test_current_result_served(self):
        cache = SimilarityCache(shards=2)
        cache.invalidate("alice")
        generation = cache.generation("alice")

        assert cache.store("alice", generation, frozenset({"bob"})) is True
        assert cache.get("alice") == frozenset({"bob"})
        cache.invalidate("alice")
        assert cache.get("alice") is None
