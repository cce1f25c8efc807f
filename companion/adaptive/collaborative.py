"""
Collaborative Filtering over learner content ratings.

Learners are similar when the Pearson correlation of their ratings over
the content both have rated (at least 2 items) exceeds the similarity
threshold. Content that similar learners rate highly on average is
suggested to the learner.

Similar-learner sets are cached per learner with a generation counter:
a rating change bumps the learner's generation, and any cached set built
under an older generation is ignored. Readers never wait on invalidation.
"""

from __future__ import annotations

import math
from collections import defaultdict
from collections.abc import Iterable, Mapping

from loguru import logger

from companion.core.errors import clamp, require_id, require_number
from companion.core.keyed_store import KeyedStore

MIN_COMMON_ITEMS = 2


def pearson_similarity(ratings_a: Mapping[str, float], ratings_b: Mapping[str, float]) -> float:
    """
    Pearson correlation over commonly rated content.

    Returns:
        Correlation in [-1, 1], or 0.0 with fewer than 2 common items or
        zero variance on either side
    """
    common = set(ratings_a) & set(ratings_b)
    n = len(common)
    if n < MIN_COMMON_ITEMS:
        return 0.0

    sum_a = sum(ratings_a[c] for c in common)
    sum_b = sum(ratings_b[c] for c in common)
    sum_a_sq = sum(ratings_a[c] ** 2 for c in common)
    sum_b_sq = sum(ratings_b[c] ** 2 for c in common)
    p_sum = sum(ratings_a[c] * ratings_b[c] for c in common)

    numerator = p_sum - (sum_a * sum_b / n)
    var_a = sum_a_sq - sum_a * sum_a / n
    var_b = sum_b_sq - sum_b * sum_b / n
    if var_a <= 0 or var_b <= 0:
        return 0.0
    return numerator / math.sqrt(var_a * var_b)


class SimilarityCache:
    """Per-learner similar-learner sets tagged with a generation counter."""

    def __init__(self, shards: int = 32):
        self._generations: KeyedStore[str, int] = KeyedStore(shards=shards, name="similarity_generations")
        self._entries: KeyedStore[str, tuple[int, frozenset[str]]] = KeyedStore(
            shards=shards, name="similarity_cache"
        )

    def generation(self, learner_id: str) -> int:
        return self._generations.get(learner_id, 0)

    def get(self, learner_id: str) -> frozenset[str] | None:
        """Cached set if it was built under the current generation."""
        entry = self._entries.get(learner_id)
        if entry is None or entry[0] != self.generation(learner_id):
            return None
        return entry[1]

    def store(self, learner_id: str, generation: int, similar: frozenset[str]) -> bool:
        """
        Cache a result computed under generation.

        Returns:
            False if the learner was invalidated since (result discarded)
        """
        if generation != self.generation(learner_id):
            return False
        return self._entries.put_if(
            learner_id,
            (generation, similar),
            lambda current: current is None or current[0] <= generation,
        )

    def invalidate(self, learner_id: str) -> int:
        """Bump the learner's generation. Returns the new generation."""
        return self._generations.update(learner_id, lambda g: (g or 0) + 1)


class CollaborativeFilter:
    """
    Ratings store plus similar-learner lookup.

    Ratings are stored per learner as immutable snapshots; recording a
    rating replaces the snapshot atomically.
    """

    def __init__(
        self,
        similarity_threshold: float = 0.6,
        score_threshold: float = 0.7,
        shards: int = 32,
    ):
        self.similarity_threshold = similarity_threshold
        self.score_threshold = score_threshold
        self._ratings: KeyedStore[str, Mapping[str, float]] = KeyedStore(
            shards=shards, name="content_ratings"
        )
        self.cache = SimilarityCache(shards=shards)

    # =========================================================================
    # Ratings
    # =========================================================================

    def record_rating(self, learner_id: str, content_id: str, score: float) -> None:
        """Record or overwrite a learner's rating and invalidate their similarity cache."""
        learner_id = require_id(learner_id, "learner_id")
        content_id = require_id(content_id, "content_id")
        score = clamp(require_number(score, "score"))

        self._ratings.update(learner_id, lambda current: {**(current or {}), content_id: score})
        self.cache.invalidate(learner_id)

    def ratings_for(self, learner_id: str) -> dict[str, float]:
        return dict(self._ratings.get(learner_id) or {})

    # =========================================================================
    # Similarity
    # =========================================================================

    def find_similar_learners(self, learner_id: str) -> frozenset[str]:
        """Learners whose ratings correlate above the similarity threshold."""
        cached = self.cache.get(learner_id)
        if cached is not None:
            return cached

        generation = self.cache.generation(learner_id)
        all_ratings = self._ratings.snapshot()
        own = all_ratings.get(learner_id)
        if not own:
            return frozenset()

        similar = frozenset(
            other
            for other, ratings in all_ratings.items()
            if other != learner_id
            and pearson_similarity(own, ratings) > self.similarity_threshold
        )
        if not self.cache.store(learner_id, generation, similar):
            logger.debug(f"Discarded stale similarity result for {learner_id}")
        return similar

    def collaborative_scores(self, similar_learners: Iterable[str]) -> dict[str, float]:
        """Mean rating per content id across the given learners."""
        content_scores: dict[str, list[float]] = defaultdict(list)
        for other in similar_learners:
            for content_id, rating in (self._ratings.get(other) or {}).items():
                content_scores[content_id].append(rating)
        return {cid: sum(scores) / len(scores) for cid, scores in content_scores.items()}

    def suggest(self, learner_id: str, exclude: Iterable[str] = ()) -> list[tuple[str, float]]:
        """
        Highly rated content from similar learners.

        Args:
            learner_id: Learner to suggest for
            exclude: Content ids already recommended

        Returns:
            (content_id, mean_score) pairs above the score threshold,
            best first
        """
        similar = self.find_similar_learners(learner_id)
        if not similar:
            logger.debug(f"No similar learners found for {learner_id}")
            return []

        excluded = set(exclude)
        scores = self.collaborative_scores(similar)
        suggestions = [
            (cid, score)
            for cid, score in scores.items()
            if score > self.score_threshold and cid not in excluded
        ]
        return sorted(suggestions, key=lambda item: (-item[1], item[0]))
