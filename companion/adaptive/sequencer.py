"""
Content Sequencer - epsilon-greedy ordering from learned pair rewards.

Each ordered content pair "from->to" carries an exponential moving
average of the performance observed when "to" followed "from":

    reward += learning_rate * (performance - reward)

Sequencing picks, with probability epsilon, a random remaining item;
otherwise the item maximizing

    pair_reward(current->candidate) + preference_bonus + progression_bonus

The first pick is keyed from "START".
"""

from __future__ import annotations

import random
import threading
from collections.abc import Sequence
from dataclasses import dataclass

from loguru import logger

from companion.adaptive.models import LearningContent
from companion.core.errors import clamp, require_id, require_number
from companion.core.keyed_store import KeyedStore
from companion.core.models import LearningPreferences

START = "START"
DEFAULT_REWARD = 0.5


@dataclass(frozen=True)
class PairStats:
    """EMA reward and attempt count for one content pair."""

    reward: float = DEFAULT_REWARD
    attempts: int = 0


def pair_key(from_id: str | None, to_id: str) -> str:
    return f"{from_id or START}->{to_id}"


def preference_bonus(candidate: LearningContent, preferences: LearningPreferences) -> float:
    """0.1 for a preferred type, plus up to 0.1 for closeness to the preferred difficulty."""
    bonus = 0.1 if preferences.prefers(candidate.type.value) else 0.0
    difficulty_match = 1.0 - abs(candidate.difficulty - preferences.preferred_difficulty)
    return bonus + difficulty_match * 0.1


def progression_bonus(current: LearningContent | None, candidate: LearningContent) -> float:
    """Reward gradual difficulty increases, penalize jumps above 0.2."""
    if current is None:
        return 0.0
    delta = candidate.difficulty - current.difficulty
    if 0 <= delta <= 0.2:
        return 0.1
    elif delta > 0.2:
        return -0.1
    return 0.0


class ContentSequencer:
    """Learns pair rewards from feedback and orders content with them."""

    def __init__(
        self,
        learning_rate: float = 0.1,
        exploration_rate: float = 0.15,
        rng: random.Random | None = None,
        shards: int = 32,
    ):
        self.learning_rate = learning_rate
        self.exploration_rate = exploration_rate
        self._rng = rng or random.Random()
        self._rng_lock = threading.Lock()
        self._pairs: KeyedStore[str, PairStats] = KeyedStore(shards=shards, name="sequence_rewards")

    # =========================================================================
    # Reward Learning
    # =========================================================================

    def record_transition(self, previous_id: str, content_id: str, performance: float) -> PairStats:
        """Fold one observed performance into the previous->content reward."""
        key = pair_key(require_id(previous_id, "previous_content_id"), require_id(content_id, "content_id"))
        performance = clamp(require_number(performance, "performance"))

        def transition(current: PairStats | None) -> PairStats:
            stats = current or PairStats()
            reward = stats.reward + self.learning_rate * (performance - stats.reward)
            return PairStats(reward=reward, attempts=stats.attempts + 1)

        updated = self._pairs.update(key, transition)
        logger.debug(f"Sequence reward {key}: {updated.reward:.3f} ({updated.attempts} attempts)")
        return updated

    def stats(self, from_id: str | None, to_id: str) -> PairStats:
        return self._pairs.get(pair_key(from_id, to_id)) or PairStats()

    def reward(self, from_id: str | None, to_id: str) -> float:
        return self.stats(from_id, to_id).reward

    # =========================================================================
    # Sequencing
    # =========================================================================

    def expected_reward(
        self,
        current: LearningContent | None,
        candidate: LearningContent,
        preferences: LearningPreferences,
    ) -> float:
        historical = self.reward(current.id if current else None, candidate.id)
        return historical + preference_bonus(candidate, preferences) + progression_bonus(current, candidate)

    def _explore(self) -> bool:
        with self._rng_lock:
            return self._rng.random() < self.exploration_rate

    def _random_choice(self, remaining: Sequence[LearningContent]) -> LearningContent:
        with self._rng_lock:
            return self._rng.choice(remaining)

    def select_next(
        self,
        current: LearningContent | None,
        remaining: Sequence[LearningContent],
        preferences: LearningPreferences,
    ) -> LearningContent:
        if self._explore():
            return self._random_choice(remaining)

        best = remaining[0]
        best_reward = float("-inf")
        for candidate in remaining:
            expected = self.expected_reward(current, candidate, preferences)
            if expected > best_reward:
                best, best_reward = candidate, expected
        return best

    def optimize(
        self, content: Sequence[LearningContent], preferences: LearningPreferences
    ) -> list[LearningContent]:
        """Order content greedily by expected reward, exploring with probability epsilon."""
        if len(content) <= 1:
            return list(content)

        remaining = list(content)
        sequence: list[LearningContent] = []
        current: LearningContent | None = None
        while remaining:
            current = self.select_next(current, remaining, preferences)
            sequence.append(current)
            remaining.remove(current)

        logger.debug(f"Sequenced {len(sequence)} items")
        return sequence
