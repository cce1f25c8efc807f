"""
Personalized difficulty from recent performance.

Per learner:
- bounded history of performance scores
- difficulty factor in [0.5, 2.0], nudged +0.05 after scores > 0.8 and
  -0.05 after scores < 0.5

Content difficulty is scaled by (trend multiplier * factor), where the
trend is a linearly weighted mean of the last 5 scores:
    trend > 0.8 -> 1.2, trend < 0.5 -> 0.8, else 1.0
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from loguru import logger

from companion.adaptive.models import LearningContent
from companion.core.errors import clamp, require_id, require_number
from companion.core.keyed_store import KeyedStore

MIN_FACTOR = 0.5
MAX_FACTOR = 2.0
FACTOR_STEP = 0.05
TREND_WINDOW = 5
MIN_DIFFICULTY = 0.1
SIGNIFICANT_CHANGE = 0.1


@dataclass(frozen=True)
class LearnerPerformance:
    """Performance history and difficulty factor of one learner."""

    history: tuple[float, ...] = ()
    factor: float = 1.0


def performance_trend(history: Sequence[float]) -> float:
    """Weighted mean of the last 5 scores, weights 1..n with the latest heaviest."""
    window = list(history[-TREND_WINDOW:])
    if not window:
        return 0.0
    if len(window) < 2:
        return window[-1]
    weights = range(1, len(window) + 1)
    return sum(score * w for score, w in zip(window, weights)) / sum(weights)


def difficulty_multiplier(trend: float, factor: float) -> float:
    if trend > 0.8:
        adjustment = 1.2
    elif trend < 0.5:
        adjustment = 0.8
    else:
        adjustment = 1.0
    return adjustment * factor


def nudge_factor(factor: float, score: float) -> float:
    if score > 0.8:
        factor += FACTOR_STEP
    elif score < 0.5:
        factor -= FACTOR_STEP
    return clamp(factor, MIN_FACTOR, MAX_FACTOR)


class DifficultyPersonalizer:
    """Tracks learner performance and rescales content difficulty."""

    def __init__(self, history_size: int = 50, shards: int = 32):
        self.history_size = history_size
        self._learners: KeyedStore[str, LearnerPerformance] = KeyedStore(
            shards=shards, name="learner_performance"
        )

    def record_performance(self, learner_id: str, score: float) -> LearnerPerformance:
        """Append a score and nudge the factor in one atomic transition."""
        learner_id = require_id(learner_id, "learner_id")
        score = clamp(require_number(score, "score"))

        def transition(current: LearnerPerformance | None) -> LearnerPerformance:
            state = current or LearnerPerformance()
            history = (state.history + (score,))[-self.history_size:]
            return LearnerPerformance(history=history, factor=nudge_factor(state.factor, score))

        return self._learners.update(learner_id, transition)

    def performance(self, learner_id: str) -> LearnerPerformance:
        return self._learners.get(require_id(learner_id, "learner_id")) or LearnerPerformance()

    def factor(self, learner_id: str) -> float:
        return self.performance(learner_id).factor

    def adjust(self, content: Sequence[LearningContent], learner_id: str) -> list[LearningContent]:
        """
        Rescale difficulties for a learner.

        Items keep their original difficulty unless the rescaled value
        (clamped to [0.1, 1.0]) differs by more than 0.1. Learners without
        history get the content unchanged.
        """
        state = self.performance(learner_id)
        if not state.history:
            return list(content)

        multiplier = difficulty_multiplier(performance_trend(state.history), state.factor)
        adjusted = []
        for item in content:
            difficulty = clamp(item.difficulty * multiplier, MIN_DIFFICULTY, 1.0)
            if abs(difficulty - item.difficulty) > SIGNIFICANT_CHANGE:
                item = item.with_difficulty(difficulty)
            adjusted.append(item)

        logger.debug(f"Difficulty multiplier for {learner_id}: {multiplier:.2f}")
        return adjusted
