"""
Bayesian Knowledge Tracing (BKT) for per-skill mastery.

Each (learner, skill) pair carries four probabilities:
- P(L): probability the skill is known
- P(T): probability of learning per opportunity
- P(G): probability of guessing correctly without knowing
- P(S): probability of slipping despite knowing

Update after an observation:
    correct:   P(L|obs) = P(L)(1-S) / [P(L)(1-S) + (1-P(L))G]
    incorrect: P(L|obs) = P(L)S / [P(L)S + (1-P(L))(1-G)]
    then       P(L') = P(L|obs) + (1 - P(L|obs)) * T   (T/2 after a mistake)
"""

from __future__ import annotations

import math
import sys
from dataclasses import dataclass, replace
from datetime import datetime

from loguru import logger

from config import get_settings
from companion.core.errors import clamp, require_id, require_number
from companion.core.keyed_store import KeyedStore
from companion.core.models import SkillGap


@dataclass(frozen=True)
class KnowledgeState:
    """BKT state for one skill. Probabilities are clamped to [0, 1]."""

    skill_key: str
    knowledge_probability: float
    learning_rate: float
    guess_rate: float
    slip_rate: float
    observations: int = 0
    updated_at: datetime | None = None

    def __post_init__(self) -> None:
        for name in ("knowledge_probability", "learning_rate", "guess_rate", "slip_rate"):
            object.__setattr__(self, name, clamp(getattr(self, name)))

    @property
    def success_probability(self) -> float:
        """P(correct) = P(L)(1-S) + (1-P(L))G."""
        p_l = self.knowledge_probability
        return p_l * (1 - self.slip_rate) + (1 - p_l) * self.guess_rate


class KnowledgeStateTracker:
    """
    Maintains BKT mastery estimates keyed by (learner_id, skill_key).

    State is created lazily from the priors on first write and is never
    dropped except through reset_knowledge_state / reset_learner.
    """

    def __init__(
        self,
        priors: dict[str, float] | None = None,
        shards: int | None = None,
    ):
        """
        Initialize tracker.

        Args:
            priors: Optional p_l0, p_t, p_g, p_s overrides (settings otherwise)
            shards: Lock stripes for the state store
        """
        if priors is None or shards is None:
            settings = get_settings()
            priors = priors or settings.get_bkt_priors()
            shards = shards or settings.store_shards

        self.p_l0 = priors["p_l0"]
        self.p_t = priors["p_t"]
        self.p_g = priors["p_g"]
        self.p_s = priors["p_s"]
        self._states: KeyedStore[tuple[str, str], KnowledgeState] = KeyedStore(
            shards=shards, name="knowledge_states"
        )

    def _prior_state(self, skill_key: str) -> KnowledgeState:
        return KnowledgeState(
            skill_key=skill_key,
            knowledge_probability=self.p_l0,
            learning_rate=self.p_t,
            guess_rate=self.p_g,
            slip_rate=self.p_s,
        )

    def _key(self, learner_id: str, skill_key: str) -> tuple[str, str]:
        return require_id(learner_id, "learner_id"), require_id(skill_key, "skill_key")

    def _state(self, learner_id: str, skill_key: str) -> KnowledgeState:
        key = self._key(learner_id, skill_key)
        return self._states.get(key) or self._prior_state(key[1])

    # =========================================================================
    # Updates
    # =========================================================================

    @staticmethod
    def bayesian_update(state: KnowledgeState, correct_response: bool) -> float:
        """
        Posterior knowledge probability after one observation.

        Args:
            state: Current knowledge state
            correct_response: Whether the learner answered correctly

        Returns:
            New P(L), clamped to [0, 1]
        """
        p_l = state.knowledge_probability
        if correct_response:
            numerator = p_l * (1 - state.slip_rate)
            likelihood = numerator + (1 - p_l) * state.guess_rate
            transition = state.learning_rate
        else:
            numerator = p_l * state.slip_rate
            likelihood = numerator + (1 - p_l) * (1 - state.guess_rate)
            # Mistakes are still learning opportunities, at half the rate
            transition = state.learning_rate / 2

        posterior = numerator / likelihood if likelihood > 0 else p_l
        posterior = posterior + (1 - posterior) * transition
        return clamp(posterior)

    def update_knowledge(
        self, learner_id: str, skill_key: str, correct_response: bool
    ) -> KnowledgeState:
        """
        Apply one correctness observation to a learner's skill.

        Returns:
            The stored KnowledgeState after the update
        """
        key = self._key(learner_id, skill_key)
        correct = bool(correct_response)

        def transition(current: KnowledgeState | None) -> KnowledgeState:
            state = current or self._prior_state(key[1])
            return replace(
                state,
                knowledge_probability=self.bayesian_update(state, correct),
                observations=state.observations + 1,
                updated_at=datetime.now(),
            )

        updated = self._states.update(key, transition)
        logger.debug(
            f"Knowledge {key[0]}/{key[1]}: correct={correct} "
            f"-> P(L)={updated.knowledge_probability:.3f}"
        )
        return updated

    def update_from_progress(
        self, learner_id: str, skill_key: str, completion: float, threshold: float | None = None
    ) -> KnowledgeState:
        """
        Update from a progress report; completion above threshold counts as correct.

        Args:
            completion: Completion ratio 0-1
            threshold: Correctness cutoff (settings.bkt_correct_threshold by default)
        """
        completion = require_number(completion, "completion")
        if threshold is None:
            threshold = get_settings().bkt_correct_threshold
        return self.update_knowledge(learner_id, skill_key, completion > threshold)

    def adapt_model_parameters(
        self,
        learner_id: str,
        skill_key: str,
        observed_learning_rate: float,
        observed_guess_rate: float,
        observed_slip_rate: float,
    ) -> KnowledgeState:
        """Blend T, G and S with observed values (arithmetic mean), keeping P(L)."""
        key = self._key(learner_id, skill_key)
        observed_t = require_number(observed_learning_rate, "observed_learning_rate")
        observed_g = require_number(observed_guess_rate, "observed_guess_rate")
        observed_s = require_number(observed_slip_rate, "observed_slip_rate")

        def transition(current: KnowledgeState | None) -> KnowledgeState:
            state = current or self._prior_state(key[1])
            return replace(
                state,
                learning_rate=(state.learning_rate + observed_t) / 2,
                guess_rate=(state.guess_rate + observed_g) / 2,
                slip_rate=(state.slip_rate + observed_s) / 2,
                updated_at=datetime.now(),
            )

        adapted = self._states.update(key, transition)
        logger.info(
            f"Adapted BKT parameters for {key[0]}/{key[1]}: "
            f"T={adapted.learning_rate:.3f}, G={adapted.guess_rate:.3f}, S={adapted.slip_rate:.3f}"
        )
        return adapted

    def reset_knowledge_state(self, learner_id: str, skill_key: str) -> bool:
        """Drop stored state so subsequent reads fall back to the priors."""
        key = self._key(learner_id, skill_key)
        removed = self._states.pop(key) is not None
        logger.info(f"Reset knowledge state for {key[0]}/{key[1]}")
        return removed

    def reset_learner(self, learner_id: str) -> int:
        """Drop every skill state of one learner. Returns the number removed."""
        learner_id = require_id(learner_id, "learner_id")
        return self._states.evict(lambda key, _state: key[0] == learner_id)

    # =========================================================================
    # Queries
    # =========================================================================

    def get_knowledge_state(self, learner_id: str, skill_key: str) -> KnowledgeState:
        return self._state(learner_id, skill_key)

    def get_knowledge_probability(self, learner_id: str, skill_key: str) -> float:
        return self._state(learner_id, skill_key).knowledge_probability

    def predict_success_probability(self, learner_id: str, skill_key: str) -> float:
        """P(correct on next attempt) = P(L)(1-S) + (1-P(L))G."""
        return self._state(learner_id, skill_key).success_probability

    def estimate_opportunities_to_mastery(
        self, learner_id: str, skill_key: str, threshold: float | None = None
    ) -> int:
        """
        Rough count of practice opportunities before P(L) reaches threshold.

        Returns:
            0 if already at threshold, otherwise ceil((threshold - P(L)) / T) + 1
        """
        if threshold is None:
            threshold = get_settings().mastery_threshold
        threshold = clamp(require_number(threshold, "threshold"))
        state = self._state(learner_id, skill_key)
        if state.knowledge_probability >= threshold:
            return 0
        if state.learning_rate <= 0:
            # No learning transition, mastery is unreachable by practice alone
            return sys.maxsize
        gap = threshold - state.knowledge_probability
        return math.ceil(gap / state.learning_rate) + 1

    def get_all_knowledge_probabilities(self, learner_id: str) -> dict[str, float]:
        """Map skill_key -> P(L) for every skill tracked for the learner."""
        learner_id = require_id(learner_id, "learner_id")
        return {
            key[1]: state.knowledge_probability
            for key, state in self._states.snapshot().items()
            if key[0] == learner_id
        }

    def skill_gaps(self, learner_id: str, targets: dict[str, float]) -> list[SkillGap]:
        """
        Build skill gaps from target proficiency levels.

        Args:
            learner_id: Learner identifier
            targets: skill_key -> target knowledge probability

        Returns:
            Gaps with gap_size > 0, largest first
        """
        gaps = [
            SkillGap.from_levels(skill, self.get_knowledge_probability(learner_id, skill), target)
            for skill, target in targets.items()
        ]
        return sorted((g for g in gaps if g.gap_size > 0), key=lambda g: g.gap_size, reverse=True)
