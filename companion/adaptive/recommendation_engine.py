"""
Content Recommendation Engine.

Pipeline for recommend_content(skill_gaps, preferences):
1. Generate content per gap from the template catalog
   (at most 3 per gap, 5 per skill domain)
2. Collaborative filtering: append content similar learners rated > 0.7
3. Personalized difficulty from the learner's recent performance
4. Epsilon-greedy sequencing from learned pair rewards
5. Stable ordering: preferred type first, then closeness to the
   preferred difficulty

Without a learner id, steps 2 and 3 are skipped.
"""

from __future__ import annotations

import random
from collections import defaultdict
from collections.abc import Iterable, Sequence

from loguru import logger

from config import Settings, get_settings
from companion.adaptive.collaborative import CollaborativeFilter
from companion.adaptive.difficulty import DifficultyPersonalizer
from companion.adaptive.models import ContentType, LearningContent
from companion.adaptive.sequencer import ContentSequencer
from companion.adaptive.templates import (
    TemplateCatalog,
    advanced_follow_up_content,
    reinforcement_content,
    session_content,
)
from companion.core.errors import ValidationError, clamp, require_id, require_number
from companion.core.keyed_store import KeyedStore
from companion.core.models import LearningPreferences, LearningSession, SkillGap

FOLLOW_UP_LIMIT = 3
REINFORCEMENT_THRESHOLD = 0.7
ADVANCEMENT_THRESHOLD = 0.9


class RecommendationEngine:
    """
    Personalized content recommendation.

    All methods are synchronous and safe to call from concurrent threads;
    shared state lives in KeyedStores owned by the sub-components.

    Example:
        engine = RecommendationEngine()
        items = engine.recommend_content(
            [SkillGap("python", 0.7)],
            LearningPreferences(learner_id="alice", preferred_content_types={"exercise"}),
        )
    """

    def __init__(
        self,
        settings: Settings | None = None,
        catalog: TemplateCatalog | None = None,
        rng: random.Random | None = None,
    ):
        """
        Initialize engine.

        Args:
            settings: Configuration (cached settings if None)
            catalog: Template catalog (loaded from settings.content_catalog_path if None)
            rng: Random source for exploration (seeded from settings if None)
        """
        self.settings = settings or get_settings()
        shards = self.settings.store_shards
        self.catalog = catalog or TemplateCatalog.load(self.settings.content_catalog_path)
        self.collaborative = CollaborativeFilter(
            similarity_threshold=self.settings.similarity_threshold,
            score_threshold=self.settings.collaborative_score_threshold,
            shards=shards,
        )
        self.sequencer = ContentSequencer(
            learning_rate=self.settings.sequence_learning_rate,
            exploration_rate=self.settings.exploration_rate,
            rng=rng or random.Random(self.settings.recommendation_seed),
            shards=shards,
        )
        self.difficulty = DifficultyPersonalizer(
            history_size=self.settings.performance_history_size,
            shards=shards,
        )
        self._registry: KeyedStore[str, LearningContent] = KeyedStore(
            shards=shards, name="content_registry"
        )

    # =========================================================================
    # Recommendation Pipeline
    # =========================================================================

    def recommend_content(
        self,
        skill_gaps: Sequence[SkillGap],
        preferences: LearningPreferences | None = None,
    ) -> list[LearningContent]:
        """
        Ordered recommendations for a learner's skill gaps.

        Args:
            skill_gaps: Gaps to close (typically from the knowledge tracker)
            preferences: Learner preferences (anonymous defaults if None)

        Returns:
            Content ordered by preference match, then difficulty closeness
        """
        preferences = self._preferences(preferences)
        gaps = self._gaps(skill_gaps)
        logger.info(f"Recommending content for {len(gaps)} skill gaps (learner={preferences.learner_id})")

        recommendations: list[LearningContent] = []
        seen: set[str] = set()
        per_skill: dict[str, int] = defaultdict(int)
        for gap in gaps:
            remaining = self.settings.max_items_per_skill - per_skill[gap.skill_domain]
            if remaining <= 0:
                continue
            limit = min(self.settings.max_items_per_gap, remaining)
            fresh = [
                item
                for item in self.catalog.generate(gap.skill_domain, gap.gap_size, preferences.detail_level)
                if item.id not in seen
            ][:limit]
            seen.update(item.id for item in fresh)
            recommendations.extend(fresh)
            per_skill[gap.skill_domain] += len(fresh)
        self.register_content(recommendations)

        if preferences.learner_id:
            recommendations = self.apply_collaborative_filtering(recommendations, preferences)
            recommendations = self.adjust_personalized_difficulty(
                recommendations, preferences.learner_id
            )

        recommendations = self.optimize_content_sequence(recommendations, preferences)
        ordered = self.personalize_order(recommendations, preferences)
        logger.info(f"Generated {len(ordered)} recommendations")
        return ordered

    def generate_content_for_skill(
        self,
        skill_domain: str,
        gap_size: float,
        preferences: LearningPreferences | None = None,
    ) -> list[LearningContent]:
        """Template content for one skill, capped at max_items_per_skill."""
        preferences = self._preferences(preferences)
        gap_size = require_number(gap_size, "gap_size")
        content = self.catalog.generate(
            skill_domain, gap_size, preferences.detail_level, self.settings.max_items_per_skill
        )
        self.register_content(content)
        return content

    def apply_collaborative_filtering(
        self,
        base_recommendations: Sequence[LearningContent],
        preferences: LearningPreferences | None = None,
    ) -> list[LearningContent]:
        """Append content highly rated by similar learners that is not already present."""
        preferences = self._preferences(preferences)
        if not preferences.learner_id:
            return list(base_recommendations)

        suggestions = self.collaborative.suggest(
            preferences.learner_id, exclude=(item.id for item in base_recommendations)
        )
        enhanced = list(base_recommendations) + [
            self._registry.get(content_id) or placeholder_content(content_id)
            for content_id, _score in suggestions
        ]
        if suggestions:
            logger.debug(
                f"Collaborative filtering added {len(suggestions)} items "
                f"({len(base_recommendations)} -> {len(enhanced)})"
            )
        return enhanced

    def adjust_personalized_difficulty(
        self, content: Sequence[LearningContent], learner_id: str | None
    ) -> list[LearningContent]:
        if not learner_id:
            return list(content)
        return self.difficulty.adjust(content, learner_id)

    def optimize_content_sequence(
        self,
        content: Sequence[LearningContent],
        preferences: LearningPreferences | None = None,
    ) -> list[LearningContent]:
        return self.sequencer.optimize(content, self._preferences(preferences))

    @staticmethod
    def personalize_order(
        content: Iterable[LearningContent], preferences: LearningPreferences
    ) -> list[LearningContent]:
        """Preferred types first, then ascending distance from the preferred difficulty."""
        return sorted(
            content,
            key=lambda item: (
                not preferences.prefers(item.type.value),
                abs(item.difficulty - preferences.preferred_difficulty),
            ),
        )

    # =========================================================================
    # Feedback
    # =========================================================================

    def update_user_performance(
        self,
        learner_id: str,
        content_id: str,
        performance_score: float,
        previous_content_id: str | None = None,
    ) -> None:
        """
        Record a learner's performance on a content item.

        Updates the performance history and difficulty factor, the
        previous->content sequence reward (when a predecessor is given),
        and the learner's rating, then invalidates their similarity cache.
        """
        learner_id = require_id(learner_id, "learner_id")
        content_id = require_id(content_id, "content_id")
        score = clamp(require_number(performance_score, "performance_score"))
        if previous_content_id is not None:
            previous_content_id = require_id(previous_content_id, "previous_content_id")

        logger.debug(f"Updating performance: learner={learner_id}, content={content_id}, score={score:.2f}")

        self.difficulty.record_performance(learner_id, score)
        if previous_content_id is not None:
            self.sequencer.record_transition(previous_content_id, content_id, score)
        self.collaborative.record_rating(learner_id, content_id, score)

    # =========================================================================
    # Content Registry
    # =========================================================================

    def register_content(self, items: Iterable[LearningContent]) -> None:
        """Remember content so collaborative suggestions resolve to real items."""
        for item in items:
            self._registry.put(item.id, item)

    def get_content(self, content_id: str) -> LearningContent | None:
        return self._registry.get(require_id(content_id, "content_id"))

    # =========================================================================
    # Session Content
    # =========================================================================

    def generate_session_content(
        self,
        topic: str,
        proficiency: float,
        include_exercises: bool = True,
        include_quizzes: bool = True,
    ) -> list[LearningContent]:
        """Explanation, example, and optional exercise and quiz for one session."""
        proficiency = require_number(proficiency, "proficiency")
        logger.debug(f"Generating session content for {topic} (proficiency={proficiency:.2f})")
        content = session_content(topic, proficiency, include_exercises, include_quizzes)
        self.register_content(content)
        return content

    def generate_follow_up_content(
        self, completed_sessions: Sequence[LearningSession]
    ) -> list[LearningContent]:
        """
        Follow-up content from completed sessions, at most 3 items.

        Topics averaging below 0.7 get reinforcement exercises; topics
        above 0.9 get advanced material.
        """
        logger.info(f"Generating follow-up content from {len(completed_sessions)} sessions")

        topic_scores: dict[str, list[float]] = defaultdict(list)
        for session in completed_sessions:
            if not isinstance(session, LearningSession):
                raise ValidationError("completed_sessions", "expected LearningSession items")
            topic_scores[session.topic].append(session.performance_score(default=0.5))

        follow_up: list[LearningContent] = []
        for topic, scores in topic_scores.items():
            performance = sum(scores) / len(scores)
            if performance < REINFORCEMENT_THRESHOLD:
                follow_up.append(reinforcement_content(topic, performance))
            elif performance > ADVANCEMENT_THRESHOLD:
                follow_up.append(advanced_follow_up_content(topic))

        follow_up = follow_up[:FOLLOW_UP_LIMIT]
        self.register_content(follow_up)
        return follow_up

    # =========================================================================
    # Helpers
    # =========================================================================

    @staticmethod
    def _preferences(preferences: LearningPreferences | None) -> LearningPreferences:
        if preferences is None:
            return LearningPreferences()
        if not isinstance(preferences, LearningPreferences):
            raise ValidationError("preferences", f"expected LearningPreferences, got {type(preferences).__name__}")
        return preferences

    @staticmethod
    def _gaps(skill_gaps: Sequence[SkillGap]) -> list[SkillGap]:
        gaps = list(skill_gaps or [])
        for gap in gaps:
            if not isinstance(gap, SkillGap):
                raise ValidationError("skill_gaps", f"expected SkillGap, got {type(gap).__name__}")
        return gaps


def placeholder_content(content_id: str) -> LearningContent:
    """Stand-in for collaborative suggestions the registry does not know."""
    return LearningContent(
        id=content_id,
        type=ContentType.EXPLANATION,
        title="Recommended Content",
        body="Content recommended by similar learners",
        difficulty=0.5,
        estimated_minutes=20,
    )
