"""
Learning Engine - closes the loop between tracking, scheduling and recommendation.

Flow:
1. complete_session: each outcome updates the knowledge tracker
   (correct when achievement > threshold), then follow-ups are scheduled
2. recommend: skill gaps from tracker probabilities feed the recommender
3. record_content_feedback: feedback updates the recommender and, for a
   topic, assesses retention and adjusts the schedule

Every operation is asynchronous and runs off the caller's event loop.
"""

from __future__ import annotations

from dataclasses import dataclass, replace

from loguru import logger

from config import Settings, get_settings
from companion.adaptive.models import LearningContent
from companion.adaptive.recommendation_engine import RecommendationEngine
from companion.core.concurrency import run_operation
from companion.core.errors import ValidationError, require_id, require_number
from companion.core.models import LearningPreferences, LearningSession, SessionOutcome
from companion.learning.knowledge_tracker import KnowledgeState, KnowledgeStateTracker
from companion.study.models import LearningSchedule, RetentionAssessment, ScheduledSession
from companion.study.retention_scheduler import RetentionScheduler


@dataclass(frozen=True)
class SessionResult:
    """Effects of completing a session."""

    knowledge: tuple[KnowledgeState, ...]
    follow_ups: tuple[ScheduledSession, ...]


@dataclass(frozen=True)
class FeedbackResult:
    """Effects of content feedback. Assessment fields are None without a topic."""

    content_id: str
    assessment: RetentionAssessment | None = None
    schedule: LearningSchedule | None = None


class LearningEngine:
    """Facade wiring KnowledgeStateTracker, RetentionScheduler and RecommendationEngine."""

    def __init__(
        self,
        settings: Settings | None = None,
        tracker: KnowledgeStateTracker | None = None,
        scheduler: RetentionScheduler | None = None,
        recommender: RecommendationEngine | None = None,
    ):
        self.settings = settings or get_settings()
        self.tracker = tracker or KnowledgeStateTracker(
            priors=self.settings.get_bkt_priors(), shards=self.settings.store_shards
        )
        self.scheduler = scheduler or RetentionScheduler(settings=self.settings)
        self.recommender = recommender or RecommendationEngine(settings=self.settings)

    async def complete_session(self, learner_id: str, session: LearningSession) -> SessionResult:
        """
        Record a completed session.

        The session topic is the skill key; each outcome is one BKT
        observation.
        """
        learner_id = require_id(learner_id, "learner_id")
        if not isinstance(session, LearningSession):
            raise ValidationError("session", f"expected LearningSession, got {type(session).__name__}")

        knowledge = await run_operation(
            "update knowledge", self._observe_outcomes, learner_id, session
        )
        follow_ups = await self.scheduler.schedule_follow_up(learner_id, session)
        logger.info(
            f"Completed session {session.id} for {learner_id}: "
            f"{len(knowledge)} observations, {len(follow_ups)} follow-ups"
        )
        return SessionResult(knowledge=tuple(knowledge), follow_ups=tuple(follow_ups))

    def _observe_outcomes(self, learner_id: str, session: LearningSession) -> list[KnowledgeState]:
        threshold = self.settings.bkt_correct_threshold
        return [
            self.tracker.update_knowledge(learner_id, session.topic, outcome.achievement_score > threshold)
            for outcome in session.outcomes
        ]

    async def recommend(
        self,
        learner_id: str,
        targets: dict[str, float],
        preferences: LearningPreferences | None = None,
    ) -> list[LearningContent]:
        """
        Recommend content for the gaps between tracked knowledge and targets.

        Args:
            learner_id: Learner identifier
            targets: skill_key -> target knowledge probability
            preferences: Learner preferences (learner_id filled in if missing)
        """
        learner_id = require_id(learner_id, "learner_id")
        preferences = preferences or LearningPreferences()
        if preferences.learner_id is None:
            preferences = replace(preferences, learner_id=learner_id)

        def build() -> list[LearningContent]:
            gaps = self.tracker.skill_gaps(learner_id, targets)
            return self.recommender.recommend_content(gaps, preferences)

        return await run_operation("recommend content", build)

    async def record_content_feedback(
        self,
        learner_id: str,
        content_id: str,
        score: float,
        previous_content_id: str | None = None,
        topic: str | None = None,
    ) -> FeedbackResult:
        """
        Feed content performance back into the engine.

        With a topic, the score is also treated as a follow-up session on
        that topic: retention is assessed and the schedule adjusted.
        """
        learner_id = require_id(learner_id, "learner_id")
        content_id = require_id(content_id, "content_id")
        score = require_number(score, "score")
        if topic is not None:
            topic = require_id(topic, "topic")

        await run_operation(
            "update user performance",
            self.recommender.update_user_performance,
            learner_id,
            content_id,
            score,
            previous_content_id,
        )
        if topic is None:
            return FeedbackResult(content_id=content_id)

        follow_up = LearningSession(
            id=f"feedback:{content_id}",
            topic=topic,
            outcomes=(SessionOutcome(objective=content_id, achievement_score=score),),
        )
        assessment = await self.scheduler.assess_retention(learner_id, follow_up.topic, follow_up)
        schedule = await self.scheduler.adjust_schedule(learner_id, assessment)
        return FeedbackResult(content_id=content_id, assessment=assessment, schedule=schedule)
