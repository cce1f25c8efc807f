"""
Retention Scheduler - SM-2 Spaced Repetition with Forgetting-Curve Assessment.

Implements:
- SM-2 interval ladder (1 day, 6 days, then previous * EF, capped at 180)
- Easiness factor update from session performance
- Three chained follow-up reviews per completed session
- Retention assessment on a 30-day forgetting curve
- Schedule adjustment from the assessed retention level

Performance scores (0-1) map onto the SM-2 quality scale as q = score * 5.
"""

from __future__ import annotations

import math
import uuid
from collections.abc import Callable
from dataclasses import replace
from datetime import datetime, timedelta

from loguru import logger

from config import Settings, get_settings
from companion.core.concurrency import run_operation
from companion.core.errors import NotFoundError, ValidationError, clamp, require_id, require_number
from companion.core.keyed_store import KeyedStore
from companion.core.models import LearningSession
from companion.study.models import (
    LearningSchedule,
    Priority,
    RetentionAssessment,
    ScheduledSession,
    TopicReviewData,
)

# SM-2 ladder
INITIAL_INTERVAL_DAYS = 1
SECOND_INTERVAL_DAYS = 6

# Assessment thresholds
STRENGTH_THRESHOLD = 0.8
WEAKNESS_THRESHOLD = 0.6
DEFAULT_STRENGTH = "Completed session"


class RetentionScheduler:
    """
    Schedules spaced-repetition reviews and assesses retention per learner topic.

    Every mutation of a topic's review data happens inside one KeyedStore
    transition, so concurrent sessions on the same (learner, topic) never
    lose updates and never observe a half-applied review.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        """
        Initialize scheduler.

        Args:
            settings: Configuration (cached settings if None)
            clock: Source of "now" (datetime.now if None)
        """
        self.settings = settings or get_settings()
        self._clock = clock or datetime.now
        self._reviews: KeyedStore[tuple[str, str], TopicReviewData] = KeyedStore(
            shards=self.settings.store_shards, name="topic_reviews"
        )
        self._pending: KeyedStore[str, tuple[ScheduledSession, ...]] = KeyedStore(
            shards=self.settings.store_shards, name="pending_follow_ups"
        )

    # =========================================================================
    # SM-2 Algorithm
    # =========================================================================

    def calculate_next_interval(
        self, previous_interval: int, easiness_factor: float, performance_score: float
    ) -> int:
        """
        Next review interval in days.

        Args:
            previous_interval: Last interval in days (0 if never scheduled)
            easiness_factor: Current SM-2 easiness factor
            performance_score: Performance on the latest session (0-1)

        Returns:
            1 after a poor session (< 0.6) or a first review, 6 after a
            one-day interval, otherwise ceil(previous * EF) capped at 180
        """
        performance_score = require_number(performance_score, "performance_score")
        easiness_factor = require_number(easiness_factor, "easiness_factor")
        if performance_score < self.settings.sm2_reset_threshold:
            return INITIAL_INTERVAL_DAYS
        if previous_interval <= 0:
            return INITIAL_INTERVAL_DAYS
        if previous_interval == INITIAL_INTERVAL_DAYS:
            return SECOND_INTERVAL_DAYS
        next_interval = math.ceil(previous_interval * easiness_factor)
        return min(next_interval, self.settings.sm2_maximum_interval)

    def update_easiness_factor(self, easiness_factor: float, performance_score: float) -> float:
        """EF' = EF + (0.1 - (5 - q) * (0.08 + (5 - q) * 0.02)), q = score * 5, floored at 1.3."""
        easiness_factor = require_number(easiness_factor, "easiness_factor")
        q = clamp(require_number(performance_score, "performance_score")) * 5.0
        ef_delta = 0.1 - (5 - q) * (0.08 + (5 - q) * 0.02)
        return max(self.settings.sm2_minimum_easiness, easiness_factor + ef_delta)

    @staticmethod
    def determine_priority(performance_score: float, review_index: int) -> Priority:
        if performance_score < 0.5:
            return Priority.HIGH
        elif performance_score < 0.7 or review_index == 0:
            return Priority.MEDIUM
        else:
            return Priority.LOW

    def retention_score(self, performance_score: float, days_since_review: int) -> float:
        """Performance anchored forgetting curve: score * (0.5 + 0.5 * e^(-days / 30))."""
        performance_score = require_number(performance_score, "performance_score")
        days_since_review = max(0.0, require_number(days_since_review, "days_since_review"))
        time_decay = math.exp(-days_since_review / self.settings.forgetting_half_life_days)
        return performance_score * (0.5 + 0.5 * time_decay)

    @staticmethod
    def recommended_action(retention_score: float) -> str:
        if retention_score < 0.4:
            return "Immediate review recommended - significant knowledge loss detected"
        elif retention_score < 0.6:
            return "Schedule review within 2-3 days to reinforce learning"
        elif retention_score < 0.8:
            return "Continue with scheduled reviews to maintain retention"
        else:
            return "Excellent retention - extend review intervals"

    def _performance(self, session: LearningSession) -> float:
        if not isinstance(session, LearningSession):
            raise ValidationError("session", f"expected LearningSession, got {type(session).__name__}")
        return session.performance_score(self.settings.default_session_score)

    def _new_review_data(self, topic: str) -> TopicReviewData:
        return TopicReviewData(topic=topic, easiness_factor=self.settings.sm2_default_easiness)

    def _record_pending(self, learner_id: str, topic: str, sessions: list[ScheduledSession]) -> None:
        """Replace the topic's pending sessions with the newly scheduled ones."""

        def transition(current: tuple[ScheduledSession, ...] | None) -> tuple[ScheduledSession, ...]:
            kept = tuple(s for s in (current or ()) if s.topic != topic)
            return kept + tuple(sessions)

        self._pending.update(learner_id, transition)

    # =========================================================================
    # Follow-up Scheduling
    # =========================================================================

    def _schedule_follow_up(
        self, learner_id: str, completed_session: LearningSession
    ) -> list[ScheduledSession]:
        learner_id = require_id(learner_id, "learner_id")
        performance_score = self._performance(completed_session)
        topic = require_id(completed_session.topic, "topic")
        now = self._clock()

        logger.info(
            f"Scheduling follow-up for learner {learner_id}, session {completed_session.id} "
            f"(performance={performance_score:.2f})"
        )

        def transition(
            current: TopicReviewData | None,
        ) -> tuple[TopicReviewData, list[int]]:
            data = current or self._new_review_data(topic)
            intervals: list[int] = []
            interval = data.last_interval_days
            for _ in range(self.settings.follow_up_count):
                interval = self.calculate_next_interval(
                    interval, data.easiness_factor, performance_score
                )
                intervals.append(interval)
            updated = replace(
                data,
                review_count=data.review_count + 1,
                last_review_time=now,
                last_performance_score=performance_score,
                easiness_factor=self.update_easiness_factor(data.easiness_factor, performance_score),
            )
            return updated, intervals

        intervals = self._reviews.apply((learner_id, topic), transition)

        sessions = [
            ScheduledSession(
                id=str(uuid.uuid4()),
                learner_id=learner_id,
                topic=topic,
                session_type="retention-review",
                scheduled_time=now + timedelta(days=days),
                estimated_duration=15 + index * 5,
                priority=self.determine_priority(performance_score, index),
                description=f"Follow-up review #{index + 1} for {topic}",
            )
            for index, days in enumerate(intervals)
        ]
        self._record_pending(learner_id, topic, sessions)

        logger.info(f"Scheduled {len(sessions)} follow-up sessions for topic: {topic} ({intervals} days)")
        return sessions

    async def schedule_follow_up(
        self, learner_id: str, completed_session: LearningSession
    ) -> list[ScheduledSession]:
        """
        Schedule chained follow-up reviews for a completed session.

        Args:
            learner_id: Learner identifier
            completed_session: Session whose outcomes drive the intervals

        Returns:
            One ScheduledSession per follow-up (3 by default), earliest first
        """
        return await run_operation(
            "schedule follow-up", self._schedule_follow_up, learner_id, completed_session
        )

    # =========================================================================
    # Retention Assessment
    # =========================================================================

    def _assess_retention(
        self, learner_id: str, topic: str, follow_up_session: LearningSession
    ) -> RetentionAssessment:
        learner_id = require_id(learner_id, "learner_id")
        topic = require_id(topic, "topic")
        performance_score = self._performance(follow_up_session)
        # No interaction-level signal yet, so recall is proxied by performance
        recall_accuracy = performance_score
        now = self._clock()

        logger.info(f"Assessing retention for learner {learner_id}, topic {topic}")

        def transition(
            current: TopicReviewData | None,
        ) -> tuple[TopicReviewData | None, RetentionAssessment]:
            if current is None:
                logger.warning(f"No review data found for topic: {topic}")
            data = current or self._new_review_data(topic)
            days = data.days_since_review(now)
            score = self.retention_score(performance_score, days)
            next_days = self.calculate_next_interval(
                data.last_interval_days, data.easiness_factor, performance_score
            )
            assessment = RetentionAssessment(
                id=str(uuid.uuid4()),
                learner_id=learner_id,
                topic=topic,
                retention_score=score,
                recall_accuracy=recall_accuracy,
                days_since_last_review=days,
                total_review_count=data.review_count,
                assessed_at=now,
                strength_areas=tuple(
                    follow_up_session.objectives_at_least(STRENGTH_THRESHOLD) or [DEFAULT_STRENGTH]
                ),
                weakness_areas=tuple(follow_up_session.objectives_below(WEAKNESS_THRESHOLD)),
                recommended_action=self.recommended_action(score),
                recommended_next_review_days=next_days,
            )
            # Unseen topics are assessed against defaults but not stored
            updated = replace(data, last_interval_days=next_days) if current is not None else None
            return updated, assessment

        assessment = self._reviews.apply((learner_id, topic), transition)
        logger.info(
            f"Retention assessment completed: score={assessment.retention_score:.2f}, "
            f"level={assessment.retention_level.value}"
        )
        return assessment

    async def assess_retention(
        self, learner_id: str, topic: str, follow_up_session: LearningSession
    ) -> RetentionAssessment:
        """
        Assess how well a topic was retained on a follow-up session.

        The recommended next interval is stored as the topic's last interval.
        """
        return await run_operation(
            "assess retention", self._assess_retention, learner_id, topic, follow_up_session
        )

    # =========================================================================
    # Schedule Adjustment
    # =========================================================================

    def _adjust_schedule(
        self, learner_id: str, assessment: RetentionAssessment
    ) -> LearningSchedule:
        learner_id = require_id(learner_id, "learner_id")
        if not isinstance(assessment, RetentionAssessment):
            raise ValidationError(
                "assessment", f"expected RetentionAssessment, got {type(assessment).__name__}"
            )
        now = self._clock()
        level = assessment.retention_level
        sessions: list[ScheduledSession] = []

        logger.info(f"Adjusting schedule for learner {learner_id} ({level.value} retention)")

        if assessment.needs_immediate_review:
            sessions.append(
                ScheduledSession(
                    id=str(uuid.uuid4()),
                    learner_id=learner_id,
                    topic=assessment.topic,
                    session_type="immediate-review",
                    scheduled_time=now + timedelta(hours=2),
                    estimated_duration=30,
                    priority=Priority.HIGH,
                    description="Immediate review needed due to low retention",
                )
            )

        sessions.append(
            ScheduledSession(
                id=str(uuid.uuid4()),
                learner_id=learner_id,
                topic=assessment.topic,
                session_type="scheduled-review",
                scheduled_time=now + timedelta(days=assessment.recommended_next_review_days),
                estimated_duration=20,
                priority=level.review_priority,
                description=f"Scheduled review for {assessment.topic}",
            )
        )
        self._record_pending(learner_id, assessment.topic, sessions)

        logger.info(f"Schedule adjusted with {len(sessions)} sessions")
        return LearningSchedule(
            id=str(uuid.uuid4()),
            learner_id=learner_id,
            scheduled_sessions=tuple(sessions),
            recommended_frequency=level.reviews_per_week,
            created_at=now,
            rationale=f"Adjusted based on {level.name} retention level",
        )

    async def adjust_schedule(
        self, learner_id: str, assessment: RetentionAssessment
    ) -> LearningSchedule:
        """Build an adjusted schedule (immediate review if needed + next scheduled review)."""
        return await run_operation("adjust schedule", self._adjust_schedule, learner_id, assessment)

    # =========================================================================
    # Read Helpers
    # =========================================================================

    def _get_next_review_time(
        self,
        topic: str,
        last_review_time: datetime,
        performance_score: float,
        review_count: int,
        learner_id: str | None,
    ) -> datetime:
        topic = require_id(topic, "topic")
        score = clamp(require_number(performance_score, "performance_score"))
        if not isinstance(last_review_time, datetime):
            raise ValidationError("last_review_time", "expected a datetime")

        data = (
            self._reviews.get((require_id(learner_id, "learner_id"), topic))
            if learner_id is not None
            else None
        )
        if data is not None:
            interval = self.calculate_next_interval(
                data.last_interval_days, data.easiness_factor, score
            )
        else:
            # Replay the ladder for the reviews already done at the default easiness
            easiness = self.settings.sm2_default_easiness
            previous = 0
            for _ in range(max(0, int(review_count))):
                previous = self.calculate_next_interval(previous, easiness, score)
            interval = self.calculate_next_interval(previous, easiness, score)

        logger.debug(f"Next review for {topic}: +{interval} days")
        return last_review_time + timedelta(days=interval)

    async def get_next_review_time(
        self,
        topic: str,
        last_review_time: datetime,
        performance_score: float,
        review_count: int = 0,
        learner_id: str | None = None,
    ) -> datetime:
        """
        When a topic should next be reviewed.

        Uses the learner's stored review data when learner_id is given and
        known; otherwise derives the interval from review_count alone.
        """
        return await run_operation(
            "calculate next review time",
            self._get_next_review_time,
            topic,
            last_review_time,
            performance_score,
            review_count,
            learner_id,
        )

    def _get_pending_follow_ups(self, learner_id: str) -> list[ScheduledSession]:
        learner_id = require_id(learner_id, "learner_id")
        pending = self._pending.get(learner_id) or ()
        return sorted(pending, key=lambda s: s.scheduled_time)

    async def get_pending_follow_ups(self, learner_id: str) -> list[ScheduledSession]:
        """Follow-ups not yet completed, earliest first (empty for unknown learners)."""
        return await run_operation(
            "get pending follow-ups", self._get_pending_follow_ups, learner_id
        )

    def _complete_follow_up(self, learner_id: str, session_id: str) -> ScheduledSession:
        learner_id = require_id(learner_id, "learner_id")
        session_id = require_id(session_id, "session_id")

        def transition(
            current: tuple[ScheduledSession, ...] | None,
        ) -> tuple[tuple[ScheduledSession, ...], ScheduledSession]:
            pending = current or ()
            match = next((s for s in pending if s.id == session_id), None)
            if match is None:
                raise NotFoundError("scheduled session", session_id)
            return tuple(s for s in pending if s.id != session_id), match

        completed = self._pending.apply(learner_id, transition)
        logger.info(f"Completed follow-up {session_id} for learner {learner_id}")
        return completed

    async def complete_follow_up(self, learner_id: str, session_id: str) -> ScheduledSession:
        """Remove a pending follow-up; raises NotFoundError for unknown sessions."""
        return await run_operation(
            "complete follow-up", self._complete_follow_up, learner_id, session_id
        )

    def get_review_data(self, learner_id: str, topic: str) -> TopicReviewData | None:
        return self._reviews.get((require_id(learner_id, "learner_id"), require_id(topic, "topic")))

    def evict_stale_reviews(self, now: datetime | None = None) -> int:
        """
        Drop review data not touched within review_data_ttl_days.

        Pending follow-ups of evicted topics, and any pending session
        scheduled before the cutoff, are dropped as well.

        Returns:
            Number of topic records removed (0 when no TTL is configured)
        """
        ttl = self.settings.review_data_ttl_days
        if ttl is None:
            return 0
        cutoff = (now or self._clock()) - timedelta(days=ttl)
        stale: set[tuple[str, str]] = set()

        def is_stale(key: tuple[str, str], data: TopicReviewData) -> bool:
            if data.last_review_time is not None and data.last_review_time < cutoff:
                stale.add(key)
                return True
            return False

        removed = self._reviews.evict(is_stale)
        dropped = sum(self._prune_pending(learner_id, cutoff, stale) for learner_id in self._pending.keys())
        if removed or dropped:
            logger.info(f"Evicted {removed} stale topic review records and {dropped} pending sessions")
        return removed

    def _prune_pending(self, learner_id: str, cutoff: datetime, stale: set[tuple[str, str]]) -> int:
        def transition(
            current: tuple[ScheduledSession, ...] | None,
        ) -> tuple[tuple[ScheduledSession, ...] | None, int]:
            pending = current or ()
            kept = tuple(
                s for s in pending if s.scheduled_time >= cutoff and (learner_id, s.topic) not in stale
            )
            return kept or None, len(pending) - len(kept)

        return self._pending.apply(learner_id, transition)
