"""
Retention scheduling data models.

- TopicReviewData: SM-2 state per (learner, topic)
- ScheduledSession: a review handed to the calendar/notification collaborator
- RetentionAssessment: outcome of a follow-up session
- LearningSchedule: bundle of sessions produced by a schedule adjustment
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum

# =============================================================================
# Enums
# =============================================================================


class Priority(str, Enum):
    """Scheduling priority of a review session."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class RetentionLevel(str, Enum):
    """Retention categorization of an assessment score."""

    POOR = "poor"  # <40%
    FAIR = "fair"  # 40-59%
    GOOD = "good"  # 60-79%
    EXCELLENT = "excellent"  # 80-100%

    @classmethod
    def from_score(cls, score: float) -> RetentionLevel:
        """
        Convert a 0-1 retention score to a level.

        Args:
            score: Retention score between 0 and 1

        Returns:
            Corresponding RetentionLevel
        """
        if score >= 0.8:
            return cls.EXCELLENT
        elif score >= 0.6:
            return cls.GOOD
        elif score >= 0.4:
            return cls.FAIR
        else:
            return cls.POOR

    @property
    def review_priority(self) -> Priority:
        return {
            RetentionLevel.POOR: Priority.HIGH,
            RetentionLevel.FAIR: Priority.MEDIUM,
            RetentionLevel.GOOD: Priority.LOW,
            RetentionLevel.EXCELLENT: Priority.LOW,
        }[self]

    @property
    def reviews_per_week(self) -> int:
        return {
            RetentionLevel.POOR: 5,
            RetentionLevel.FAIR: 3,
            RetentionLevel.GOOD: 2,
            RetentionLevel.EXCELLENT: 1,
        }[self]


# =============================================================================
# Data Classes
# =============================================================================


@dataclass(frozen=True)
class TopicReviewData:
    """SM-2 review state for one learner's topic."""

    topic: str
    easiness_factor: float = 2.5  # EF starts at 2.5, never below 1.3
    review_count: int = 0
    last_review_time: datetime | None = None
    last_performance_score: float = 0.0
    last_interval_days: int = 0

    def days_since_review(self, now: datetime) -> int:
        """Whole days since the last review (0 if never reviewed)."""
        if self.last_review_time is None:
            return 0
        return max(0, (now - self.last_review_time).days)


@dataclass(frozen=True)
class ScheduledSession:
    """A review session for an external calendar collaborator."""

    id: str
    learner_id: str
    topic: str
    session_type: str
    scheduled_time: datetime
    estimated_duration: int  # minutes
    priority: Priority
    description: str

    @property
    def end_time(self) -> datetime:
        return self.scheduled_time + timedelta(minutes=self.estimated_duration)

    def is_upcoming(self, now: datetime | None = None) -> bool:
        return self.scheduled_time > (now or datetime.now())

    def is_due(self, now: datetime | None = None) -> bool:
        """Scheduled time has passed (session may be overdue)."""
        return self.scheduled_time <= (now or datetime.now())


@dataclass(frozen=True)
class RetentionAssessment:
    """Retention measured on a follow-up session."""

    id: str
    learner_id: str
    topic: str
    retention_score: float
    recall_accuracy: float
    days_since_last_review: int
    total_review_count: int
    assessed_at: datetime
    strength_areas: tuple[str, ...] = ()
    weakness_areas: tuple[str, ...] = ()
    recommended_action: str = ""
    recommended_next_review_days: int = 1

    @property
    def retention_level(self) -> RetentionLevel:
        return RetentionLevel.from_score(self.retention_score)

    @property
    def needs_immediate_review(self) -> bool:
        return self.retention_level is RetentionLevel.POOR or self.retention_score < 0.4

    @property
    def is_excellent(self) -> bool:
        return self.retention_level is RetentionLevel.EXCELLENT


@dataclass(frozen=True)
class LearningSchedule:
    """Sessions and cadence produced by adjusting a learner's schedule."""

    id: str
    learner_id: str
    scheduled_sessions: tuple[ScheduledSession, ...]
    recommended_frequency: int  # reviews per week
    created_at: datetime
    rationale: str
    recommended_time_slots: tuple[str, ...] = ("morning", "afternoon")
    optimal_session_duration: int = 20  # minutes
