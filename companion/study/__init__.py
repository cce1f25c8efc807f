"""
Study Module - Spaced repetition and retention assessment.

Provides:
- SM-2 follow-up scheduling per (learner, topic)
- Forgetting-curve retention assessment
- Schedule adjustment from retention levels
"""

from companion.study.models import (
    LearningSchedule,
    Priority,
    RetentionAssessment,
    RetentionLevel,
    ScheduledSession,
    TopicReviewData,
)
from companion.study.retention_scheduler import RetentionScheduler

__all__ = [
    "RetentionScheduler",
    # Models
    "LearningSchedule",
    "Priority",
    "RetentionAssessment",
    "RetentionLevel",
    "ScheduledSession",
    "TopicReviewData",
]
