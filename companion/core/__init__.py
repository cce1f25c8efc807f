"""
Core Module - Shared value types, errors and concurrency primitives.

Components:
- errors: ValidationError, ComputationError, NotFoundError
- models: SessionOutcome, LearningSession, SkillGap, LearningPreferences
- keyed_store: KeyedStore with atomic per-key transitions
- concurrency: run_operation for off-loop execution

All algorithm modules (learning/, study/, adaptive/) communicate only
through the value types defined here.
"""

from companion.core.concurrency import run_operation
from companion.core.errors import (
    CompanionError,
    ComputationError,
    NotFoundError,
    ValidationError,
    clamp,
    require_id,
    require_number,
)
from companion.core.keyed_store import KeyedStore
from companion.core.models import (
    LearningPreferences,
    LearningSession,
    SessionOutcome,
    SkillGap,
)

__all__ = [
    # Errors
    "CompanionError",
    "ComputationError",
    "NotFoundError",
    "ValidationError",
    "clamp",
    "require_id",
    "require_number",
    # Concurrency
    "KeyedStore",
    "run_operation",
    # Value types
    "LearningPreferences",
    "LearningSession",
    "SessionOutcome",
    "SkillGap",
]
