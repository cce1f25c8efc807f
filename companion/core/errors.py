"""
Error taxonomy for the adaptive learning engine.

- ValidationError: bad identifiers or non-finite numbers, raised before any
  state is touched.
- ComputationError: an unexpected fault inside an asynchronous operation.
  Nothing from the failed operation is committed.
- NotFoundError: a reference to a session, topic or learner that does not
  exist, where the operation needs a definite entity.

Numeric values outside their domain (probabilities, easiness factors,
difficulties) are clamped rather than rejected.
"""

from __future__ import annotations

import math
from typing import Any


class CompanionError(Exception):
    """Base class for all engine errors."""


class ValidationError(CompanionError):
    """Input rejected before any state mutation."""

    def __init__(self, field: str, message: str):
        self.field = field
        super().__init__(f"{field}: {message}")


class ComputationError(CompanionError):
    """Unexpected internal fault surfaced from an asynchronous operation."""

    def __init__(self, operation: str, message: str | None = None):
        self.operation = operation
        super().__init__(message or f"Failed to {operation}")


class NotFoundError(CompanionError):
    """Referenced entity does not exist."""

    def __init__(self, kind: str, identifier: str):
        self.kind = kind
        self.identifier = identifier
        super().__init__(f"{kind} not found: {identifier}")


# =============================================================================
# Validation helpers
# =============================================================================


def require_id(value: Any, field: str) -> str:
    """Return a stripped identifier, rejecting None, non-strings and blanks."""
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(field, "must be a non-empty string")
    return value.strip()


def require_number(value: Any, field: str) -> float:
    """Return value as float, rejecting non-numbers, booleans, NaN and infinity."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(field, f"expected a number, got {type(value).__name__}")
    number = float(value)
    if not math.isfinite(number):
        raise ValidationError(field, "must be finite")
    return number


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    """Clamp value into [low, high]."""
    return max(low, min(high, value))
