"""
Shared value types exchanged between the engine components.

These are produced by collaborators (session tracking, assessment,
preferences) and consumed by the tracker, scheduler and recommender.
All are immutable; construct new instances instead of mutating.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from companion.core.errors import clamp, require_id, require_number


@dataclass(frozen=True)
class SessionOutcome:
    """Achievement on a single learning objective within a session."""

    objective: str
    achievement_score: float  # 0-1

    def __post_init__(self) -> None:
        score = require_number(self.achievement_score, "achievement_score")
        object.__setattr__(self, "achievement_score", clamp(score))


@dataclass(frozen=True)
class LearningSession:
    """A completed (or follow-up) learning session on one topic."""

    id: str
    topic: str
    outcomes: tuple[SessionOutcome, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "outcomes", tuple(self.outcomes))

    def performance_score(self, default: float = 0.7) -> float:
        """Mean achievement across outcomes, or default when there are none."""
        if not self.outcomes:
            return default
        total = sum(o.achievement_score for o in self.outcomes)
        return clamp(total / len(self.outcomes))

    def objectives_at_least(self, threshold: float) -> list[str]:
        return [o.objective for o in self.outcomes if o.achievement_score >= threshold]

    def objectives_below(self, threshold: float) -> list[str]:
        return [o.objective for o in self.outcomes if o.achievement_score < threshold]


@dataclass(frozen=True)
class SkillGap:
    """Distance between a learner's current and target level in a skill domain."""

    skill_domain: str
    gap_size: float  # 0-1

    def __post_init__(self) -> None:
        object.__setattr__(self, "skill_domain", require_id(self.skill_domain, "skill_domain"))
        size = require_number(self.gap_size, "gap_size")
        object.__setattr__(self, "gap_size", clamp(size))

    @classmethod
    def from_levels(cls, skill_domain: str, current_level: float, target_level: float) -> SkillGap:
        """Build a gap from current and target proficiency (negative gaps become 0)."""
        return cls(skill_domain=skill_domain, gap_size=target_level - current_level)

    @property
    def is_critical(self) -> bool:
        return self.gap_size > 0.5


@dataclass(frozen=True)
class LearningPreferences:
    """Learner preferences used to filter and order recommendations."""

    learner_id: str | None = None
    preferred_content_types: frozenset[str] = field(default_factory=frozenset)
    preferred_difficulty: float = 0.5
    detail_level: str = "standard"

    def __post_init__(self) -> None:
        types = frozenset(t.lower() for t in self.preferred_content_types)
        object.__setattr__(self, "preferred_content_types", types)
        difficulty = require_number(self.preferred_difficulty, "preferred_difficulty")
        object.__setattr__(self, "preferred_difficulty", clamp(difficulty))

    def prefers(self, content_type: str) -> bool:
        return content_type.lower() in self.preferred_content_types
