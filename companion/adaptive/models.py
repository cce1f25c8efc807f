"""
Content recommendation data models.

- ContentType / DifficultyLevel: content categorization
- ContentTemplate: catalog entry instantiated per skill domain
- LearningContent: an item handed to the learner
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum

from companion.core.errors import clamp, require_id, require_number

# =============================================================================
# Enums
# =============================================================================


class ContentType(str, Enum):
    """Kind of learning content."""

    EXPLANATION = "explanation"
    CODE_EXAMPLE = "code_example"
    EXERCISE = "exercise"
    QUIZ = "quiz"
    READING = "reading"
    VIDEO = "video"
    INTERACTIVE_DEMO = "interactive_demo"


class DifficultyLevel(str, Enum):
    """Difficulty label derived from a 0-1 difficulty."""

    BEGINNER = "beginner"  # <40%
    INTERMEDIATE = "intermediate"  # 40-59%
    ADVANCED = "advanced"  # 60-79%
    EXPERT = "expert"  # 80-100%

    @classmethod
    def from_difficulty(cls, difficulty: float) -> DifficultyLevel:
        if difficulty >= 0.8:
            return cls.EXPERT
        elif difficulty >= 0.6:
            return cls.ADVANCED
        elif difficulty >= 0.4:
            return cls.INTERMEDIATE
        else:
            return cls.BEGINNER


# =============================================================================
# Data Classes
# =============================================================================


@dataclass(frozen=True)
class LearningContent:
    """A recommended learning item. Difficulty is clamped to [0, 1]."""

    id: str
    type: ContentType
    title: str
    body: str
    difficulty: float
    estimated_minutes: int
    prerequisites: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "id", require_id(self.id, "content_id"))
        object.__setattr__(self, "type", ContentType(self.type))
        difficulty = require_number(self.difficulty, "difficulty")
        object.__setattr__(self, "difficulty", clamp(difficulty))
        object.__setattr__(self, "prerequisites", tuple(self.prerequisites))

    @property
    def level(self) -> DifficultyLevel:
        return DifficultyLevel.from_difficulty(self.difficulty)

    def with_difficulty(self, difficulty: float) -> LearningContent:
        return replace(self, difficulty=difficulty)


@dataclass(frozen=True)
class ContentTemplate:
    """
    Catalog entry for one skill domain.

    Title and body may contain {skill} and {detail_level} placeholders.
    """

    slug: str
    title: str
    type: ContentType
    body: str
    difficulty: float
    estimated_minutes: int
    prerequisites: tuple[str, ...] = ()

    def instantiate(self, skill_domain: str, detail_level: str = "standard") -> LearningContent:
        """Build content with a stable id of the form "{skill_domain}:{slug}"."""
        return LearningContent(
            id=f"{skill_domain}:{self.slug}",
            type=self.type,
            title=self.title.replace("{skill}", skill_domain),
            body=self.body.replace("{skill}", skill_domain).replace("{detail_level}", detail_level),
            difficulty=self.difficulty,
            estimated_minutes=self.estimated_minutes,
            prerequisites=self.prerequisites,
        )
