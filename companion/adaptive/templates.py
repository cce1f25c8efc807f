"""
Content Template Catalog.

Generates LearningContent for skill gaps from templates keyed by skill
domain, with a "general" catalog as fallback for unknown domains.

Difficulty compatibility rules:
- gap > 0.6: reject templates below 0.5 (large gaps need advanced content)
- gap < 0.3: reject templates above 0.7 (small gaps don't)

The built-in catalog can be replaced by a JSON file of the form
{"<domain>": [{"slug": ..., "title": ..., "type": ..., ...}, ...]}.
"""

from __future__ import annotations

import json
from pathlib import Path

from loguru import logger
from pydantic import BaseModel, Field, RootModel, field_validator
from pydantic import ValidationError as PydanticValidationError

from companion.adaptive.models import ContentTemplate, ContentType, LearningContent
from companion.core.errors import NotFoundError, ValidationError, clamp, require_id

FALLBACK_DOMAIN = "general"

# ========================================
# Catalog File Models
# ========================================


class TemplateSpec(BaseModel):
    """One template entry in a catalog file."""

    slug: str = Field(..., min_length=1, description="Stable identifier within the domain")
    title: str = Field(..., min_length=1, description="Title, may contain {skill}")
    type: ContentType = Field(..., description="Content type")
    body: str = Field("", description="Body text, may contain {skill} and {detail_level}")
    difficulty: float = Field(..., ge=0, le=1, description="Difficulty score (0-1)")
    estimated_minutes: int = Field(..., gt=0, description="Expected duration in minutes")
    prerequisites: list[str] = Field(default_factory=list)

    def to_template(self) -> ContentTemplate:
        return ContentTemplate(
            slug=self.slug,
            title=self.title,
            type=self.type,
            body=self.body,
            difficulty=self.difficulty,
            estimated_minutes=self.estimated_minutes,
            prerequisites=tuple(self.prerequisites),
        )


class CatalogFile(RootModel[dict[str, list[TemplateSpec]]]):
    """Mapping of skill domain to templates. Must include the fallback domain."""

    @field_validator("root")
    @classmethod
    def require_fallback(cls, value: dict[str, list[TemplateSpec]]) -> dict[str, list[TemplateSpec]]:
        if FALLBACK_DOMAIN not in value:
            raise ValueError(f"catalog must define a '{FALLBACK_DOMAIN}' domain")
        return value


# ========================================
# Default Catalog
# ========================================


def _t(slug, title, type_, body, difficulty, minutes, prerequisites=()) -> ContentTemplate:
    return ContentTemplate(slug, title, type_, body, difficulty, minutes, tuple(prerequisites))


DEFAULT_TEMPLATES: dict[str, list[ContentTemplate]] = {
    "python": [
        _t("fundamentals", "Python Fundamentals", ContentType.EXPLANATION,
           "Learn core {skill} concepts including data model and iteration", 0.3, 20),
        _t("advanced-patterns", "Advanced {skill} Patterns", ContentType.CODE_EXAMPLE,
           "Explore idioms and design patterns in {skill}", 0.7, 30, ["python-basics"]),
        _t("coding-exercise", "{skill} Coding Exercise", ContentType.EXERCISE,
           "Practice {skill} programming with hands-on exercises", 0.5, 25),
    ],
    "web-frameworks": [
        _t("basics", "Web Framework Basics", ContentType.EXPLANATION,
           "Introduction to {skill} routing and dependency injection", 0.4, 25, ["python"]),
        _t("rest-api", "REST API with {skill}", ContentType.CODE_EXAMPLE,
           "Build RESTful services using {skill}", 0.6, 35, ["web-framework-basics"]),
        _t("project", "{skill} Project", ContentType.EXERCISE,
           "Create a complete application using {skill}", 0.8, 60, ["rest-api"]),
    ],
    "testing": [
        _t("unit-testing", "Unit Testing Fundamentals", ContentType.EXPLANATION,
           "Learn {skill} principles and best practices", 0.3, 20),
        _t("tdd", "Test-Driven Development", ContentType.CODE_EXAMPLE,
           "Practice TDD methodology with {skill}", 0.6, 30, ["unit-testing"]),
        _t("advanced-techniques", "Advanced {skill} Techniques", ContentType.EXERCISE,
           "Master mocking, fixtures and {skill} strategies", 0.8, 40, ["tdd"]),
    ],
    FALLBACK_DOMAIN: [
        _t("introduction", "Introduction to {skill}", ContentType.EXPLANATION,
           "Basic concepts and principles of {skill}", 0.3, 15),
        _t("examples", "{skill} Examples", ContentType.CODE_EXAMPLE,
           "Practical examples demonstrating {skill} usage", 0.5, 20),
        _t("practice", "{skill} Practice", ContentType.EXERCISE,
           "Hands-on practice with {skill}", 0.6, 25),
    ],
}


def is_template_appropriate(template: ContentTemplate, gap_size: float) -> bool:
    """Check difficulty compatibility of a template with a gap size."""
    if gap_size > 0.6 and template.difficulty < 0.5:
        return False
    if gap_size < 0.3 and template.difficulty > 0.7:
        return False
    return True


class TemplateCatalog:
    """
    Read-only catalog of content templates.

    Example:
        catalog = TemplateCatalog.load("catalog.json")
        items = catalog.generate("python", gap_size=0.8, limit=3)
    """

    def __init__(self, templates: dict[str, list[ContentTemplate]] | None = None):
        source = DEFAULT_TEMPLATES if templates is None else templates
        if FALLBACK_DOMAIN not in source:
            raise ValidationError("templates", f"missing '{FALLBACK_DOMAIN}' domain")
        self._templates = {domain: tuple(items) for domain, items in source.items()}

    @classmethod
    def load(cls, path: str | Path | None = None) -> TemplateCatalog:
        """
        Load a catalog from a JSON file, or the built-in catalog if path is None.

        Raises:
            NotFoundError: If the file does not exist
            ValidationError: If the file is not a valid catalog
        """
        if path is None:
            return cls()

        catalog_path = Path(path)
        if not catalog_path.exists():
            raise NotFoundError("content catalog", str(catalog_path))

        try:
            raw = json.loads(catalog_path.read_text(encoding="utf-8"))
            parsed = CatalogFile.model_validate(raw)
        except json.JSONDecodeError as e:
            raise ValidationError("content_catalog", f"invalid JSON: {e}") from e
        except PydanticValidationError as e:
            raise ValidationError("content_catalog", str(e)) from e

        templates = {
            domain: [entry.to_template() for entry in entries]
            for domain, entries in parsed.root.items()
        }
        logger.info(f"Loaded content catalog from {catalog_path} ({len(templates)} domains)")
        return cls(templates)

    @property
    def domains(self) -> list[str]:
        return sorted(self._templates)

    def templates_for(self, skill_domain: str) -> tuple[ContentTemplate, ...]:
        if skill_domain not in self._templates:
            logger.debug(f"No templates for domain '{skill_domain}', using {FALLBACK_DOMAIN}")
            return self._templates[FALLBACK_DOMAIN]
        return self._templates[skill_domain]

    def generate(
        self,
        skill_domain: str,
        gap_size: float,
        detail_level: str = "standard",
        limit: int | None = None,
    ) -> list[LearningContent]:
        """
        Instantiate the templates compatible with a gap, in catalog order.

        Args:
            skill_domain: Skill domain (substituted into {skill})
            gap_size: Gap between current and target level (0-1)
            detail_level: Substituted into {detail_level}
            limit: Maximum number of items (None for no limit)
        """
        skill_domain = require_id(skill_domain, "skill_domain")
        gap_size = clamp(gap_size)
        content = [
            template.instantiate(skill_domain, detail_level)
            for template in self.templates_for(skill_domain)
            if is_template_appropriate(template, gap_size)
        ]
        return content if limit is None else content[:limit]


# ========================================
# Session and Follow-up Content
# ========================================


def session_content(
    topic: str,
    proficiency: float,
    include_exercises: bool = True,
    include_quizzes: bool = True,
) -> list[LearningContent]:
    """
    Content for a single study session on a topic.

    Always an explanation, then a basic (proficiency < 0.5) or advanced
    example, then optionally an exercise and a quiz.
    """
    topic = require_id(topic, "topic")
    proficiency = clamp(proficiency)
    depth = "advanced" if proficiency > 0.6 else "beginner"

    items = [
        LearningContent(
            id=f"{topic}:session-explanation",
            type=ContentType.EXPLANATION,
            title=f"Understanding {topic}",
            body=f"Comprehensive {depth} explanation of {topic} concepts and principles",
            difficulty=proficiency,
            estimated_minutes=15,
        )
    ]

    if proficiency < 0.5:
        items.append(
            LearningContent(
                id=f"{topic}:basic-examples",
                type=ContentType.CODE_EXAMPLE,
                title=f"Basic {topic} Examples",
                body=f"Step-by-step examples demonstrating fundamental {topic} patterns",
                difficulty=0.3,
                estimated_minutes=20,
            )
        )
    else:
        items.append(
            LearningContent(
                id=f"{topic}:advanced-examples",
                type=ContentType.CODE_EXAMPLE,
                title=f"Advanced {topic} Patterns",
                body=f"Complex real-world examples showcasing advanced {topic} techniques",
                difficulty=0.7,
                estimated_minutes=30,
                prerequisites=(f"basic-{topic.lower()}",),
            )
        )

    if include_exercises:
        items.append(
            LearningContent(
                id=f"{topic}:exercise",
                type=ContentType.EXERCISE,
                title=f"Practice {topic} Exercise",
                body=f"Hands-on coding exercise to practice {topic} skills",
                difficulty=min(1.0, proficiency + 0.1),  # slightly above current level
                estimated_minutes=25,
            )
        )

    if include_quizzes:
        items.append(
            LearningContent(
                id=f"{topic}:quiz",
                type=ContentType.QUIZ,
                title=f"{topic} Knowledge Check",
                body=f"Interactive quiz to assess understanding of {topic} concepts",
                difficulty=proficiency,
                estimated_minutes=10,
            )
        )

    return items


def reinforcement_content(topic: str, performance: float) -> LearningContent:
    return LearningContent(
        id=f"{topic}:reinforcement",
        type=ContentType.EXERCISE,
        title=f"Reinforce {topic} Skills",
        body=f"Additional practice to strengthen understanding of {topic}",
        difficulty=max(0.3, performance - 0.1),
        estimated_minutes=20,
    )


def advanced_follow_up_content(topic: str) -> LearningContent:
    return LearningContent(
        id=f"{topic}:advanced-techniques",
        type=ContentType.CODE_EXAMPLE,
        title=f"Advanced {topic} Techniques",
        body=f"Explore advanced patterns and best practices in {topic}",
        difficulty=0.9,
        estimated_minutes=35,
        prerequisites=(f"intermediate-{topic.lower()}",),
    )
