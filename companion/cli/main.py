"""
Typer CLI for the adaptive learning engine.

Commands:
    companion interval      - Next SM-2 review interval
    companion trace         - Run BKT over a sequence of responses
    companion retention     - Forgetting-curve retention table
    companion recommend     - Recommendations for gaps/preferences in a JSON file
    companion version       - Show version information

Usage:
    companion --help
    companion interval 6 0.9 --easiness 2.5
    companion trace python 1,0,1,1
    companion retention 0.8 --days 0,7,30,90
    companion recommend request.json --seed 42
"""

from __future__ import annotations

import json
import random
import sys
from pathlib import Path

import typer
from loguru import logger
from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError
from rich import print as rprint
from rich.console import Console
from rich.table import Table

from config import get_settings
from companion import __version__
from companion.adaptive.recommendation_engine import RecommendationEngine
from companion.core.errors import CompanionError
from companion.core.models import LearningPreferences, SkillGap
from companion.learning.knowledge_tracker import KnowledgeStateTracker
from companion.study.models import RetentionLevel
from companion.study.retention_scheduler import RetentionScheduler

app = typer.Typer(
    help="Adaptive learning engine: knowledge tracing, spaced repetition and content recommendation",
    no_args_is_help=True,
)

console = Console()

TRUE_TOKENS = {"1", "y", "yes", "true", "c", "correct"}
FALSE_TOKENS = {"0", "n", "no", "false", "i", "incorrect"}


# ========================================
# Logging
# ========================================


def configure_logging(level: str | None = None) -> None:
    """Route loguru to stderr (and the configured log file, if any)."""
    settings = get_settings()
    logger.remove()
    logger.add(
        sys.stderr,
        level=level or settings.log_level,
        format="<level>{level: <8}</level> | <cyan>{name}</cyan> - <level>{message}</level>",
    )
    if settings.log_file:
        logger.add(settings.log_file, level="DEBUG", rotation="10 MB")


@app.callback()
def main_callback(
    log_level: str = typer.Option(
        "WARNING", "--log-level", help="Logging level (DEBUG, INFO, WARNING, ERROR)"
    ),
) -> None:
    """Inspect the engine's computations from the command line."""
    configure_logging(log_level.upper())


# ========================================
# Request Models
# ========================================


class GapRequest(BaseModel):
    """A skill gap in a recommendation request."""

    skill_domain: str = Field(..., min_length=1)
    gap_size: float = Field(..., ge=0, le=1, description="Gap between current and target level")


class PreferencesRequest(BaseModel):
    """Learner preferences in a recommendation request."""

    preferred_content_types: list[str] = Field(default_factory=list)
    preferred_difficulty: float = Field(0.5, ge=0, le=1)
    detail_level: str = "standard"


class RecommendRequest(BaseModel):
    """Contents of a recommendation request file."""

    learner_id: str | None = None
    gaps: list[GapRequest] = Field(..., min_length=1)
    preferences: PreferencesRequest = Field(default_factory=PreferencesRequest)

    def to_domain(self) -> tuple[list[SkillGap], LearningPreferences]:
        gaps = [SkillGap(g.skill_domain, g.gap_size) for g in self.gaps]
        preferences = LearningPreferences(
            learner_id=self.learner_id,
            preferred_content_types=frozenset(self.preferences.preferred_content_types),
            preferred_difficulty=self.preferences.preferred_difficulty,
            detail_level=self.preferences.detail_level,
        )
        return gaps, preferences


def _parse_responses(raw: str) -> list[bool]:
    responses = []
    for token in (t.strip().lower() for t in raw.split(",") if t.strip()):
        if token in TRUE_TOKENS:
            responses.append(True)
        elif token in FALSE_TOKENS:
            responses.append(False)
        else:
            raise typer.BadParameter(f"Unrecognized response '{token}' (use 1/0)")
    if not responses:
        raise typer.BadParameter("At least one response is required")
    return responses


def _fail(error: Exception) -> None:
    rprint(f"[red]✗[/red] {error}")
    raise typer.Exit(code=1)


# ========================================
# Commands
# ========================================


@app.command("interval")
def interval(
    previous_interval: int = typer.Argument(..., min=0, help="Previous interval in days"),
    performance: float = typer.Argument(..., help="Performance score (0-1)"),
    easiness_factor: float = typer.Option(2.5, "--easiness", "-e", help="SM-2 easiness factor"),
) -> None:
    """Show the next review interval and updated easiness factor."""
    scheduler = RetentionScheduler()
    try:
        next_days = scheduler.calculate_next_interval(previous_interval, easiness_factor, performance)
        new_ef = scheduler.update_easiness_factor(easiness_factor, performance)
    except CompanionError as e:
        _fail(e)

    rprint(f"[bold]Next interval:[/bold] {next_days} day(s)")
    rprint(f"[dim]Easiness factor: {easiness_factor:.2f} -> {new_ef:.2f}[/dim]")


@app.command("trace")
def trace(
    skill: str = typer.Argument(..., help="Skill key"),
    responses: str = typer.Argument(..., help="Comma-separated responses, e.g. 1,0,1,1"),
    learner: str = typer.Option("cli", "--learner", "-l", help="Learner id"),
) -> None:
    """Run Bayesian Knowledge Tracing over a response sequence."""
    observations = _parse_responses(responses)
    tracker = KnowledgeStateTracker()

    table = Table(title=f"Knowledge Trace: {skill}", show_header=True)
    table.add_column("Step", justify="right", style="dim")
    table.add_column("Response", style="cyan")
    table.add_column("P(L)", justify="right", style="green")
    table.add_column("P(correct)", justify="right", style="yellow")

    try:
        for step, correct in enumerate(observations, start=1):
            state = tracker.update_knowledge(learner, skill, correct)
            table.add_row(
                str(step),
                "correct" if correct else "incorrect",
                f"{state.knowledge_probability:.3f}",
                f"{state.success_probability:.3f}",
            )
        remaining = tracker.estimate_opportunities_to_mastery(learner, skill)
    except CompanionError as e:
        _fail(e)

    console.print(table)
    rprint(f"Opportunities to mastery: [bold]{remaining}[/bold]")


@app.command("retention")
def retention(
    performance: float = typer.Argument(..., min=0.0, max=1.0, help="Performance score (0-1)"),
    days: str = typer.Option("0,1,7,14,30,60,90", "--days", "-d", help="Comma-separated day offsets"),
) -> None:
    """Show how retention decays on the forgetting curve."""
    try:
        offsets = [int(d) for d in days.split(",") if d.strip()]
    except ValueError:
        raise typer.BadParameter("--days must be comma-separated integers")

    scheduler = RetentionScheduler()
    table = Table(title=f"Retention (performance={performance:.2f})", show_header=True)
    table.add_column("Days", justify="right", style="cyan")
    table.add_column("Retention", justify="right", style="green")
    table.add_column("Level")
    table.add_column("Action", style="dim")

    for offset in offsets:
        score = scheduler.retention_score(performance, max(0, offset))
        table.add_row(
            str(offset),
            f"{score:.3f}",
            RetentionLevel.from_score(score).value,
            scheduler.recommended_action(score),
        )
    console.print(table)


@app.command("recommend")
def recommend(
    request_file: Path = typer.Argument(..., help="JSON file with gaps and preferences"),
    seed: int | None = typer.Option(None, "--seed", help="Seed for sequencing exploration"),
) -> None:
    """Recommend content for the skill gaps in a request file."""
    if not request_file.exists():
        _fail(FileNotFoundError(f"File not found: {request_file}"))

    try:
        request = RecommendRequest.model_validate(json.loads(request_file.read_text(encoding="utf-8")))
        gaps, preferences = request.to_domain()
        settings = get_settings()
        engine = RecommendationEngine(
            settings=settings,
            rng=random.Random(seed if seed is not None else settings.recommendation_seed),
        )
        items = engine.recommend_content(gaps, preferences)
    except json.JSONDecodeError as e:
        _fail(ValueError(f"Invalid JSON in {request_file}: {e}"))
    except PydanticValidationError as e:
        _fail(ValueError(f"Invalid request: {e}"))
    except CompanionError as e:
        _fail(e)

    table = Table(title=f"Recommendations ({len(items)} items)", show_header=True)
    table.add_column("#", justify="right", style="dim")
    table.add_column("Title", style="cyan")
    table.add_column("Type")
    table.add_column("Difficulty", justify="right")
    table.add_column("Level")
    table.add_column("Minutes", justify="right", style="green")

    for rank, item in enumerate(items, start=1):
        table.add_row(
            str(rank),
            item.title,
            item.type.value,
            f"{item.difficulty:.2f}",
            item.level.value,
            str(item.estimated_minutes),
        )
    console.print(table)


@app.command("version")
def show_version() -> None:
    """Show version information."""
    rprint(f"[bold]learning-companion-engine[/bold] v{__version__}")
    rprint("  BKT knowledge tracing, SM-2 scheduling, adaptive recommendations")


def run() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    run()
