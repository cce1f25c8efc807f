"""
Configuration settings for the adaptive learning engine.

Uses Pydantic Settings for environment variable management with .env file support.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================
    # Knowledge Tracing (BKT)
    # ========================================
    bkt_prior_knowledge: float = Field(
        default=0.1,
        ge=0.0,
        le=1.0,
        description="P(L0) - initial probability that a skill is known",
    )
    bkt_learning_rate: float = Field(
        default=0.3,
        ge=0.0,
        le=1.0,
        description="P(T) - probability of learning per opportunity",
    )
    bkt_guess_rate: float = Field(
        default=0.2,
        ge=0.0,
        le=1.0,
        description="P(G) - probability of a correct guess without mastery",
    )
    bkt_slip_rate: float = Field(
        default=0.1,
        ge=0.0,
        le=1.0,
        description="P(S) - probability of a slip despite mastery",
    )
    bkt_correct_threshold: float = Field(
        default=0.7,
        description="Completion above which progress counts as a correct response",
    )
    mastery_threshold: float = Field(
        default=0.95,
        description="Knowledge probability treated as mastery",
    )

    # ========================================
    # Retention Scheduling (SM-2)
    # ========================================
    sm2_default_easiness: float = Field(
        default=2.5,
        description="Easiness factor for a topic's first review",
    )
    sm2_minimum_easiness: float = Field(
        default=1.3,
        description="Lower bound of the easiness factor",
    )
    sm2_reset_threshold: float = Field(
        default=0.6,
        description="Performance below which the interval resets to one day",
    )
    sm2_maximum_interval: int = Field(
        default=180,
        description="Longest review interval in days (6 months)",
    )
    follow_up_count: int = Field(
        default=3,
        description="Number of chained follow-up reviews per completed session",
    )
    forgetting_half_life_days: float = Field(
        default=30.0,
        description="Time constant of the forgetting curve (days)",
    )
    default_session_score: float = Field(
        default=0.7,
        description="Performance assumed for sessions without outcomes",
    )
    review_data_ttl_days: int | None = Field(
        default=365,
        description="Drop topic review data untouched for this many days (None keeps it forever)",
    )

    # ========================================
    # Content Recommendation
    # ========================================
    exploration_rate: float = Field(
        default=0.15,
        description="Epsilon for epsilon-greedy content sequencing",
    )
    sequence_learning_rate: float = Field(
        default=0.1,
        description="EMA step size for content-pair rewards",
    )
    similarity_threshold: float = Field(
        default=0.6,
        description="Pearson correlation above which learners count as similar",
    )
    collaborative_score_threshold: float = Field(
        default=0.7,
        description="Mean peer rating above which content is added to recommendations",
    )
    max_items_per_gap: int = Field(
        default=3,
        description="Maximum generated items per skill gap",
    )
    max_items_per_skill: int = Field(
        default=5,
        description="Maximum generated items per skill domain",
    )
    performance_history_size: int = Field(
        default=50,
        description="Performance scores retained per learner",
    )
    recommendation_seed: int | None = Field(
        default=None,
        description="Seed for the sequencing RNG (None for nondeterministic)",
    )
    content_catalog_path: str | None = Field(
        default=None,
        description="JSON file replacing the built-in content template catalog",
    )

    # ========================================
    # Concurrency
    # ========================================
    store_shards: int = Field(
        default=32,
        ge=1,
        description="Lock stripes per keyed store",
    )

    # ========================================
    # Logging
    # ========================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging verbosity level",
    )
    log_file: str | None = Field(
        default=None,
        description="Log file path (None for stderr only)",
    )

    def get_bkt_priors(self) -> dict[str, float]:
        """Get BKT prior parameters as a dictionary."""
        return {
            "p_l0": self.bkt_prior_knowledge,
            "p_t": self.bkt_learning_rate,
            "p_g": self.bkt_guess_rate,
            "p_s": self.bkt_slip_rate,
        }


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
