# ABOUTME: Configuration settings for the session progression engine using Pydantic Settings.
# ABOUTME: Loads environment variables for rate limits, chapter pacing, summaries, AI and Redis access.

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Engine configuration loaded from environment variables"""

    # Redis Configuration
    redis_url: str = Field(
        default="redis://localhost:6379",
        description="Redis connection URL for shared rate limits and progress"
    )
    rate_limit_backend: Literal["memory", "redis"] = Field(
        default="memory",
        description="Where rate limit windows live (memory = single instance only)"
    )

    # Rate Limits
    narration_rate_limit_max: int = Field(
        default=12,
        ge=1,
        description="Maximum narration requests per actor and campaign per window"
    )
    narration_rate_limit_window_ms: int = Field(
        default=60 * 60 * 1000,
        ge=1,
        description="Narration rate limit window in milliseconds"
    )
    round_advance_rate_limit_max: int = Field(
        default=1,
        ge=1,
        description="Maximum round advances per actor and campaign per window"
    )
    round_advance_rate_limit_window_ms: int = Field(
        default=30 * 1000,
        ge=1,
        description="Round advance rate limit window in milliseconds"
    )
    rate_limit_purge_interval_ms: int = Field(
        default=10 * 60 * 1000,
        ge=1,
        description="How often stale in-memory windows are purged"
    )
    rate_limit_purge_grace_ms: int = Field(
        default=60 * 1000,
        ge=0,
        description="How long past reset_time a window must be before it is purged"
    )

    # Campaign Pacing
    rounds_per_chapter: int = Field(
        default=25,
        ge=1,
        description="Number of rounds in one chapter"
    )
    default_target_rounds: int = Field(
        default=200,
        ge=1,
        le=1000,
        description="Campaign length in rounds when none is given"
    )
    summary_threshold: int = Field(
        default=10,
        ge=1,
        description="New messages that trigger an ordinary summary"
    )
    director_round_interval: int = Field(
        default=20,
        ge=1,
        description="Every Nth round is routed to the DIRECTOR tier"
    )

    # AI Generation
    openai_api_key: str | None = Field(
        default=None,
        description="OpenAI API key for narration and summaries"
    )
    openai_model: str = Field(
        default="gpt-4o-mini",
        description="OpenAI model used by both AI tiers"
    )
    openai_max_tokens: int = Field(
        default=1200,
        ge=1,
        description="Maximum completion tokens per generation"
    )
    ai_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Caller-level timeout for narration and summary generation"
    )
    llm_retry_attempts: int = Field(
        default=5,
        ge=1,
        description="Attempts used by callers that opt into retrying transient AI failures"
    )

    # Application Settings
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )


# Singleton settings instance - lazy initialization to allow import without .env
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get or create the singleton settings instance"""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
