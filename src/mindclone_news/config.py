"""Application configuration."""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Paths
    db_path: Path = Field(default=Path("data/mindclone.db"), description="SQLite database path")

    # Claude API (interest profile extraction)
    anthropic_api_key: str | None = Field(default=None, description="Anthropic API key")
    claude_model: str = Field(
        default="claude-sonnet-4-20250514", description="Claude model for profile extraction"
    )

    # Mem0 (user memories)
    mem0_api_key: str | None = Field(default=None, description="Mem0 API key")
    mem0_base_url: str = Field(default="https://api.mem0.ai", description="Mem0 API base URL")

    # Search
    search_backend: str = Field(
        default="gemini", description="Article search backend: gemini or google_news"
    )
    gemini_api_key: str | None = Field(default=None, description="Gemini API key")
    gemini_model: str = Field(default="gemini-2.0-flash", description="Gemini model for search")
    search_timeout: int = Field(default=20, description="Timeout for each search query (seconds)")

    # Scheduler
    cron_secret: str | None = Field(default=None, description="Shared secret for the cron trigger")

    # Batch Settings
    batch_size: int = Field(default=10, description="Users processed per curation run")
    max_retries: int = Field(default=2, description="Extra attempts per user after a failure")
    retry_base_delay_ms: int = Field(default=1000, description="Backoff base delay (ms)")
    max_recorded_errors: int = Field(default=20, description="Per-user errors kept in run stats")

    # Curation Settings
    max_articles_per_day: int = Field(default=10, description="Daily article quota per user")
    max_articles_per_run: int = Field(default=5, description="Articles delivered per run")
    min_relevance_score: float = Field(default=60, description="Minimum score to deliver")
    inactivity_threshold_days: int = Field(
        default=7, description="Users inactive for longer are not curated"
    )
    profile_cache_ttl_hours: int = Field(default=24, description="Interest profile cache TTL")
    curation_timezone: str = Field(
        default="UTC", description="Timezone that defines the calendar day for quotas"
    )


settings = Settings()
