"""Data models for interest profiles, articles and curation state."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator


def utcnow() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


class CurationStatus(str, Enum):
    """Outcome of curating news for one user."""

    SUCCESS = "success"
    SKIPPED = "skipped"
    ERROR = "error"


class SkipReason(str, Enum):
    """Why a user was skipped without delivery."""

    NO_INTERESTS = "no_interests"
    NO_ARTICLES = "no_articles"
    LOW_RELEVANCE = "low_relevance"
    DAILY_LIMIT = "daily_limit"


class RunStatus(str, Enum):
    """Overall status of a curation run."""

    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"


class InterestProfile(BaseModel):
    """What a user cares about, extracted from their memories."""

    topics: list[str] = Field(default_factory=list)
    entities: list[str] = Field(default_factory=list)
    industries: list[str] = Field(default_factory=list)
    curiosities: list[str] = Field(default_factory=list)

    @field_validator("topics", "entities", "industries", "curiosities", mode="before")
    @classmethod
    def clean_terms(cls, v: Any) -> Any:
        """Drop non-string and blank entries; tolerate a missing list."""
        if v is None or not isinstance(v, list):
            return []
        return [item.strip() for item in v if isinstance(item, str) and item.strip()]

    @field_validator("topics", "entities")
    @classmethod
    def limit_primary(cls, v: list[str]) -> list[str]:
        return v[:15]

    @field_validator("industries", "curiosities")
    @classmethod
    def limit_secondary(cls, v: list[str]) -> list[str]:
        return v[:10]

    @property
    def is_empty(self) -> bool:
        """A profile without topics and entities cannot drive a search."""
        return not self.topics and not self.entities


class CandidateArticle(BaseModel):
    """Article as returned by a search backend."""

    url: str
    title: str = "Untitled"
    snippet: str = ""
    source: str = ""
    published_date: datetime | None = None
    query: str = ""

    @field_validator("title", "snippet", mode="before")
    @classmethod
    def clean_text(cls, v: Any) -> Any:
        """Clean up text fields."""
        if isinstance(v, str):
            return v.strip()
        return v


class ScoredArticle(CandidateArticle):
    """Article with its relevance score for one user."""

    score: float = Field(ge=0, le=100)


class SeenArticle(BaseModel):
    """An article already delivered to a user."""

    url_hash: str
    url: str
    title: str = "Untitled"
    seen_at: datetime


class CurationConfig(BaseModel):
    """Per-user curation state, merged on every run."""

    enabled: bool = True
    last_check_timestamp: datetime | None = None
    last_successful_check: datetime | None = None
    consecutive_failures: int = 0
    articles_sent_today: int = 0
    last_reset_date: datetime | None = None


class UserRecord(BaseModel):
    """A user row together with its curation config, if any."""

    user_id: str
    last_active: datetime | None = None
    curation_config: CurationConfig | None = None


class EligibleUser(BaseModel):
    """A user that passed the batch filters for the current run."""

    user_id: str
    last_check: int = 0  # epoch millis, 0 when never checked
    consecutive_failures: int = 0


class UserResult(BaseModel):
    """Result of curating news for a single user."""

    user_id: str
    status: CurationStatus
    articles_sent: int | None = None
    avg_score: float | None = None
    reason: SkipReason | None = None
    error: str | None = None
    retries_exhausted: bool = False
    processing_time_ms: int | None = None


class RunError(BaseModel):
    """A per-user (or run-level) error recorded in run stats."""

    user_id: str | None = None
    error: str
    timestamp: datetime = Field(default_factory=utcnow)


class RunStats(BaseModel):
    """Aggregate statistics stored once per curation run."""

    last_run_status: RunStatus
    users_processed: int = 0
    articles_sent: int = 0
    processing_time_ms: int = 0
    errors: list[RunError] = Field(default_factory=list)
    last_run_timestamp: datetime = Field(default_factory=utcnow)


class RunSummary(BaseModel):
    """Structured summary returned to the scheduler."""

    status: RunStatus
    users_processed: int = 0
    success_count: int = 0
    error_count: int = 0
    skipped_count: int = 0
    articles_sent: int = 0
    avg_score: float = 0.0
    processing_time_ms: int = 0
    results: list[UserResult] = Field(default_factory=list)

    def public_results(self) -> list[dict[str, Any]]:
        """Per-user results without error text."""
        return [
            r.model_dump(mode="json", include={"user_id", "status", "articles_sent", "reason"})
            for r in self.results
        ]
