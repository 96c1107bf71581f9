"""Article search backends."""

from mindclone_news.config import settings
from mindclone_news.search.base import BaseSearchEngine, generate_search_queries
from mindclone_news.search.google_news import GoogleNewsSearchEngine
from mindclone_news.search.grounded import GroundedSearchEngine


def create_search_engine(backend: str | None = None) -> BaseSearchEngine:
    """Create the configured search backend."""
    backend = backend or settings.search_backend
    if backend == "gemini":
        return GroundedSearchEngine()
    if backend == "google_news":
        return GoogleNewsSearchEngine()
    raise ValueError(f"Unknown search backend: {backend}")


__all__ = [
    "BaseSearchEngine",
    "GoogleNewsSearchEngine",
    "GroundedSearchEngine",
    "create_search_engine",
    "generate_search_queries",
]
