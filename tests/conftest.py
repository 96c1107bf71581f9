"""Pytest fixtures for tests."""

from datetime import datetime, timezone
from pathlib import Path

import pytest

from mindclone_news.curator import NewsCurator
from mindclone_news.models import CandidateArticle, InterestProfile
from mindclone_news.storage import CurationDatabase

NOW = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Settable clock for the curator."""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


class FakeProfileBuilder:
    """Returns a fixed profile and counts calls."""

    def __init__(self, profile: InterestProfile | None = None):
        self.profile = profile or InterestProfile(topics=["ai"])
        self.calls: list[str] = []

    async def build(self, user_id: str) -> InterestProfile:
        self.calls.append(user_id)
        return self.profile


class FakeSearchEngine:
    """Returns queued results (or raises) and counts calls."""

    def __init__(self, articles: list[CandidateArticle] | None = None, error: Exception | None = None):
        self.articles = articles or []
        self.error = error
        self.calls = 0

    async def search(self, profile: InterestProfile) -> list[CandidateArticle]:
        self.calls += 1
        if self.error:
            raise self.error
        return list(self.articles)


class FakeScorer:
    """Scores articles from a URL lookup table."""

    def __init__(self, scores: dict[str, float] | None = None, default: float = 90.0):
        self.scores = scores or {}
        self.default = default

    def score(self, article: CandidateArticle, profile: InterestProfile) -> float:
        return self.scores.get(article.url, self.default)


class RecordingSleep:
    """Async sleep replacement that records requested delays."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


def make_article(slug: str, title: str | None = None, **kwargs) -> CandidateArticle:
    """Helper to create candidate articles."""
    return CandidateArticle(
        url=f"https://example.com/{slug}",
        title=title or f"AI story {slug}",
        snippet="Test snippet",
        source="example.com",
        **kwargs,
    )


@pytest.fixture
def temp_db_path(tmp_path: Path) -> Path:
    """Create a temporary database path."""
    return tmp_path / "test_mindclone.db"


@pytest.fixture
def db(temp_db_path: Path) -> CurationDatabase:
    """Create a test database."""
    return CurationDatabase(db_path=temp_db_path)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def sample_profile() -> InterestProfile:
    """Create a sample interest profile."""
    return InterestProfile(
        topics=["artificial intelligence", "climate tech"],
        entities=["OpenAI"],
        industries=["technology"],
        curiosities=["how to scale postgres databases"],
    )


@pytest.fixture
def make_curator(db: CurationDatabase, clock: FakeClock, sleep: RecordingSleep):
    """Build a curator around fakes; override any collaborator by keyword."""

    def _make(
        profile: InterestProfile | None = None,
        articles: list[CandidateArticle] | None = None,
        scores: dict[str, float] | None = None,
        search_error: Exception | None = None,
    ) -> NewsCurator:
        return NewsCurator(
            db=db,
            profile_builder=FakeProfileBuilder(profile),
            search_engine=FakeSearchEngine(articles, error=search_error),
            scorer=FakeScorer(scores),
            clock=clock,
            sleep=sleep,
        )

    return _make
