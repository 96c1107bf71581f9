"""Tests for search backends."""

import asyncio

import pytest
from conftest import NOW, make_article

from mindclone_news.config import settings
from mindclone_news.models import CandidateArticle, InterestProfile
from mindclone_news.search import (
    BaseSearchEngine,
    GoogleNewsSearchEngine,
    GroundedSearchEngine,
    create_search_engine,
    generate_search_queries,
)
from mindclone_news.search.base import extract_domain

SAMPLE_RSS = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0">
  <channel>
    <title>"ai" - Google News</title>
    <item>
      <title>OpenAI unveils new model</title>
      <link>https://www.reuters.com/technology/openai-model</link>
      <pubDate>Sat, 17 Oct 2026 10:00:00 GMT</pubDate>
      <description>&lt;b&gt;Big&lt;/b&gt;   news about models</description>
      <source url="https://www.reuters.com">Reuters</source>
    </item>
    <item>
      <title>Chip makers race ahead</title>
      <link>https://www.example.org/chips</link>
    </item>
    <item>
      <title>Entry without a link</title>
    </item>
  </channel>
</rss>"""


class TestGenerateSearchQueries:
    """Tests for query generation."""

    def test_query_formats(self):
        """Test each query template."""
        profile = InterestProfile(
            topics=["AI"], entities=["OpenAI"], industries=["fintech"], curiosities=["vector databases"]
        )

        queries = generate_search_queries(profile, now=NOW)

        assert queries == [
            "AI news October 2026",
            "OpenAI latest updates 2026",
            "fintech trends October 2026",
            "vector databases recent research 2026",
        ]

    def test_at_most_five_queries(self):
        """Test that topics come first and the list is capped."""
        profile = InterestProfile(
            topics=["a1", "a2", "a3", "a4"], entities=["e1", "e2", "e3"], industries=["i1"]
        )

        queries = generate_search_queries(profile, now=NOW)

        assert len(queries) == 5
        assert queries[:3] == ["a1 news October 2026", "a2 news October 2026", "a3 news October 2026"]
        assert queries[3:] == ["e1 latest updates 2026", "e2 latest updates 2026"]

    def test_empty_profile(self):
        assert generate_search_queries(InterestProfile(), now=NOW) == []


class TestExtractDomain:
    """Tests for publisher domains."""

    def test_strips_www(self):
        assert extract_domain("https://www.theverge.com/a/b") == "theverge.com"

    def test_invalid_url(self):
        assert extract_domain("not a url") == "Unknown"


class StubEngine(BaseSearchEngine):
    """Engine answering queries from a prefix table."""

    def __init__(self, answers: dict[str, list[CandidateArticle]], failing: str = ""):
        self.answers = answers
        self.failing = failing
        self.queries: list[str] = []

    async def search_query(self, query: str) -> list[CandidateArticle]:
        self.queries.append(query)
        if self.failing and query.startswith(self.failing):
            raise ConnectionError("backend down")
        for prefix, articles in self.answers.items():
            if query.startswith(prefix):
                return articles
        return []


class TestBaseSearchEngine:
    """Tests for the shared multi-query search."""

    def test_dedups_across_queries(self):
        """Test that a URL found by two queries is returned once, in discovery order."""
        shared = make_article("shared")
        engine = StubEngine(
            {
                "ai": [make_article("a"), shared],
                "space": [shared, make_article("b")],
            }
        )

        articles = asyncio.run(engine.search(InterestProfile(topics=["ai", "space"])))

        assert [a.url for a in articles] == [
            "https://example.com/a",
            "https://example.com/shared",
            "https://example.com/b",
        ]

    def test_failing_query_is_skipped(self):
        """Test that one failing query does not lose the others' results."""
        engine = StubEngine({"space": [make_article("b")]}, failing="ai")

        articles = asyncio.run(engine.search(InterestProfile(topics=["ai", "space"])))

        assert len(engine.queries) == 2
        assert [a.url for a in articles] == ["https://example.com/b"]

    def test_no_queries(self):
        """Test that an empty profile performs no searches."""
        engine = StubEngine({})

        assert asyncio.run(engine.search(InterestProfile())) == []
        assert engine.queries == []


class TestGoogleNewsSearchEngine:
    """Tests for the Google News RSS backend."""

    def test_parse_feed(self):
        """Test parsing items into candidate articles."""
        engine = GoogleNewsSearchEngine()

        articles = engine.parse_feed(SAMPLE_RSS, "ai news October 2026")

        assert len(articles) == 2
        first, second = articles
        assert first.title == "OpenAI unveils new model"
        assert first.url == "https://www.reuters.com/technology/openai-model"
        assert first.source == "Reuters"
        assert first.snippet == "Big news about models"
        assert first.published_date.isoformat() == "2026-10-17T10:00:00+00:00"
        assert first.query == "ai news October 2026"
        assert second.source == "example.org"
        assert second.published_date is None

    def test_max_results(self):
        """Test the per-query result limit."""
        engine = GoogleNewsSearchEngine(max_results_per_query=1)

        assert len(engine.parse_feed(SAMPLE_RSS, "q")) == 1

    def test_unparseable_feed(self):
        """Test that garbage input gives no articles."""
        assert GoogleNewsSearchEngine().parse_feed("not xml at all <<<", "q") == []


class TestGroundedSearchEngine:
    """Tests for the Gemini grounded search backend."""

    @pytest.fixture
    def engine(self) -> GroundedSearchEngine:
        return GroundedSearchEngine(api_key="gemini-test")

    def test_requires_key(self, monkeypatch):
        monkeypatch.setattr(settings, "gemini_api_key", "")

        with pytest.raises(ValueError):
            GroundedSearchEngine()

    def test_parse_grounding_chunks(self, engine: GroundedSearchEngine):
        """Test that grounding chunks become articles, unique by URL."""
        data = {
            "candidates": [
                {
                    "content": {"parts": [{"text": "Here is what I found."}]},
                    "groundingMetadata": {
                        "groundingChunks": [
                            {"web": {"uri": "https://www.wired.com/story/ai", "title": "AI story"}},
                            {"web": {"uri": "https://www.wired.com/story/ai", "title": "Duplicate"}},
                            {"web": {"title": "No URI"}},
                            {"retrievedContext": {}},
                        ]
                    },
                }
            ]
        }

        articles = engine.parse_grounding_response(data, "ai news October 2026")

        assert len(articles) == 1
        assert articles[0].title == "AI story"
        assert articles[0].source == "wired.com"
        assert articles[0].query == "ai news October 2026"

    def test_text_fallback(self, engine: GroundedSearchEngine):
        """Test that URLs in the response text are used without grounding."""
        text = (
            '"OpenAI ships a new reasoning model" https://example.com/openai-news\n'
            "Also https://example.com/other\n"
        )
        data = {"candidates": [{"content": {"parts": [{"text": text}]}}]}

        articles = engine.parse_grounding_response(data, "q")

        assert [a.url for a in articles] == ["https://example.com/openai-news", "https://example.com/other"]
        assert articles[0].title == "OpenAI ships a new reasoning model"
        assert articles[0].source == "example.com"

    def test_empty_response(self, engine: GroundedSearchEngine):
        assert engine.parse_grounding_response({}, "q") == []


class TestCreateSearchEngine:
    """Tests for backend selection."""

    def test_google_news(self):
        assert isinstance(create_search_engine("google_news"), GoogleNewsSearchEngine)

    def test_gemini(self, monkeypatch):
        monkeypatch.setattr(settings, "gemini_api_key", "gemini-test")

        assert isinstance(create_search_engine("gemini"), GroundedSearchEngine)

    def test_unknown_backend(self):
        with pytest.raises(ValueError, match="Unknown search backend"):
            create_search_engine("bing")
