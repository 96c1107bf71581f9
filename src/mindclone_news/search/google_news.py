"""Google News RSS search backend."""

import contextlib
import logging
import re
from datetime import datetime, timezone
from typing import Any

import feedparser
import httpx

from mindclone_news.config import settings
from mindclone_news.models import CandidateArticle
from mindclone_news.search.base import BaseSearchEngine, extract_domain

logger = logging.getLogger(__name__)

GOOGLE_NEWS_SEARCH_URL = "https://news.google.com/rss/search"


class GoogleNewsSearchEngine(BaseSearchEngine):
    """Search the Google News RSS feed for each query."""

    def __init__(self, max_results_per_query: int = 10, timeout: int | None = None):
        self.max_results = max_results_per_query
        self.timeout = timeout or settings.search_timeout

    async def search_query(self, query: str) -> list[CandidateArticle]:
        """Fetch and parse the search feed for one query."""
        async with httpx.AsyncClient(
            timeout=self.timeout,
            follow_redirects=True,
            headers={"User-Agent": "MindcloneNewsCurator/1.0"},
        ) as client:
            response = await client.get(
                GOOGLE_NEWS_SEARCH_URL,
                params={"q": query, "hl": "en-US", "gl": "US", "ceid": "US:en"},
            )
            response.raise_for_status()

        articles = self.parse_feed(response.text, query)
        logger.info(f"Query '{query}' returned {len(articles)} articles")
        return articles

    def parse_feed(self, feed_text: str, query: str) -> list[CandidateArticle]:
        """Parse an RSS document into candidate articles."""
        feed = feedparser.parse(feed_text)

        if feed.bozo and not feed.entries:
            logger.warning(f"Feed parse error for '{query}': {feed.bozo_exception}")
            return []

        articles = []
        for entry in feed.entries[: self.max_results]:
            article = self._parse_entry(entry, query)
            if article:
                articles.append(article)
        return articles

    def _parse_entry(self, entry: Any, query: str) -> CandidateArticle | None:
        """Parse a feed entry into a CandidateArticle.

        Args:
            entry: Feed entry from feedparser
            query: Query the entry was found with

        Returns:
            CandidateArticle or None if the entry has no title or link
        """
        title = entry.get("title", "").strip()
        link = entry.get("link", "").strip()

        if not title or not link:
            return None

        published_date = None
        if entry.get("published_parsed"):
            with contextlib.suppress(TypeError, ValueError):
                published_date = datetime(*entry.published_parsed[:6], tzinfo=timezone.utc)

        source = ""
        if "source" in entry and entry.source:
            source = entry.source.get("title", "")

        return CandidateArticle(
            url=link,
            title=title,
            snippet=self._clean_html(entry.get("summary", ""))[:500],
            source=source or extract_domain(link),
            published_date=published_date,
            query=query,
        )

    def _clean_html(self, text: str) -> str:
        """Remove HTML tags from text."""
        if not text:
            return ""
        clean = re.sub(r"<[^>]+>", "", text)
        return re.sub(r"\s+", " ", clean).strip()
