"""Gemini search backend using Google Search grounding."""

import logging
import re
from typing import Any

import httpx

from mindclone_news.config import settings
from mindclone_news.models import CandidateArticle
from mindclone_news.search.base import BaseSearchEngine, extract_domain

logger = logging.getLogger(__name__)

GEMINI_API_URL = "https://generativelanguage.googleapis.com/v1beta/models"

URL_PATTERN = re.compile(r"https?://[^\s)\]]+")
TITLE_PATTERN = re.compile(r"[\"']([^\"']{10,80})[\"']|(?:^|\n)([^\n]{10,80})$")


class GroundedSearchEngine(BaseSearchEngine):
    """Find articles by letting Gemini search the web for each query."""

    def __init__(self, api_key: str | None = None, timeout: int | None = None):
        api_key = api_key or settings.gemini_api_key
        if not api_key:
            raise ValueError("GEMINI_API_KEY is required for grounded search")
        self.api_key = api_key
        self.model = settings.gemini_model
        self.timeout = timeout or settings.search_timeout

    async def search_query(self, query: str) -> list[CandidateArticle]:
        """Run one grounded generation and collect the cited sources."""
        prompt = f"""Find recent news articles about: {query}

List the most relevant and recent articles you find. For each article, provide:
- Title
- URL
- Brief summary (1-2 sentences)
- Source/publisher name
- Publication date (if available)

Focus on authoritative sources like news sites, research publications, and reputable blogs."""

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.post(
                f"{GEMINI_API_URL}/{self.model}:generateContent",
                params={"key": self.api_key},
                json={
                    "contents": [{"role": "user", "parts": [{"text": prompt}]}],
                    "tools": [{"google_search": {}}],
                    "generationConfig": {"temperature": 0.5, "maxOutputTokens": 2000},
                },
            )
            response.raise_for_status()

        articles = self.parse_grounding_response(response.json(), query)
        logger.info(f"Query '{query}' returned {len(articles)} articles")
        return articles

    def parse_grounding_response(self, data: dict[str, Any], query: str) -> list[CandidateArticle]:
        """Extract articles from a Gemini response.

        Grounding chunks are preferred. Without them, URLs mentioned in the
        response text are used, with a nearby line as the title.

        Args:
            data: Decoded generateContent response
            query: Query the response answers

        Returns:
            Articles unique by URL
        """
        candidates = data.get("candidates") or [{}]
        candidate = candidates[0]
        articles: list[CandidateArticle] = []

        grounding = candidate.get("groundingMetadata") or {}
        for chunk in grounding.get("groundingChunks") or []:
            web = chunk.get("web") or {}
            uri = web.get("uri", "")
            if not uri:
                continue
            articles.append(
                CandidateArticle(
                    url=uri,
                    title=web.get("title") or "Untitled",
                    snippet=web.get("snippet", ""),
                    source=extract_domain(uri),
                    query=query,
                )
            )

        if not articles:
            parts = (candidate.get("content") or {}).get("parts") or [{}]
            articles = self._articles_from_text(parts[0].get("text", ""), query)

        unique: list[CandidateArticle] = []
        seen_urls: set[str] = set()
        for article in articles:
            if article.url not in seen_urls:
                seen_urls.add(article.url)
                unique.append(article)
        return unique

    def _articles_from_text(self, text: str, query: str) -> list[CandidateArticle]:
        """Scrape article URLs out of free text."""
        articles = []
        for match in URL_PATTERN.finditer(text):
            url = match.group(0)
            before = text[max(0, match.start() - 100) : match.start()]
            title_match = TITLE_PATTERN.search(before)
            title = "Article"
            if title_match:
                title = title_match.group(1) or title_match.group(2)

            articles.append(
                CandidateArticle(
                    url=url,
                    title=title.strip(),
                    source=extract_domain(url),
                    query=query,
                )
            )
        return articles
