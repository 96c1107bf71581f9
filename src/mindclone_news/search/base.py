"""Base search engine interface and query generation."""

import logging
from abc import ABC, abstractmethod
from datetime import datetime
from urllib.parse import urlparse

from mindclone_news.models import CandidateArticle, InterestProfile, utcnow

logger = logging.getLogger(__name__)

MAX_QUERIES = 5


def generate_search_queries(profile: InterestProfile, now: datetime | None = None) -> list[str]:
    """Generate up to five targeted news queries from a profile.

    Args:
        profile: User interest profile
        now: Reference time for the month/year qualifiers

    Returns:
        Search queries, topic queries first
    """
    now = now or utcnow()
    month = now.strftime("%B")
    year = now.year

    queries = [f"{topic} news {month} {year}" for topic in profile.topics[:3]]
    queries += [f"{entity} latest updates {year}" for entity in profile.entities[:2]]
    queries += [f"{industry} trends {month} {year}" for industry in profile.industries[:2]]
    if profile.curiosities:
        queries.append(f"{profile.curiosities[0]} recent research {year}")

    return queries[:MAX_QUERIES]


def extract_domain(url: str) -> str:
    """Get the publisher domain of a URL."""
    hostname = urlparse(url).hostname
    if not hostname:
        return "Unknown"
    return hostname.removeprefix("www.")


class BaseSearchEngine(ABC):
    """Abstract base class for article search backends."""

    async def search(self, profile: InterestProfile) -> list[CandidateArticle]:
        """Search for articles matching a profile.

        Each generated query is run in turn; a failing query is logged and
        skipped. Results are de-duplicated by URL across queries.

        Args:
            profile: User interest profile

        Returns:
            Unique candidate articles in discovery order
        """
        queries = generate_search_queries(profile)
        if not queries:
            logger.info("No queries generated from profile")
            return []

        logger.info(f"Generated {len(queries)} queries: {queries}")

        articles: list[CandidateArticle] = []
        seen_urls: set[str] = set()

        for query in queries:
            try:
                results = await self.search_query(query)
            except Exception as e:
                logger.error(f"Search failed for '{query}': {e}")
                continue

            for article in results:
                if article.url not in seen_urls:
                    seen_urls.add(article.url)
                    articles.append(article)

        logger.info(f"Found {len(articles)} unique articles across {len(queries)} queries")
        return articles

    @abstractmethod
    async def search_query(self, query: str) -> list[CandidateArticle]:
        """Run a single search query.

        Args:
            query: Search query string

        Returns:
            Articles found for the query
        """
        ...
