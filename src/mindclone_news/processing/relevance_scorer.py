"""Multi-factor relevance scoring of articles against an interest profile.

Scores fall in 0-100 and are the sum of four factors:

- topic match: 0-40
- recency: 0-20
- source authority: 0-20
- novelty: 0-20
"""

from datetime import datetime, timezone

from mindclone_news.models import CandidateArticle, InterestProfile, utcnow

TRUSTED_SOURCES = (
    # Tech
    "techcrunch.com", "theverge.com", "arstechnica.com", "wired.com", "engadget.com",
    "venturebeat.com", "technologyreview.com", "zdnet.com", "cnet.com",
    # Business/finance
    "bloomberg.com", "reuters.com", "ft.com", "wsj.com", "fortune.com",
    "forbes.com", "cnbc.com", "businessinsider.com",
    # General news
    "nytimes.com", "theguardian.com", "bbc.com", "npr.org", "apnews.com",
    "washingtonpost.com", "economist.com",
    # Research/academic
    "arxiv.org", "nature.com", "science.org", "acm.org", "ieee.org",
    "sciencedirect.com", "springer.com",
    # Industry
    "techradar.com", "gizmodo.com", "mashable.com", "slashdot.org",
    "hackernews.com", "ycombinator.com", "medium.com",
)

SEMI_TRUSTED_SOURCES = (
    "reddit.com", "twitter.com", "x.com", "linkedin.com",
    "substack.com", "dev.to", "producthunt.com",
)

QUALITY_INDICATORS = (".edu", ".gov", ".org", "research", "journal", "paper", "official", "blog")

# (max age in hours, points), checked in order
RECENCY_BRACKETS = ((6, 20), (24, 18), (72, 15), (168, 10), (336, 5))
UNDATED_RECENCY_SCORE = 12
STALE_RECENCY_SCORE = 2

BASE_NOVELTY_SCORE = 15


def article_text(article: CandidateArticle) -> str:
    """Lower-cased text an article is matched on."""
    return " ".join([article.title or "", article.snippet or "", article.query or ""]).lower()


def curiosity_matches(curiosity: str, text: str) -> bool:
    """Check whether enough of a curiosity's longer words appear in the text."""
    words = [w for w in curiosity.lower().split(" ") if len(w) > 3]
    matched = [w for w in words if w in text]
    return len(matched) >= min(3, len(words))


class RelevanceScorer:
    """Score how relevant an article is to a user's interests."""

    def __init__(self, now: datetime | None = None):
        # A fixed reference time makes scoring deterministic
        self.now = now

    def score(self, article: CandidateArticle, profile: InterestProfile) -> float:
        """Calculate the relevance score for an article.

        Args:
            article: Candidate article
            profile: User interest profile

        Returns:
            Score between 0 and 100
        """
        total = (
            self.topic_match_score(article, profile)
            + self.recency_score(article)
            + self.source_authority_score(article)
            + self.novelty_score(article)
        )
        return float(max(0, min(100, round(total))))

    def topic_match_score(self, article: CandidateArticle, profile: InterestProfile) -> float:
        """Score how well the article matches the profile (0-40)."""
        text = article_text(article)

        topic_matches = sum(1 for t in profile.topics if t.lower() in text)
        entity_matches = sum(1 for e in profile.entities if e.lower() in text)
        industry_matches = sum(1 for i in profile.industries if i.lower() in text)
        curiosity_hits = sum(1 for c in profile.curiosities if curiosity_matches(c, text))

        return (
            min(25, topic_matches * 5)
            + min(10, entity_matches * 3)
            + min(3, industry_matches)
            + min(2, curiosity_hits * 2)
        )

    def recency_score(self, article: CandidateArticle) -> float:
        """Score how recently the article was published (0-20)."""
        if article.published_date is None:
            return UNDATED_RECENCY_SCORE

        published = article.published_date
        if published.tzinfo is None:
            published = published.replace(tzinfo=timezone.utc)

        age_hours = ((self.now or utcnow()) - published).total_seconds() / 3600
        for max_age, points in RECENCY_BRACKETS:
            if age_hours < max_age:
                return points
        return STALE_RECENCY_SCORE

    def source_authority_score(self, article: CandidateArticle) -> float:
        """Score the publisher's authority (0-20)."""
        source = (article.source or "").lower()
        url = (article.url or "").lower()

        if any(s in source or s in url for s in TRUSTED_SOURCES):
            return 20
        if any(s in source or s in url for s in SEMI_TRUSTED_SOURCES):
            return 12
        if any(s in source or s in url for s in QUALITY_INDICATORS):
            return 10
        return 5

    def novelty_score(self, article: CandidateArticle) -> float:
        """Novelty is a flat base score; repeats are removed by the seen-set."""
        return BASE_NOVELTY_SCORE
