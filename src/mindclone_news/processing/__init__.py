"""Processing pipeline for interest profiles and articles."""

from mindclone_news.processing.deduplicator import SeenArticleTracker, hash_url
from mindclone_news.processing.profile_builder import InterestProfileBuilder
from mindclone_news.processing.relevance_scorer import RelevanceScorer

__all__ = ["InterestProfileBuilder", "RelevanceScorer", "SeenArticleTracker", "hash_url"]
