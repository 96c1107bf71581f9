"""Per-user tracking of delivered articles."""

import hashlib
import logging

from mindclone_news.models import CandidateArticle, SeenArticle, utcnow
from mindclone_news.storage import CurationDatabase

logger = logging.getLogger(__name__)


def hash_url(url: str) -> str:
    """Fingerprint a URL for seen-set membership."""
    return hashlib.sha256(url.strip().lower().encode()).hexdigest()[:16]


class SeenArticleTracker:
    """Deduplicate articles against each user's seen-set.

    The seen-set is append-only: once an article is marked seen it is never
    delivered to that user again.
    """

    def __init__(self, db: CurationDatabase):
        self.db = db

    def has_seen(self, user_id: str, url: str) -> bool:
        """Check if a user has already been sent this article.

        Args:
            user_id: User to check
            url: Article URL

        Returns:
            True if the URL is in the user's seen-set
        """
        seen = self.db.has_seen_article(user_id, hash_url(url))
        if seen:
            logger.debug(f"Article already seen by {user_id}: {url[:50]}")
        return seen

    def mark_seen(self, user_id: str, article: CandidateArticle) -> None:
        """Add an article to a user's seen-set."""
        self.db.add_seen_article(
            user_id,
            SeenArticle(
                url_hash=hash_url(article.url),
                url=article.url,
                title=article.title or "Untitled",
                seen_at=utcnow(),
            ),
        )
        logger.debug(f"Marked article as seen for {user_id}: {article.title[:50]}")
