"""Deliver digests as proactive assistant messages in the user's chat."""

import logging

from mindclone_news.models import ScoredArticle, utcnow
from mindclone_news.storage import CurationDatabase

logger = logging.getLogger(__name__)

PROACTIVE_NEWS = "proactive_news"


class MessageInjector:
    """Write curated digests into a user's message history."""

    def __init__(self, db: CurationDatabase):
        self.db = db

    def deliver(self, user_id: str, content: str | None, articles: list[ScoredArticle]) -> str:
        """Inject a news digest into the user's chat.

        Args:
            user_id: Recipient
            content: Formatted digest
            articles: Articles included in the digest

        Returns:
            Id of the stored message

        Raises:
            ValueError: If the digest is empty
        """
        if not content:
            raise ValueError("Content is required")

        message_id = self.db.add_message(
            user_id,
            role="assistant",
            content=content,
            message_type=PROACTIVE_NEWS,
            metadata={
                "articles": [
                    {"title": a.title, "url": a.url, "source": a.source, "score": a.score}
                    for a in articles
                ],
                "generated_at": utcnow(),
                "article_count": len(articles),
            },
        )

        logger.info(f"Injected news digest {message_id} for {user_id}")
        return message_id
