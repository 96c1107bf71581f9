"""Format curated articles into a conversational digest."""

from datetime import datetime, timezone

from mindclone_news.models import InterestProfile, ScoredArticle, utcnow
from mindclone_news.processing.relevance_scorer import article_text, curiosity_matches

CLOSING = "Let me know if you want me to dive deeper into any of these!"


def _greeting(count: int) -> str:
    if count == 1:
        return "Hey! I found an interesting article for you:"
    if count == 2:
        return "Hey! I found a couple of interesting articles for you:"
    return f"Hey! I found {count} interesting articles for you:"


def format_published(published: datetime | None, now: datetime | None = None) -> str:
    """Describe when an article was published, relative to now."""
    if published is None:
        return ""
    if published.tzinfo is None:
        published = published.replace(tzinfo=timezone.utc)

    hours = int(((now or utcnow()) - published).total_seconds() // 3600)
    days = hours // 24

    if hours < 1:
        return "Just published"
    if hours < 24:
        return f"Published {hours} hour{'s' if hours > 1 else ''} ago"
    if days < 7:
        return f"Published {days} day{'s' if days > 1 else ''} ago"
    return f"Published {published.strftime('%b %d, %Y')}"


def get_article_context(article: ScoredArticle, profile: InterestProfile) -> str | None:
    """Explain in one sentence why an article matches the user's interests.

    Args:
        article: Article being delivered
        profile: User interest profile

    Returns:
        Context sentence, or None if nothing in the profile matches
    """
    text = article_text(article)

    topics = [t for t in profile.topics if t.lower() in text][:2]
    entities = [e for e in profile.entities if e.lower() in text][:2]
    curiosities = [c for c in profile.curiosities if curiosity_matches(c, text)][:1]

    contexts = []
    if topics:
        contexts.append(f"This relates to your interest in {' and '.join(topics)}")
    if entities:
        contexts.append(f"covers {' and '.join(entities)}")
    if curiosities:
        contexts.append(f'might help with "{curiosities[0]}"')

    if not contexts:
        return None
    if len(contexts) == 1:
        return contexts[0] + "."
    if len(contexts) == 2:
        return f"{contexts[0]} and {contexts[1]}."
    return f"{contexts[0]}, {contexts[1]}, and {contexts[2]}."


def format_news_digest(
    articles: list[ScoredArticle], profile: InterestProfile, now: datetime | None = None
) -> str | None:
    """Format articles into a single chat message.

    Args:
        articles: Articles to deliver, best first
        profile: User interest profile, used for the context lines
        now: Reference time for relative publish times

    Returns:
        Markdown message, or None if there are no articles
    """
    if not articles:
        return None

    blocks = []
    for number, article in enumerate(articles, 1):
        block = f"{number}. **{article.title or 'Untitled'}**"

        metadata = " by ".join(
            part for part in (format_published(article.published_date, now), article.source) if part
        )
        if metadata:
            block += f"\n   {metadata}"

        block += f"\n   [Read more →]({article.url or '#'})"

        context = get_article_context(article, profile)
        if context:
            block += f"\n\n   {context}"

        blocks.append(block)

    return f"{_greeting(len(articles))}\n\n" + "\n\n".join(blocks) + f"\n\n{CLOSING}"
