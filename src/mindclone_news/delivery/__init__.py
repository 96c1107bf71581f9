"""Digest formatting and delivery."""

from mindclone_news.delivery.formatter import format_news_digest, get_article_context
from mindclone_news.delivery.injector import MessageInjector

__all__ = ["MessageInjector", "format_news_digest", "get_article_context"]
