"""Persistent storage."""

from mindclone_news.storage.database import CurationDatabase

__all__ = ["CurationDatabase"]
