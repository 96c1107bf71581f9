"""SQLite document store for users, curation state and delivered messages."""

import json
import logging
import sqlite3
import uuid
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Iterator

from pydantic_core import to_jsonable_python

from mindclone_news.config import settings
from mindclone_news.models import (
    CurationConfig,
    InterestProfile,
    RunStats,
    SeenArticle,
    UserRecord,
    utcnow,
)

logger = logging.getLogger(__name__)

NEWS_CURATION_JOB = "news_curation"


def _parse_timestamp(value: str | None) -> datetime | None:
    """Parse a stored ISO timestamp, assuming UTC for naive values."""
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class CurationDatabase:
    """SQLite store holding JSON documents for each user and job."""

    def __init__(self, db_path: Path | None = None):
        self.db_path = db_path or settings.db_path
        self._ensure_directory()
        self._init_db()

    def _ensure_directory(self) -> None:
        """Ensure database directory exists."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    @contextmanager
    def _get_connection(self) -> Iterator[sqlite3.Connection]:
        """Get a database connection with row factory."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        finally:
            conn.close()

    def _init_db(self) -> None:
        """Initialize database schema."""
        with self._get_connection() as conn:
            cursor = conn.cursor()

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS users (
                    user_id TEXT PRIMARY KEY,
                    last_active TIMESTAMP,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            """)

            # One JSON document per user, always updated by merge
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS curation_config (
                    user_id TEXT PRIMARY KEY,
                    document TEXT NOT NULL,
                    updated_at TIMESTAMP NOT NULL
                )
            """)

            # Append-only seen-set
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS seen_articles (
                    user_id TEXT NOT NULL,
                    url_hash TEXT NOT NULL,
                    url TEXT NOT NULL,
                    title TEXT,
                    seen_at TIMESTAMP NOT NULL,
                    PRIMARY KEY (user_id, url_hash)
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS messages (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    role TEXT NOT NULL,
                    content TEXT NOT NULL,
                    message_type TEXT,
                    is_public BOOLEAN DEFAULT FALSE,
                    metadata TEXT,
                    created_at TIMESTAMP NOT NULL
                )
            """)
            cursor.execute("""
                CREATE INDEX IF NOT EXISTS idx_messages_user_created
                ON messages(user_id, created_at)
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS profile_cache (
                    user_id TEXT PRIMARY KEY,
                    profile TEXT NOT NULL,
                    cached_at TIMESTAMP NOT NULL
                )
            """)

            # Aggregate stats per scheduled job
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS cron_jobs (
                    name TEXT PRIMARY KEY,
                    document TEXT NOT NULL,
                    updated_at TIMESTAMP NOT NULL
                )
            """)

            conn.commit()
            logger.debug(f"Database initialized at {self.db_path}")

    # Users

    def upsert_user(self, user_id: str, last_active: datetime | None = None) -> None:
        """Create a user or refresh its activity timestamp."""
        with self._get_connection() as conn:
            conn.execute(
                """
                INSERT INTO users (user_id, last_active) VALUES (?, ?)
                ON CONFLICT(user_id) DO UPDATE SET last_active = excluded.last_active
                """,
                (user_id, last_active.isoformat() if last_active else None),
            )
            conn.commit()

    def read_eligible_user_ids(self) -> list[UserRecord]:
        """Get every user with an activity timestamp, joined with its curation config."""
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("""
                SELECT u.user_id, u.last_active, c.document
                FROM users u
                LEFT JOIN curation_config c ON c.user_id = u.user_id
                WHERE u.last_active IS NOT NULL
                ORDER BY u.user_id
            """)
            rows = cursor.fetchall()

        return [
            UserRecord(
                user_id=row["user_id"],
                last_active=_parse_timestamp(row["last_active"]),
                curation_config=CurationConfig.model_validate(json.loads(row["document"]))
                if row["document"]
                else None,
            )
            for row in rows
        ]

    # Curation config

    def _read_document(self, conn: sqlite3.Connection, table: str, key_column: str, key: str) -> dict:
        row = conn.execute(
            f"SELECT document FROM {table} WHERE {key_column} = ?", (key,)
        ).fetchone()
        return json.loads(row["document"]) if row else {}

    def read_user_curation_config(self, user_id: str) -> CurationConfig | None:
        """Get a user's curation config, or None if it was never written."""
        with self._get_connection() as conn:
            document = self._read_document(conn, "curation_config", "user_id", user_id)

        if not document:
            return None
        return CurationConfig.model_validate(document)

    def merge_user_curation_config(self, user_id: str, updates: dict[str, Any]) -> None:
        """Merge fields into a user's curation config, keeping the others."""
        with self._get_connection() as conn:
            document = self._read_document(conn, "curation_config", "user_id", user_id)
            document.update(to_jsonable_python(updates))
            # Reject documents that would no longer load
            CurationConfig.model_validate(document)

            conn.execute(
                """
                INSERT INTO curation_config (user_id, document, updated_at) VALUES (?, ?, ?)
                ON CONFLICT(user_id) DO UPDATE SET
                    document = excluded.document,
                    updated_at = excluded.updated_at
                """,
                (user_id, json.dumps(document), utcnow().isoformat()),
            )
            conn.commit()

    # Seen articles

    def has_seen_article(self, user_id: str, url_hash: str) -> bool:
        """Check whether a URL fingerprint is in a user's seen-set."""
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT 1 FROM seen_articles WHERE user_id = ? AND url_hash = ?",
                (user_id, url_hash),
            ).fetchone()
        return row is not None

    def add_seen_article(self, user_id: str, seen: SeenArticle) -> None:
        """Add an entry to a user's seen-set. Existing entries are kept as-is."""
        with self._get_connection() as conn:
            conn.execute(
                """
                INSERT OR IGNORE INTO seen_articles (user_id, url_hash, url, title, seen_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (user_id, seen.url_hash, seen.url, seen.title, seen.seen_at.isoformat()),
            )
            conn.commit()

    def get_seen_articles(self, user_id: str, limit: int | None = None) -> list[SeenArticle]:
        """Get a user's seen articles, most recent first."""
        query = """
            SELECT url_hash, url, title, seen_at FROM seen_articles
            WHERE user_id = ?
            ORDER BY seen_at DESC
        """
        params: list = [user_id]
        if limit:
            query += " LIMIT ?"
            params.append(limit)

        with self._get_connection() as conn:
            rows = conn.execute(query, params).fetchall()

        return [
            SeenArticle(
                url_hash=row["url_hash"],
                url=row["url"],
                title=row["title"] or "Untitled",
                seen_at=_parse_timestamp(row["seen_at"]),
            )
            for row in rows
        ]

    # Messages

    def add_message(
        self,
        user_id: str,
        role: str,
        content: str,
        message_type: str | None = None,
        metadata: dict[str, Any] | None = None,
        is_public: bool = False,
    ) -> str:
        """Append a message to a user's chat history and return its id."""
        message_id = uuid.uuid4().hex
        with self._get_connection() as conn:
            conn.execute(
                """
                INSERT INTO messages
                (id, user_id, role, content, message_type, is_public, metadata, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    message_id,
                    user_id,
                    role,
                    content,
                    message_type,
                    is_public,
                    json.dumps(to_jsonable_python(metadata or {})),
                    utcnow().isoformat(),
                ),
            )
            conn.commit()
        return message_id

    def get_messages(
        self, user_id: str, message_type: str | None = None, limit: int = 20
    ) -> list[dict[str, Any]]:
        """Get a user's messages, most recent first."""
        query = "SELECT * FROM messages WHERE user_id = ?"
        params: list = [user_id]

        if message_type:
            query += " AND message_type = ?"
            params.append(message_type)

        query += " ORDER BY created_at DESC LIMIT ?"
        params.append(limit)

        with self._get_connection() as conn:
            rows = conn.execute(query, params).fetchall()

        return [
            {
                "id": row["id"],
                "role": row["role"],
                "content": row["content"],
                "message_type": row["message_type"],
                "is_public": bool(row["is_public"]),
                "metadata": json.loads(row["metadata"]) if row["metadata"] else {},
                "created_at": _parse_timestamp(row["created_at"]),
            }
            for row in rows
        ]

    # Profile cache

    def get_cached_profile(self, user_id: str, max_age: timedelta) -> InterestProfile | None:
        """Get a cached interest profile if it is younger than max_age."""
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT profile, cached_at FROM profile_cache WHERE user_id = ?", (user_id,)
            ).fetchone()

        if not row:
            return None

        age = utcnow() - _parse_timestamp(row["cached_at"])
        if age > max_age:
            logger.info(f"Profile cache expired for {user_id} (age: {age.total_seconds() / 60:.0f} minutes)")
            return None

        return InterestProfile.model_validate_json(row["profile"])

    def cache_profile(self, user_id: str, profile: InterestProfile) -> None:
        """Store a freshly built interest profile."""
        with self._get_connection() as conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO profile_cache (user_id, profile, cached_at)
                VALUES (?, ?, ?)
                """,
                (user_id, profile.model_dump_json(), utcnow().isoformat()),
            )
            conn.commit()

    # Run statistics

    def read_run_stats(self, job: str = NEWS_CURATION_JOB) -> RunStats | None:
        """Get the last recorded statistics for a scheduled job."""
        with self._get_connection() as conn:
            document = self._read_document(conn, "cron_jobs", "name", job)

        if not document:
            return None
        return RunStats.model_validate(document)

    def merge_run_stats(self, stats: RunStats, job: str = NEWS_CURATION_JOB) -> None:
        """Merge a run's statistics into the job's stats document."""
        with self._get_connection() as conn:
            document = self._read_document(conn, "cron_jobs", "name", job)
            document.update(stats.model_dump(mode="json"))

            conn.execute(
                """
                INSERT INTO cron_jobs (name, document, updated_at) VALUES (?, ?, ?)
                ON CONFLICT(name) DO UPDATE SET
                    document = excluded.document,
                    updated_at = excluded.updated_at
                """,
                (job, json.dumps(document), utcnow().isoformat()),
            )
            conn.commit()
