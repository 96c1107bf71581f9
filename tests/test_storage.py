"""Tests for storage module."""

import sqlite3
from datetime import timedelta

import pytest
from conftest import NOW
from pydantic import ValidationError

from mindclone_news.models import (
    InterestProfile,
    RunError,
    RunStats,
    RunStatus,
    SeenArticle,
    utcnow,
)
from mindclone_news.storage import CurationDatabase


class TestCurationDatabase:
    """Tests for CurationDatabase."""

    def test_init_creates_tables(self, db: CurationDatabase):
        """Test that database initialization creates required tables."""
        conn = sqlite3.connect(db.db_path)
        cursor = conn.cursor()

        cursor.execute("SELECT name FROM sqlite_master WHERE type='table'")
        tables = {row[0] for row in cursor.fetchall()}

        assert {"users", "curation_config", "seen_articles", "messages", "profile_cache", "cron_jobs"} <= tables
        conn.close()

    def test_init_is_idempotent(self, db: CurationDatabase):
        """Test that reopening an existing database keeps its data."""
        db.upsert_user("alice", last_active=NOW)

        reopened = CurationDatabase(db_path=db.db_path)

        assert [u.user_id for u in reopened.read_eligible_user_ids()] == ["alice"]


class TestUsers:
    """Tests for user records."""

    def test_eligible_users_need_activity(self, db: CurationDatabase):
        """Test that users without last_active are not returned."""
        db.upsert_user("active", last_active=NOW)
        db.upsert_user("unknown")

        users = db.read_eligible_user_ids()

        assert [u.user_id for u in users] == ["active"]
        assert users[0].last_active == NOW
        assert users[0].curation_config is None

    def test_upsert_refreshes_activity(self, db: CurationDatabase):
        """Test that upserting an existing user updates last_active."""
        db.upsert_user("alice", last_active=NOW - timedelta(days=30))
        db.upsert_user("alice", last_active=NOW)

        assert db.read_eligible_user_ids()[0].last_active == NOW

    def test_eligible_users_include_config(self, db: CurationDatabase):
        """Test that the user's curation config is joined in."""
        db.upsert_user("alice", last_active=NOW)
        db.merge_user_curation_config("alice", {"enabled": False})

        user = db.read_eligible_user_ids()[0]

        assert user.curation_config is not None
        assert user.curation_config.enabled is False


class TestCurationConfig:
    """Tests for merged curation config documents."""

    def test_missing_config(self, db: CurationDatabase):
        """Test that an unwritten config reads as None."""
        assert db.read_user_curation_config("nobody") is None

    def test_merge_keeps_other_fields(self, db: CurationDatabase):
        """Test that a merge only touches the given fields."""
        db.merge_user_curation_config("alice", {"enabled": False, "articles_sent_today": 4})
        db.merge_user_curation_config("alice", {"last_check_timestamp": NOW})

        config = db.read_user_curation_config("alice")

        assert config.enabled is False
        assert config.articles_sent_today == 4
        assert config.last_check_timestamp == NOW

    def test_merge_rejects_invalid_document(self, db: CurationDatabase):
        """Test that a merge producing an invalid config is refused."""
        db.merge_user_curation_config("alice", {"articles_sent_today": 2})

        with pytest.raises(ValidationError):
            db.merge_user_curation_config("alice", {"articles_sent_today": "lots"})

        assert db.read_user_curation_config("alice").articles_sent_today == 2


class TestSeenArticles:
    """Tests for the per-user seen-set."""

    def test_add_and_check(self, db: CurationDatabase):
        """Test membership after adding an article."""
        db.add_seen_article("alice", SeenArticle(url_hash="abc", url="https://a.com", seen_at=NOW))

        assert db.has_seen_article("alice", "abc")
        assert not db.has_seen_article("alice", "def")
        assert not db.has_seen_article("bob", "abc")

    def test_existing_entry_is_kept(self, db: CurationDatabase):
        """Test that re-adding a hash keeps the first entry."""
        db.add_seen_article(
            "alice", SeenArticle(url_hash="abc", url="https://a.com", title="First", seen_at=NOW)
        )
        db.add_seen_article(
            "alice",
            SeenArticle(url_hash="abc", url="https://a.com", title="Second", seen_at=NOW + timedelta(hours=1)),
        )

        seen = db.get_seen_articles("alice")

        assert len(seen) == 1
        assert seen[0].title == "First"

    def test_get_seen_most_recent_first(self, db: CurationDatabase):
        """Test ordering and limit of seen articles."""
        for i in range(3):
            db.add_seen_article(
                "alice",
                SeenArticle(url_hash=f"h{i}", url=f"https://a.com/{i}", seen_at=NOW + timedelta(minutes=i)),
            )

        seen = db.get_seen_articles("alice", limit=2)

        assert [s.url_hash for s in seen] == ["h2", "h1"]


class TestMessages:
    """Tests for chat message storage."""

    def test_add_message(self, db: CurationDatabase):
        """Test storing a message with metadata."""
        message_id = db.add_message(
            "alice", "assistant", "Hello", message_type="proactive_news", metadata={"article_count": 2}
        )

        messages = db.get_messages("alice")

        assert len(messages) == 1
        assert messages[0]["id"] == message_id
        assert messages[0]["role"] == "assistant"
        assert messages[0]["content"] == "Hello"
        assert messages[0]["metadata"] == {"article_count": 2}
        assert messages[0]["is_public"] is False

    def test_filter_by_type(self, db: CurationDatabase):
        """Test filtering messages by type."""
        db.add_message("alice", "user", "hi")
        db.add_message("alice", "assistant", "news", message_type="proactive_news")

        messages = db.get_messages("alice", message_type="proactive_news")

        assert [m["content"] for m in messages] == ["news"]


class TestProfileCache:
    """Tests for the interest profile cache."""

    def test_fresh_profile_is_returned(self, db: CurationDatabase):
        """Test reading a profile cached just now."""
        profile = InterestProfile(topics=["ai"], entities=["OpenAI"])
        db.cache_profile("alice", profile)

        assert db.get_cached_profile("alice", timedelta(hours=24)) == profile

    def test_expired_profile_is_ignored(self, db: CurationDatabase):
        """Test that an old cache entry is a miss."""
        db.cache_profile("alice", InterestProfile(topics=["ai"]))
        with db._get_connection() as conn:
            conn.execute(
                "UPDATE profile_cache SET cached_at = ?",
                ((utcnow() - timedelta(hours=25)).isoformat(),),
            )
            conn.commit()

        assert db.get_cached_profile("alice", timedelta(hours=24)) is None

    def test_missing_profile(self, db: CurationDatabase):
        assert db.get_cached_profile("nobody", timedelta(hours=24)) is None


class TestRunStats:
    """Tests for job statistics."""

    def test_no_stats(self, db: CurationDatabase):
        assert db.read_run_stats() is None

    def test_merge_overwrites_last_run(self, db: CurationDatabase):
        """Test that each run replaces the previous run's fields."""
        db.merge_run_stats(
            RunStats(
                last_run_status=RunStatus.FAILED,
                errors=[RunError(user_id="alice", error="boom")],
            )
        )
        db.merge_run_stats(RunStats(last_run_status=RunStatus.SUCCESS, users_processed=3, articles_sent=7))

        stats = db.read_run_stats()

        assert stats.last_run_status == RunStatus.SUCCESS
        assert stats.users_processed == 3
        assert stats.articles_sent == 7
        assert stats.errors == []

    def test_stats_are_per_job(self, db: CurationDatabase):
        """Test that jobs do not share stats documents."""
        db.merge_run_stats(RunStats(last_run_status=RunStatus.PARTIAL), job="other_job")

        assert db.read_run_stats() is None
        assert db.read_run_stats("other_job").last_run_status == RunStatus.PARTIAL
