"""Hourly news curation: batch selection, per-user pipeline and run statistics."""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Awaitable, Callable
from zoneinfo import ZoneInfo

from mindclone_news.config import settings
from mindclone_news.delivery import MessageInjector, format_news_digest
from mindclone_news.models import (
    CandidateArticle,
    CurationConfig,
    CurationStatus,
    EligibleUser,
    InterestProfile,
    RunError,
    RunStats,
    RunStatus,
    RunSummary,
    ScoredArticle,
    SkipReason,
    UserResult,
    utcnow,
)
from mindclone_news.processing import InterestProfileBuilder, RelevanceScorer, SeenArticleTracker
from mindclone_news.search import BaseSearchEngine, create_search_engine
from mindclone_news.storage import CurationDatabase

logger = logging.getLogger(__name__)


class CurationRunError(RuntimeError):
    """A curation run failed outside the per-user loop."""


def _to_millis(value: datetime | None) -> int:
    return int(value.timestamp() * 1000) if value else 0


def record_failed_run(db: CurationDatabase, error: Exception, processing_time_ms: int = 0) -> None:
    """Store failed run statistics for a run that could not complete."""
    try:
        db.merge_run_stats(
            RunStats(
                last_run_status=RunStatus.FAILED,
                processing_time_ms=processing_time_ms,
                errors=[RunError(error=str(error))],
            )
        )
    except Exception:
        logger.exception("Could not record failed run statistics")


@dataclass
class RunContext:
    """State carried through one curation run."""

    started_at: float = field(default_factory=time.monotonic)
    results: list[UserResult] = field(default_factory=list)

    def elapsed_ms(self) -> int:
        return int((time.monotonic() - self.started_at) * 1000)


class NewsCurator:
    """Orchestrates curation runs across users."""

    def __init__(
        self,
        db: CurationDatabase,
        profile_builder: InterestProfileBuilder,
        search_engine: BaseSearchEngine,
        scorer: RelevanceScorer | None = None,
        tracker: SeenArticleTracker | None = None,
        injector: MessageInjector | None = None,
        formatter: Callable[[list[ScoredArticle], InterestProfile], str | None] = format_news_digest,
        clock: Callable[[], datetime] = utcnow,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.db = db
        self.profile_builder = profile_builder
        self.search_engine = search_engine
        self.scorer = scorer or RelevanceScorer()
        self.tracker = tracker or SeenArticleTracker(db)
        self.injector = injector or MessageInjector(db)
        self.formatter = formatter
        self.clock = clock
        self.sleep = sleep

        self.batch_size = settings.batch_size
        self.max_retries = settings.max_retries
        self.retry_base_delay_ms = settings.retry_base_delay_ms
        self.max_articles_per_day = settings.max_articles_per_day
        self.max_articles_per_run = settings.max_articles_per_run
        self.min_relevance_score = settings.min_relevance_score
        self.inactivity_threshold = timedelta(days=settings.inactivity_threshold_days)
        self.max_recorded_errors = settings.max_recorded_errors
        self.timezone = ZoneInfo(settings.curation_timezone)

    # Daily quota

    def day_start(self, now: datetime) -> datetime:
        """Midnight of now's calendar day in the curation timezone."""
        return now.astimezone(self.timezone).replace(hour=0, minute=0, second=0, microsecond=0)

    def needs_reset(self, config: CurationConfig, now: datetime) -> bool:
        """Whether the daily counter has not been reset yet today."""
        return config.last_reset_date is None or config.last_reset_date < self.day_start(now)

    # Batch selection

    def select_batch(self, batch_size: int | None = None) -> list[str]:
        """Pick the users to curate this run.

        Users must have been active recently, must not have curation disabled,
        and must not have used up today's quota. The rest are ordered by last
        check time (never checked first) so every user gets a turn.

        Args:
            batch_size: Maximum number of users, defaults to the configured size

        Returns:
            User ids to process, in order
        """
        if batch_size is None:
            batch_size = self.batch_size
        now = self.clock()
        active_since = now - self.inactivity_threshold

        eligible: list[EligibleUser] = []
        for user in self.db.read_eligible_user_ids():
            if user.last_active is None or user.last_active < active_since:
                continue

            config = user.curation_config or CurationConfig()
            if config.enabled is False:
                continue

            if (
                not self.needs_reset(config, now)
                and config.articles_sent_today >= self.max_articles_per_day
            ):
                continue

            eligible.append(
                EligibleUser(
                    user_id=user.user_id,
                    last_check=_to_millis(config.last_check_timestamp),
                    consecutive_failures=config.consecutive_failures,
                )
            )

        eligible.sort(key=lambda u: u.last_check)
        batch = [u.user_id for u in eligible[:batch_size]]

        logger.info(f"Found {len(eligible)} eligible users, processing batch of {len(batch)}")
        return batch

    # Per-user pipeline

    def score_and_dedup(
        self, user_id: str, articles: list[CandidateArticle], profile: InterestProfile
    ) -> list[ScoredArticle]:
        """Drop seen articles, score the rest and keep the relevant ones.

        Args:
            user_id: User the articles are for
            articles: Candidate articles in search order
            profile: User interest profile

        Returns:
            Articles scoring at least the threshold, highest score first
        """
        scored = []
        for article in articles:
            if self.tracker.has_seen(user_id, article.url):
                continue

            score = self.scorer.score(article, profile)
            if score >= self.min_relevance_score:
                scored.append(ScoredArticle(**article.model_dump(), score=score))

        scored.sort(key=lambda a: a.score, reverse=True)
        return scored

    def _mark_checked(self, user_id: str) -> None:
        self.db.merge_user_curation_config(user_id, {"last_check_timestamp": self.clock()})

    async def curate_news_for_user(self, user_id: str) -> UserResult:
        """Run the curation pipeline for one user.

        Errors are recorded against the user's config and returned as an
        error result rather than raised.
        """
        started_at = time.monotonic()
        logger.info(f"Processing user {user_id}")

        try:
            # 1. Profile
            profile = await self.profile_builder.build(user_id)
            if profile.is_empty:
                logger.info(f"No interests found for {user_id}, skipping")
                self._mark_checked(user_id)
                return UserResult(
                    user_id=user_id, status=CurationStatus.SKIPPED, reason=SkipReason.NO_INTERESTS
                )

            # 2. Search
            articles = await self.search_engine.search(profile)
            if not articles:
                logger.info(f"No articles found for {user_id}")
                self._mark_checked(user_id)
                return UserResult(
                    user_id=user_id, status=CurationStatus.SKIPPED, reason=SkipReason.NO_ARTICLES
                )
            logger.info(f"Found {len(articles)} candidate articles for {user_id}")

            # 3. Score and dedup
            scored = self.score_and_dedup(user_id, articles, profile)
            logger.info(f"{len(scored)} articles passed relevance threshold for {user_id}")
            if not scored:
                self._mark_checked(user_id)
                return UserResult(
                    user_id=user_id, status=CurationStatus.SKIPPED, reason=SkipReason.LOW_RELEVANCE
                )

            # 4. Daily quota
            now = self.clock()
            config = self.db.read_user_curation_config(user_id) or CurationConfig()
            needs_reset = self.needs_reset(config, now)
            sent_today = 0 if needs_reset else config.articles_sent_today
            remaining = self.max_articles_per_day - sent_today

            if remaining <= 0:
                # Leaves last_check_timestamp untouched, unlike the other skips
                logger.info(f"Daily limit reached for {user_id}")
                return UserResult(
                    user_id=user_id, status=CurationStatus.SKIPPED, reason=SkipReason.DAILY_LIMIT
                )

            # 5. Deliver
            to_send = scored[: min(remaining, self.max_articles_per_run)]
            logger.info(f"Sending {len(to_send)} articles to {user_id}")
            digest = self.formatter(to_send, profile)
            self.injector.deliver(user_id, digest, to_send)

            # 6. Mark seen
            for article in to_send:
                self.tracker.mark_seen(user_id, article)

            # 7. Update config
            updates = {
                "last_check_timestamp": now,
                "last_successful_check": now,
                "consecutive_failures": 0,
                "articles_sent_today": sent_today + len(to_send),
            }
            if needs_reset:
                updates["last_reset_date"] = now
            self.db.merge_user_curation_config(user_id, updates)

            processing_time_ms = int((time.monotonic() - started_at) * 1000)
            logger.info(f"Successfully processed {user_id} in {processing_time_ms}ms")

            return UserResult(
                user_id=user_id,
                status=CurationStatus.SUCCESS,
                articles_sent=len(to_send),
                avg_score=sum(a.score for a in to_send) / len(to_send),
                processing_time_ms=processing_time_ms,
            )

        except Exception as e:
            logger.exception(f"Error processing user {user_id}: {e}")

            config = self.db.read_user_curation_config(user_id) or CurationConfig()
            self.db.merge_user_curation_config(
                user_id,
                {
                    "last_check_timestamp": self.clock(),
                    "consecutive_failures": config.consecutive_failures + 1,
                },
            )
            return UserResult(user_id=user_id, status=CurationStatus.ERROR, error=str(e))

    async def process_user_with_retry(
        self, user_id: str, max_retries: int | None = None
    ) -> UserResult:
        """Curate one user, retrying failed attempts with exponential backoff.

        Attempt n (from 0) is followed by a wait of base_delay * 2**n before
        the next one. An attempt fails if it raises or returns an error result.

        Args:
            user_id: User to curate
            max_retries: Extra attempts after the first, defaults to settings

        Returns:
            The first non-error result, or an error with retries_exhausted set
        """
        if max_retries is None:
            max_retries = self.max_retries

        last_error = "Unknown error"
        for attempt in range(max_retries + 1):
            try:
                result = await self.curate_news_for_user(user_id)
            except Exception as e:
                last_error = str(e)
            else:
                if result.status != CurationStatus.ERROR:
                    return result
                last_error = result.error or last_error

            logger.warning(
                f"Attempt {attempt + 1}/{max_retries + 1} failed for {user_id}: {last_error}"
            )
            if attempt < max_retries:
                delay_ms = self.retry_base_delay_ms * 2**attempt
                await self.sleep(delay_ms / 1000)

        return UserResult(
            user_id=user_id,
            status=CurationStatus.ERROR,
            error=last_error,
            retries_exhausted=True,
        )

    # Runs

    def _summarize(self, context: RunContext) -> RunSummary:
        results = context.results
        successes = [r for r in results if r.status == CurationStatus.SUCCESS]
        error_count = sum(1 for r in results if r.status == CurationStatus.ERROR)
        skipped_count = sum(1 for r in results if r.status == CurationStatus.SKIPPED)

        scores = [r.avg_score for r in successes if r.avg_score is not None]

        if error_count == 0:
            status = RunStatus.SUCCESS
        elif successes:
            status = RunStatus.PARTIAL
        else:
            status = RunStatus.FAILED

        return RunSummary(
            status=status,
            users_processed=len(results),
            success_count=len(successes),
            error_count=error_count,
            skipped_count=skipped_count,
            articles_sent=sum(r.articles_sent or 0 for r in results),
            avg_score=sum(scores) / len(scores) if scores else 0.0,
            processing_time_ms=context.elapsed_ms(),
            results=results,
        )

    def _record_failure(self, context: RunContext, error: Exception) -> None:
        record_failed_run(self.db, error, processing_time_ms=context.elapsed_ms())

    async def run_batch(self, batch_size: int | None = None) -> RunSummary:
        """Run one curation pass over a batch of users.

        Users are processed one at a time. A user's failure never stops the
        run; a failure selecting users or recording statistics does.

        Returns:
            Summary of the run

        Raises:
            CurationRunError: If the run could not complete
        """
        context = RunContext()
        logger.info("=" * 50)
        logger.info("Starting news curation run")
        logger.info("=" * 50)

        try:
            batch = self.select_batch(batch_size)

            if not batch:
                logger.info("No users to process")
                self.db.merge_run_stats(
                    RunStats(
                        last_run_status=RunStatus.SUCCESS,
                        processing_time_ms=context.elapsed_ms(),
                    )
                )
                return RunSummary(status=RunStatus.SUCCESS, processing_time_ms=context.elapsed_ms())

            for user_id in batch:
                context.results.append(await self.process_user_with_retry(user_id))

            summary = self._summarize(context)
            errors = [
                RunError(user_id=r.user_id, error=r.error or "Unknown error")
                for r in context.results
                if r.status == CurationStatus.ERROR
            ]
            self.db.merge_run_stats(
                RunStats(
                    last_run_status=summary.status,
                    users_processed=len(batch),
                    articles_sent=summary.articles_sent,
                    processing_time_ms=summary.processing_time_ms,
                    errors=errors[: self.max_recorded_errors],
                )
            )

        except Exception as e:
            logger.exception(f"Fatal error in curation run: {e}")
            self._record_failure(context, e)
            raise CurationRunError("Curation run failed") from e

        logger.info("=" * 50)
        logger.info(
            f"Completed: {summary.success_count} success, {summary.error_count} errors, "
            f"{summary.skipped_count} skipped, {summary.articles_sent} articles sent "
            f"in {summary.processing_time_ms}ms"
        )
        logger.info("=" * 50)
        return summary


def create_curator(db: CurationDatabase | None = None) -> NewsCurator:
    """Build a curator with the configured collaborators."""
    db = db or CurationDatabase()
    return NewsCurator(
        db=db,
        profile_builder=InterestProfileBuilder(db),
        search_engine=create_search_engine(),
    )
