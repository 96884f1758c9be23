"""
Background Tasks for the Discovery Pipeline

Celery tasks, one per queue:
- scrape_user (scrape): discover and persist postings for one user, then
  enqueue ai-match for that user
- batch_scrape (batch-scrape): fan out one scrape per user
- match_user_jobs (ai-match): score persisted postings, write scores back
- send_email (email): SMTP delivery

All tasks support:
- Retries with the kind's backoff policy (ConfigurationError is final)
- Prometheus metrics
- At-least-once execution: every payload is safe to run twice

Each invocation runs its coroutine on a fresh event loop with its own
database engine and Redis client.
"""

import asyncio
import logging
import smtplib
import time
from contextlib import asynccontextmanager
from typing import Dict, List, Optional

from jobpipeline.celery import AI_MATCH, BATCH_SCRAPE, QUEUE_POLICIES, SCRAPE, SEND_EMAIL, TASK_NAMES, celery_app
from jobpipeline.config import get_settings
from jobpipeline.database import create_session_factory, init_db
from jobpipeline.exceptions import ConfigurationError
from jobpipeline.metrics import TASK_DURATION, TASK_FAILURES
from jobpipeline.schemas import MatchResult, ScrapeResult
from jobpipeline.services.ai_matcher import MatchingProcessor
from jobpipeline.services.cache import MatchCache
from jobpipeline.services.mailer import send_email_message
from jobpipeline.services.orchestrator import run_scraping
from jobpipeline.services.persistence import PostingGateway
from jobpipeline.services.scrapers import build_adapters
from jobpipeline.tasks.queue import enqueue_ai_match, enqueue_scrape

logger = logging.getLogger(__name__)


# ==================== Helper Functions ====================

def run_async(coro):
    """Run a coroutine to completion on a new event loop."""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


@asynccontextmanager
async def task_resources():
    """Gateway and cache bound to the current task's event loop."""
    engine, session_factory = create_session_factory()
    cache = MatchCache(get_settings().redis_url)
    try:
        await init_db(engine)
        yield PostingGateway(session_factory), cache
    finally:
        await cache.close()
        await engine.dispose()


def retry_with_policy(task, kind: str, exc: Exception):
    """Schedule a retry using the kind's backoff; re-raises exc when exhausted."""
    policy = QUEUE_POLICIES[kind]
    countdown = policy.countdown(task.request.retries)
    logger.error(
        f"{kind} task {task.request.id} failed "
        f"(attempt {task.request.retries + 1}/{policy.attempts}): {exc}"
    )
    return task.retry(exc=exc, countdown=countdown, max_retries=policy.max_retries)


async def _scrape_user(user_id: str, sources: Optional[List[str]]) -> ScrapeResult:
    async with task_resources() as (gateway, cache):
        config = await gateway.build_scrape_config(user_id, sources)
        adapters = build_adapters(config.enabled_sources, cache=cache)
        return await run_scraping(config, gateway, adapters)


async def _active_user_ids() -> List[str]:
    async with task_resources() as (gateway, _):
        return await gateway.get_active_user_ids()


async def _match_user_jobs(user_id: str, posting_ids: Optional[List[str]]) -> List[MatchResult]:
    settings = get_settings()
    async with task_resources() as (gateway, cache):
        preferences = await gateway.get_preferences(user_id)
        if preferences is None:
            raise ConfigurationError(f"No job preferences configured for user {user_id}")

        # Without explicit ids, match everything not yet notified
        postings = await gateway.get_postings(
            user_id, posting_ids=posting_ids, unsent_only=posting_ids is None
        )
        if not postings:
            logger.info(f"No postings to match for user {user_id}")
            return []

        processor = MatchingProcessor(cache=cache)
        try:
            results = await processor.batch_match(
                postings,
                preferences,
                user_id,
                batch_size=settings.match_batch_size,
                parallelism=settings.match_parallelism,
            )
        finally:
            await processor.close()

        for result in results:
            await gateway.update_score(user_id, result.id, result.similarity_score)
        return results


# ==================== Celery Tasks ====================

@celery_app.task(bind=True, name=TASK_NAMES[SCRAPE], max_retries=QUEUE_POLICIES[SCRAPE].max_retries)
def scrape_user(self, user_id: str, sources: Optional[List[str]] = None) -> dict:
    """
    Scrape all enabled sources for one user.

    Args:
        user_id: User whose preferences drive the search
        sources: Optional subset of source names (default: all)

    Returns:
        ScrapeResult fields plus the id of the follow-up ai-match task
    """
    start_time = time.time()

    try:
        result = run_async(_scrape_user(user_id, sources))
        match_task_id = enqueue_ai_match(user_id)

    except ConfigurationError as exc:
        TASK_FAILURES.labels(task_kind=SCRAPE).inc()
        logger.error(f"Scrape for user {user_id} not possible: {exc}")
        raise

    except Exception as exc:
        TASK_FAILURES.labels(task_kind=SCRAPE).inc()
        raise retry_with_policy(self, SCRAPE, exc)

    finally:
        TASK_DURATION.labels(task_kind=SCRAPE).observe(time.time() - start_time)

    return {
        **result.model_dump(),
        "partial": result.partial,
        "ai_match_task_id": match_task_id,
    }


@celery_app.task(bind=True, name=TASK_NAMES[BATCH_SCRAPE], max_retries=QUEUE_POLICIES[BATCH_SCRAPE].max_retries)
def batch_scrape(self, user_ids: Optional[List[str]] = None) -> dict:
    """
    Enqueue one scrape task per user.

    Args:
        user_ids: Users to scrape; None means every user with preferences

    Returns:
        Dict with the number of scrape tasks enqueued and their ids
    """
    start_time = time.time()

    try:
        if user_ids is None:
            user_ids = run_async(_active_user_ids())
        task_ids = [enqueue_scrape(user_id) for user_id in user_ids]

    except Exception as exc:
        TASK_FAILURES.labels(task_kind=BATCH_SCRAPE).inc()
        raise retry_with_policy(self, BATCH_SCRAPE, exc)

    finally:
        TASK_DURATION.labels(task_kind=BATCH_SCRAPE).observe(time.time() - start_time)

    logger.info(f"Batch scrape enqueued {len(task_ids)} scrape tasks")
    return {"enqueued": len(task_ids), "task_ids": task_ids}


@celery_app.task(bind=True, name=TASK_NAMES[AI_MATCH], max_retries=QUEUE_POLICIES[AI_MATCH].max_retries)
def match_user_jobs(self, user_id: str, posting_ids: Optional[List[str]] = None) -> dict:
    """
    Score a user's persisted postings and write the scores back.

    Args:
        user_id: Owner of the postings
        posting_ids: Optional subset of posting ids (default: unsent postings)

    Returns:
        Dict with match statistics and the top matches
    """
    start_time = time.time()

    try:
        results = run_async(_match_user_jobs(user_id, posting_ids))

    except ConfigurationError as exc:
        TASK_FAILURES.labels(task_kind=AI_MATCH).inc()
        logger.error(f"Matching for user {user_id} not possible: {exc}")
        raise

    except Exception as exc:
        TASK_FAILURES.labels(task_kind=AI_MATCH).inc()
        raise retry_with_policy(self, AI_MATCH, exc)

    finally:
        TASK_DURATION.labels(task_kind=AI_MATCH).observe(time.time() - start_time)

    top: List[Dict] = [
        {"posting_id": r.id, "title": r.title, "score": r.similarity_score}
        for r in results[:5]
    ]
    return {
        "matched": len(results),
        "fallback": sum(1 for r in results if r.fallback),
        "top": top,
    }


@celery_app.task(bind=True, name=TASK_NAMES[SEND_EMAIL], max_retries=QUEUE_POLICIES[SEND_EMAIL].max_retries)
def send_email(self, to: str, subject: str, body: str) -> dict:
    """Deliver one email via SMTP."""
    start_time = time.time()

    try:
        send_email_message(to, subject, body)

    except ConfigurationError as exc:
        TASK_FAILURES.labels(task_kind=SEND_EMAIL).inc()
        logger.error(f"Email to {to} not sent: {exc}")
        raise

    except (smtplib.SMTPException, OSError) as exc:
        TASK_FAILURES.labels(task_kind=SEND_EMAIL).inc()
        raise retry_with_policy(self, SEND_EMAIL, exc)

    finally:
        TASK_DURATION.labels(task_kind=SEND_EMAIL).observe(time.time() - start_time)

    return {"sent": True, "to": to}
