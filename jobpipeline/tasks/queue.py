"""
Enqueue helpers for the four task kinds.

All helpers are synchronous, carry only primitive identifiers and return
the Celery task id. Nothing is deduplicated: enqueueing the same payload
twice runs it twice, which every task tolerates.
"""

import logging
from typing import Any, List, Optional

from jobpipeline.celery import AI_MATCH, BATCH_SCRAPE, QUEUE_POLICIES, SCRAPE, SEND_EMAIL, TASK_NAMES, celery_app
from jobpipeline.tasks.ledger import get_queue_stats

logger = logging.getLogger(__name__)


def enqueue(kind: str, **payload: Any) -> str:
    """
    Enqueue a task of the given kind.

    Raises:
        ValueError: unknown kind
    """
    if kind not in TASK_NAMES:
        raise ValueError(f"Unknown task kind: {kind}")

    result = celery_app.send_task(
        TASK_NAMES[kind],
        kwargs=payload,
        queue=QUEUE_POLICIES[kind].queue,
    )
    logger.info(f"Enqueued {kind} task {result.id}")
    return result.id


def enqueue_scrape(user_id: str, sources: Optional[List[str]] = None) -> str:
    return enqueue(SCRAPE, user_id=user_id, sources=sources)


def enqueue_batch_scrape(user_ids: Optional[List[str]] = None) -> str:
    """None means every user with preferences, resolved by the worker."""
    return enqueue(BATCH_SCRAPE, user_ids=list(user_ids) if user_ids is not None else None)


def enqueue_ai_match(user_id: str, posting_ids: Optional[List[str]] = None) -> str:
    return enqueue(AI_MATCH, user_id=user_id, posting_ids=posting_ids)


def enqueue_email(to: str, subject: str, body: str) -> str:
    return enqueue(SEND_EMAIL, to=to, subject=subject, body=body)


__all__ = [
    "enqueue",
    "enqueue_scrape",
    "enqueue_batch_scrape",
    "enqueue_ai_match",
    "enqueue_email",
    "get_queue_stats",
]
