"""
Celery Application Configuration

Configures Celery for the discovery pipeline with:
- Redis as message broker and result backend
- One queue per task kind, each with its own retry/retention policy
- Late acknowledgement so a lost worker means re-execution, not loss

Usage:
    # Start worker for all queues:
    celery -A jobpipeline.celery worker -Q scrape,batch-scrape,ai-match,email --loglevel=info

    # Enqueue a task:
    from jobpipeline.tasks.queue import enqueue_scrape
    enqueue_scrape("user-123")
"""

from dataclasses import dataclass
from typing import Tuple

from celery import Celery

from jobpipeline.config import get_settings

settings = get_settings()

SCRAPE = "scrape"
BATCH_SCRAPE = "batch-scrape"
AI_MATCH = "ai-match"
SEND_EMAIL = "send-email"

TASK_KINDS = (SCRAPE, BATCH_SCRAPE, AI_MATCH, SEND_EMAIL)


@dataclass(frozen=True)
class QueuePolicy:
    """
    Retry and retention policy of one task kind.

    attempts counts the first execution; backoff is "exponential"
    (delay * 2**retries) or "fixed". Retention pairs are (count, age seconds).
    """

    queue: str
    attempts: int
    backoff: str
    delay: float
    keep_completed: Tuple[int, int]
    keep_failed: Tuple[int, int]

    @property
    def max_retries(self) -> int:
        return self.attempts - 1

    def countdown(self, retries: int) -> float:
        """Seconds to wait before retry number retries + 1."""
        if self.backoff == "exponential":
            return self.delay * (2 ** retries)
        return self.delay


QUEUE_POLICIES = {
    SCRAPE: QueuePolicy(
        queue="scrape", attempts=3, backoff="exponential", delay=2.0,
        keep_completed=(100, 3600), keep_failed=(500, 7200),
    ),
    BATCH_SCRAPE: QueuePolicy(
        queue="batch-scrape", attempts=3, backoff="exponential", delay=2.0,
        keep_completed=(100, 3600), keep_failed=(500, 7200),
    ),
    AI_MATCH: QueuePolicy(
        queue="ai-match", attempts=2, backoff="fixed", delay=5.0,
        keep_completed=(50, 3600), keep_failed=(200, 7200),
    ),
    SEND_EMAIL: QueuePolicy(
        queue="email", attempts=5, backoff="exponential", delay=3.0,
        keep_completed=(100, 7200), keep_failed=(500, 86400),
    ),
}

TASK_NAMES = {
    SCRAPE: "jobpipeline.tasks.jobs.scrape_user",
    BATCH_SCRAPE: "jobpipeline.tasks.jobs.batch_scrape",
    AI_MATCH: "jobpipeline.tasks.jobs.match_user_jobs",
    SEND_EMAIL: "jobpipeline.tasks.jobs.send_email",
}

# Create Celery app
celery_app = Celery(
    "job_discovery",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
)

# Configure Celery
celery_app.conf.update(
    # Task settings
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,

    # Worker settings
    worker_prefetch_multiplier=1,  # Fair task distribution
    worker_concurrency=4,

    # Result settings
    result_expires=3600,
    task_track_started=True,

    # Retry settings
    task_acks_late=True,  # Acknowledge after completion
    task_reject_on_worker_lost=True,

    # Task routing: one queue per kind
    task_routes={
        TASK_NAMES[kind]: {"queue": policy.queue}
        for kind, policy in QUEUE_POLICIES.items()
    },

    task_default_queue="default",
)

# Autodiscover tasks
celery_app.autodiscover_tasks(["jobpipeline.tasks"], related_name="jobs")
