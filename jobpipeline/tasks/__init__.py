"""
Celery Task Modules

- jobs.py: scrape, batch-scrape, ai-match and send-email tasks
- ledger.py: per-kind task bookkeeping fed by Celery signals
- queue.py: enqueue helpers and queue statistics
"""

from jobpipeline.tasks.jobs import (
    scrape_user,
    batch_scrape,
    match_user_jobs,
    send_email,
)
from jobpipeline.tasks.ledger import TaskLedger, get_queue_stats

__all__ = [
    "scrape_user",
    "batch_scrape",
    "match_user_jobs",
    "send_email",
    "TaskLedger",
    "get_queue_stats",
]
