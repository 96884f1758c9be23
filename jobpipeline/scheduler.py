"""
Periodic Scrape Scheduler

Runs inside the admin API process (APScheduler) and only enqueues work:
every scrape_interval_hours a batch-scrape task is sent, which the worker
expands into one scrape per user with preferences.

Default Schedule: Every 6 hours (configurable via SCRAPE_INTERVAL_HOURS)
"""

import asyncio
import logging
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from jobpipeline.config import get_settings
from jobpipeline.tasks.queue import enqueue_batch_scrape

logger = logging.getLogger(__name__)

settings = get_settings()
scheduler = AsyncIOScheduler()

JOB_ID = "batch_scrape"


async def schedule_batch_scrape() -> Optional[str]:
    """
    Enqueue a batch-scrape for every user with preferences.

    The broker call is blocking, so it runs in the default executor.
    """
    try:
        task_id = await asyncio.get_running_loop().run_in_executor(
            None, enqueue_batch_scrape
        )
    except Exception as e:
        logger.error(f"Scheduled batch scrape could not be enqueued: {e}")
        return None

    logger.info(f"Scheduled batch scrape enqueued: {task_id}")
    return task_id


def start_scheduler():
    """Start the background scheduler"""
    scheduler.add_job(
        schedule_batch_scrape,
        trigger=IntervalTrigger(hours=settings.scrape_interval_hours),
        id=JOB_ID,
        replace_existing=True,
    )
    scheduler.start()
    logger.info(f"Scheduler started: batch scrape every {settings.scrape_interval_hours} hours")


def stop_scheduler():
    """Stop the background scheduler"""
    if scheduler.running:
        scheduler.shutdown()
