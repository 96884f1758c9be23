"""
Job Discovery Pipeline - Admin API Entry Point

This module initializes the FastAPI application with:
- Database schema initialization
- Periodic scheduler that enqueues batch scrapes
- Prometheus metrics endpoint
- Queue and scrape routers

Architecture:
    FastAPI App
    ├── Lifespan Management (startup/shutdown)
    ├── /health, /metrics
    └── API Router
        ├── /queue - Enqueue tasks of any kind, queue statistics
        └── /scrape - Manual and all-users scrape triggers

Scraping and matching never run in this process; they run in the Celery
worker (celery -A jobpipeline.celery worker).
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from jobpipeline.api import api_router
from jobpipeline.config import get_settings
from jobpipeline.database import init_db
from jobpipeline.metrics import setup_metrics
from jobpipeline.scheduler import start_scheduler, stop_scheduler

settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application lifecycle events.

    Startup:
        1. Initialize database tables
        2. Start the batch-scrape scheduler

    Shutdown:
        1. Gracefully stop the scheduler
    """
    await init_db()
    start_scheduler()
    logger.info("Job discovery API started")
    yield
    stop_scheduler()


app = FastAPI(
    title="Job Discovery Pipeline API",
    description="Admin surface for the job discovery and matching queues",
    version="0.1.0",
    lifespan=lifespan,
)

setup_metrics(app)
app.include_router(api_router)


@app.get("/health")
async def health_check():
    return {"status": "healthy"}
