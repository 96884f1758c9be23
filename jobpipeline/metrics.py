"""
Prometheus Metrics for the Discovery Pipeline

Tracks:
- Scrape operations per source and outcome
- Completion-service calls and heuristic fallbacks
- Match cache hits/misses
- Queue task durations, failures and depth

Metrics Endpoint:
    GET /metrics - Prometheus-format metrics (see setup_metrics)
"""

import logging

from fastapi import FastAPI, Request, Response
from fastapi.responses import PlainTextResponse
from prometheus_client import (
    Counter,
    Gauge,
    Histogram,
    CONTENT_TYPE_LATEST,
    generate_latest,
    REGISTRY,
)

logger = logging.getLogger(__name__)

# ==================== Scraping ====================

SCRAPE_OPERATIONS = Counter(
    "scrape_operations_total",
    "Total number of source fetches",
    ["source", "status"]  # status: success, failure, degraded
)

SCRAPE_DURATION = Histogram(
    "scrape_duration_seconds",
    "Duration of a single source fetch including retries",
    ["source"],
    buckets=[0.5, 1, 2, 5, 10, 30, 60, 120]
)

POSTINGS_SAVED = Counter(
    "postings_saved_total",
    "Postings inserted by the persistence gateway"
)

# ==================== Matching ====================

MATCHING_REQUESTS = Counter(
    "matching_requests_total",
    "Completion-service matching calls",
    ["status"]  # success, failure
)

MATCHING_FALLBACKS = Counter(
    "matching_fallbacks_total",
    "Postings scored by the heuristic fallback"
)

MATCHING_TOKENS = Counter(
    "matching_tokens_total",
    "Tokens used by matching calls",
    ["model", "type"]  # type: prompt, completion
)

CACHE_HITS = Counter(
    "cache_hits_total",
    "Total cache hits",
    ["layer"]
)

CACHE_MISSES = Counter(
    "cache_misses_total",
    "Total cache misses",
    ["layer"]
)

# ==================== Queue ====================

TASK_DURATION = Histogram(
    "queue_task_duration_seconds",
    "Time spent executing queue tasks",
    ["task_kind"]
)

TASK_FAILURES = Counter(
    "queue_task_failures_total",
    "Number of queue task failures",
    ["task_kind"]
)

QUEUE_DEPTH = Gauge(
    "queue_depth",
    "Number of tasks waiting per queue",
    ["queue_name"]
)


def metrics_endpoint(request: Request) -> Response:
    """Prometheus scrape handler."""
    return PlainTextResponse(
        content=generate_latest(REGISTRY),
        media_type=CONTENT_TYPE_LATEST
    )


def setup_metrics(app: FastAPI) -> None:
    """Expose /metrics on the admin API."""
    app.add_route("/metrics", metrics_endpoint, methods=["GET"])
    logger.info("Prometheus metrics configured")


# ==================== Helper Functions ====================

def record_cache_hit(layer: str) -> None:
    CACHE_HITS.labels(layer=layer).inc()


def record_cache_miss(layer: str) -> None:
    CACHE_MISSES.labels(layer=layer).inc()


def record_scrape(source: str, status: str, duration: float) -> None:
    """Record one source fetch outcome and its duration."""
    SCRAPE_OPERATIONS.labels(source=source, status=status).inc()
    SCRAPE_DURATION.labels(source=source).observe(duration)


def update_queue_depth(queue_name: str, depth: int) -> None:
    QUEUE_DEPTH.labels(queue_name=queue_name).set(depth)
