from fastapi import APIRouter, HTTPException, status
from kombu.exceptions import OperationalError

from jobpipeline.celery import AI_MATCH, BATCH_SCRAPE, SCRAPE, SEND_EMAIL
from jobpipeline.schemas import (
    BatchScrapeTaskRequest,
    EmailTaskRequest,
    EnqueuedResponse,
    MatchTaskRequest,
    QueueCounts,
    ScrapeTaskRequest,
)
from jobpipeline.tasks.queue import (
    enqueue_ai_match,
    enqueue_batch_scrape,
    enqueue_email,
    enqueue_scrape,
    get_queue_stats,
)

router = APIRouter()


def broker_unavailable(exc: Exception) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=f"Task broker unavailable: {exc}",
    )


# Broker calls block, so these are plain def endpoints (run in the threadpool)

@router.post("/scrape", response_model=EnqueuedResponse)
def queue_scrape(request: ScrapeTaskRequest):
    sources = [s.value for s in request.sources] if request.sources is not None else None
    try:
        task_id = enqueue_scrape(request.user_id, sources)
    except OperationalError as e:
        raise broker_unavailable(e)
    return EnqueuedResponse(task_id=task_id, kind=SCRAPE)


@router.post("/batch-scrape", response_model=EnqueuedResponse)
def queue_batch_scrape(request: BatchScrapeTaskRequest):
    try:
        task_id = enqueue_batch_scrape(request.user_ids)
    except OperationalError as e:
        raise broker_unavailable(e)
    users = len(request.user_ids) if request.user_ids is not None else None
    return EnqueuedResponse(task_id=task_id, kind=BATCH_SCRAPE, users=users)


@router.post("/ai-match", response_model=EnqueuedResponse)
def queue_ai_match(request: MatchTaskRequest):
    try:
        task_id = enqueue_ai_match(request.user_id, request.posting_ids)
    except OperationalError as e:
        raise broker_unavailable(e)
    return EnqueuedResponse(task_id=task_id, kind=AI_MATCH)


@router.post("/send-email", response_model=EnqueuedResponse)
def queue_send_email(request: EmailTaskRequest):
    try:
        task_id = enqueue_email(request.to, request.subject, request.body)
    except OperationalError as e:
        raise broker_unavailable(e)
    return EnqueuedResponse(task_id=task_id, kind=SEND_EMAIL)


@router.get("/stats", response_model=dict[str, QueueCounts])
def queue_stats():
    return get_queue_stats()
