from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.concurrency import run_in_threadpool
from kombu.exceptions import OperationalError

from jobpipeline.celery import BATCH_SCRAPE, SCRAPE
from jobpipeline.database import async_session
from jobpipeline.schemas import EnqueuedResponse, ManualScrapeRequest
from jobpipeline.services.persistence import PostingGateway
from jobpipeline.tasks.queue import enqueue_batch_scrape, enqueue_scrape

router = APIRouter()


def get_gateway() -> PostingGateway:
    return PostingGateway(async_session)


@router.post("/manual", response_model=EnqueuedResponse)
async def manual_scrape(request: ManualScrapeRequest):
    try:
        task_id = await run_in_threadpool(enqueue_scrape, request.user_id)
    except OperationalError as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"Task broker unavailable: {e}",
        )
    return EnqueuedResponse(task_id=task_id, kind=SCRAPE, users=1)


@router.post("/all", response_model=EnqueuedResponse)
async def scrape_all(gateway: PostingGateway = Depends(get_gateway)):
    user_ids = await gateway.get_active_user_ids()
    if not user_ids:
        return EnqueuedResponse(task_id=None, kind=BATCH_SCRAPE, users=0)

    try:
        task_id = await run_in_threadpool(enqueue_batch_scrape, user_ids)
    except OperationalError as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"Task broker unavailable: {e}",
        )
    return EnqueuedResponse(task_id=task_id, kind=BATCH_SCRAPE, users=len(user_ids))
