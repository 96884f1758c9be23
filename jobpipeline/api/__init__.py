from fastapi import APIRouter
from jobpipeline.api import queue, scrape

api_router = APIRouter()
api_router.include_router(queue.router, prefix="/queue", tags=["queue"])
api_router.include_router(scrape.router, prefix="/scrape", tags=["scrape"])
