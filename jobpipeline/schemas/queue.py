from pydantic import BaseModel, Field
from typing import Optional

from jobpipeline.schemas.posting import Source


class ScrapeTaskRequest(BaseModel):
    user_id: str = Field(min_length=1)
    sources: Optional[list[Source]] = Field(default=None, min_length=1)


class BatchScrapeTaskRequest(BaseModel):
    # None means every user with preferences
    user_ids: Optional[list[str]] = None


class MatchTaskRequest(BaseModel):
    user_id: str = Field(min_length=1)
    posting_ids: Optional[list[str]] = None


class EmailTaskRequest(BaseModel):
    to: str = Field(min_length=3)
    subject: str
    body: str


class ManualScrapeRequest(BaseModel):
    user_id: str = Field(min_length=1)


class EnqueuedResponse(BaseModel):
    task_id: Optional[str] = None
    kind: str
    users: Optional[int] = None


class QueueCounts(BaseModel):
    waiting: int = 0
    active: int = 0
    completed: int = 0
    failed: int = 0
