from jobpipeline.schemas.posting import Posting, Source
from jobpipeline.schemas.matching import JobPreferences, MatchResult
from jobpipeline.schemas.scrape import CompanyTarget, ScrapeConfig, ScrapeResult
from jobpipeline.schemas.queue import (
    ScrapeTaskRequest,
    BatchScrapeTaskRequest,
    MatchTaskRequest,
    EmailTaskRequest,
    ManualScrapeRequest,
    EnqueuedResponse,
    QueueCounts,
)

__all__ = [
    "Posting",
    "Source",
    "JobPreferences",
    "MatchResult",
    "CompanyTarget",
    "ScrapeConfig",
    "ScrapeResult",
    "ScrapeTaskRequest",
    "BatchScrapeTaskRequest",
    "MatchTaskRequest",
    "EmailTaskRequest",
    "ManualScrapeRequest",
    "EnqueuedResponse",
    "QueueCounts",
]
