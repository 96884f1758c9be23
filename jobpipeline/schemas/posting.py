from enum import Enum
from pydantic import BaseModel, model_validator
from datetime import datetime
from typing import Optional

from jobpipeline.services.deduplicator import posting_key


class Source(str, Enum):
    LINKEDIN = "linkedin"
    INDEED = "indeed"
    REMOTIVE = "remotive"
    COMPANY = "company"
    # Produced by adapters in degraded mode
    SAMPLE = "sample"


class Posting(BaseModel):
    title: str
    company_name: str
    description: str = ""
    url: str
    location: Optional[str] = None
    salary_range: Optional[str] = None
    posted_date: Optional[datetime] = None
    source: Source
    id: str = ""

    @model_validator(mode="after")
    def _derive_id(self) -> "Posting":
        if not self.id:
            self.id = posting_key(self.url)
        return self
