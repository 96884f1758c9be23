from pydantic import BaseModel, Field
from typing import Optional

from jobpipeline.schemas.posting import Posting


class JobPreferences(BaseModel):
    job_titles: list[str] = Field(min_length=1)
    locations: list[str] = Field(default_factory=list)
    experience_level: Optional[str] = None
    remote_only: bool = False
    salary_min: Optional[int] = None
    salary_max: Optional[int] = None


class MatchResult(Posting):
    similarity_score: float = Field(ge=0.0, le=1.0)
    match_reasons: list[str] = Field(default_factory=list)
    fallback: bool = False
