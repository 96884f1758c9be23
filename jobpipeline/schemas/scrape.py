from pydantic import BaseModel, Field, field_validator
from typing import Optional

from jobpipeline.schemas.posting import Source

DEFAULT_LOCATIONS = ["Remote"]


class CompanyTarget(BaseModel):
    name: str = Field(min_length=1)
    career_url: str = Field(min_length=1)
    job_board_url: Optional[str] = None


class ScrapeConfig(BaseModel):
    user_id: str = Field(min_length=1)
    search_queries: list[str] = Field(min_length=1)
    locations: list[str] = Field(default_factory=lambda: list(DEFAULT_LOCATIONS))
    companies: list[CompanyTarget] = Field(default_factory=list)
    # None means every registered source
    enabled_sources: Optional[list[Source]] = None

    @field_validator("search_queries")
    @classmethod
    def _queries_not_blank(cls, value: list[str]) -> list[str]:
        queries = [q.strip() for q in value if q and q.strip()]
        if not queries:
            raise ValueError("at least one non-blank search query is required")
        return queries

    @field_validator("locations", mode="before")
    @classmethod
    def _default_locations(cls, value):
        locations = [loc.strip() for loc in value or [] if isinstance(loc, str) and loc.strip()]
        return locations or list(DEFAULT_LOCATIONS)

    @field_validator("enabled_sources")
    @classmethod
    def _sources_not_empty(cls, value: Optional[list[Source]]) -> Optional[list[Source]]:
        if value is not None and not value:
            raise ValueError("enabled_sources must name at least one source (omit it for all)")
        return value


class ScrapeResult(BaseModel):
    jobs_found: int = 0
    jobs_unique: int = 0
    jobs_saved: int = 0
    per_source: dict[str, int] = Field(default_factory=dict)
    errors: list[str] = Field(default_factory=list)

    @property
    def partial(self) -> bool:
        """True when at least one fetch failed."""
        return bool(self.errors)
