"""
Source adapter registry.

Job-board sources are searched per (query, location); the company source
is searched per company descriptor.
"""

from typing import Dict, Iterable, Optional

from jobpipeline.schemas import Source
from jobpipeline.services.scrapers.base import BaseScraper, CompanyScraper, SourceAdapter
from jobpipeline.services.scrapers.company import CompanyPageScraper
from jobpipeline.services.scrapers.indeed import IndeedScraper
from jobpipeline.services.scrapers.linkedin import LinkedInScraper
from jobpipeline.services.scrapers.remotive import RemotiveScraper

SCRAPER_CLASSES = {
    Source.LINKEDIN: LinkedInScraper,
    Source.INDEED: IndeedScraper,
    Source.REMOTIVE: RemotiveScraper,
    Source.COMPANY: CompanyPageScraper,
}

JOB_BOARD_SOURCES = [Source.LINKEDIN, Source.INDEED, Source.REMOTIVE]
COMPANY_SOURCE = Source.COMPANY
ALL_SOURCES = JOB_BOARD_SOURCES + [COMPANY_SOURCE]


def get_scraper(source: Source, **kwargs) -> SourceAdapter:
    """Instantiate the adapter for a source."""
    try:
        scraper_class = SCRAPER_CLASSES[Source(source)]
    except (KeyError, ValueError):
        raise ValueError(f"No scraper registered for source: {source}")
    return scraper_class(**kwargs)


def build_adapters(
    sources: Optional[Iterable[Source]] = None,
    **kwargs,
) -> Dict[Source, SourceAdapter]:
    """Adapters for the given sources (all registered sources by default)."""
    return {Source(source): get_scraper(source, **kwargs) for source in (ALL_SOURCES if sources is None else sources)}


__all__ = [
    "BaseScraper",
    "CompanyScraper",
    "SourceAdapter",
    "LinkedInScraper",
    "IndeedScraper",
    "RemotiveScraper",
    "CompanyPageScraper",
    "JOB_BOARD_SOURCES",
    "COMPANY_SOURCE",
    "ALL_SOURCES",
    "get_scraper",
    "build_adapters",
]
