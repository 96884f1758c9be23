"""
Source Adapter Base Classes

Two adapter shapes:
- BaseScraper: job boards searched by (query, location)
- CompanyScraper: a single company's careers page

Contract:
    An empty list means "searched, found none". Anything that prevents the
    search (network error, HTTP error status, block page) raises, so the
    orchestrator can record it as a soft failure.

Degraded mode:
    When scraping is disabled (no network in tests or local dev) adapters
    return deterministic sample postings instead of fetching. Sample
    postings carry Source.SAMPLE so they are never mistaken for real data.
"""

import logging
import random
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Dict, List, Optional
from urllib.parse import quote_plus, urljoin

import httpx

from jobpipeline.config import get_settings
from jobpipeline.exceptions import SourceUnavailableError
from jobpipeline.schemas import Posting, Source

logger = logging.getLogger(__name__)

# Desktop user agents rotated per request
USER_AGENTS = [
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
]

BROWSER_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
    "DNT": "1",
    "Upgrade-Insecure-Requests": "1",
}

# Markers of interstitial pages served instead of results
BLOCK_MARKERS = ("captcha", "verify you are human", "unusual traffic")


def random_user_agent() -> str:
    return random.choice(USER_AGENTS)


def absolute_url(base_url: str, href: str) -> str:
    """Resolve relative links against the source origin."""
    if href.startswith("http://") or href.startswith("https://"):
        return href
    return urljoin(base_url, href)


class SourceAdapter(ABC):
    """
    Shared HTTP plumbing for source adapters.

    Attributes:
        source: Source enum value stamped on produced postings
        base_url: Origin used to resolve relative links
        client: Optional shared httpx client (a per-call client otherwise)
        cache: Optional page cache with get_page/set_page
        enabled: False puts the adapter in degraded mode
    """

    source: Source = Source.SAMPLE
    base_url: str = ""

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        cache=None,
        enabled: Optional[bool] = None,
        timeout: Optional[float] = None,
    ):
        settings = get_settings()
        self.client = client
        self.cache = cache
        self.enabled = settings.scraping_enabled if enabled is None else enabled
        self.timeout = timeout or settings.fetch_timeout

    def _headers(self) -> Dict[str, str]:
        return {"User-Agent": random_user_agent(), **BROWSER_HEADERS}

    async def _request(self, client: httpx.AsyncClient, url: str, params: Optional[dict]) -> httpx.Response:
        try:
            response = await client.get(
                url,
                params=params,
                headers=self._headers(),
                timeout=self.timeout,
                follow_redirects=True,
            )
            response.raise_for_status()
            return response
        except httpx.HTTPError as e:
            raise SourceUnavailableError(self.source.value, f"request to {url} failed: {e}") from e

    async def get_text(self, url: str, params: Optional[dict] = None) -> str:
        """
        GET a page and return its body text.

        Checks the page cache first when one is configured.

        Raises:
            SourceUnavailableError: on transport errors, error statuses,
                or a bot-check interstitial
        """
        cache_url = str(httpx.URL(url, params=params)) if params else url
        if self.cache is not None:
            cached = await self.cache.get_page(cache_url)
            if cached:
                return cached

        if self.client is not None:
            response = await self._request(self.client, url, params)
        else:
            async with httpx.AsyncClient() as client:
                response = await self._request(client, url, params)

        text = response.text
        lowered = text[:20000].lower()
        if any(marker in lowered for marker in BLOCK_MARKERS):
            raise SourceUnavailableError(self.source.value, f"blocked by bot check at {url}")

        if self.cache is not None:
            await self.cache.set_page(cache_url, text)
        return text

    async def get_json(self, url: str, params: Optional[dict] = None) -> dict:
        if self.client is not None:
            response = await self._request(self.client, url, params)
        else:
            async with httpx.AsyncClient() as client:
                response = await self._request(client, url, params)
        try:
            return response.json()
        except ValueError as e:
            raise SourceUnavailableError(self.source.value, f"invalid JSON from {url}") from e


class BaseScraper(SourceAdapter):
    """Base class for job-board scrapers."""

    async def fetch(self, query: str, location: Optional[str] = None) -> List[Posting]:
        """Search the board for query in location."""
        location = location or "Remote"
        if not self.enabled:
            logger.info(f"{self.source.value} disabled, returning sample postings for '{query}'")
            return self.sample_postings(query, location)

        postings = await self.fetch_jobs(query, location)
        logger.info(f"{self.source.value}: {len(postings)} postings for '{query}' in {location}")
        return postings

    @abstractmethod
    async def fetch_jobs(self, query: str, location: str) -> List[Posting]:
        """Fetch postings from the source"""
        pass

    def sample_postings(self, query: str, location: str) -> List[Posting]:
        """Deterministic postings used in degraded mode."""
        slug = quote_plus(query.lower())
        now = datetime.now(timezone.utc)
        return [
            Posting(
                title=f"{query} - Remote Position",
                company_name="Tech Company Inc.",
                description=f"Looking for a skilled {query} to join our team.",
                url=f"https://example.com/{self.source.value}/{slug}/1",
                location=location,
                salary_range="$80,000 - $120,000",
                posted_date=now,
                source=Source.SAMPLE,
            ),
            Posting(
                title=f"Senior {query}",
                company_name="Innovation Labs",
                description=f"Senior {query} position with great benefits.",
                url=f"https://example.com/{self.source.value}/{slug}/2",
                location=location,
                salary_range="$100,000 - $150,000",
                posted_date=now,
                source=Source.SAMPLE,
            ),
        ]


class CompanyScraper(SourceAdapter):
    """Base class for company careers-page scrapers."""

    source = Source.COMPANY

    async def fetch(self, company_name: str, career_url: str) -> List[Posting]:
        """List openings on a company's careers page."""
        if not self.enabled:
            logger.info(f"company scraping disabled, returning sample posting for {company_name}")
            return self.sample_postings(company_name, career_url)

        postings = await self.fetch_jobs(company_name, career_url)
        logger.info(f"company: {len(postings)} postings for {company_name}")
        return postings

    @abstractmethod
    async def fetch_jobs(self, company_name: str, career_url: str) -> List[Posting]:
        pass

    def sample_postings(self, company_name: str, career_url: str) -> List[Posting]:
        return [
            Posting(
                title="Software Engineer",
                company_name=company_name,
                description=f"Job at {company_name}",
                url=career_url,
                location="Remote",
                posted_date=datetime.now(timezone.utc),
                source=Source.SAMPLE,
            )
        ]
