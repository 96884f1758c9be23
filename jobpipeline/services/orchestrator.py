"""
Scrape Orchestrator - multi-source discovery for one user

Flow:
    1. Validate the ScrapeConfig (ConfigurationError before any fetch)
    2. For every enabled source, search sequentially: job boards per
       (query, location), the company source per followed company.
       Sources run concurrently with each other.
    3. Every fetch is wrapped as retry(limiter(throttle(timeout(fetch)))),
       so a slot is held per attempt. A fetch that still fails is
       recorded in ScrapeResult.errors and the run carries on.
    4. Deduplicate by URL key, persist through the gateway, report counts.
"""

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Tuple, Union

from pydantic import ValidationError

from jobpipeline.exceptions import ConfigurationError
from jobpipeline.metrics import record_scrape
from jobpipeline.schemas import Posting, ScrapeConfig, ScrapeResult, Source
from jobpipeline.services.deduplicator import deduplicate
from jobpipeline.services.persistence import PostingGateway
from jobpipeline.services.scrapers import COMPANY_SOURCE, SourceAdapter, build_adapters
from jobpipeline.services.throttle import RateLimiter, ThrottleSettings, retry, throttle

logger = logging.getLogger(__name__)

SourceOutcome = Tuple[Source, List[Posting], List[str]]


def validate_config(config: Union[ScrapeConfig, Mapping[str, Any]]) -> ScrapeConfig:
    """Re-validate a config (or build one from a mapping)."""
    data = config.model_dump() if isinstance(config, ScrapeConfig) else config
    try:
        return ScrapeConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid scrape configuration: {e}") from e


def _describe(exc: BaseException) -> str:
    return str(exc) or type(exc).__name__


class ScrapeOrchestrator:
    """
    Runs one scrape for one user across all enabled sources.

    Attributes:
        adapters: Source -> adapter instance
        gateway: Persistence gateway postings are saved through
        throttle_settings: Delays, retries and timeout per fetch
        rate_limiter: Gate shared by every fetch of this orchestrator
    """

    def __init__(
        self,
        adapters: Dict[Source, SourceAdapter],
        gateway: PostingGateway,
        throttle_settings: Optional[ThrottleSettings] = None,
        rate_limiter: Optional[RateLimiter] = None,
    ):
        self.adapters = adapters
        self.gateway = gateway
        self.throttle_settings = throttle_settings or ThrottleSettings.from_settings()
        self.rate_limiter = rate_limiter or RateLimiter(self.throttle_settings.max_concurrent)

    def _enabled_sources(self, config: ScrapeConfig) -> List[Source]:
        if config.enabled_sources is None:
            return list(self.adapters)

        missing = [s.value for s in config.enabled_sources if s not in self.adapters]
        if missing:
            raise ConfigurationError(f"No adapter registered for sources: {', '.join(missing)}")
        # Preserve order, drop duplicates
        return list(dict.fromkeys(config.enabled_sources))

    async def _guarded_fetch(self, source: Source, fetch: Callable[[], Awaitable[List[Posting]]]) -> List[Posting]:
        settings = self.throttle_settings

        async def timed() -> List[Posting]:
            return await asyncio.wait_for(fetch(), timeout=settings.fetch_timeout)

        async def paced() -> List[Posting]:
            return await throttle(timed, settings.min_delay, settings.max_delay)

        async def gated() -> List[Posting]:
            # Slot is held per attempt, never across a backoff sleep
            return await self.rate_limiter.execute(paced)

        started = time.monotonic()
        try:
            postings = await retry(gated, settings.max_retries, settings.retry_base_delay)
        except Exception:
            record_scrape(source.value, "failure", time.monotonic() - started)
            raise

        adapter = self.adapters[source]
        status = "success" if getattr(adapter, "enabled", True) else "degraded"
        record_scrape(source.value, status, time.monotonic() - started)
        return postings

    async def _scrape_job_board(self, source: Source, config: ScrapeConfig) -> SourceOutcome:
        adapter = self.adapters[source]
        postings: List[Posting] = []
        errors: List[str] = []

        for query in config.search_queries:
            for location in config.locations:
                try:
                    found = await self._guarded_fetch(
                        source, lambda q=query, loc=location: adapter.fetch(q, loc)
                    )
                    postings.extend(found)
                except Exception as e:
                    message = f"{source.value} error for '{query}' in {location}: {_describe(e)}"
                    logger.warning(message)
                    errors.append(message)

        return source, postings, errors

    async def _scrape_companies(self, source: Source, config: ScrapeConfig) -> SourceOutcome:
        adapter = self.adapters[source]
        postings: List[Posting] = []
        errors: List[str] = []

        for company in config.companies:
            try:
                found = await self._guarded_fetch(
                    source, lambda c=company: adapter.fetch(c.name, c.career_url)
                )
                postings.extend(found)
            except Exception as e:
                message = f"company error for {company.name}: {_describe(e)}"
                logger.warning(message)
                errors.append(message)

        return source, postings, errors

    async def run_scraping(self, config: Union[ScrapeConfig, Mapping[str, Any]]) -> ScrapeResult:
        """
        Discover, deduplicate and persist postings for config.user_id.

        Raises:
            ConfigurationError: invalid config or unknown enabled source
        """
        config = validate_config(config)
        sources = self._enabled_sources(config)

        logger.info(
            f"Scraping for user {config.user_id}: {len(config.search_queries)} queries, "
            f"{len(config.locations)} locations, {len(config.companies)} companies, "
            f"sources={[s.value for s in sources]}"
        )

        runs = [
            self._scrape_companies(source, config) if source == COMPANY_SOURCE
            else self._scrape_job_board(source, config)
            for source in sources
        ]
        outcomes = await asyncio.gather(*runs)

        all_postings: List[Posting] = []
        errors: List[str] = []
        per_source: Dict[str, int] = {}
        for source, postings, source_errors in outcomes:
            per_source[source.value] = len(postings)
            all_postings.extend(postings)
            errors.extend(source_errors)

        unique = deduplicate(all_postings)
        saved = await self.gateway.save_postings(unique, config.user_id)

        result = ScrapeResult(
            jobs_found=len(all_postings),
            jobs_unique=len(unique),
            jobs_saved=saved,
            per_source=per_source,
            errors=errors,
        )
        logger.info(
            f"Scrape for user {config.user_id} done: found={result.jobs_found} "
            f"unique={result.jobs_unique} saved={result.jobs_saved} errors={len(errors)}"
        )
        return result


async def run_scraping(
    config: Union[ScrapeConfig, Mapping[str, Any]],
    gateway: PostingGateway,
    adapters: Optional[Dict[Source, SourceAdapter]] = None,
) -> ScrapeResult:
    """Run a scrape with default adapters and pacing from settings."""
    orchestrator = ScrapeOrchestrator(adapters or build_adapters(), gateway)
    return await orchestrator.run_scraping(config)
