"""
Persistence Gateway - idempotent storage of discovered postings

Postings are keyed by (url, user_id). Inserting the same pair twice is a
no-op on the second call (INSERT ... ON CONFLICT DO NOTHING), which keeps
scrape tasks safe under at-least-once re-execution.

Also reads the minimal user data a scrape/match run is rebuilt from:
preferences and followed companies.
"""

import logging
import uuid
from typing import Iterable, List, Optional

from pydantic import ValidationError
from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from jobpipeline.exceptions import ConfigurationError, SoftPersistenceFailure
from jobpipeline.metrics import POSTINGS_SAVED
from jobpipeline.models import Company, JobPosting, JobPreference
from jobpipeline.schemas import CompanyTarget, JobPreferences, Posting, ScrapeConfig, Source

logger = logging.getLogger(__name__)

_INSERT_BY_DIALECT = {
    "sqlite": sqlite_insert,
    "postgresql": postgresql_insert,
}


class PostingGateway:
    """
    Async gateway over the postings, preferences and companies tables.

    Attributes:
        session_factory: async_sessionmaker bound to the target database
    """

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    @staticmethod
    def _insert(dialect_name: str):
        try:
            return _INSERT_BY_DIALECT[dialect_name]
        except KeyError:
            raise NotImplementedError(f"Upsert not supported for dialect: {dialect_name}")

    async def upsert(self, posting: Posting, user_id: str) -> bool:
        """
        Insert a posting for a user unless the (url, user) pair exists.

        Returns:
            True if a row was inserted, False if it already existed

        Raises:
            SoftPersistenceFailure: the write itself failed
        """
        try:
            async with self.session_factory() as session:
                insert = self._insert(session.bind.dialect.name)
                stmt = insert(JobPosting).values(
                    id=str(uuid.uuid4()),
                    posting_id=posting.id,
                    user_id=user_id,
                    title=posting.title[:500],
                    company_name=posting.company_name[:500],
                    description=posting.description,
                    url=posting.url,
                    location=posting.location,
                    salary_range=posting.salary_range[:100] if posting.salary_range else None,
                    posted_date=posting.posted_date,
                    source=posting.source.value,
                    sent=False,
                ).on_conflict_do_nothing(index_elements=["url", "user_id"])

                result = await session.execute(stmt)
                await session.commit()
                inserted = result.rowcount == 1

        except SQLAlchemyError as e:
            raise SoftPersistenceFailure(posting.url, e) from e

        if inserted:
            POSTINGS_SAVED.inc()
        return inserted

    async def save_postings(self, postings: Iterable[Posting], user_id: str) -> int:
        """
        Upsert postings one by one; failures are logged and skipped.

        Returns:
            Number of rows actually inserted
        """
        saved = 0
        for posting in postings:
            try:
                if await self.upsert(posting, user_id):
                    saved += 1
            except SoftPersistenceFailure as e:
                logger.warning(str(e))
        return saved

    async def update_score(self, user_id: str, posting_id: str, score: float) -> int:
        """Write the latest similarity score back; returns rows updated."""
        async with self.session_factory() as session:
            result = await session.execute(
                update(JobPosting)
                .where(JobPosting.user_id == user_id, JobPosting.posting_id == posting_id)
                .values(similarity_score=score)
            )
            await session.commit()
            return result.rowcount

    async def get_postings(
        self,
        user_id: str,
        posting_ids: Optional[List[str]] = None,
        unsent_only: bool = False,
    ) -> List[Posting]:
        """Load a user's persisted postings, newest first."""
        query = select(JobPosting).where(JobPosting.user_id == user_id)
        if posting_ids:
            query = query.where(JobPosting.posting_id.in_(posting_ids))
        if unsent_only:
            query = query.where(JobPosting.sent.is_(False))
        query = query.order_by(JobPosting.created_at.desc())

        async with self.session_factory() as session:
            rows = (await session.execute(query)).scalars().all()

        return [
            Posting(
                id=row.posting_id,
                title=row.title,
                company_name=row.company_name,
                description=row.description or "",
                url=row.url,
                location=row.location,
                salary_range=row.salary_range,
                posted_date=row.posted_date,
                source=Source(row.source),
            )
            for row in rows
        ]

    async def get_preferences(self, user_id: str) -> Optional[JobPreferences]:
        """Most recent preferences of a user, or None when unusable."""
        async with self.session_factory() as session:
            result = await session.execute(
                select(JobPreference)
                .where(JobPreference.user_id == user_id)
                .order_by(JobPreference.created_at.desc())
                .limit(1)
            )
            row = result.scalar_one_or_none()

        if row is None:
            return None

        try:
            return JobPreferences(
                job_titles=row.job_titles or [],
                locations=row.locations or [],
                experience_level=row.experience_level,
                remote_only=bool(row.remote_only),
                salary_min=row.salary_min,
                salary_max=row.salary_max,
            )
        except ValidationError as e:
            logger.warning(f"Unusable preferences for user {user_id}: {e}")
            return None

    async def get_companies(self, user_id: str) -> List[CompanyTarget]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(Company).where(Company.user_id == user_id, Company.active.is_(True))
            )
            rows = result.scalars().all()

        return [
            CompanyTarget(name=row.name, career_url=row.career_page_url, job_board_url=row.job_board_url)
            for row in rows
        ]

    async def get_active_user_ids(self) -> List[str]:
        """Users that have preferences and can therefore be scraped."""
        async with self.session_factory() as session:
            result = await session.execute(select(JobPreference.user_id).distinct())
            return [row[0] for row in result.all()]

    async def build_scrape_config(
        self,
        user_id: str,
        sources: Optional[List[str]] = None,
    ) -> ScrapeConfig:
        """
        Rebuild a scrape run from stored data.

        Raises:
            ConfigurationError: the user has no usable preferences
        """
        preferences = await self.get_preferences(user_id)
        if preferences is None:
            raise ConfigurationError(f"No job preferences configured for user {user_id}")

        companies = await self.get_companies(user_id)

        try:
            return ScrapeConfig(
                user_id=user_id,
                search_queries=preferences.job_titles,
                locations=preferences.locations,
                companies=companies,
                enabled_sources=sources,
            )
        except ValidationError as e:
            raise ConfigurationError(f"Invalid scrape configuration for user {user_id}: {e}") from e
