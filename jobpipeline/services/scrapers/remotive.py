"""Remotive - public JSON API for remote jobs (no key required)."""

from datetime import datetime
from typing import List, Optional

from bs4 import BeautifulSoup

from jobpipeline.schemas import Posting, Source
from jobpipeline.services.scrapers.base import BaseScraper

MAX_RESULTS = 10
DESCRIPTION_LENGTH = 200


class RemotiveScraper(BaseScraper):
    source = Source.REMOTIVE
    base_url = "https://remotive.com"
    api_url = "https://remotive.com/api/remote-jobs"

    async def fetch_jobs(self, query: str, location: str) -> List[Posting]:
        # Every Remotive listing is remote, location is not a filter here
        data = await self.get_json(self.api_url, params={"search": query, "limit": 50})

        needle = query.lower()
        postings = []
        for hit in data.get("jobs", []):
            title = hit.get("title", "")
            tags = [t.lower() for t in hit.get("tags") or []]
            if needle not in title.lower() and not any(needle in t for t in tags):
                continue

            posting = self._parse_job(hit)
            if posting:
                postings.append(posting)
            if len(postings) >= MAX_RESULTS:
                break

        return postings

    def _parse_job(self, data: dict) -> Optional[Posting]:
        if not data.get("url") or not data.get("title"):
            return None

        description = data.get("description") or ""
        if description:
            description = BeautifulSoup(description, "html.parser").get_text(" ", strip=True)

        posted_date = None
        if data.get("publication_date"):
            try:
                posted_date = datetime.fromisoformat(data["publication_date"].replace("Z", "+00:00"))
            except ValueError:
                posted_date = None

        return Posting(
            title=data["title"],
            company_name=data.get("company_name") or "Unknown Company",
            description=description[:DESCRIPTION_LENGTH] or "Remote job opportunity",
            url=data["url"],
            location="Remote",
            salary_range=data.get("salary") or None,
            posted_date=posted_date,
            source=self.source,
        )
