from typing import List, Optional

from bs4 import BeautifulSoup, Tag

from jobpipeline.schemas import Posting, Source
from jobpipeline.services.scrapers.base import BaseScraper, absolute_url


class IndeedScraper(BaseScraper):
    """Scrapes Indeed search result cards."""

    source = Source.INDEED
    base_url = "https://www.indeed.com"

    async def fetch_jobs(self, query: str, location: str) -> List[Posting]:
        html = await self.get_text(f"{self.base_url}/jobs", params={"q": query, "l": location})
        soup = BeautifulSoup(html, "html.parser")

        postings = []
        for card in soup.select(".job_seen_beacon"):
            posting = self._parse_card(card, location)
            if posting:
                postings.append(posting)

        return postings

    def _parse_card(self, card: Tag, location: str) -> Optional[Posting]:
        link = card.select_one("a[data-jk]") or card.select_one("h2 a")
        if not link or not link.get("href"):
            return None

        title_el = card.select_one('[data-testid="job-title"]') or card.select_one("h2 a")
        company_el = card.select_one('[data-testid="company-name"]') or card.select_one(".companyName")
        location_el = card.select_one('[data-testid="text-location"]') or card.select_one(".companyLocation")
        salary_el = card.select_one(".salary-snippet-container") or card.select_one('[data-testid="attribute_snippet_testid"]')
        snippet_el = card.select_one(".job-snippet")

        title = title_el.get_text(strip=True) if title_el else ""
        if not title:
            return None

        return Posting(
            title=title,
            company_name=(company_el.get_text(strip=True) if company_el else "") or "Unknown Company",
            description=snippet_el.get_text(" ", strip=True) if snippet_el else f"Job opportunity for {title}",
            url=absolute_url(self.base_url, link["href"]),
            location=(location_el.get_text(strip=True) if location_el else "") or location,
            salary_range=salary_el.get_text(" ", strip=True) if salary_el else None,
            source=self.source,
        )
