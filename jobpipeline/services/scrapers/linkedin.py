from datetime import datetime
from typing import List, Optional

from bs4 import BeautifulSoup, Tag

from jobpipeline.schemas import Posting, Source
from jobpipeline.services.scrapers.base import BaseScraper, absolute_url


class LinkedInScraper(BaseScraper):
    """Scrapes the public (guest) LinkedIn job search listing."""

    source = Source.LINKEDIN
    base_url = "https://www.linkedin.com"
    search_url = "https://www.linkedin.com/jobs-guest/jobs/api/seeMoreJobPostings/search"

    async def fetch_jobs(self, query: str, location: str) -> List[Posting]:
        params = {
            "keywords": query,
            "location": location,
            "f_JT": "F",  # full-time
            "start": 0,
        }
        if location.lower() == "remote":
            params["f_WT"] = "2"

        html = await self.get_text(self.search_url, params=params)
        soup = BeautifulSoup(html, "html.parser")

        postings = []
        cards = soup.select("div.base-card") or soup.select("li")
        for card in cards:
            posting = self._parse_card(card, location)
            if posting:
                postings.append(posting)

        return postings

    def _parse_card(self, card: Tag, location: str) -> Optional[Posting]:
        link = card.select_one("a.base-card__full-link") or card.select_one("a[href*='/jobs/view/']")
        title_el = card.select_one(".base-search-card__title")
        if not link or not link.get("href") or not title_el:
            return None

        company_el = card.select_one(".base-search-card__subtitle")
        location_el = card.select_one(".job-search-card__location")
        salary_el = card.select_one(".job-search-card__salary-info")
        time_el = card.select_one("time[datetime]")

        title = title_el.get_text(strip=True)
        company = company_el.get_text(strip=True) if company_el else ""

        posted_date = None
        if time_el:
            try:
                posted_date = datetime.fromisoformat(time_el["datetime"])
            except ValueError:
                posted_date = None

        return Posting(
            title=title,
            company_name=company or "Unknown Company",
            description=f"Job opportunity for {title} at {company or 'an undisclosed company'}",
            url=absolute_url(self.base_url, link["href"]),
            location=(location_el.get_text(strip=True) if location_el else "") or location,
            salary_range=salary_el.get_text(" ", strip=True) if salary_el else None,
            posted_date=posted_date,
            source=self.source,
        )
