"""
Generic Company Careers-Page Scraper

Company sites share no structure, so openings are found by trying common
job-link selectors in order; the first selector that yields plausible links
wins. At most MAX_POSTINGS links per company.
"""

from typing import List

from bs4 import BeautifulSoup

from jobpipeline.schemas import Posting
from jobpipeline.services.scrapers.base import CompanyScraper, absolute_url

JOB_LINK_SELECTORS = [
    'a[href*="job"]',
    'a[href*="position"]',
    'a[href*="opening"]',
    ".job-item a",
    ".position-item a",
    "[data-job] a",
]

MAX_POSTINGS = 10
MIN_TITLE_LENGTH = 4
MAX_TITLE_LENGTH = 99


class CompanyPageScraper(CompanyScraper):

    async def fetch_jobs(self, company_name: str, career_url: str) -> List[Posting]:
        html = await self.get_text(career_url)
        soup = BeautifulSoup(html, "html.parser")

        links = []
        seen_urls = set()
        for selector in JOB_LINK_SELECTORS:
            for element in soup.select(selector):
                title = element.get_text(" ", strip=True)
                href = element.get("href")
                if not href or not (MIN_TITLE_LENGTH <= len(title) <= MAX_TITLE_LENGTH):
                    continue
                url = absolute_url(career_url, href)
                if url in seen_urls:
                    continue
                seen_urls.add(url)
                links.append((title, url))
            if links:
                break

        return [
            Posting(
                title=title,
                company_name=company_name,
                description=f"Job opening at {company_name}",
                url=url,
                location=None,
                source=self.source,
            )
            for title, url in links[:MAX_POSTINGS]
        ]
