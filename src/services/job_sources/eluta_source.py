"""
Eluta.ca Job Source

Canadian aggregator that lists postings pulled directly from employer
career sites. Search pages are rendered with the headless browser and
parsed with BeautifulSoup.
"""

import logging
from typing import List, Optional
from urllib.parse import urlencode

from src.common.job_search_config import TIER_BOARD, SourceConfig
from src.common.locations import split_location
from src.common.retry import call_with_retry
from src.common.types import JobListing, SearchParams

from . import JobSource
from .browser import HeadlessBrowser
from .html_parsing import absolute_url, select_attr, select_cards, select_text, soup_of

logger = logging.getLogger(__name__)

ELUTA_BASE_URL = "https://www.eluta.ca"

CARD_SELECTORS = ["div.organic-job", ".job-listing", ".job-result", "article.job"]
TITLE_SELECTORS = ["a.lk-job-title", ".job-title", "h2", "h3"]
COMPANY_SELECTORS = ["a.employer", ".employer", ".company-name"]
LOCATION_SELECTORS = ["span.location", ".job-location", ".location"]
DESCRIPTION_SELECTORS = ["span.description", ".job-description", ".description"]
LINK_SELECTORS = ["a.lk-job-title", "h2 a", "a"]


def build_search_url(keyword: str, location: str) -> str:
    return f"{ELUTA_BASE_URL}/search?{urlencode({'keywords': keyword, 'location': location})}"


def parse_eluta_html(html: str, fallback_location: str = "", keyword: Optional[str] = None) -> List[JobListing]:
    """
    Parse an Eluta search results page.

    Cards missing a title or company are skipped; a page with no
    recognizable cards yields [].
    """
    soup = soup_of(html)
    listings = []

    for card in select_cards(soup, CARD_SELECTORS):
        title = select_text(card, TITLE_SELECTORS)
        company = select_text(card, COMPANY_SELECTORS)
        if not title or not company:
            continue

        location = select_text(card, LOCATION_SELECTORS) or fallback_location
        city, province, country = split_location(location)

        listings.append(JobListing(
            title=title,
            company=company,
            location=location,
            description=select_text(card, DESCRIPTION_SELECTORS),
            url=absolute_url(ELUTA_BASE_URL, select_attr(card, LINK_SELECTORS, "href")),
            source="eluta",
            keywords=[keyword] if keyword else [],
            city=city,
            province=province,
            country=country,
        ))

    return listings


class ElutaSource(JobSource):
    """Scrapes Eluta.ca search results."""

    name = "eluta"
    priority_tier = TIER_BOARD

    def __init__(
        self,
        browser: Optional[HeadlessBrowser] = None,
        config: Optional[SourceConfig] = None,
        keyword_count: int = 3,
        retry_attempts: int = 2,
    ):
        super().__init__(config)
        self.browser = browser or HeadlessBrowser()
        self.keyword_count = keyword_count
        self.retry_attempts = retry_attempts

    async def _fetch_term(self, term: str, location: str) -> List[JobListing]:
        url = build_search_url(term, location)
        html = await call_with_retry(
            self.browser.fetch_html, url, CARD_SELECTORS[0], attempts=self.retry_attempts
        )
        listings = parse_eluta_html(html, fallback_location=location, keyword=term)
        logger.debug(f"[eluta] '{term}' @ '{location}': {len(listings)} listings")
        return listings

    async def search(self, params: SearchParams) -> List[JobListing]:
        terms = params.search_terms(self.keyword_count)
        listings = await self._collect_terms(
            terms, lambda term: self._fetch_term(term, params.location)
        )
        return listings[:params.max_results]

    async def close(self) -> None:
        await self.browser.close()
