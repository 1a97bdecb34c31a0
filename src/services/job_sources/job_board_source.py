"""
Job Board Source

Scrapes public search result pages of the large job boards (Indeed Canada,
LinkedIn) through the headless browser. Each board is described by a
BoardSelectors table, so adding a board is a data change.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional
from urllib.parse import quote_plus

from src.common.job_search_config import TIER_BOARD, SourceConfig
from src.common.locations import split_location
from src.common.retry import call_with_retry
from src.common.types import JobListing, SearchParams, parse_datetime

from . import JobSource
from .browser import HeadlessBrowser
from .html_parsing import absolute_url, select_attr, select_cards, select_text, soup_of

logger = logging.getLogger(__name__)

KM_PER_MILE = 1.609


@dataclass
class BoardSelectors:
    """URL template and CSS selector fallbacks for one job board."""
    name: str
    base_url: str
    search_url: str  # format fields: query, location, radius_km, radius_miles
    card: List[str]
    title: List[str]
    company: List[str]
    location: List[str]
    link: List[str]
    description: List[str] = field(default_factory=list)
    salary: List[str] = field(default_factory=list)
    posted: List[str] = field(default_factory=list)  # elements carrying a datetime attribute

    def build_url(self, query: str, location: str, radius_km: int) -> str:
        return self.search_url.format(
            query=quote_plus(query),
            location=quote_plus(location or ""),
            radius_km=radius_km,
            radius_miles=max(1, round(radius_km / KM_PER_MILE)),
        )


INDEED = BoardSelectors(
    name="indeed",
    base_url="https://ca.indeed.com",
    search_url="https://ca.indeed.com/jobs?q={query}&l={location}&radius={radius_km}",
    card=["div.job_seen_beacon", "td.resultContent", "div.jobsearch-SerpJobCard"],
    title=["h2.jobTitle span[title]", "h2.jobTitle", "a.jcs-JobTitle"],
    company=["[data-testid='company-name']", "span.companyName", ".company"],
    location=["[data-testid='text-location']", "div.companyLocation", ".location"],
    link=["h2.jobTitle a", "a.jcs-JobTitle", "a"],
    description=["div.job-snippet", "[data-testid='jobsnippet_footer']"],
    salary=["div.salary-snippet-container", "[data-testid='attribute_snippet_testid']"],
)

LINKEDIN = BoardSelectors(
    name="linkedin",
    base_url="https://www.linkedin.com",
    search_url=(
        "https://www.linkedin.com/jobs/search?keywords={query}"
        "&location={location}&distance={radius_miles}"
    ),
    card=["div.base-search-card", "div.base-card", "li.jobs-search__results-list > div"],
    title=["h3.base-search-card__title", "h3"],
    company=["h4.base-search-card__subtitle", "h4"],
    location=["span.job-search-card__location"],
    link=["a.base-card__full-link", "a"],
    posted=["time[datetime]"],
)


def parse_board_html(
    html: str,
    board: BoardSelectors,
    fallback_location: str = "",
    keyword: Optional[str] = None,
) -> List[JobListing]:
    """Parse a board's search results page into listings."""
    soup = soup_of(html)
    listings = []

    for card in select_cards(soup, board.card):
        title = select_text(card, board.title)
        href = select_attr(card, board.link, "href")
        if not title or not href:
            continue

        url = absolute_url(board.base_url, href)
        # LinkedIn appends tracking parameters to every card link
        if board.name == "linkedin":
            url = url.split("?")[0]

        location = select_text(card, board.location) or fallback_location
        city, province, country = split_location(location)
        posted = select_attr(card, board.posted, "datetime") if board.posted else ""

        listings.append(JobListing(
            title=title,
            company=select_text(card, board.company),
            location=location,
            description=select_text(card, board.description) if board.description else "",
            url=url,
            source=board.name,
            salary_text=(select_text(card, board.salary) or None) if board.salary else None,
            posted_date=parse_datetime(posted),
            keywords=[keyword] if keyword else [],
            city=city,
            province=province,
            country=country,
        ))

    return listings


class JobBoardSource(JobSource):
    """
    Scrapes one job board's public search pages.

    Usage:
        indeed = JobBoardSource(INDEED, browser=shared_browser)
        listings = await indeed.search(SearchParams(["sales"], "Edmonton, AB"))
    """

    priority_tier = TIER_BOARD

    def __init__(
        self,
        board: BoardSelectors,
        browser: Optional[HeadlessBrowser] = None,
        config: Optional[SourceConfig] = None,
        keyword_count: int = 3,
        retry_attempts: int = 2,
    ):
        super().__init__(config)
        self.board = board
        self.name = board.name
        self.browser = browser or HeadlessBrowser()
        self.keyword_count = keyword_count
        self.retry_attempts = retry_attempts

    async def _fetch_term(self, term: str, params: SearchParams) -> List[JobListing]:
        url = self.board.build_url(term, params.location, params.radius_km)
        html = await call_with_retry(
            self.browser.fetch_html, url, self.board.card[0], attempts=self.retry_attempts
        )
        listings = parse_board_html(html, self.board, fallback_location=params.location, keyword=term)
        logger.debug(f"[{self.name}] '{term}': {len(listings)} listings")
        return listings

    async def search(self, params: SearchParams) -> List[JobListing]:
        terms = params.search_terms(self.keyword_count)
        listings = await self._collect_terms(terms, lambda term: self._fetch_term(term, params))
        return listings[:params.max_results]

    async def close(self) -> None:
        await self.browser.close()
