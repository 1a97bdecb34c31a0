"""
Search Engine Job Source

Finds postings by running site: queries against applicant tracking systems
and job boards on a web search engine, then turning result links into
listings.

Engine chain (first non-empty result wins):
    1. Google, rendered in the headless browser
    2. DuckDuckGo HTML endpoint over requests (no JavaScript, no consent wall)

Results are deduplicated by host + path and ATS-hosted postings are ordered
before board postings.
"""

import asyncio
import logging
import re
from dataclasses import dataclass
from typing import List, Optional, Tuple
from urllib.parse import parse_qs, quote_plus, urlsplit

import requests

from src.common.dedupe import url_host
from src.common.error_handling import UpstreamTransientError
from src.common.fallback import Strategy, first_success
from src.common.job_search_config import TIER_ATS, SourceConfig, host_tier
from src.common.locations import city_of, find_locations, split_location
from src.common.retry import call_with_retry
from src.common.types import JobListing, SearchParams

from . import JobSource
from .browser import USER_AGENTS, HeadlessBrowser
from .html_parsing import clean_text, soup_of

logger = logging.getLogger(__name__)

ATS_SITES = [
    "greenhouse.io",
    "jobs.lever.co",
    "myworkdayjobs.com",
    "workday.com",
    "jobvite.com",
    "smartrecruiters.com",
]

BOARD_SITES = [
    "indeed.com",
    "linkedin.com/jobs",
    "ziprecruiter.com",
    "jobbank.gc.ca",
    "workopolis.com",
    "glassdoor.com/Job",
]

GOOGLE_SEARCH_URL = "https://www.google.com/search?q={query}&hl=en&num=20"
DUCKDUCKGO_SEARCH_URL = "https://html.duckduckgo.com/html/"

REQUEST_TIMEOUT = 10

# Suffixes engines and boards append to page titles
_TITLE_SUFFIXES = re.compile(
    r"\s*[|\-–]\s*(?:LinkedIn|Indeed(?:\.com)?|Glassdoor|ZipRecruiter|Workopolis|Job Bank|Jobvite|SmartRecruiters)\s*$",
    re.IGNORECASE,
)


@dataclass
class SearchResult:
    """One organic search engine hit."""
    title: str
    url: str
    snippet: str = ""


def build_job_search_queries(term: str, location: str = "") -> List[str]:
    """One ATS query and one board query per search term."""
    city = city_of(location)
    location_part = f' "{city.title()}"' if city else ""
    ats = " OR ".join(f"site:{site}" for site in ATS_SITES)
    boards = " OR ".join(f"site:{site}" for site in BOARD_SITES)
    return [
        f'"{term}"{location_part} ({ats})',
        f'"{term}"{location_part} ({boards})',
    ]


def parse_google_html(html: str) -> List[SearchResult]:
    """Organic results from a Google results page."""
    soup = soup_of(html)
    results = []
    for block in soup.select("div.g, div[data-header-feature], div[data-snf]"):
        link = block.select_one('a[href^="http"]')
        heading = block.select_one("h3")
        if link is None or heading is None:
            continue
        snippet = block.select_one("div[data-content-feature] div, .VwiC3b, .IsZvec")
        results.append(SearchResult(
            title=clean_text(heading.get_text(" ")),
            url=str(link.get("href")),
            snippet=clean_text(snippet.get_text(" ")) if snippet else "",
        ))
    return results


def _unwrap_duckduckgo_link(href: str) -> str:
    """DuckDuckGo wraps targets as //duckduckgo.com/l/?uddg=<encoded url>."""
    if "uddg=" not in href:
        return href
    target = parse_qs(urlsplit(href).query).get("uddg")
    return target[0] if target else href


def parse_duckduckgo_html(html: str) -> List[SearchResult]:
    """Organic results from the DuckDuckGo HTML endpoint."""
    soup = soup_of(html)
    results = []
    for block in soup.select("div.result"):
        link = block.select_one("a.result__a")
        if link is None or not link.get("href"):
            continue
        snippet = block.select_one(".result__snippet")
        results.append(SearchResult(
            title=clean_text(link.get_text(" ")),
            url=_unwrap_duckduckgo_link(str(link.get("href"))),
            snippet=clean_text(snippet.get_text(" ")) if snippet else "",
        ))
    return results


def dedupe_and_prioritize(results: List[SearchResult]) -> List[SearchResult]:
    """Drop repeated host+path links and non-job hosts; ATS hosts first."""
    seen = set()
    kept = []
    for result in results:
        parts = urlsplit(result.url)
        if not parts.scheme.startswith("http") or not parts.netloc:
            continue
        key = f"{url_host(result.url)}{parts.path.rstrip('/')}"
        if key in seen or host_tier(url_host(result.url)) is None:
            continue
        seen.add(key)
        kept.append(result)
    # Stable sort keeps engine ranking within a tier
    kept.sort(key=lambda r: host_tier(url_host(r.url)))
    return kept


def company_from_ats_url(url: str) -> str:
    """
    Company name from an ATS URL slug, or "".

    Examples:
        >>> company_from_ats_url("https://boards.greenhouse.io/acme-corp/jobs/123")
        'Acme Corp'
        >>> company_from_ats_url("https://acme.wd5.myworkdayjobs.com/en-US/careers/job/1")
        'Acme'
    """
    parts = urlsplit(url)
    host = url_host(url)
    segments = [s for s in parts.path.split("/") if s]

    slug = ""
    if host.endswith("myworkdayjobs.com") or host.endswith("workday.com"):
        slug = host.split(".")[0]
    elif host.endswith("greenhouse.io") or host in ("jobs.lever.co", "jobs.jobvite.com", "jobs.smartrecruiters.com"):
        slug = segments[0] if segments else ""
    elif host.endswith("jobvite.com") or host.endswith("smartrecruiters.com"):
        slug = segments[0] if segments else host.split(".")[0]

    if not slug or slug in ("en-us", "embed", "job", "jobs"):
        return ""
    return " ".join(word.capitalize() for word in re.split(r"[-_]+", slug) if word)


def split_result_title(raw_title: str, url: str) -> Tuple[str, str]:
    """
    (title, company) from a result title, falling back to the ATS slug.

    Handles "Job Application for X at Y", "X at Y", "X - Y - Location" and
    "Y - X" (Lever) shapes.
    """
    text = _TITLE_SUFFIXES.sub("", raw_title).strip()
    slug_company = company_from_ats_url(url)

    match = re.match(r"^Job Application for (?P<title>.+?) at (?P<company>.+)$", text, re.IGNORECASE)
    if match is None:
        match = re.match(r"^(?P<title>.+?) at (?P<company>.+?)$", text)
    if match:
        return match.group("title").strip(), match.group("company").strip()

    pieces = [p.strip() for p in re.split(r"\s+[-–|]\s+", text) if p.strip()]
    if slug_company:
        remaining = [p for p in pieces if p.lower() != slug_company.lower()]
        return (remaining[0] if remaining else text), slug_company
    if len(pieces) >= 2:
        return pieces[0], pieces[1]
    return text, ""


def result_to_listing(result: SearchResult, fallback_location: str = "", keyword: Optional[str] = None) -> Optional[JobListing]:
    title, company = split_result_title(result.title, result.url)
    if not title:
        return None

    # Snippet first: "X at Company City, AB" titles glue the company onto the city
    found = find_locations(result.snippet) or find_locations(result.title)
    location = found[0] if found else fallback_location
    city, province, country = split_location(location)

    return JobListing(
        title=title,
        company=company,
        location=location,
        description=result.snippet,
        url=result.url,
        source="search_engine",
        keywords=[keyword] if keyword else [],
        city=city,
        province=province,
        country=country,
    )


class SearchEngineSource(JobSource):
    """Job discovery through site: queries on web search engines."""

    name = "search_engine"
    priority_tier = TIER_ATS
    default_timeout_seconds = 20.0

    def __init__(
        self,
        browser: Optional[HeadlessBrowser] = None,
        config: Optional[SourceConfig] = None,
        keyword_count: int = 2,
        retry_attempts: int = 2,
        session: Optional[requests.Session] = None,
    ):
        super().__init__(config)
        self.browser = browser or HeadlessBrowser()
        self.keyword_count = keyword_count
        self.retry_attempts = retry_attempts
        self.session = session or requests.Session()

    # =========================================================================
    # Engines
    # =========================================================================

    async def _google(self, query: str) -> List[SearchResult]:
        html = await self.browser.fetch_html(
            GOOGLE_SEARCH_URL.format(query=quote_plus(query)), "div.g"
        )
        return parse_google_html(html)

    def _duckduckgo_sync(self, query: str) -> str:
        response = self.session.get(
            DUCKDUCKGO_SEARCH_URL,
            params={"q": query},
            headers={"User-Agent": USER_AGENTS[0]},
            timeout=REQUEST_TIMEOUT,
        )
        if response.status_code == 429 or response.status_code >= 500:
            raise UpstreamTransientError(f"DuckDuckGo returned HTTP {response.status_code}")
        response.raise_for_status()
        return response.text

    async def _duckduckgo(self, query: str) -> List[SearchResult]:
        html = await call_with_retry(
            asyncio.to_thread, self._duckduckgo_sync, query, attempts=self.retry_attempts
        )
        return parse_duckduckgo_html(html)

    async def run_query(self, query: str) -> List[SearchResult]:
        """Run one query through the engine chain; [] when every engine fails."""
        outcome = await first_success(
            [Strategy("google", self._google), Strategy("duckduckgo", self._duckduckgo)],
            query,
            accept=bool,
        )
        if outcome.succeeded:
            logger.debug(f"[search_engine] {outcome.strategy}: {len(outcome.value)} results for {query[:60]!r}")
            return outcome.value
        return []

    # =========================================================================
    # JobSource
    # =========================================================================

    async def _fetch_term(self, term: str, params: SearchParams) -> List[JobListing]:
        queries = build_job_search_queries(term, params.location)
        batches = await asyncio.gather(*(self.run_query(q) for q in queries))
        results = dedupe_and_prioritize([r for batch in batches for r in batch])
        return [
            job for job in (result_to_listing(r, params.location, term) for r in results)
            if job is not None
        ]

    async def search(self, params: SearchParams) -> List[JobListing]:
        terms = params.search_terms(self.keyword_count)
        listings = await self._collect_terms(terms, lambda term: self._fetch_term(term, params))
        return listings[:params.max_results]

    async def close(self) -> None:
        await self.browser.close()
        self.session.close()
