"""
Unit tests for the source adapters.

HTML parsing is tested against small fixture pages; adapters are driven
with a mocked browser, requests session and chat model.
"""

import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from src.common.error_handling import UpstreamTransientError
from src.common.job_search_config import SourceConfig
from src.common.types import SearchParams
from src.services.job_sources import (
    INDEED,
    LINKEDIN,
    ElutaSource,
    HeadlessBrowser,
    JobBoardSource,
    LLMSearchSource,
    SearchEngineSource,
)
from src.services.job_sources.eluta_source import build_search_url, parse_eluta_html
from src.services.job_sources.job_board_source import parse_board_html
from src.services.job_sources.llm_search_source import job_from_llm_item
from src.services.job_sources.search_engine_source import (
    SearchResult,
    build_job_search_queries,
    company_from_ats_url,
    dedupe_and_prioritize,
    parse_duckduckgo_html,
    parse_google_html,
    result_to_listing,
    split_result_title,
)

ELUTA_HTML = """
<html><body>
<div class="organic-job">
  <h2><a class="lk-job-title" href="/job/123">Truck Driver</a></h2>
  <a class="employer" href="/employer/northern">Northern Haulers</a>
  <span class="location">Edmonton, AB</span>
  <span class="description">Class 1 licence required.</span>
</div>
<div class="organic-job">
  <h2><a class="lk-job-title" href="/job/456">Dispatcher</a></h2>
</div>
</body></html>
"""

INDEED_HTML = """
<div class="job_seen_beacon">
  <h2 class="jobTitle"><a href="/viewjob?jk=abc"><span title="Class 1 Driver">Class 1 Driver</span></a></h2>
  <span data-testid="company-name">Acme Freight</span>
  <div data-testid="text-location">Calgary, AB</div>
  <div class="job-snippet">Long haul across western Canada.</div>
  <div class="salary-snippet-container">$30 an hour</div>
</div>
"""

LINKEDIN_HTML = """
<ul class="jobs-search__results-list"><li>
<div class="base-search-card">
  <a class="base-card__full-link" href="https://ca.linkedin.com/jobs/view/cook-123?refId=abc&trackingId=x"></a>
  <h3 class="base-search-card__title">Line Cook</h3>
  <h4 class="base-search-card__subtitle">Joe's Diner</h4>
  <span class="job-search-card__location">Calgary, Alberta, Canada</span>
  <time class="job-search-card__listdate" datetime="2026-02-27">2 days ago</time>
</div>
</li></ul>
"""

GOOGLE_HTML = """
<div class="g">
  <a href="https://boards.greenhouse.io/acme/jobs/1"><h3>Job Application for Cook at Acme</h3></a>
  <div class="VwiC3b">Calgary, AB. Full time kitchen role.</div>
</div>
<div class="g"><a href="/relative"><span>No heading</span></a></div>
"""

DUCKDUCKGO_HTML = """
<div class="result">
  <a class="result__a" href="//duckduckgo.com/l/?uddg=https%3A%2F%2Fjobs.lever.co%2Facme-corp%2F1&rut=abc">Acme Corp - Senior Driver</a>
  <a class="result__snippet">Drive in Edmonton, AB.</a>
</div>
<div class="result"><span>no link</span></div>
"""


def _browser(html=None, side_effect=None):
    browser = MagicMock()
    browser.fetch_html = AsyncMock(return_value=html, side_effect=side_effect)
    browser.close = AsyncMock()
    return browser


def _llm(content):
    llm = MagicMock()
    llm.invoke.return_value = MagicMock(content=content)
    return llm


# =============================================================================
# Eluta
# =============================================================================

class TestEluta:
    """Tests for Eluta page parsing and the adapter."""

    def test_build_search_url(self):
        url = build_search_url("truck driver", "Edmonton, AB")
        assert url == "https://www.eluta.ca/search?keywords=truck+driver&location=Edmonton%2C+AB"

    def test_parse_skips_cards_without_company(self):
        listings = parse_eluta_html(ELUTA_HTML, keyword="truck driver")

        assert len(listings) == 1
        job = listings[0]
        assert job.title == "Truck Driver"
        assert job.company == "Northern Haulers"
        assert job.url == "https://www.eluta.ca/job/123"
        assert job.description == "Class 1 licence required."
        assert (job.city, job.province, job.country) == ("Edmonton", "AB", "CA")
        assert job.keywords == ["truck driver"]
        assert job.source == "eluta"

    def test_parse_unrecognized_page(self):
        assert parse_eluta_html("<html><body>Access denied</body></html>") == []

    @pytest.mark.asyncio
    async def test_search_runs_each_term(self):
        browser = _browser(ELUTA_HTML)
        source = ElutaSource(browser, keyword_count=2, retry_attempts=1)

        listings = await source.search(SearchParams(["truck driver", "class 1", "forklift"], "Edmonton, AB"))

        assert browser.fetch_html.await_count == 2
        assert len(listings) == 2

    @pytest.mark.asyncio
    async def test_one_failing_term_is_skipped(self):
        async def fetch(url, wait_selector=None):
            if "class" in url:
                raise UpstreamTransientError("timeout")
            return ELUTA_HTML

        source = ElutaSource(_browser(side_effect=fetch), keyword_count=2, retry_attempts=1)
        listings = await source.search(SearchParams(["truck driver", "class 1"], "Edmonton, AB"))

        assert len(listings) == 1

    @pytest.mark.asyncio
    async def test_all_terms_failing_raises(self):
        source = ElutaSource(
            _browser(side_effect=UpstreamTransientError("blocked")), keyword_count=2, retry_attempts=1
        )
        with pytest.raises(UpstreamTransientError):
            await source.search(SearchParams(["truck driver", "class 1"], "Edmonton, AB"))

    def test_timeout_from_config(self):
        config = SourceConfig(id="eluta", label="Eluta", tier=1, timeout_seconds=7.5)
        assert ElutaSource(_browser(), config=config).timeout_seconds == 7.5
        assert ElutaSource(_browser()).timeout_seconds == 15.0

    @pytest.mark.asyncio
    async def test_close_closes_browser(self):
        browser = _browser()
        await ElutaSource(browser).close()
        browser.close.assert_awaited_once()


# =============================================================================
# Job boards
# =============================================================================

class TestJobBoards:
    """Tests for Indeed and LinkedIn parsing."""

    def test_indeed_url(self):
        url = INDEED.build_url("truck driver", "Edmonton, AB", 70)
        assert url == "https://ca.indeed.com/jobs?q=truck+driver&l=Edmonton%2C+AB&radius=70"

    def test_linkedin_url_uses_miles(self):
        assert "distance=44" in LINKEDIN.build_url("cook", "Calgary, AB", 70)

    def test_parse_indeed(self):
        listings = parse_board_html(INDEED_HTML, INDEED, keyword="driver")

        job = listings[0]
        assert job.title == "Class 1 Driver"
        assert job.company == "Acme Freight"
        assert job.location == "Calgary, AB"
        assert job.url == "https://ca.indeed.com/viewjob?jk=abc"
        assert job.salary_text == "$30 an hour"
        assert job.source == "indeed"

    def test_parse_linkedin_strips_tracking(self):
        listings = parse_board_html(LINKEDIN_HTML, LINKEDIN)

        job = listings[0]
        assert job.title == "Line Cook"
        assert job.company == "Joe's Diner"
        assert job.url == "https://ca.linkedin.com/jobs/view/cook-123"
        assert job.posted_date.date().isoformat() == "2026-02-27"
        assert job.province == "AB"

    def test_fallback_location(self):
        html = INDEED_HTML.replace('<div data-testid="text-location">Calgary, AB</div>', "")
        listings = parse_board_html(html, INDEED, fallback_location="Red Deer, AB")
        assert listings[0].location == "Red Deer, AB"

    @pytest.mark.asyncio
    async def test_adapter_named_after_board(self):
        browser = _browser(LINKEDIN_HTML)
        source = JobBoardSource(LINKEDIN, browser, retry_attempts=1)

        listings = await source.search(SearchParams(["cook"], "Calgary, AB"))

        assert source.name == "linkedin"
        assert len(listings) == 1
        url, selector = browser.fetch_html.call_args[0]
        assert url.startswith("https://www.linkedin.com/jobs/search?keywords=cook")
        assert selector == LINKEDIN.card[0]


# =============================================================================
# Search engines
# =============================================================================

class TestSearchEngineParsing:
    """Tests for query building and result parsing."""

    def test_queries_include_city_and_sites(self):
        ats, boards = build_job_search_queries("truck driver", "Edmonton, AB")
        assert ats.startswith('"truck driver" "Edmonton"')
        assert "site:jobs.lever.co" in ats
        assert "site:indeed.com" in boards

    def test_queries_without_location(self):
        ats, _ = build_job_search_queries("cook")
        assert ats.startswith('"cook" (')

    def test_parse_google(self):
        results = parse_google_html(GOOGLE_HTML)
        assert results == [SearchResult(
            title="Job Application for Cook at Acme",
            url="https://boards.greenhouse.io/acme/jobs/1",
            snippet="Calgary, AB. Full time kitchen role.",
        )]

    def test_parse_duckduckgo_unwraps_redirect(self):
        results = parse_duckduckgo_html(DUCKDUCKGO_HTML)
        assert len(results) == 1
        assert results[0].url == "https://jobs.lever.co/acme-corp/1"
        assert results[0].snippet == "Drive in Edmonton, AB."

    def test_dedupe_and_prioritize(self):
        results = [
            SearchResult("Driver", "https://ca.indeed.com/viewjob/1?from=serp"),
            SearchResult("Driver", "https://ca.indeed.com/viewjob/1?from=other"),
            SearchResult("Cook", "https://boards.greenhouse.io/acme/jobs/1"),
            SearchResult("Blog", "https://example.com/how-to-drive"),
            SearchResult("Bad", "ftp://files.example.com/x"),
        ]
        kept = dedupe_and_prioritize(results)
        assert [r.title for r in kept] == ["Cook", "Driver"]

    @pytest.mark.parametrize("url,company", [
        ("https://boards.greenhouse.io/acme-corp/jobs/123", "Acme Corp"),
        ("https://acme.wd5.myworkdayjobs.com/en-US/careers/job/1", "Acme"),
        ("https://jobs.lever.co/northern_haulers/abc", "Northern Haulers"),
        ("https://ca.indeed.com/viewjob?jk=1", ""),
    ])
    def test_company_from_ats_url(self, url, company):
        assert company_from_ats_url(url) == company

    @pytest.mark.parametrize("raw,url,expected", [
        ("Job Application for Cook at Acme", "https://boards.greenhouse.io/acme/jobs/1", ("Cook", "Acme")),
        ("Acme Corp - Senior Driver", "https://jobs.lever.co/acme-corp/1", ("Senior Driver", "Acme Corp")),
        ("Truck Driver - Northern Haulers - Edmonton, AB | Indeed.com", "https://ca.indeed.com/viewjob?jk=1",
         ("Truck Driver", "Northern Haulers")),
        ("Welder", "https://ca.indeed.com/viewjob?jk=2", ("Welder", "")),
    ])
    def test_split_result_title(self, raw, url, expected):
        assert split_result_title(raw, url) == expected

    def test_result_to_listing_location_from_snippet(self):
        result = SearchResult(
            "Job Application for Cook at Acme",
            "https://boards.greenhouse.io/acme/jobs/1",
            "Calgary, AB. Full time.",
        )
        job = result_to_listing(result, fallback_location="Edmonton, AB", keyword="cook")

        assert job.location == "Calgary, AB"
        assert job.source == "search_engine"
        assert job.keywords == ["cook"]


class TestSearchEngineSource:
    """Tests for the Google -> DuckDuckGo chain."""

    def _session(self, status_code=200, text=DUCKDUCKGO_HTML):
        session = MagicMock()
        session.get.return_value = MagicMock(status_code=status_code, text=text)
        return session

    @pytest.mark.asyncio
    async def test_google_results_used_first(self):
        session = self._session()
        source = SearchEngineSource(_browser(GOOGLE_HTML), session=session, retry_attempts=1)

        results = await source.run_query("cook")

        assert results[0].url == "https://boards.greenhouse.io/acme/jobs/1"
        session.get.assert_not_called()

    @pytest.mark.asyncio
    async def test_falls_back_to_duckduckgo(self):
        session = self._session()
        browser = _browser(side_effect=UpstreamTransientError("captcha"))
        source = SearchEngineSource(browser, session=session, retry_attempts=1)

        results = await source.run_query("driver")

        assert results[0].url == "https://jobs.lever.co/acme-corp/1"
        assert session.get.call_args[1]["params"] == {"q": "driver"}

    @pytest.mark.asyncio
    async def test_every_engine_failing_yields_nothing(self):
        browser = _browser(side_effect=UpstreamTransientError("captcha"))
        source = SearchEngineSource(browser, session=self._session(status_code=503), retry_attempts=1)

        assert await source.run_query("driver") == []

    @pytest.mark.asyncio
    async def test_search_builds_listings(self):
        source = SearchEngineSource(_browser(GOOGLE_HTML), session=self._session(), retry_attempts=1)

        listings = await source.search(SearchParams(["cook"], "Calgary, AB"))

        # Both queries return the same posting; it is kept once
        assert len(listings) == 1
        assert listings[0].company == "Acme"
        assert listings[0].title == "Cook"

    @pytest.mark.asyncio
    async def test_close(self):
        browser = _browser()
        session = self._session()
        await SearchEngineSource(browser, session=session).close()
        browser.close.assert_awaited_once()
        session.close.assert_called_once()


# =============================================================================
# LLM search
# =============================================================================

LLM_JOBS = {
    "jobs": [
        {
            "title": "Class 1 Driver",
            "company": "Acme Freight",
            "location": "Calgary, AB",
            "url": "https://jobs.lever.co/acme/1",
            "description": "Long haul.",
            "salary": "$30/hr",
            "postedDate": "2026-02-25",
            "workType": "full-time",
            "skills": ["class 1", 5],
        },
        {"company": "No Title Inc"},
        {"title": "Dispatcher", "company": "Acme Freight"},
    ]
}


class TestLLMSearch:
    """Tests for the Perplexity-backed source."""

    def test_job_from_item(self):
        job = job_from_llm_item(LLM_JOBS["jobs"][0], keywords=["driver"])

        assert job.title == "Class 1 Driver"
        assert job.salary_text == "$30/hr"
        assert job.posted_date.isoformat().startswith("2026-02-25")
        assert job.skills == ["class 1"]
        assert job.work_type == "full-time"
        assert job.source == "llm_search"

    def test_item_without_title(self):
        assert job_from_llm_item({"company": "X"}) is None

    def test_fallback_location(self):
        job = job_from_llm_item({"title": "Dispatcher"}, fallback_location="Edmonton, AB")
        assert job.location == "Edmonton, AB"
        assert job.city == "Edmonton"

    @pytest.mark.asyncio
    async def test_search(self):
        llm = _llm(json.dumps(LLM_JOBS))
        source = LLMSearchSource(llm=llm, retry_attempts=1)

        listings = await source.search(SearchParams(["driver", "dispatch"], "Calgary, AB"))

        assert [j.title for j in listings] == ["Class 1 Driver", "Dispatcher"]
        prompt = llm.invoke.call_args[0][0][1].content
        assert "driver, dispatch" in prompt
        assert "Calgary, AB" in prompt

    @pytest.mark.asyncio
    async def test_results_capped(self):
        source = LLMSearchSource(llm=_llm(json.dumps(LLM_JOBS)), results_per_search=1, retry_attempts=1)
        listings = await source.search(SearchParams(["driver"]))
        assert len(listings) == 1

    @pytest.mark.asyncio
    async def test_malformed_output_yields_nothing(self):
        source = LLMSearchSource(llm=_llm("Sorry, I can't browse right now."), retry_attempts=1)
        assert await source.search(SearchParams(["driver"])) == []

    @pytest.mark.asyncio
    async def test_no_terms_skips_call(self):
        llm = _llm("{}")
        assert await LLMSearchSource(llm=llm).search(SearchParams([])) == []
        llm.invoke.assert_not_called()

    @pytest.mark.asyncio
    async def test_provider_error_propagates(self):
        llm = MagicMock()
        llm.invoke.side_effect = RuntimeError("401 Unauthorized")
        with pytest.raises(RuntimeError):
            await LLMSearchSource(llm=llm, retry_attempts=1).search(SearchParams(["driver"]))


# =============================================================================
# Headless browser
# =============================================================================

class TestHeadlessBrowser:
    """Tests for browser lifecycle with Playwright mocked out."""

    def _playwright(self):
        page = MagicMock()
        page.goto = AsyncMock()
        page.wait_for_selector = AsyncMock()
        page.content = AsyncMock(return_value="<html>ok</html>")

        context = MagicMock()
        context.new_page = AsyncMock(return_value=page)
        context.close = AsyncMock()

        browser = MagicMock()
        browser.new_context = AsyncMock(return_value=context)
        browser.close = AsyncMock()

        playwright = MagicMock()
        playwright.chromium.launch = AsyncMock(return_value=browser)
        playwright.stop = AsyncMock()

        starter = MagicMock()
        starter.start = AsyncMock(return_value=playwright)
        return starter, playwright, browser, context

    @pytest.mark.asyncio
    async def test_fetch_html_launches_once(self):
        starter, playwright, browser, context = self._playwright()
        with patch("src.services.job_sources.browser.async_playwright", return_value=starter):
            headless = HeadlessBrowser(headless=True)
            assert await headless.fetch_html("https://example.com", "div.job") == "<html>ok</html>"
            await headless.fetch_html("https://example.com/2")

        playwright.chromium.launch.assert_awaited_once_with(headless=True)
        assert context.close.await_count == 2

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self):
        starter, playwright, browser, _ = self._playwright()
        with patch("src.services.job_sources.browser.async_playwright", return_value=starter):
            headless = HeadlessBrowser(headless=True)
            await headless.fetch_html("https://example.com")
            await headless.close()
            await headless.close()

        browser.close.assert_awaited_once()
        playwright.stop.assert_awaited_once()
        assert not headless.started

    @pytest.mark.asyncio
    async def test_failed_launch_stops_driver(self):
        starter, playwright, browser, _ = self._playwright()
        playwright.chromium.launch = AsyncMock(side_effect=[RuntimeError("no chromium"), browser])
        with patch("src.services.job_sources.browser.async_playwright", return_value=starter):
            headless = HeadlessBrowser(headless=True)
            with pytest.raises(RuntimeError):
                await headless.fetch_html("https://example.com")

            assert playwright.stop.await_count == 1
            assert not headless.started

            assert await headless.fetch_html("https://example.com") == "<html>ok</html>"

        assert starter.start.await_count == 2
        assert playwright.stop.await_count == 1
