"""
Unit tests for canonical duplicate-detection keys.
"""

import pytest

from src.common.dedupe import (
    canonical_key,
    canonicalize_url,
    generate_external_id,
    normalize_for_dedupe,
    url_host,
)


class TestNormalizeForDedupe:
    """Tests for text normalization."""

    def test_collapses_whitespace_and_case(self):
        assert normalize_for_dedupe("  Account   Manager ") == "account manager"

    def test_none_and_empty(self):
        assert normalize_for_dedupe(None) == ""
        assert normalize_for_dedupe("") == ""


class TestCanonicalizeUrl:
    """Tests for URL canonicalization."""

    def test_drops_query_fragment_and_trailing_slash(self):
        url = "https://Jobs.Lever.co/acme/123/?utm_source=x#apply"
        assert canonicalize_url(url) == "https://jobs.lever.co/acme/123"

    def test_tracking_variants_share_a_url(self):
        a = canonicalize_url("https://ca.indeed.com/viewjob/abc?from=serp")
        b = canonicalize_url("https://ca.indeed.com/viewjob/abc?from=email")
        assert a == b

    @pytest.mark.parametrize("value", ["", None, "not a url", "/relative/path"])
    def test_invalid_urls(self, value):
        assert canonicalize_url(value) == ""


class TestCanonicalKey:
    """Tests for key precedence."""

    def test_company_and_title_take_precedence(self):
        key = canonical_key(company="Acme Corp", title="Sales  Manager", url="https://x.com/1")
        assert key == "acme corp::sales manager"

    def test_url_when_company_missing(self):
        key = canonical_key(title="Sales Rep", url="https://x.com/jobs/1?ref=2")
        assert key == "https://x.com/jobs/1"

    def test_description_hash_last(self):
        key = canonical_key(description="Stock shelves overnight")
        assert key.startswith("desc::")
        assert key == canonical_key(description="  stock   SHELVES overnight ")

    def test_case_and_spacing_insensitive(self):
        assert canonical_key(company="ACME", title="Cook ") == canonical_key(company="acme", title="cook")


class TestExternalId:
    """Tests for stable listing ids."""

    def test_stable_24_char_hex(self):
        job_id = generate_external_id("acme::cook")
        assert len(job_id) == 24
        assert job_id == generate_external_id("acme::cook")
        assert job_id != generate_external_id("acme::chef")


class TestUrlHost:
    """Tests for host extraction."""

    def test_strips_www(self):
        assert url_host("https://www.Indeed.com/viewjob?jk=1") == "indeed.com"

    def test_empty(self):
        assert url_host("") == ""
