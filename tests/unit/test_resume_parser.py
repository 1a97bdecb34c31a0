"""
Unit tests for the local (no-LLM) resume parser.
"""

from datetime import datetime

import pytest

from src.services.resume_parser import (
    ExperienceEntry,
    LocalResumeParser,
    normalize_keywords,
    recency_multiplier,
    tenure_multiplier,
)

NOW = datetime(2026, 3, 1)

SAMPLE_RESUME = """John Smith
Edmonton, AB
john.smith@example.com

EXPERIENCE
Truck Driver, Northern Haulers
2014 - Present
Class 1 long haul routes across western Canada.

Line Cook, Joe's Diner
2012 - 2013
Food preparation and catering.
"""


@pytest.fixture
def parser():
    return LocalResumeParser(now=NOW)


def _entry(years_since_end=None, current=False):
    return ExperienceEntry(
        phrase="cook", years=1, years_since_end=years_since_end,
        current=current, context="", position=0,
    )


class TestMultipliers:
    """Tests for tenure and recency weighting."""

    @pytest.mark.parametrize("years,expected", [(10, 1.5), (5, 1.5), (3, 1.3), (1, 1.0), (0.5, 0.8)])
    def test_tenure(self, years, expected):
        assert tenure_multiplier(years) == expected

    def test_current_role_strongest(self):
        assert recency_multiplier(_entry(current=True)) == 2.0

    @pytest.mark.parametrize("since,expected", [(None, 1.0), (1, 1.5), (4, 1.0), (7, 0.7), (15, 0.5)])
    def test_recency(self, since, expected):
        assert recency_multiplier(_entry(years_since_end=since)) == expected


class TestNormalizeKeywords:
    """Tests for keyword normalization."""

    def test_lowercases_dedupes_and_drops_junk(self):
        raw = ["  Sales ", "sales", "a", "", None, "CRM.", "Account   Manager"]
        assert normalize_keywords(raw) == ["sales", "crm", "account manager"]

    def test_limit(self):
        assert normalize_keywords(["one", "two", "three"], limit=2) == ["one", "two"]


class TestLocalResumeParser:
    """Tests for keyword ranking and location detection."""

    def test_empty_text(self, parser):
        signals = parser.extract("   ")
        assert signals.keywords == []
        assert signals.extraction_method == "local"

    def test_long_tenure_outranks_short_tenure(self, parser):
        signals = parser.extract("I have 10 years truck driving and 6 months as a cook.")

        assert "truck driving" in signals.keywords
        assert "cook" in signals.keywords
        assert signals.keywords.index("truck driving") < signals.keywords.index("cook")

    def test_current_role_ranked_first(self, parser):
        signals = parser.extract(SAMPLE_RESUME)

        assert signals.keywords[0] == "truck driver"
        assert signals.keywords.index("truck driver") < signals.keywords.index("line cook")
        assert "class 1" in signals.keywords

    def test_location_from_header(self, parser):
        signals = parser.extract(SAMPLE_RESUME)
        assert signals.location == "Edmonton, AB"
        assert signals.locations[0] == "Edmonton, AB"

    def test_location_from_city_name_only(self, parser):
        signals = parser.extract("Jane Doe\nBased in Winnipeg\n\nCashier 2019 - 2021")
        assert signals.location == "Winnipeg, MB"

    def test_no_location(self, parser):
        assert parser.extract("Forklift operator for 3 years").location is None

    def test_max_keywords(self):
        signals = LocalResumeParser(max_keywords=2, now=NOW).extract(SAMPLE_RESUME)
        assert len(signals.keywords) == 2

    def test_deterministic(self, parser):
        assert parser.extract(SAMPLE_RESUME) == parser.extract(SAMPLE_RESUME)
