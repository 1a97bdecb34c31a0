"""
Unit tests for JobSearchConfig and the cache TTL policy.
"""

import os
from datetime import datetime, timedelta
from unittest.mock import patch

import pytest

from src.common.job_search_config import (
    DEFAULT_SOURCES,
    TIER_ATS,
    TIER_BOARD,
    CacheTTLPolicy,
    JobSearchConfig,
    host_tier,
)

NOW = datetime(2026, 3, 1, 12, 0, 0)


class TestCacheTTLPolicy:
    """Tests for centralized cache lifetimes."""

    def test_defaults(self):
        ttl = CacheTTLPolicy()
        assert ttl.seconds_for("fast") == 3600
        assert ttl.seconds_for("user") == 24 * 3600
        assert ttl.seconds_for("global") == 14 * 24 * 3600

    def test_unknown_tier(self):
        with pytest.raises(ValueError):
            CacheTTLPolicy().seconds_for("forever")

    def test_expires_at_and_purge_at(self):
        ttl = CacheTTLPolicy()
        expires = ttl.expires_at("user", NOW)

        assert expires == NOW + timedelta(hours=24)
        assert ttl.purge_at(expires) == expires + timedelta(days=7)

    def test_from_env(self):
        env = {
            "CACHE_TTL_FAST_SECONDS": "60",
            "CACHE_TTL_USER_HOURS": "2",
            "CACHE_TTL_GLOBAL_DAYS": "3",
            "CACHE_STALE_GRACE_DAYS": "1",
        }
        with patch.dict(os.environ, env):
            ttl = CacheTTLPolicy.from_env()

        assert ttl.fast_seconds == 60
        assert ttl.user_seconds == 7200
        assert ttl.global_seconds == 3 * 86400
        assert ttl.stale_grace_seconds == 86400


class TestJobSearchConfig:
    """Tests for pipeline configuration."""

    def test_defaults(self):
        config = JobSearchConfig()
        assert config.search_budget_seconds == 25.0
        assert config.retry_attempts == 3
        assert [s.id for s in config.sources] == [s.id for s in DEFAULT_SOURCES]

    def test_from_env_overrides(self):
        env = {
            "JOB_SEARCH_BUDGET_SECONDS": "10",
            "JOB_SEARCH_MAX_RESULTS": "50",
            "JOB_SOURCE_TIMEOUT_ELUTA": "4.5",
        }
        with patch.dict(os.environ, env):
            config = JobSearchConfig.from_env()

        assert config.search_budget_seconds == 10.0
        assert config.max_results == 50
        assert config.get_source_by_id("eluta").timeout_seconds == 4.5
        assert config.get_source_by_id("indeed").timeout_seconds == 15.0

    def test_get_source_by_id(self):
        config = JobSearchConfig()
        assert config.get_source_by_id("linkedin").label == "LinkedIn Jobs"
        assert config.get_source_by_id("monster") is None

    def test_source_timeouts(self):
        timeouts = JobSearchConfig().source_timeouts()
        assert timeouts["llm_search"] == 20.0


class TestHostTier:
    """Tests for host classification."""

    @pytest.mark.parametrize("host,tier", [
        ("boards.greenhouse.io", TIER_ATS),
        ("acme.wd5.myworkdayjobs.com", TIER_ATS),
        ("jobs.lever.co", TIER_ATS),
        ("ca.indeed.com", TIER_BOARD),
        ("linkedin.com", TIER_BOARD),
        ("eluta.ca", TIER_BOARD),
    ])
    def test_known_hosts(self, host, tier):
        assert host_tier(host) == tier

    @pytest.mark.parametrize("host", ["", "example.com", "notindeed.com"])
    def test_unknown_hosts(self, host):
        assert host_tier(host) is None
