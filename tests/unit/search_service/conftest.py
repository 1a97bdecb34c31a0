"""
Pytest fixtures for search service route tests.

The app is built around a ServiceContainer of mocks; the lifespan handler
never runs (TestClient is used without a context manager), so no MongoDB,
Redis or browser is touched.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from search_service.app import create_app
from search_service.config import get_settings
from search_service.dependencies import ServiceContainer
from src.common.fast_cache import InMemoryFastCache
from src.common.rate_limiter import KeyedRateLimiter
from src.services.relevance_scorer import RelevanceScorer

from job_fixtures import StubSource

API_SECRET = "test-api-secret-1234"
CRON_SECRET = "test-cron-secret-1234"


@pytest.fixture(autouse=True)
def service_settings(monkeypatch):
    """Secrets configured so both bearer checks are enforced."""
    monkeypatch.setenv("API_SECRET", API_SECRET)
    monkeypatch.setenv("CRON_SECRET", CRON_SECRET)
    monkeypatch.setenv("ENVIRONMENT", "development")
    get_settings.cache_clear()
    yield get_settings()
    get_settings.cache_clear()


@pytest.fixture
def aggregator():
    aggregator = MagicMock()
    aggregator.sources = [StubSource("eluta"), StubSource("indeed")]
    aggregator.fast_cache = InMemoryFastCache()
    aggregator.search_by_resume_keywords = AsyncMock()
    aggregator.get_cache_stats = AsyncMock(return_value={"fastCache": {"hits": 0}})
    aggregator.prefetch = AsyncMock()
    aggregator.close = AsyncMock()
    return aggregator


@pytest.fixture
def signal_extractor():
    extractor = MagicMock()
    extractor.extract = AsyncMock()
    return extractor


@pytest.fixture
def container(aggregator, signal_extractor):
    return ServiceContainer(
        aggregator=aggregator,
        signal_extractor=signal_extractor,
        rate_limiter=KeyedRateLimiter(requests_per_minute=20),
        resume_repository=MagicMock(),
        cache_repository=MagicMock(),
        scorer=RelevanceScorer(),
    )


@pytest.fixture
def client(container):
    """FastAPI test client fixture."""
    return TestClient(create_app(container))


@pytest.fixture
def auth_headers():
    return {"Authorization": f"Bearer {API_SECRET}"}


@pytest.fixture
def cron_headers():
    return {"Authorization": f"Bearer {CRON_SECRET}"}
