"""
Unit tests for MongoJobsCacheRepository.

Collections are MagicMocks; assertions check the queries and updates sent
to MongoDB.
"""

from datetime import datetime, timedelta
from unittest.mock import MagicMock

import pytest
from pymongo import UpdateOne
from pymongo.errors import ServerSelectionTimeoutError

from src.common.repositories import MongoJobsCacheRepository
from src.common.types import CacheEntry
from job_fixtures import NOW, make_job


@pytest.fixture
def collections():
    return {"job_search_cache": MagicMock(), "GlobalJobsCache": MagicMock()}


@pytest.fixture
def repo(collections):
    db = MagicMock()
    db.__getitem__.side_effect = lambda name: collections[name]
    return MongoJobsCacheRepository(db)


def _entry_doc(**overrides):
    doc = CacheEntry(
        cache_key="jobs:abc",
        query=["truck driver"],
        location="Edmonton, AB",
        jobs=[make_job()],
        created_at=NOW,
        expires_at=NOW + timedelta(hours=24),
    ).to_dict()
    doc["created_at"] = NOW
    doc["expires_at"] = NOW + timedelta(hours=24)
    doc.update(overrides)
    return doc


class TestSearchEntries:
    """Tests for job_search_cache operations."""

    def test_find_search_filters_expired(self, repo, collections):
        collections["job_search_cache"].find_one.return_value = _entry_doc()

        entry = repo.find_search("jobs:abc")

        query = collections["job_search_cache"].find_one.call_args[0][0]
        assert query["cache_key"] == "jobs:abc"
        assert "$gt" in query["expires_at"]
        assert entry.jobs[0].title == "Truck Driver"

    def test_find_search_include_expired(self, repo, collections):
        collections["job_search_cache"].find_one.return_value = None

        assert repo.find_search("jobs:abc", include_expired=True) is None

        query = collections["job_search_cache"].find_one.call_args[0][0]
        assert query == {"cache_key": "jobs:abc"}

    def test_find_search_database_error_is_miss(self, repo, collections):
        collections["job_search_cache"].find_one.side_effect = ServerSelectionTimeoutError("down")
        assert repo.find_search("jobs:abc") is None

    def test_save_search_sets_purge_at(self, repo, collections):
        entry = CacheEntry.from_dict(_entry_doc())
        purge_at = entry.expires_at + timedelta(days=7)

        assert repo.save_search(entry, purge_at) is True

        filter_, update = collections["job_search_cache"].update_one.call_args[0]
        assert filter_ == {"cache_key": "jobs:abc"}
        assert update["$set"]["purge_at"] == purge_at
        assert update["$set"]["expires_at"] == entry.expires_at
        assert collections["job_search_cache"].update_one.call_args[1]["upsert"] is True

    def test_save_search_error_returns_false(self, repo, collections):
        collections["job_search_cache"].update_one.side_effect = ServerSelectionTimeoutError("down")
        entry = CacheEntry.from_dict(_entry_doc())
        assert repo.save_search(entry, entry.expires_at) is False

    def test_increment_search_count(self, repo, collections):
        collections["job_search_cache"].find_one_and_update.return_value = {"search_count": 4}

        assert repo.increment_search_count("jobs:abc") == 4

        update = collections["job_search_cache"].find_one_and_update.call_args[0][1]
        assert update["$inc"] == {"search_count": 1}

    def test_clear_searches(self, repo, collections):
        collections["job_search_cache"].delete_many.return_value = MagicMock(deleted_count=3)
        assert repo.clear_searches() == 3


class TestGlobalListings:
    """Tests for GlobalJobsCache operations."""

    def test_upsert_jobs_builds_bulk_operations(self, repo, collections):
        collections["GlobalJobsCache"].bulk_write.return_value = MagicMock(upserted_count=2, modified_count=0)
        jobs = [make_job(), make_job(title="Cook", location="Calgary, AB")]
        expires_at = NOW + timedelta(days=14)

        written = repo.upsert_jobs(jobs, ["Truck Driver", " cook "], expires_at)

        assert written == 2
        operations = collections["GlobalJobsCache"].bulk_write.call_args[0][0]
        assert len(operations) == 2
        assert all(isinstance(op, UpdateOne) for op in operations)

        doc = operations[0]._doc
        assert operations[0]._filter == {"jobId": jobs[0].external_id}
        assert doc["$setOnInsert"]["city"] == "edmonton"
        assert doc["$setOnInsert"]["country"] == "CA"
        assert doc["$set"]["expiresAt"] == expires_at
        assert doc["$addToSet"]["keywords"]["$each"] == ["cook", "truck driver"]

    def test_upsert_nothing(self, repo, collections):
        assert repo.upsert_jobs([], ["cook"], NOW) == 0
        collections["GlobalJobsCache"].bulk_write.assert_not_called()

    def test_find_jobs_query(self, repo, collections):
        cursor = MagicMock()
        cursor.sort.return_value.limit.return_value = [make_job().to_dict()]
        collections["GlobalJobsCache"].find.return_value = cursor

        jobs = repo.find_jobs(["Truck Driver"], "Edmonton, AB", limit=10)

        query = collections["GlobalJobsCache"].find.call_args[0][0]
        assert query["keywords"] == {"$in": ["truck driver"]}
        assert query["$or"][0]["location"]["$regex"] == "Edmonton"
        cursor.sort.return_value.limit.assert_called_once_with(10)
        assert jobs[0].title == "Truck Driver"

    def test_find_jobs_without_keywords(self, repo, collections):
        assert repo.find_jobs([" "]) == []
        collections["GlobalJobsCache"].find.assert_not_called()

    def test_find_jobs_outage_returns_fresh_list(self, repo, collections):
        collections["GlobalJobsCache"].find.side_effect = ServerSelectionTimeoutError("down")

        first = repo.find_jobs(["cook"])
        first.append(make_job())

        assert repo.find_jobs(["cook"]) == []

    def test_get_stats(self, repo, collections):
        collections["job_search_cache"].count_documents.side_effect = [10, 4]
        collections["GlobalJobsCache"].count_documents.return_value = 250
        collections["GlobalJobsCache"].aggregate.return_value = [
            {"_id": "eluta", "count": 200},
            {"_id": None, "count": 50},
        ]

        stats = repo.get_stats()

        assert stats["searchEntries"] == 10
        assert stats["freshSearchEntries"] == 4
        assert stats["listings"] == 250
        assert stats["listingsBySource"] == {"eluta": 200, "unknown": 50}

    def test_ensure_indexes_ttl(self, repo, collections):
        repo.ensure_indexes()

        search_calls = collections["job_search_cache"].create_index.call_args_list
        assert any(c.kwargs.get("expireAfterSeconds") == 0 and c.args[0] == "purge_at" for c in search_calls)
        job_calls = collections["GlobalJobsCache"].create_index.call_args_list
        assert any(c.kwargs.get("expireAfterSeconds") == 0 and c.args[0] == "expiresAt" for c in job_calls)
