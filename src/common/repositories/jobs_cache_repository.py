"""
Jobs Cache Repository

Document-store tier of the search cache. Manages two collections:

    - job_search_cache: one entry per search (cache_key), holding the ranked
      listings. Freshness is judged by ``expires_at``; Mongo's TTL monitor
      removes entries at ``purge_at`` (expires_at + stale grace), so expired
      entries stay available as a stale fallback in between.
    - GlobalJobsCache: one document per listing (jobId), shared by all
      searches, expiring via a TTL index on ``expiresAt``.

All methods degrade to a miss on database errors (see cache_operation).
"""

import logging
import re
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional

from pymongo import ASCENDING, DESCENDING, ReturnDocument, UpdateOne
from pymongo.database import Database

from src.common.error_handling import cache_operation
from src.common.locations import split_location
from src.common.types import CacheEntry, JobListing

logger = logging.getLogger(__name__)


class JobsCacheRepositoryInterface(ABC):
    """
    Abstract interface for the document cache collections.
    """

    # =========================================================================
    # Search Entry Operations
    # =========================================================================

    @abstractmethod
    def find_search(self, cache_key: str, include_expired: bool = False) -> Optional[CacheEntry]:
        """Find a search entry; expired entries only when include_expired."""
        pass

    @abstractmethod
    def save_search(self, entry: CacheEntry, purge_at: datetime) -> bool:
        """Upsert a search entry by cache_key."""
        pass

    @abstractmethod
    def increment_search_count(self, cache_key: str) -> Optional[int]:
        """Bump the entry's search counter. Returns the new count."""
        pass

    @abstractmethod
    def clear_searches(self) -> int:
        """Delete all search entries. Returns count of deleted documents."""
        pass

    # =========================================================================
    # Global Listing Operations
    # =========================================================================

    @abstractmethod
    def upsert_jobs(
        self,
        jobs: List[JobListing],
        keywords: List[str],
        expires_at: datetime,
    ) -> int:
        """Upsert listings by jobId. Returns number of documents written."""
        pass

    @abstractmethod
    def find_jobs(
        self,
        keywords: List[str],
        location: Optional[str] = None,
        limit: int = 100,
    ) -> List[JobListing]:
        """Find unexpired listings tagged with any of the keywords."""
        pass

    @abstractmethod
    def get_stats(self) -> Dict[str, Any]:
        """Entry and listing counts for the stats endpoint."""
        pass

    @abstractmethod
    def ensure_indexes(self) -> None:
        """Ensure required indexes exist on both collections."""
        pass


class MongoJobsCacheRepository(JobsCacheRepositoryInterface):
    """
    MongoDB implementation of the document cache.
    """

    SEARCH_COLLECTION = "job_search_cache"
    JOBS_COLLECTION = "GlobalJobsCache"

    def __init__(self, db: Database):
        """
        Initialize the repository.

        Args:
            db: pymongo Database handle (owned by the caller)
        """
        self.db = db
        self.searches = db[self.SEARCH_COLLECTION]
        self.jobs = db[self.JOBS_COLLECTION]

    # =========================================================================
    # Search Entry Operations
    # =========================================================================

    @cache_operation("find search entry", tier="document_cache")
    def find_search(self, cache_key: str, include_expired: bool = False) -> Optional[CacheEntry]:
        query: Dict[str, Any] = {"cache_key": cache_key}
        if not include_expired:
            query["expires_at"] = {"$gt": datetime.utcnow()}

        doc = self.searches.find_one(query)
        if not doc:
            return None
        return CacheEntry.from_dict(doc)

    @cache_operation("save search entry", tier="document_cache", fallback_value=False)
    def save_search(self, entry: CacheEntry, purge_at: datetime) -> bool:
        document = entry.to_dict()
        document["created_at"] = entry.created_at
        document["expires_at"] = entry.expires_at
        document["purge_at"] = purge_at
        document["last_searched"] = datetime.utcnow()

        self.searches.update_one(
            {"cache_key": entry.cache_key},
            {"$set": document},
            upsert=True,
        )
        return True

    @cache_operation("increment search count", tier="document_cache")
    def increment_search_count(self, cache_key: str) -> Optional[int]:
        doc = self.searches.find_one_and_update(
            {"cache_key": cache_key},
            {
                "$inc": {"search_count": 1},
                "$set": {"last_searched": datetime.utcnow()},
            },
            projection={"search_count": 1},
            return_document=ReturnDocument.AFTER,
        )
        return int(doc["search_count"]) if doc else None

    @cache_operation("clear search entries", tier="document_cache", fallback_value=0)
    def clear_searches(self) -> int:
        result = self.searches.delete_many({})
        return result.deleted_count

    # =========================================================================
    # Global Listing Operations
    # =========================================================================

    @cache_operation("upsert listings", tier="document_cache", fallback_value=0)
    def upsert_jobs(
        self,
        jobs: List[JobListing],
        keywords: List[str],
        expires_at: datetime,
    ) -> int:
        if not jobs:
            return 0

        now = datetime.utcnow()
        normalized_keywords = sorted({k.lower().strip() for k in keywords if k and k.strip()})
        operations = []

        for job in jobs:
            city, province, country = (job.city, job.province, job.country)
            if not (city or country):
                city, province, country = split_location(job.location)

            operations.append(UpdateOne(
                {"jobId": job.external_id},
                {
                    # Listings are immutable once cached
                    "$setOnInsert": {
                        "jobId": job.external_id,
                        "title": job.title,
                        "company": job.company,
                        "location": job.location,
                        "description": job.description,
                        "url": job.url,
                        "source": job.source,
                        "salary": job.salary_text,
                        "postedDate": job.posted_date,
                        "workType": job.work_type,
                        "skills": job.skills,
                        "city": city.lower() if city else None,
                        "province": province,
                        "country": country,
                        "downloadedAt": now,
                    },
                    "$set": {"lastSeenAt": now, "expiresAt": expires_at},
                    "$addToSet": {"keywords": {"$each": normalized_keywords}},
                },
                upsert=True,
            ))

        result = self.jobs.bulk_write(operations, ordered=False)
        return result.upserted_count + result.modified_count

    @cache_operation("find listings", tier="document_cache", fallback_value=[])
    def find_jobs(
        self,
        keywords: List[str],
        location: Optional[str] = None,
        limit: int = 100,
    ) -> List[JobListing]:
        normalized = [k.lower().strip() for k in keywords if k and k.strip()]
        if not normalized:
            return []

        query: Dict[str, Any] = {
            "keywords": {"$in": normalized},
            "expiresAt": {"$gt": datetime.utcnow()},
        }
        if location:
            pattern = {"$regex": re.escape(location.split(",")[0].strip()), "$options": "i"}
            query["$or"] = [
                {"location": pattern},
                {"city": pattern},
                {"province": pattern},
            ]

        cursor = self.jobs.find(query).sort("downloadedAt", DESCENDING).limit(limit)
        return [JobListing.from_dict(doc) for doc in cursor]

    @cache_operation("collect stats", tier="document_cache", fallback_value={})
    def get_stats(self) -> Dict[str, Any]:
        now = datetime.utcnow()
        by_source = {
            row["_id"] or "unknown": row["count"]
            for row in self.jobs.aggregate([
                {"$group": {"_id": "$source", "count": {"$sum": 1}}},
                {"$sort": {"count": -1}},
            ])
        }
        return {
            "searchEntries": self.searches.count_documents({}),
            "freshSearchEntries": self.searches.count_documents({"expires_at": {"$gt": now}}),
            "listings": self.jobs.count_documents({}),
            "listingsBySource": by_source,
        }

    def ensure_indexes(self) -> None:
        """Ensure required indexes exist on both collections."""
        try:
            self.searches.create_index("cache_key", unique=True, background=True)
            self.searches.create_index("purge_at", expireAfterSeconds=0, background=True)

            self.jobs.create_index("jobId", unique=True, background=True)
            self.jobs.create_index("expiresAt", expireAfterSeconds=0, background=True)
            self.jobs.create_index(
                [("country", ASCENDING), ("city", ASCENDING)],
                background=True,
            )
            self.jobs.create_index(
                [("keywords", ASCENDING), ("country", ASCENDING)],
                background=True,
            )
            self.jobs.create_index([("downloadedAt", DESCENDING)], background=True)
            logger.info("Jobs cache indexes ensured")
        except Exception as e:
            logger.warning(f"Error creating jobs cache indexes (may already exist): {e}")
