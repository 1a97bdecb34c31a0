"""
Repository Pattern for MongoDB Operations

Repositories receive a pymongo Database from the caller; nothing here
holds a process-wide client.

Public API:
- JobsCacheRepositoryInterface / MongoJobsCacheRepository: document cache
  (job_search_cache + GlobalJobsCache)
- ResumeRepositoryInterface / MongoResumeRepository: resumes and their signals

Usage:
    from src.common.database import DatabaseClient
    from src.common.repositories import MongoJobsCacheRepository

    db = DatabaseClient(Config.MONGODB_URI, Config.MONGO_DB_NAME).db
    cache_repo = MongoJobsCacheRepository(db)
    cache_repo.ensure_indexes()
"""

from .jobs_cache_repository import JobsCacheRepositoryInterface, MongoJobsCacheRepository
from .resume_repository import (
    MongoResumeRepository,
    ResumeRepositoryInterface,
    resume_signals_of,
    resume_text_of,
)

__all__ = [
    "JobsCacheRepositoryInterface",
    "MongoJobsCacheRepository",
    "ResumeRepositoryInterface",
    "MongoResumeRepository",
    "resume_signals_of",
    "resume_text_of",
]
