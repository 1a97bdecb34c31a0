"""
Search service route modules.

Each module handles a specific area of functionality.
"""

from .cron import router as cron_router
from .job_search import router as job_search_router
from .resume import router as resume_router

__all__ = [
    "cron_router",
    "job_search_router",
    "resume_router",
]
