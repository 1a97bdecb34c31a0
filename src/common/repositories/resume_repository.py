"""
Resume Repository

Read access to stored resumes and persistence of their extracted search
signals (``resumeSignals``), which are derived once per resume version.
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from bson import ObjectId
from pymongo import DESCENDING
from pymongo.database import Database

from src.common.types import ResumeSignals

logger = logging.getLogger(__name__)


class ResumeRepositoryInterface(ABC):
    """Abstract interface for the resumes collection."""

    @abstractmethod
    def find_resume(self, resume_id: str, owner_id: Optional[str] = None) -> Optional[Dict[str, Any]]:
        """Find a resume by id (optionally scoped to an owner)."""
        pass

    @abstractmethod
    def save_signals(self, resume_id: str, signals: ResumeSignals) -> bool:
        """Store extracted signals on the resume."""
        pass

    @abstractmethod
    def list_analyzed(self, limit: int = 100) -> List[Tuple[str, ResumeSignals]]:
        """Most recently analyzed resumes that have keywords and a location."""
        pass


def _id_filter(resume_id: str) -> Dict[str, Any]:
    """Match either an ObjectId or a plain string _id."""
    if ObjectId.is_valid(resume_id):
        return {"_id": {"$in": [ObjectId(resume_id), resume_id]}}
    return {"_id": resume_id}


def resume_text_of(resume: Dict[str, Any]) -> str:
    """Plain text of a stored resume, whichever field it was saved under."""
    for field_name in ("extractedText", "resumeText", "text"):
        value = resume.get(field_name)
        if isinstance(value, str) and value.strip():
            return value
    return ""


def resume_signals_of(resume: Dict[str, Any]) -> Optional[ResumeSignals]:
    """Stored signals, or None when the resume has not been analyzed."""
    raw = resume.get("resumeSignals")
    if not raw or not raw.get("keywords"):
        return None
    return ResumeSignals.from_dict(raw)


class MongoResumeRepository(ResumeRepositoryInterface):
    """MongoDB implementation over the ``resumes`` collection."""

    COLLECTION = "resumes"

    def __init__(self, db: Database):
        self.db = db
        self.resumes = db[self.COLLECTION]

    def find_resume(self, resume_id: str, owner_id: Optional[str] = None) -> Optional[Dict[str, Any]]:
        query = _id_filter(resume_id)
        if owner_id:
            query["userId"] = owner_id
        return self.resumes.find_one(query)

    def save_signals(self, resume_id: str, signals: ResumeSignals) -> bool:
        try:
            result = self.resumes.update_one(
                _id_filter(resume_id),
                {"$set": {
                    "resumeSignals": signals.to_dict(),
                    "signalsUpdatedAt": datetime.utcnow(),
                }},
            )
            return result.matched_count > 0
        except Exception as e:
            logger.error(f"Error saving signals for resume {resume_id}: {e}")
            return False

    def list_analyzed(self, limit: int = 100) -> List[Tuple[str, ResumeSignals]]:
        cursor = (
            self.resumes.find(
                {
                    "resumeSignals.keywords.0": {"$exists": True},
                    "resumeSignals.location": {"$nin": [None, ""]},
                },
                {"resumeSignals": 1},
            )
            .sort("signalsUpdatedAt", DESCENDING)
            .limit(limit)
        )
        return [
            (str(doc["_id"]), ResumeSignals.from_dict(doc["resumeSignals"]))
            for doc in cursor
        ]
