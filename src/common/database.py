"""
MongoDB connection management for the job aggregation pipeline.

One DatabaseClient is built at service startup and handed to the
repositories; nothing here is process-global.
"""

import logging
from typing import Optional

from pymongo import MongoClient
from pymongo.database import Database
from pymongo.errors import PyMongoError

from src.common.error_handling import CacheUnavailableError

logger = logging.getLogger(__name__)


class DatabaseClient:
    """
    Owns a MongoClient and exposes the configured database.
    """

    def __init__(
        self,
        mongodb_uri: str,
        database: str = "jobs",
        server_selection_timeout_ms: int = 5000,
    ):
        """
        Initialize the client (connection is lazy).

        Args:
            mongodb_uri: MongoDB connection string
            database: Database name
            server_selection_timeout_ms: Fail fast when Mongo is unreachable
        """
        if not mongodb_uri:
            raise ValueError("MongoDB URI is required")
        self._mongodb_uri = mongodb_uri
        self._database_name = database
        self._timeout_ms = server_selection_timeout_ms
        self._client: Optional[MongoClient] = None

    def connect(self) -> Database:
        if self._client is None:
            self._client = MongoClient(
                self._mongodb_uri,
                serverSelectionTimeoutMS=self._timeout_ms,
            )
            logger.info(f"MongoDB client created for database '{self._database_name}'")
        return self._client[self._database_name]

    def ping(self) -> None:
        """
        Round-trip to the server.

        Raises:
            CacheUnavailableError: MongoDB could not be reached
        """
        try:
            self.connect()
            self._client.admin.command("ping")
        except PyMongoError as e:
            raise CacheUnavailableError(f"MongoDB unreachable: {e}") from e

    @property
    def db(self) -> Database:
        """Get the database instance, connecting on first use."""
        return self.connect()

    def close(self) -> None:
        """Close the MongoDB connection."""
        if self._client is not None:
            self._client.close()
            self._client = None
            logger.info("Disconnected from MongoDB")
