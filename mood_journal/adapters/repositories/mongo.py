"""
MongoDB entry repository with change-stream synchronization.

This module provides:
- One document per entry in the 'mood_entries' collection (atomic insert_one)
- Ordered snapshots per user (date descending, newest insert first on ties)
- Live subscriptions backed by a change stream consumed on a daemon thread

Change streams need a replica set or sharded cluster. On a standalone
server every watch attempt fails and is reported as a SyncError.
"""

import logging
import os
import threading
from typing import Any, Dict, List, Optional

import certifi
import pymongo
from pymongo import MongoClient
from pymongo.errors import OperationFailure, PyMongoError, ServerSelectionTimeoutError

from mood_journal.adapters.repositories.base import (
    EntryRepository, ErrorCallback, SnapshotCallback, Subscription
)
from mood_journal.core.errors import StorageError, SyncError
from mood_journal.core.models import MoodEntry

logger = logging.getLogger(__name__)


# ============================================================================
# CONSTANTS
# ============================================================================

DEFAULT_DATABASE_NAME = "mood_journal"
ENTRIES_COLLECTION_NAME = "mood_entries"

CONNECTION_TIMEOUT_MS = 10000
CHANGE_STREAM_AWAIT_MS = 1000
DEFAULT_RETRY_DELAY_SECONDS = 5.0

SNAPSHOT_SORT = [("date", pymongo.DESCENDING), ("_id", pymongo.DESCENDING)]


# ============================================================================
# EXCEPTIONS
# ============================================================================

class MongoDBConnectionError(StorageError):
    """Raised when MongoDB connection fails."""
    pass


# ============================================================================
# DATABASE CONNECTION
# ============================================================================

class DatabaseConfig:
    """Encapsulates MongoDB connection configuration."""

    def __init__(self, uri: Optional[str] = None, database_name: Optional[str] = None):
        """
        Initialize database configuration.

        Args:
            uri: MongoDB connection URI (defaults to MONGODB_URI env var)
            database_name: Database name (defaults to MOOD_JOURNAL_DB env var)

        Raises:
            ValueError: If URI not provided and env var not set
        """
        self.uri = uri or os.environ.get("MONGODB_URI")
        if not self.uri:
            raise ValueError("MONGODB_URI environment variable not set")
        self.database_name = database_name or os.environ.get("MOOD_JOURNAL_DB", DEFAULT_DATABASE_NAME)

    def get_client(self) -> MongoClient:
        """
        Creates a MongoDB client with secure SSL/TLS configuration.

        Returns:
            Connected MongoClient instance.

        Raises:
            MongoDBConnectionError: If connection fails.
        """
        try:
            tls_options: Dict[str, Any] = {}
            if self.uri.startswith("mongodb+srv://") or "tls=true" in self.uri.lower():
                tls_options["tlsCAFile"] = certifi.where()

            client = MongoClient(
                self.uri,
                serverSelectionTimeoutMS=CONNECTION_TIMEOUT_MS,
                connectTimeoutMS=CONNECTION_TIMEOUT_MS,
                **tls_options
            )
            client.admin.command('ping')
            logger.info("[OK] MongoDB connected successfully")
            return client

        except ServerSelectionTimeoutError:
            logger.error("MongoDB connection timeout")
            raise MongoDBConnectionError("Connection timeout") from None
        except OperationFailure as e:
            logger.error(f"MongoDB authentication failed: {e}")
            raise MongoDBConnectionError(f"Authentication failed: {e}") from None
        except PyMongoError as e:
            logger.error(f"MongoDB connection failed: {e}")
            raise MongoDBConnectionError(str(e)) from e


class DatabaseConnection:
    """Lazily connected MongoDB client holder."""

    def __init__(self, config: Optional[DatabaseConfig] = None):
        self._config = config
        self._client: Optional[MongoClient] = None

    def get_client(self) -> MongoClient:
        """
        Gets or creates MongoDB client.

        Raises:
            MongoDBConnectionError: If configuration is missing or connection fails.
        """
        if self._client is None:
            try:
                config = self._config or DatabaseConfig()
            except ValueError as e:
                logger.error(str(e))
                raise MongoDBConnectionError(str(e)) from e
            self._config = config
            self._client = config.get_client()

        return self._client

    def get_database(self) -> pymongo.database.Database:
        client = self.get_client()
        return client[self._config.database_name]

    def close(self) -> None:
        """Closes database connection."""
        if self._client:
            self._client.close()
            self._client = None
            logger.info("MongoDB connection closed")


# ============================================================================
# CHANGE STREAM WORKER
# ============================================================================

class ChangeStreamWorker(threading.Thread):
    """
    Feeds one subscription from a change stream.

    The stream is opened before the initial snapshot is read, so no insert
    can fall between the two. Each change triggers a full re-query. After a
    transport failure the worker reports a SyncError, waits retry_delay and
    reopens the stream; past max_retries consecutive failures it reports a
    non-recoverable error and exits.
    """

    def __init__(self, repository: "MongoEntryRepository", subscription: Subscription,
                 retry_delay: float = DEFAULT_RETRY_DELAY_SECONDS,
                 max_retries: Optional[int] = None):
        super().__init__(name=f"entry-sync-{subscription.user_id}", daemon=True)
        self.repository = repository
        self.subscription = subscription
        self.retry_delay = retry_delay
        self.max_retries = max_retries
        self._stop_event = threading.Event()
        self._stream = None

    def stop(self) -> None:
        self._stop_event.set()
        stream = self._stream
        if stream is not None:
            try:
                stream.close()
            except PyMongoError as e:
                logger.debug(f"Change stream close failed: {e}")

    @property
    def stopped(self) -> bool:
        return self._stop_event.is_set()

    def run(self) -> None:
        user_id = self.subscription.user_id
        failures = 0

        while not self.stopped:
            try:
                with self.repository.collection.watch(
                    self.repository.change_pipeline(user_id),
                    max_await_time_ms=CHANGE_STREAM_AWAIT_MS,
                ) as stream:
                    self._stream = stream
                    self.subscription.deliver(self.repository.fetch_entries(user_id))
                    failures = 0

                    while not self.stopped and stream.alive:
                        change = stream.try_next()
                        if change is None:
                            continue
                        self.subscription.deliver(self.repository.fetch_entries(user_id))

            except PyMongoError as e:
                if self.stopped:
                    break
                failures += 1
                recoverable = self.max_retries is None or failures <= self.max_retries
                logger.warning(f"[WARN] Entry stream for {user_id} failed ({failures}): {e}")
                self.subscription.fail(SyncError(f"Entry sync failed: {e}", recoverable=recoverable))
                if not recoverable:
                    break
                self._stop_event.wait(self.retry_delay)
            finally:
                self._stream = None

        logger.info(f"Entry stream for {user_id} stopped")


# ============================================================================
# REPOSITORY
# ============================================================================

class MongoEntryRepository(EntryRepository):
    """Stores each entry as its own document in a shared collection."""

    def __init__(self, collection: pymongo.collection.Collection,
                 retry_delay: float = DEFAULT_RETRY_DELAY_SECONDS,
                 max_retries: Optional[int] = None):
        self.collection = collection
        self.retry_delay = retry_delay
        self.max_retries = max_retries

    @classmethod
    def from_database(cls, database: pymongo.database.Database, **kwargs) -> "MongoEntryRepository":
        return cls(database[ENTRIES_COLLECTION_NAME], **kwargs)

    def ensure_indexes(self) -> None:
        """
        Creates the (userId, date desc) index used by snapshots.

        Raises:
            StorageError: If index creation fails.
        """
        try:
            self.collection.create_index(
                [("userId", pymongo.ASCENDING), ("date", pymongo.DESCENDING)],
                name="user_date_desc",
            )
        except PyMongoError as e:
            logger.error(f"Failed to create entry indexes: {e}")
            raise StorageError(f"Index creation failed: {e}") from e

    def create(self, user_id: str, entry: MoodEntry) -> str:
        if not user_id:
            raise StorageError("Cannot store an entry without a user id")

        document = entry.to_record()
        document["userId"] = user_id

        try:
            result = self.collection.insert_one(document)
        except PyMongoError as e:
            logger.error(f"Failed to insert entry for {user_id}: {e}")
            raise StorageError(f"Failed to save entry: {e}") from e

        entry_id = str(result.inserted_id)
        logger.info(f"[OK] Entry {entry_id} stored for {user_id}")
        return entry_id

    def fetch_entries(self, user_id: str) -> List[MoodEntry]:
        """
        Reads the user's entries, newest first.

        Raises:
            PyMongoError: Propagated for the caller to translate.
        """
        cursor = self.collection.find({"userId": user_id}).sort(SNAPSHOT_SORT)
        return [MoodEntry.from_record(doc, user_id=user_id) for doc in cursor]

    def snapshot(self, user_id: str) -> List[MoodEntry]:
        try:
            return self.fetch_entries(user_id)
        except PyMongoError as e:
            logger.error(f"Failed to read entries for {user_id}: {e}")
            raise StorageError(f"Failed to read entries: {e}") from e

    @staticmethod
    def change_pipeline(user_id: str) -> List[Dict[str, Any]]:
        """Change stream filter: inserts into this user's entries only."""
        return [{"$match": {"operationType": "insert", "fullDocument.userId": user_id}}]

    def subscribe(self, user_id: str, on_change: SnapshotCallback,
                  on_error: Optional[ErrorCallback] = None) -> Subscription:
        subscription = Subscription(
            user_id, on_change, on_error,
            on_cancel=lambda: worker.stop(),
        )
        worker = ChangeStreamWorker(
            self, subscription,
            retry_delay=self.retry_delay,
            max_retries=self.max_retries,
        )
        worker.start()
        logger.info(f"Subscribed to entries of {user_id}")
        return subscription


# ============================================================================
# PUBLIC API
# ============================================================================

def connect_repository(config: Optional[DatabaseConfig] = None, **kwargs) -> MongoEntryRepository:
    """
    Connects to MongoDB and returns an indexed entry repository.

    Raises:
        MongoDBConnectionError: If connection fails.
        StorageError: If index creation fails.
    """
    connection = DatabaseConnection(config)
    repository = MongoEntryRepository.from_database(connection.get_database(), **kwargs)
    repository.ensure_indexes()
    return repository
