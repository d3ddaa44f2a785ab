"""
In-process entry repository for dry runs and tests.

Writes and deliveries are serialized under one lock, so every subscriber
sees snapshots in the order the writes happened.
"""

import dataclasses
import logging
import threading
from typing import Dict, List, Optional

from bson import ObjectId

from mood_journal.adapters.repositories.base import (
    EntryRepository, ErrorCallback, SnapshotCallback, Subscription, sort_snapshot
)
from mood_journal.core.errors import StorageError
from mood_journal.core.models import MoodEntry

logger = logging.getLogger(__name__)


class InMemoryEntryRepository(EntryRepository):
    """Thread-safe dict-of-lists store keyed by user id."""

    def __init__(self):
        self._lock = threading.RLock()
        self._entries: Dict[str, List[MoodEntry]] = {}
        self._subscriptions: Dict[str, List[Subscription]] = {}

    def create(self, user_id: str, entry: MoodEntry) -> str:
        if not user_id:
            raise StorageError("Cannot store an entry without a user id")

        with self._lock:
            entry_id = str(ObjectId())
            stored = dataclasses.replace(entry, id=entry_id, user_id=user_id)
            self._entries.setdefault(user_id, []).append(stored)
            logger.info(f"[OK] Entry {entry_id} stored for {user_id}")
            self._notify(user_id)

        return entry_id

    def snapshot(self, user_id: str) -> List[MoodEntry]:
        with self._lock:
            return sort_snapshot(self._entries.get(user_id, []))

    def subscribe(self, user_id: str, on_change: SnapshotCallback,
                  on_error: Optional[ErrorCallback] = None) -> Subscription:
        subscription = Subscription(
            user_id, on_change, on_error,
            on_cancel=lambda: self._remove(subscription),
        )

        with self._lock:
            self._subscriptions.setdefault(user_id, []).append(subscription)
            subscription.deliver(self.snapshot(user_id))

        return subscription

    def _notify(self, user_id: str) -> None:
        current = self.snapshot(user_id)
        for subscription in list(self._subscriptions.get(user_id, [])):
            subscription.deliver(list(current))

    def _remove(self, subscription: Subscription) -> None:
        with self._lock:
            listeners = self._subscriptions.get(subscription.user_id, [])
            if subscription in listeners:
                listeners.remove(subscription)
