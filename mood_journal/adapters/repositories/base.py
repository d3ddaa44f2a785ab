"""
Entry repository interface and live subscription handle.

Entries are stored as independently addressable records: create() is a
single-record insert, never a rewrite of a per-user array. Subscribers
receive the full snapshot of a user's entries, newest first, on every change.
"""

import logging
import threading
from enum import Enum
from typing import Callable, List, Optional

from mood_journal.core.errors import SyncError
from mood_journal.core.models import MoodEntry

logger = logging.getLogger(__name__)

SnapshotCallback = Callable[[List[MoodEntry]], None]
ErrorCallback = Callable[[SyncError], None]


class SubscriptionState(Enum):
    ACTIVE = "active"
    UNSUBSCRIBED = "unsubscribed"


class Subscription:
    """
    Handle for one live subscription.

    Deliveries and cancellation share a re-entrant lock: once unsubscribe()
    returns, no further snapshot reaches the callback. Cancelling twice is
    a no-op. A cancelled handle cannot be reactivated; subscribe again.
    """

    def __init__(self, user_id: str, on_change: SnapshotCallback,
                 on_error: Optional[ErrorCallback] = None,
                 on_cancel: Optional[Callable[[], None]] = None):
        self.user_id = user_id
        self._on_change = on_change
        self._on_error = on_error
        self._on_cancel = on_cancel
        self._lock = threading.RLock()
        self._state = SubscriptionState.ACTIVE

    @property
    def state(self) -> SubscriptionState:
        return self._state

    @property
    def active(self) -> bool:
        return self._state is SubscriptionState.ACTIVE

    def deliver(self, snapshot: List[MoodEntry]) -> bool:
        """
        Pushes a snapshot to the subscriber if still active.

        Returns:
            True if the callback was invoked.
        """
        with self._lock:
            if not self.active:
                return False
            self._on_change(snapshot)
            return True

    def fail(self, error: SyncError) -> None:
        """Reports a transport failure; non-recoverable errors end the subscription."""
        with self._lock:
            if not self.active:
                return
            if self._on_error is not None:
                self._on_error(error)
            else:
                logger.warning(f"[WARN] Entry sync error for {self.user_id}: {error}")
            if not error.recoverable:
                self._state = SubscriptionState.UNSUBSCRIBED

    def unsubscribe(self) -> None:
        with self._lock:
            if not self.active:
                return
            self._state = SubscriptionState.UNSUBSCRIBED
        if self._on_cancel is not None:
            self._on_cancel()
        logger.info(f"Subscription for {self.user_id} cancelled")

    __call__ = unsubscribe


def sort_snapshot(entries: List[MoodEntry]) -> List[MoodEntry]:
    """
    Orders entries newest first.

    Input is expected in insertion order; a stable sort on the reversed
    list keeps later inserts ahead of earlier ones sharing a timestamp.
    """
    return sorted(reversed(entries), key=lambda entry: entry.date, reverse=True)


class EntryRepository:
    """Capability interface for persisted entries."""

    def create(self, user_id: str, entry: MoodEntry) -> str:
        """
        Appends one entry to the user's collection.

        Returns:
            Store-assigned identifier.

        Raises:
            StorageError: If the insert fails.
        """
        raise NotImplementedError

    def snapshot(self, user_id: str) -> List[MoodEntry]:
        """Returns the user's entries, newest first."""
        raise NotImplementedError

    def subscribe(self, user_id: str, on_change: SnapshotCallback,
                  on_error: Optional[ErrorCallback] = None) -> Subscription:
        """Registers a live listener; see Subscription for delivery semantics."""
        raise NotImplementedError
