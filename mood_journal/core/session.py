"""
Per-user journal session.

The session is the explicit user context handed to the pipeline and the
repository. It owns the live subscription, keeps the latest snapshot for
projections, and allows at most one submission in flight at a time.
"""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import tzinfo
from typing import Callable, List, Optional, Union

from mood_journal.adapters.repositories.base import EntryRepository, Subscription
from mood_journal.core.errors import JournalError, SubmissionInProgressError, SyncError
from mood_journal.core.models import Mood, MoodEntry
from mood_journal.core.pipeline import ImageAttachment, SubmissionPipeline
from mood_journal.core.projections import CalendarEvent, ChartSeries, calendar_events, chart_series

logger = logging.getLogger(__name__)

SubmissionCallback = Callable[[Optional[MoodEntry], Optional[JournalError]], None]


class JournalSession:
    """Live view and submission entry point for one user."""

    def __init__(self, user_id: str, pipeline: SubmissionPipeline,
                 repository: Optional[EntryRepository] = None,
                 executor: Optional[ThreadPoolExecutor] = None):
        if not user_id:
            raise ValueError("JournalSession requires a user id")

        self.user_id = user_id
        self.pipeline = pipeline
        self.repository = repository or pipeline.repository

        self._entries: List[MoodEntry] = []
        self._sync_error: Optional[SyncError] = None
        self._subscription: Optional[Subscription] = None
        self._on_snapshot: Optional[Callable[[List[MoodEntry]], None]] = None
        self._on_sync_error: Optional[Callable[[SyncError], None]] = None

        self._closed = False
        self._submit_lock = threading.Lock()
        self._executor = executor
        self._owns_executor = executor is None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def open(self, on_snapshot: Optional[Callable[[List[MoodEntry]], None]] = None,
             on_sync_error: Optional[Callable[[SyncError], None]] = None) -> "JournalSession":
        """
        Starts the live subscription.

        Args:
            on_snapshot: Called with every new snapshot, newest entry first.
            on_sync_error: Called when the entry stream degrades.
        """
        if self._closed:
            raise JournalError("session is closed")
        self._on_snapshot = on_snapshot
        self._on_sync_error = on_sync_error
        self._subscribe()
        return self

    def resubscribe(self) -> None:
        """Replaces the subscription, e.g. after a non-recoverable SyncError."""
        if self._closed:
            raise JournalError("session is closed")
        if self._subscription is not None:
            self._subscription.unsubscribe()
        self._subscribe()

    def close(self) -> None:
        """Stops the subscription. In-flight submissions finish but their callbacks are dropped."""
        if self._closed:
            return
        self._closed = True
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None
        if self._executor is not None and self._owns_executor:
            self._executor.shutdown(wait=False)
        logger.info(f"Journal session for {self.user_id} closed")

    def __enter__(self) -> "JournalSession":
        if self._subscription is None:
            self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def is_open(self) -> bool:
        return not self._closed

    # ------------------------------------------------------------------
    # Live state
    # ------------------------------------------------------------------

    @property
    def entries(self) -> List[MoodEntry]:
        return list(self._entries)

    @property
    def sync_error(self) -> Optional[SyncError]:
        """Last stream error, cleared by the next successful snapshot."""
        return self._sync_error

    @property
    def degraded(self) -> bool:
        return self._sync_error is not None

    @property
    def needs_resubscribe(self) -> bool:
        return self._subscription is not None and not self._subscription.active and not self._closed

    def chart(self) -> ChartSeries:
        return chart_series(self._entries)

    def calendar(self, tz: Optional[tzinfo] = None) -> List[CalendarEvent]:
        return calendar_events(self._entries, tz)

    def _subscribe(self) -> None:
        self._subscription = self.repository.subscribe(
            self.user_id, self._handle_snapshot, self._handle_sync_error
        )

    def _handle_snapshot(self, snapshot: List[MoodEntry]) -> None:
        if self._closed:
            return
        self._entries = list(snapshot)
        self._sync_error = None
        if self._on_snapshot is not None:
            self._on_snapshot(list(snapshot))

    def _handle_sync_error(self, error: SyncError) -> None:
        if self._closed:
            return
        self._sync_error = error
        logger.warning(f"[WARN] Journal view for {self.user_id} degraded: {error}")
        if self._on_sync_error is not None:
            self._on_sync_error(error)

    # ------------------------------------------------------------------
    # Submissions
    # ------------------------------------------------------------------

    def submit(self, mood: Union[Mood, str, None], text: str = "",
               image: Optional[ImageAttachment] = None) -> MoodEntry:
        """
        Submits one entry, blocking until it is persisted.

        Raises:
            SubmissionInProgressError: If another submission is in flight.
            ValidationError, StorageError: From the pipeline.
        """
        self._begin_submission()
        try:
            return self.pipeline.submit(self.user_id, mood, text, image)
        finally:
            self._submit_lock.release()

    def submit_in_background(self, mood: Union[Mood, str, None], text: str = "",
                             image: Optional[ImageAttachment] = None,
                             on_done: Optional[SubmissionCallback] = None) -> Future:
        """
        Submits one entry on the session executor.

        on_done receives (entry, None) on success or (None, error) on a
        JournalError, and only while the session is still open.

        Raises:
            SubmissionInProgressError: If another submission is in flight.
        """
        self._begin_submission()
        try:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="journal-submit")
            return self._executor.submit(self._run_submission, mood, text, image, on_done)
        except RuntimeError:
            self._submit_lock.release()
            raise

    def _begin_submission(self) -> None:
        if self._closed:
            raise JournalError("session is closed")
        if not self._submit_lock.acquire(blocking=False):
            raise SubmissionInProgressError("a submission is already in progress")

    def _run_submission(self, mood, text, image, on_done: Optional[SubmissionCallback]) -> Optional[MoodEntry]:
        entry: Optional[MoodEntry] = None
        error: Optional[JournalError] = None
        try:
            entry = self.pipeline.submit(self.user_id, mood, text, image)
        except JournalError as e:
            error = e
            logger.warning(f"[WARN] Background submission for {self.user_id} failed: {e}")
        finally:
            self._submit_lock.release()

        if self._closed:
            logger.info(f"Session for {self.user_id} closed before submission completed, result dropped")
            return entry
        if on_done is not None:
            on_done(entry, error)
        return entry
