import pytest
from unittest.mock import MagicMock

from mood_journal.adapters.repositories.base import SubscriptionState
from mood_journal.adapters.repositories.memory import InMemoryEntryRepository
from mood_journal.core.errors import StorageError, SyncError
from mood_journal.core.models import MoodEntry

USER = "user-1"


def make_entry(mood="happy", date="2026-10-19T08:00:00.000Z", entry_id=None, user_id=USER):
    return MoodEntry(id=entry_id, user_id=user_id, mood=mood, text="", date=date,
                     sentiment_feedback="unavailable")


@pytest.fixture
def repo():
    return InMemoryEntryRepository()


class TestInMemoryRepository:
    """Test suite for the in-process store and its subscriptions."""

    # ========================================================================
    # 1. WRITES & SNAPSHOTS
    # ========================================================================

    def test_create_assigns_unique_ids(self, repo):
        first = repo.create(USER, make_entry(entry_id=None))
        second = repo.create(USER, make_entry(entry_id=None))

        assert first != second
        assert {e.id for e in repo.snapshot(USER)} == {first, second}

    def test_snapshot_newest_first(self, repo):
        repo.create(USER, make_entry("sad", "2026-10-17T09:00:00.000Z"))
        repo.create(USER, make_entry("happy", "2026-10-19T09:00:00.000Z"))
        repo.create(USER, make_entry("angry", "2026-10-18T09:00:00.000Z"))

        assert [e.mood for e in repo.snapshot(USER)] == ["happy", "angry", "sad"]

    def test_equal_dates_keep_latest_insert_first(self, repo):
        date = "2026-10-19T09:00:00.000Z"
        older = repo.create(USER, make_entry("sad", date))
        newer = repo.create(USER, make_entry("happy", date))

        assert [e.id for e in repo.snapshot(USER)] == [newer, older]

    def test_users_are_isolated(self, repo):
        repo.create(USER, make_entry())
        assert repo.snapshot("user-2") == []

    def test_owner_taken_from_argument(self, repo):
        repo.create(USER, make_entry(user_id="someone-else"))
        assert repo.snapshot(USER)[0].user_id == USER

    def test_create_requires_user(self, repo):
        with pytest.raises(StorageError):
            repo.create("", make_entry())

    # ========================================================================
    # 2. SUBSCRIPTIONS
    # ========================================================================

    def test_subscribe_delivers_current_snapshot(self, repo):
        repo.create(USER, make_entry())
        seen = []
        repo.subscribe(USER, seen.append)

        assert len(seen) == 1
        assert len(seen[0]) == 1

    def test_every_write_delivers_full_snapshot(self, repo):
        seen = []
        repo.subscribe(USER, seen.append)
        repo.create(USER, make_entry("sad", "2026-10-18T09:00:00.000Z"))
        repo.create(USER, make_entry("happy", "2026-10-19T09:00:00.000Z"))

        assert [len(snapshot) for snapshot in seen] == [0, 1, 2]
        assert [e.mood for e in seen[-1]] == ["happy", "sad"]

    def test_other_users_writes_not_delivered(self, repo):
        seen = []
        repo.subscribe(USER, seen.append)
        repo.create("user-2", make_entry())

        assert seen == [[]]

    def test_unsubscribe_stops_deliveries(self, repo):
        on_change = MagicMock()
        subscription = repo.subscribe(USER, on_change)
        subscription.unsubscribe()
        repo.create(USER, make_entry())

        on_change.assert_called_once_with([])
        assert subscription.state is SubscriptionState.UNSUBSCRIBED

    def test_unsubscribe_twice_is_noop(self, repo):
        subscription = repo.subscribe(USER, MagicMock())
        subscription.unsubscribe()
        subscription()

        assert not subscription.active

    def test_non_recoverable_error_ends_subscription(self, repo):
        on_error = MagicMock()
        on_change = MagicMock()
        subscription = repo.subscribe(USER, on_change, on_error)

        subscription.fail(SyncError("gone", recoverable=False))
        subscription.fail(SyncError("again"))
        repo.create(USER, make_entry())

        on_error.assert_called_once()
        assert on_change.call_count == 1
        assert not subscription.active
