import pytest
import os
import sys
from unittest.mock import MagicMock, patch
from datetime import datetime, timezone

# Add project root to Python Path so modules can be imported
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from mood_journal.adapters.clients.sentiment import SentimentClassifier
from mood_journal.adapters.repositories.memory import InMemoryEntryRepository
from mood_journal.adapters.storage.media import MediaStore
from mood_journal.core.models import MoodEntry, SentimentLabel
from mood_journal.core.pipeline import SubmissionPipeline

FIXED_NOW = datetime(2026, 10, 19, 8, 15, 30, 123000, tzinfo=timezone.utc)

# ============================================================================
# 1. GLOBAL MOCKS (ENV VARS & SERVICES)
# ============================================================================

@pytest.fixture(autouse=True)
def mock_env_vars():
    """Sets up fake environment variables for all tests."""
    with patch.dict(os.environ, {
        "HF_API_TOKEN": "fake_token",
        "MONGODB_URI": "mongodb://localhost:27017/?replicaSet=rs0",
    }):
        yield

@pytest.fixture
def mock_classifier():
    """Sentiment classifier that answers POSITIVE by default."""
    classifier = MagicMock(spec=SentimentClassifier)
    classifier.classify.return_value = SentimentLabel.POSITIVE
    return classifier

@pytest.fixture
def mock_media_store():
    """Media store that accepts every upload."""
    store = MagicMock(spec=MediaStore)
    store.store.return_value = "https://cdn.example.com/uploads/user-1/1792397730123"
    return store

# ============================================================================
# 2. PIPELINE FIXTURES
# ============================================================================

@pytest.fixture
def repository():
    return InMemoryEntryRepository()

@pytest.fixture
def fixed_clock():
    return lambda: FIXED_NOW

@pytest.fixture
def pipeline(repository, mock_classifier, mock_media_store, fixed_clock):
    return SubmissionPipeline(
        repository=repository,
        classifier=mock_classifier,
        media_store=mock_media_store,
        clock=fixed_clock,
    )

# ============================================================================
# 3. SNAPSHOT DATA
# ============================================================================

def make_entry(mood="happy", date="2026-10-19T08:00:00.000Z", entry_id="e1", user_id="user-1"):
    return MoodEntry(
        id=entry_id,
        user_id=user_id,
        mood=mood,
        text="",
        date=date,
        sentiment_feedback="unavailable",
        recommendations=[],
    )

@pytest.fixture
def sample_entries():
    """Snapshot as delivered by a subscription (newest first)."""
    return [
        make_entry("sad", "2026-10-19T20:00:00.000Z", "e4"),
        make_entry("happy", "2026-10-19T08:00:00.000Z", "e3"),
        make_entry("happy", "2026-10-18T12:30:00.000Z", "e2"),
        make_entry("anxious", "2026-10-17T09:00:00.000Z", "e1"),
    ]

@pytest.fixture
def entry_factory():
    return make_entry
