"""
Entry submission pipeline.

One submission runs strictly in sequence:
1. Validate user and mood (no I/O)
2. Validate the optional image (size, content type)
3. Upload the image through the media store
4. Classify the text sentiment (skipped for empty text, never fatal)
5. Reconcile sentiment with the declared mood
6. Look up recommendations
7. Persist the entry through the repository

Any failure before step 7 leaves no entry behind. A persistence failure
after a successful upload orphans the blob; it is logged, not cleaned up.
"""

import dataclasses
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional, Union

from mood_journal.adapters.clients.sentiment import SentimentClassifier
from mood_journal.adapters.repositories.base import EntryRepository
from mood_journal.adapters.storage.media import MediaStore
from mood_journal.core.errors import StorageError, ValidationError
from mood_journal.core.feedback import reconcile
from mood_journal.core.models import (
    Mood, MoodEntry, SentimentLabel, epoch_millis, format_timestamp
)
from mood_journal.core.recommendations import RecommendationEngine

logger = logging.getLogger(__name__)

# ============================================================================
# CONSTANTS
# ============================================================================

MAX_IMAGE_BYTES = 5 * 1024 * 1024
IMAGE_CONTENT_TYPE_PREFIX = "image/"


# ============================================================================
# ATTACHMENTS
# ============================================================================

@dataclass(frozen=True)
class ImageAttachment:
    """Raw image bytes with their declared MIME type."""
    data: bytes
    content_type: str

    @property
    def size(self) -> int:
        return len(self.data)


def validate_image(image: ImageAttachment) -> None:
    """
    Checks an attachment before upload.

    Raises:
        ValidationError: "image too large" above 5 MB, "unsupported type"
            for anything that is not an image/* MIME type.
    """
    if image.size > MAX_IMAGE_BYTES:
        raise ValidationError("image too large")

    content_type = (image.content_type or "").split(";")[0].strip().lower()
    if not content_type.startswith(IMAGE_CONTENT_TYPE_PREFIX) or content_type == IMAGE_CONTENT_TYPE_PREFIX:
        raise ValidationError("unsupported type")


# ============================================================================
# PIPELINE
# ============================================================================

class SubmissionPipeline:
    """Orchestrates one new entry from raw input to persisted record."""

    def __init__(self, repository: EntryRepository,
                 classifier: Optional[SentimentClassifier] = None,
                 media_store: Optional[MediaStore] = None,
                 recommender: Optional[RecommendationEngine] = None,
                 clock: Optional[Callable[[], datetime]] = None):
        """
        Args:
            repository: Destination of created entries.
            classifier: Sentiment service; None means feedback is always unavailable.
            media_store: Image storage; None rejects attachments at upload time.
            recommender: Recommendation table (defaults to the built-in one).
            clock: Returns the submission time (defaults to UTC now).
        """
        self.repository = repository
        self.classifier = classifier
        self.media_store = media_store
        self.recommender = recommender or RecommendationEngine()
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    def submit(self, user_id: str, mood: Union[Mood, str, None], text: str = "",
               image: Optional[ImageAttachment] = None) -> MoodEntry:
        """
        Runs the full submission sequence.

        Args:
            user_id: Owner of the new entry.
            mood: Declared mood (Mood or its string value).
            text: Free-form journal text, may be empty.
            image: Optional photo attachment.

        Returns:
            The created entry, carrying its store-assigned id.

        Raises:
            ValidationError: Missing user/mood, unsupported mood, bad image.
            StorageError: Upload or persistence failure.
        """
        text = text or ""

        # STEP 1: Validate context and mood
        if not user_id:
            raise ValidationError("user required")
        if mood is None or (isinstance(mood, str) and not mood.strip()):
            raise ValidationError("mood required")
        parsed_mood = Mood.parse(mood)
        if parsed_mood is None:
            raise ValidationError(f"unsupported mood: {mood}")

        # STEP 2: Validate image
        if image is not None:
            validate_image(image)

        submitted_at = self.clock()
        logger.info(f">>> New {parsed_mood.value} entry for {user_id}")

        # STEP 3: Upload image
        image_url = ""
        if image is not None:
            image_url = self._upload(user_id, image, submitted_at)

        # STEP 4-5: Classify and reconcile
        label = self._classify(text)
        feedback = reconcile(parsed_mood, label)

        # STEP 6: Recommendations
        recommendations = self.recommender.recommend(parsed_mood)

        # STEP 7: Persist
        entry = MoodEntry(
            user_id=user_id,
            mood=parsed_mood.value,
            text=text,
            date=format_timestamp(submitted_at),
            sentiment_feedback=feedback.value,
            recommendations=recommendations,
            image_url=image_url,
        )

        try:
            entry_id = self.repository.create(user_id, entry)
        except StorageError:
            if image_url:
                logger.warning(f"[WARN] Entry not saved, uploaded image orphaned: {image_url}")
            raise

        logger.info(f"[OK] Entry {entry_id} created (feedback: {feedback.value})")
        return dataclasses.replace(entry, id=entry_id)

    def _upload(self, user_id: str, image: ImageAttachment, submitted_at: datetime) -> str:
        if self.media_store is None:
            raise StorageError("Image storage is not configured")

        return self.media_store.store(user_id, image.data, image.content_type, epoch_millis(submitted_at))

    def _classify(self, text: str) -> SentimentLabel:
        """Returns the sentiment label; empty text or no classifier means UNAVAILABLE."""
        if not text.strip():
            logger.info("Empty text, sentiment analysis skipped")
            return SentimentLabel.UNAVAILABLE
        if self.classifier is None:
            logger.info("No sentiment classifier configured")
            return SentimentLabel.UNAVAILABLE
        try:
            return self.classifier.classify(text)
        except Exception as e:
            logger.warning(f"[WARN] Sentiment classifier failed, continuing without it: {e}")
            return SentimentLabel.UNAVAILABLE
