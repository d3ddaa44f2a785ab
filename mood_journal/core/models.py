"""
Domain model for mood journal entries.

A MoodEntry is immutable once created. The persisted record layout is
field-exact: mood, text, date, sentimentFeedback, recommendations, imageUrl.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Union


# ============================================================================
# ENUMS
# ============================================================================

class Mood(Enum):
    """Fixed set of moods a user can declare."""
    HAPPY = "happy"
    SAD = "sad"
    ANGRY = "angry"
    ANXIOUS = "anxious"
    NEUTRAL = "neutral"

    @classmethod
    def parse(cls, value: Union["Mood", str, None]) -> Optional["Mood"]:
        """
        Converts user input to a Mood.

        Args:
            value: Mood member or raw string (case and surrounding spaces ignored).

        Returns:
            Matching Mood, or None if value is empty or not in the set.
        """
        if isinstance(value, cls):
            return value
        if not value or not isinstance(value, str):
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None


class SentimentLabel(Enum):
    """Reduced output of the sentiment classifier."""
    POSITIVE = "positive"
    NEGATIVE = "negative"
    UNAVAILABLE = "unavailable"


class SentimentFeedback(Enum):
    """Agreement between classified text sentiment and declared mood."""
    MATCHES = "matches"
    DIVERGES = "diverges"
    UNAVAILABLE = "unavailable"


# ============================================================================
# TIMESTAMPS
# ============================================================================

def format_timestamp(moment: datetime) -> str:
    """
    Formats a datetime as UTC ISO-8601 with millisecond precision.

    Example: 2026-10-19T08:15:30.123Z
    """
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    moment = moment.astimezone(timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def epoch_millis(moment: datetime) -> int:
    """Milliseconds since the Unix epoch, computed without float rounding."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return (moment - EPOCH) // timedelta(milliseconds=1)


def parse_timestamp(value: str) -> datetime:
    """
    Parses an ISO-8601 timestamp into an aware datetime.

    Naive values are assumed UTC.

    Raises:
        ValueError: If value is not a valid ISO-8601 string.
    """
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"Invalid timestamp: {value!r}")
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


# ============================================================================
# ENTRY
# ============================================================================

@dataclass(frozen=True)
class MoodEntry:
    """One persisted mood observation."""
    user_id: str
    mood: str
    text: str
    date: str
    sentiment_feedback: str
    recommendations: Tuple[str, ...] = ()
    image_url: str = ""
    id: Optional[str] = None

    def __post_init__(self):
        # Shared by the store, the caller and every subscriber
        object.__setattr__(self, "recommendations", tuple(self.recommendations))

    @property
    def has_image(self) -> bool:
        return bool(self.image_url)

    def to_record(self) -> Dict[str, Any]:
        """Returns the field-exact persisted record (without id or owner)."""
        return {
            "mood": self.mood,
            "text": self.text,
            "date": self.date,
            "sentimentFeedback": self.sentiment_feedback,
            "recommendations": list(self.recommendations),
            "imageUrl": self.image_url,
        }

    @classmethod
    def from_record(cls, record: Dict[str, Any], user_id: Optional[str] = None,
                    entry_id: Optional[str] = None) -> "MoodEntry":
        """
        Builds an entry from a stored record.

        Tolerant of partial records: missing fields default to empty values
        and an unrecognized mood is kept as-is so projections can bucket it.

        Args:
            record: Stored document (Mongo document or plain dict).
            user_id: Owner, when not carried by the record itself.
            entry_id: Identifier, when not carried by the record itself.
        """
        raw_id = entry_id if entry_id is not None else record.get("_id", record.get("id"))
        return cls(
            id=str(raw_id) if raw_id is not None else None,
            user_id=user_id if user_id is not None else str(record.get("userId", "")),
            mood=record.get("mood") or "",
            text=record.get("text") or "",
            date=record.get("date") or "",
            sentiment_feedback=record.get("sentimentFeedback") or SentimentFeedback.UNAVAILABLE.value,
            recommendations=tuple(record.get("recommendations") or ()),
            image_url=record.get("imageUrl") or "",
        )
