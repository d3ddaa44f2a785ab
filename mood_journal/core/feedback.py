"""
Reconciles classified text sentiment against the declared mood.
"""

from typing import Dict, FrozenSet

from mood_journal.core.models import Mood, SentimentFeedback, SentimentLabel


# Moods each sentiment label is consistent with
SENTIMENT_MOODS: Dict[SentimentLabel, FrozenSet[Mood]] = {
    SentimentLabel.POSITIVE: frozenset({Mood.HAPPY, Mood.NEUTRAL}),
    SentimentLabel.NEGATIVE: frozenset({Mood.SAD, Mood.ANGRY, Mood.ANXIOUS}),
}

FEEDBACK_MESSAGES: Dict[SentimentFeedback, str] = {
    SentimentFeedback.MATCHES: "Your mood matches the text sentiment 👍",
    SentimentFeedback.DIVERGES: "Your mood seems different from the text sentiment 🤔",
    SentimentFeedback.UNAVAILABLE: "AI analysis unavailable ⚠️",
}


def reconcile(mood: Mood, label: SentimentLabel) -> SentimentFeedback:
    """
    Compares the declared mood with the classifier label.

    Returns:
        UNAVAILABLE if the label is unavailable, MATCHES if the mood belongs
        to the label's set, DIVERGES otherwise.
    """
    expected = SENTIMENT_MOODS.get(label)
    if expected is None:
        return SentimentFeedback.UNAVAILABLE
    return SentimentFeedback.MATCHES if mood in expected else SentimentFeedback.DIVERGES


def feedback_message(feedback: str) -> str:
    """Human-readable text for a stored sentimentFeedback value."""
    try:
        return FEEDBACK_MESSAGES[SentimentFeedback(feedback)]
    except ValueError:
        return FEEDBACK_MESSAGES[SentimentFeedback.UNAVAILABLE]
