"""
Activity recommendations per mood.

Pure lookup: the same mood always yields the same ordered list.
"""

from typing import Dict, List, Tuple, Union

from mood_journal.core.models import Mood


RECOMMENDATIONS: Dict[Mood, Tuple[str, ...]] = {
    Mood.HAPPY: ("Take a walk in nature 🌳", "Call a friend 📞", "Dance to favorite song 💃"),
    Mood.SAD: ("Write in gratitude journal 📖", "Watch a comedy 🎥", "Drink warm tea ☕"),
    Mood.ANGRY: ("Practice deep breathing 🌬️", "Punch a pillow 🛏️", "Listen to metal music 🎸"),
    Mood.ANXIOUS: ("Try 4-7-8 breathing 🧘", "Do progressive muscle relaxation 💪", "Write down worries 📝"),
    Mood.NEUTRAL: ("Try something new 🎨", "Read a book 📚", "Organize your space 🧹"),
}


class RecommendationEngine:
    """Maps a mood to its static list of suggested activities."""

    def __init__(self, table: Dict[Mood, Tuple[str, ...]] = RECOMMENDATIONS):
        missing = [mood.value for mood in Mood if mood not in table]
        if missing:
            raise ValueError(f"Recommendation table missing moods: {missing}")
        self._table = table

    def recommend(self, mood: Union[Mood, str]) -> List[str]:
        """
        Returns the suggestions for a mood.

        A fresh list is returned on every call so callers cannot alter the table.

        Raises:
            ValueError: If mood is not one of the fixed set.
        """
        parsed = Mood.parse(mood)
        if parsed is None:
            raise ValueError(f"Unknown mood: {mood!r}")
        return list(self._table[parsed])


_default_engine = RecommendationEngine()


def recommend(mood: Union[Mood, str]) -> List[str]:
    """Module-level shortcut over the default table."""
    return _default_engine.recommend(mood)
