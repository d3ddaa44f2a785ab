"""
Read-only views derived from an entry snapshot.

- Category aggregation: mood -> count, for the chart
- Calendar projection: one all-day point per entry, keyed by calendar date

Both are recomputed from the full snapshot on every delivery.
"""

import logging
from collections import OrderedDict
from dataclasses import dataclass
from datetime import date, tzinfo
from typing import Dict, Iterable, List, Optional

from mood_journal.core.models import Mood, MoodEntry, parse_timestamp

logger = logging.getLogger(__name__)

UNKNOWN_MOOD = "unknown"

MOOD_COLORS = {
    Mood.HAPPY.value: "#FFD700",
    Mood.SAD.value: "#4682B4",
    Mood.ANGRY.value: "#DC143C",
    Mood.ANXIOUS.value: "#808080",
    Mood.NEUTRAL.value: "#32CD32",
}
DEFAULT_COLOR = "#3182CE"


def mood_bucket(entry: MoodEntry) -> str:
    """Normalized mood key; missing or unrecognized moods map to 'unknown'."""
    parsed = Mood.parse(entry.mood)
    return parsed.value if parsed is not None else UNKNOWN_MOOD


# ============================================================================
# CATEGORY AGGREGATION
# ============================================================================

def count_by_mood(entries: Iterable[MoodEntry]) -> Dict[str, int]:
    """
    Counts entries per mood, in order of first appearance.

    Only moods present in the snapshot appear in the result.
    """
    counts: Dict[str, int] = OrderedDict()
    for entry in entries:
        bucket = mood_bucket(entry)
        counts[bucket] = counts.get(bucket, 0) + 1
    return dict(counts)


@dataclass
class ChartSeries:
    """Pie chart data: parallel lists of labels, counts and colours."""
    labels: List[str]
    counts: List[int]
    colors: List[str]

    @property
    def total(self) -> int:
        return sum(self.counts)

    @property
    def is_empty(self) -> bool:
        return not self.counts


def chart_series(entries: Iterable[MoodEntry]) -> ChartSeries:
    counts = count_by_mood(entries)
    return ChartSeries(
        labels=[mood.capitalize() for mood in counts],
        counts=list(counts.values()),
        colors=[MOOD_COLORS.get(mood, DEFAULT_COLOR) for mood in counts],
    )


# ============================================================================
# CALENDAR PROJECTION
# ============================================================================

@dataclass(frozen=True)
class CalendarEvent:
    """All-day calendar point for one entry."""
    entry_id: Optional[str]
    title: str
    day: date
    all_day: bool = True

    @property
    def start(self) -> date:
        return self.day

    @property
    def end(self) -> date:
        return self.day


def entry_day(entry: MoodEntry, tz: Optional[tzinfo] = None) -> Optional[date]:
    """
    Calendar date of an entry, in tz if given (UTC otherwise).

    Returns:
        The date, or None if the entry's timestamp cannot be parsed.
    """
    try:
        moment = parse_timestamp(entry.date)
    except ValueError:
        logger.warning(f"[WARN] Skipping entry {entry.id} with unparsable date {entry.date!r}")
        return None
    if tz is not None:
        moment = moment.astimezone(tz)
    return moment.date()


def calendar_events(entries: Iterable[MoodEntry], tz: Optional[tzinfo] = None) -> List[CalendarEvent]:
    """
    Maps each entry to one all-day event.

    Entries sharing a day stay distinct events; unparsable dates are skipped.
    """
    events = []
    for entry in entries:
        day = entry_day(entry, tz)
        if day is None:
            continue
        events.append(CalendarEvent(
            entry_id=entry.id,
            title=f"{mood_bucket(entry)} entry",
            day=day,
        ))
    return events


def entries_by_day(entries: Iterable[MoodEntry], tz: Optional[tzinfo] = None) -> Dict[date, List[MoodEntry]]:
    """Groups entries by calendar date, keeping snapshot order within a day."""
    days: Dict[date, List[MoodEntry]] = OrderedDict()
    for entry in entries:
        day = entry_day(entry, tz)
        if day is None:
            continue
        days.setdefault(day, []).append(entry)
    return dict(days)
