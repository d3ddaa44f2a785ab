import logging
from datetime import date, timedelta, timezone

from mood_journal.core.projections import (
    DEFAULT_COLOR, UNKNOWN_MOOD, calendar_events, chart_series, count_by_mood, entries_by_day
)


class TestCategoryAggregation:
    """Test suite for the mood chart projection."""

    def test_counts_only_present_moods(self, sample_entries):
        counts = count_by_mood(sample_entries)
        assert counts == {"sad": 1, "happy": 2, "anxious": 1}
        assert "neutral" not in counts

    def test_missing_and_unknown_moods_grouped(self, entry_factory):
        entries = [
            entry_factory(mood="", entry_id="a"),
            entry_factory(mood="ecstatic", entry_id="b"),
            entry_factory(mood="HAPPY", entry_id="c"),
        ]
        assert count_by_mood(entries) == {UNKNOWN_MOOD: 2, "happy": 1}

    def test_empty_snapshot(self):
        assert count_by_mood([]) == {}
        assert chart_series([]).is_empty

    def test_chart_series_labels_and_colors(self, sample_entries, entry_factory):
        series = chart_series(sample_entries + [entry_factory(mood=None, entry_id="x")])
        assert series.labels == ["Sad", "Happy", "Anxious", "Unknown"]
        assert series.counts == [1, 2, 1, 1]
        assert series.colors == ["#4682B4", "#FFD700", "#808080", DEFAULT_COLOR]
        assert series.total == 5


class TestCalendarProjection:
    """Test suite for the calendar projection."""

    def test_one_all_day_event_per_entry(self, sample_entries):
        events = calendar_events(sample_entries)
        assert len(events) == 4
        assert all(event.all_day for event in events)
        assert events[0].day == date(2026, 10, 19)
        assert events[0].start == events[0].end == date(2026, 10, 19)
        assert events[0].title == "sad entry"

    def test_same_day_entries_stay_distinct(self, sample_entries):
        events = [e for e in calendar_events(sample_entries) if e.day == date(2026, 10, 19)]
        assert [e.entry_id for e in events] == ["e4", "e3"]

    def test_unparsable_date_skipped_and_logged(self, sample_entries, entry_factory, caplog):
        broken = entry_factory(date="not-a-date", entry_id="bad")
        with caplog.at_level(logging.WARNING):
            events = calendar_events([broken] + sample_entries)
        assert len(events) == 4
        assert "bad" not in [e.entry_id for e in events]
        assert "unparsable date" in caplog.text

    def test_timezone_shifts_calendar_day(self, entry_factory):
        late = entry_factory(date="2026-10-19T23:30:00.000Z")
        assert calendar_events([late])[0].day == date(2026, 10, 19)
        plus_two = timezone(timedelta(hours=2))
        assert calendar_events([late], tz=plus_two)[0].day == date(2026, 10, 20)

    def test_entries_by_day(self, sample_entries):
        days = entries_by_day(sample_entries)
        assert list(days) == [date(2026, 10, 19), date(2026, 10, 18), date(2026, 10, 17)]
        assert [e.id for e in days[date(2026, 10, 19)]] == ["e4", "e3"]
