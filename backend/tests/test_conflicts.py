"""
Unit tests for overlap checks and conflict detection.
"""

from datetime import datetime

from app.features.calendar.conflicts import (
    build_conflict_records,
    find_conflicts,
    find_pairwise_conflicts,
    intervals_overlap,
)
from app.features.calendar.recurrence import expand_event
from conftest import make_event


class TestIntervalsOverlap:
    def test_overlap_is_symmetric(self):
        a = ("2025-06-02T09:00:00", "2025-06-02T10:00:00")
        b = ("2025-06-02T09:30:00", "2025-06-02T11:00:00")
        assert intervals_overlap(*a, *b) is True
        assert intervals_overlap(*b, *a) is True

    def test_touching_endpoints_do_not_overlap(self):
        assert intervals_overlap(
            "2025-06-02T09:00:00", "2025-06-02T10:00:00",
            "2025-06-02T10:00:00", "2025-06-02T11:00:00",
        ) is False

    def test_containment_overlaps(self):
        assert intervals_overlap(
            "2025-06-02T08:00:00", "2025-06-02T12:00:00",
            "2025-06-02T09:00:00", "2025-06-02T09:15:00",
        ) is True

    def test_invalid_dates_never_overlap(self):
        assert intervals_overlap("nope", "2025-06-02T10:00:00", "2025-06-02T09:00:00", "2025-06-02T11:00:00") is False

    def test_mixed_aware_and_naive_inputs(self):
        assert intervals_overlap(
            "2025-06-02T09:00:00Z", "2025-06-02T10:00:00Z",
            datetime(2025, 6, 2, 9, 30), datetime(2025, 6, 2, 9, 45),
        ) is True

    def test_empty_or_reversed_intervals_never_overlap(self):
        assert intervals_overlap(
            "2025-06-02T09:30:00", "2025-06-02T09:30:00",
            "2025-06-02T09:00:00", "2025-06-02T10:00:00",
        ) is False
        assert intervals_overlap(
            "2025-06-02T09:00:00", "2025-06-02T10:00:00",
            "2025-06-02T09:45:00", "2025-06-02T09:15:00",
        ) is False


class TestFindConflicts:
    def setup_method(self):
        self.standup = make_event("2025-06-02T09:00:00", "2025-06-02T10:00:00", id=10, title="Standup")

    def test_half_hour_overlap_conflicts(self):
        conflicts = find_conflicts("2025-06-02T09:30:00", "2025-06-02T10:30:00", [self.standup])
        assert [c.id for c in conflicts] == [10]

    def test_back_to_back_does_not_conflict(self):
        assert find_conflicts("2025-06-02T10:00:00", "2025-06-02T11:00:00", [self.standup]) == []

    def test_all_day_events_never_conflict(self):
        holiday = make_event("2025-06-02T00:00:00", "2025-06-03T00:00:00", is_all_day=True)
        assert find_conflicts("2025-06-02T09:00:00", "2025-06-02T10:00:00", [holiday]) == []

    def test_exclude_id_skips_the_event_itself(self):
        assert find_conflicts("2025-06-02T09:00:00", "2025-06-02T10:00:00", [self.standup], exclude_id=10) == []
        assert find_conflicts("2025-06-02T09:00:00", "2025-06-02T10:00:00", [self.standup], exclude_id="10") == []

    def test_exclude_id_skips_own_instances(self):
        series = make_event(
            "2025-06-02T09:00:00", "2025-06-02T10:00:00", id=20, recurrence_rule="FREQ=DAILY;INTERVAL=1;COUNT=5"
        )
        instances = expand_event(series, "2025-06-01", "2025-06-10")
        assert len(find_conflicts("2025-06-03T09:00:00", "2025-06-03T09:30:00", instances)) == 1
        assert find_conflicts("2025-06-03T09:00:00", "2025-06-03T09:30:00", instances, exclude_id=20) == []

    def test_raw_rows_and_malformed_rows(self):
        rows = [
            {"id": 1, "title": "Row", "start_time": "2025-06-02T09:00:00", "end_time": "2025-06-02T09:45:00"},
            {"id": 2, "title": "Broken", "start_time": "yesterday"},
        ]
        conflicts = find_conflicts("2025-06-02T09:15:00", "2025-06-02T09:30:00", rows)
        assert [c.id for c in conflicts] == [1]

    def test_invalid_candidate_returns_empty(self):
        assert find_conflicts("garbage", "2025-06-02T10:00:00", [self.standup]) == []

    def test_zero_length_candidate_returns_empty(self):
        assert find_conflicts("2025-06-02T09:30:00", "2025-06-02T09:30:00", [self.standup]) == []

    def test_reversed_candidate_returns_empty(self):
        assert find_conflicts("2025-06-02T09:45:00", "2025-06-02T09:15:00", [self.standup]) == []

    def test_degenerate_existing_events_are_skipped(self):
        point = make_event("2025-06-02T09:30:00", "2025-06-02T09:30:00")
        reversed_event = make_event("2025-06-02T09:50:00", "2025-06-02T09:10:00")
        assert find_conflicts("2025-06-02T09:00:00", "2025-06-02T10:00:00", [point, reversed_event]) == []


class TestPairwiseConflicts:
    def test_each_pair_reported_once(self):
        a = make_event("2025-06-02T09:00:00", "2025-06-02T10:00:00")
        b = make_event("2025-06-02T09:30:00", "2025-06-02T10:30:00")
        c = make_event("2025-06-02T10:15:00", "2025-06-02T11:00:00")
        d = make_event("2025-06-02T12:00:00", "2025-06-02T13:00:00")
        pairs = find_pairwise_conflicts([a, b, c, d])
        assert [(x.id, y.id) for x, y in pairs] == [(a.id, b.id), (b.id, c.id)]

    def test_all_day_excluded(self):
        a = make_event("2025-06-02T00:00:00", "2025-06-03T00:00:00", is_all_day=True)
        b = make_event("2025-06-02T09:00:00", "2025-06-02T10:00:00")
        assert find_pairwise_conflicts([a, b]) == []

    def test_degenerate_events_excluded(self):
        a = make_event("2025-06-02T09:00:00", "2025-06-02T10:00:00")
        b = make_event("2025-06-02T09:30:00", "2025-06-02T09:30:00")
        c = make_event("2025-06-02T09:45:00", "2025-06-02T09:15:00")
        assert find_pairwise_conflicts([a, b, c]) == []


class TestBuildConflictRecords:
    def test_one_record_per_conflict(self):
        existing = make_event("2025-06-02T09:00:00", "2025-06-02T10:00:00", id=7, title="Standup")
        detected = datetime(2025, 6, 1, 12)
        records = build_conflict_records("Review", "2025-06-02T09:30:00", [existing], event_id=8, detected_at=detected)

        assert len(records) == 1
        record = records[0]
        assert record.event1_id == 7
        assert record.event1_title == "Standup"
        assert record.event2_id == 8
        assert record.event2_title == "Review"
        assert record.event2_start == datetime(2025, 6, 2, 9, 30)
        assert record.conflict_type == "time_overlap"
        assert record.resolved is False
        assert record.detected_at == detected
