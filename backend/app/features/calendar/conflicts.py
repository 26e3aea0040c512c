"""
Calendar feature: time-overlap conflict detection.

Intervals are half-open: [start, end). Two events conflict iff
start1 < end2 and start2 < end1, so an event ending at T never conflicts
with one starting at T. All-day events and empty or reversed intervals
never block.
"""

import logging
from collections.abc import Iterable
from datetime import datetime

from app.core.timeutils import parse_datetime, utc_now
from app.features.calendar.schemas import Conflict, Event, coerce_event

logger = logging.getLogger(__name__)


def intervals_overlap(start1, end1, start2, end2) -> bool:
    """Half-open interval intersection. Invalid or empty bounds never overlap."""
    s1, e1 = parse_datetime(start1), parse_datetime(end1)
    s2, e2 = parse_datetime(start2), parse_datetime(end2)
    if None in (s1, e1, s2, e2):
        logger.warning("Overlap check on invalid dates treated as no conflict")
        return False
    if s1 >= e1 or s2 >= e2:
        logger.warning("Overlap check on empty or reversed interval treated as no conflict")
        return False
    return s1 < e2 and s2 < e1


def is_blocking(event: Event) -> bool:
    """Whether an event occupies time for conflict and free-slot purposes."""
    return not event.is_all_day and event.start_time < event.end_time


def _blocking_or_warn(event: Event) -> bool:
    if event.is_all_day:
        return False
    if event.start_time >= event.end_time:
        logger.warning(f"Ignoring event {event.id}: end {event.end_time} is not after start {event.start_time}")
        return False
    return True


def _is_excluded(event: Event, exclude_id) -> bool:
    if exclude_id is None:
        return False
    if str(event.id) == str(exclude_id):
        return True
    parent_id = getattr(event, "parent_id", None)
    return parent_id is not None and str(parent_id) == str(exclude_id)


def find_conflicts(
    candidate_start,
    candidate_end,
    existing_events: Iterable,
    exclude_id: int | str | None = None,
) -> list[Event]:
    """Return every existing event overlapping the candidate interval.

    All-day events and the event identified by `exclude_id` (itself, or any
    instance whose parent it is) are ignored. Conflicts are informational:
    nothing here blocks the caller.
    """
    start, end = parse_datetime(candidate_start), parse_datetime(candidate_end)
    if start is None or end is None or start >= end:
        logger.warning(
            f"Conflict check skipped: invalid candidate interval {candidate_start!r}-{candidate_end!r}"
        )
        return []

    conflicts = []
    for record in existing_events or []:
        event = coerce_event(record)
        if event is None or _is_excluded(event, exclude_id) or not _blocking_or_warn(event):
            continue
        if start < event.end_time and event.start_time < end:
            conflicts.append(event)
    return conflicts


def find_pairwise_conflicts(events: Iterable) -> list[tuple[Event, Event]]:
    """All unordered overlapping pairs in a set of events (O(n^2))."""
    blocking = [e for e in (coerce_event(r) for r in events or []) if e and _blocking_or_warn(e)]

    pairs = []
    for i, first in enumerate(blocking):
        for second in blocking[i + 1:]:
            if first.start_time < second.end_time and second.start_time < first.end_time:
                pairs.append((first, second))
    return pairs


def build_conflict_records(
    title: str,
    start_time,
    conflicts: Iterable[Event],
    event_id: int | str | None = None,
    detected_at: datetime | None = None,
) -> list[Conflict]:
    """Conflict rows for the caller to persist, one per overlapping event."""
    candidate_start = parse_datetime(start_time)
    if candidate_start is None:
        return []

    detected_at = detected_at or utc_now()
    return [
        Conflict(
            event1_id=existing.id,
            event1_title=existing.title,
            event1_start=existing.start_time,
            event2_id=event_id,
            event2_title=title,
            event2_start=candidate_start,
            detected_at=detected_at,
        )
        for existing in conflicts
    ]
