"""
Scheduling feature: frequency-based scheduling patterns.

Pure statistics over historical events. The output feeds slot ranking and
analytics; no oracle is consulted here.
"""

from collections.abc import Iterable

from pydantic import BaseModel, Field

from app.core.timeutils import duration_minutes, format_hour, sunday_weekday
from app.features.calendar.schemas import coerce_event

DEFAULT_PEAK_HOURS = [10, 14]
DEFAULT_AVG_DURATION = 60
MAX_SANE_DURATION = 480  # minutes


class SchedulingPatterns(BaseModel):
    preferred_times: list[str]
    peak_hours: list[int]
    avg_duration_minutes: int
    hour_distribution: list[int] = Field(default_factory=lambda: [0] * 24)
    weekday_distribution: list[int] = Field(default_factory=lambda: [0] * 7)
    weekly_event_count: int = 0


def top_hours(hour_distribution: list[int], limit: int = 3) -> list[int]:
    """Most frequent non-empty hours; ties go to the earliest hour."""
    ranked = sorted(
        (hour for hour, hits in enumerate(hour_distribution) if hits > 0),
        key=lambda hour: -hour_distribution[hour],
    )
    return ranked[:limit]


def analyze_scheduling_patterns(events: Iterable | None) -> SchedulingPatterns:
    events = list(events or [])
    if not events:
        return SchedulingPatterns(
            preferred_times=[format_hour(h) for h in DEFAULT_PEAK_HOURS],
            peak_hours=list(DEFAULT_PEAK_HOURS),
            avg_duration_minutes=DEFAULT_AVG_DURATION,
        )

    hours = [0] * 24
    weekdays = [0] * 7
    durations = []
    for record in events:
        event = coerce_event(record)
        if event is None:
            continue
        hours[event.start_time.hour] += 1
        weekdays[sunday_weekday(event.start_time)] += 1

        minutes = duration_minutes(event.start_time, event.end_time)
        if 0 < minutes <= MAX_SANE_DURATION:
            durations.append(minutes)

    peak_hours = top_hours(hours) or [DEFAULT_PEAK_HOURS[0]]
    avg_duration = round(sum(durations) / len(durations)) if durations else DEFAULT_AVG_DURATION

    return SchedulingPatterns(
        preferred_times=[format_hour(h) for h in peak_hours],
        peak_hours=peak_hours,
        avg_duration_minutes=avg_duration,
        hour_distribution=hours,
        weekday_distribution=weekdays,
        weekly_event_count=len(events),
    )
