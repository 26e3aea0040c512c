"""
Analytics feature: rule-based calendar health insights for the current week.
"""

from collections.abc import Iterable
from datetime import datetime, time, timedelta

from app.core.timeutils import DAY_NAMES, format_hour, sunday_weekday, utc_now
from app.features.analytics.schemas import CalendarStats, Insight
from app.features.calendar.schemas import coerce_events


def calculate_calendar_stats(events: Iterable, now: datetime | None = None) -> CalendarStats:
    """Load for the week (Sunday 00:00 to next Sunday) containing `now`."""
    events = coerce_events(events)
    now = now or utc_now()
    week_start = datetime.combine(now.date() - timedelta(days=sunday_weekday(now)), time.min)
    week_end = week_start + timedelta(days=7)

    weekly = [e for e in events if week_start <= e.start_time < week_end]
    total_hours = sum(
        max(0.0, (e.end_time - e.start_time).total_seconds() / 3600) for e in weekly
    )

    day_counts = [0] * 7
    for event in weekly:
        day_counts[sunday_weekday(event.start_time)] += 1

    hour_counts = [0] * 24
    for event in events:
        hour_counts[event.start_time.hour] += 1

    return CalendarStats(
        weekly_events=len(weekly),
        avg_daily_meetings=round(len(weekly) / 7, 1),
        total_hours=round(total_hours, 1),
        busiest_day=DAY_NAMES[day_counts.index(max(day_counts))] if weekly else None,
        common_time=format_hour(hour_counts.index(max(hour_counts))) if events else None,
        hour_distribution=hour_counts,
    )


def generate_rule_based_insights(stats: CalendarStats) -> list[Insight]:
    insights = []

    if stats.total_hours > 25:
        insights.append(Insight(
            type="warning",
            title="Heavy Meeting Load",
            message=(
                f"You have {stats.total_hours}h of meetings this week. "
                "Consider blocking focus time for deep work."
            ),
            priority=4,
        ))
    elif stats.total_hours < 10:
        insights.append(Insight(
            type="success",
            title="Well-Balanced Schedule",
            message="Great job maintaining a healthy meeting-to-focus-work ratio!",
            priority=2,
        ))

    if stats.avg_daily_meetings > 5:
        insights.append(Insight(
            type="warning",
            title="Frequent Meetings",
            message="Consider consolidating some meetings or delegating attendance.",
            priority=3,
        ))

    if stats.common_time:
        insights.append(Insight(
            type="info",
            title="Peak Time Usage",
            message=(
                f"Your most common meeting time is {stats.common_time}. "
                "Schedule important tasks accordingly."
            ),
            priority=2,
        ))

    return insights
