"""
Analytics feature: Service layer for calendar analytics reports.

Every section is computed independently and falls back to its zero value on
bad input, so a report is always produced, even for a brand-new user.
"""

import logging
from collections.abc import Callable, Iterable
from datetime import datetime, timedelta

from app.core.timeutils import DAY_NAMES, duration_minutes, format_hour, sunday_weekday, utc_now
from app.features.analytics.schemas import (
    EXTENDED,
    LONG,
    MEDIUM,
    SHORT,
    AnalyticsReport,
    FreeTime,
    MeetingPatterns,
    ProductivityPatterns,
    Recommendation,
    SummaryStats,
    UserEngagement,
    empty_time_distribution,
)
from app.features.calendar.conflicts import find_pairwise_conflicts
from app.features.calendar.schemas import Event, coerce_events
from app.features.calendar.service import EventStore
from app.features.scheduling.patterns import top_hours

logger = logging.getLogger(__name__)

# avg_per_day always divides by 30 days, whatever range was requested;
# existing clients read it that way.
AVG_PER_DAY_DENOMINATOR = 30

HEAVY_LOAD_HOURS = 25
MIN_FOCUS_BLOCK_MINUTES = 60
EMPTY_DAY_FREE_MINUTES = 480
ENGAGEMENT_WINDOW_DAYS = 30


def _safe(section: str, compute: Callable, default_factory: Callable):
    try:
        return compute()
    except Exception as e:
        logger.error(f"Analytics section '{section}' failed, using defaults: {e}")
        return default_factory()


# ── Sections ─────────────────────────────────────────────

def calculate_summary_stats(events: list[Event]) -> SummaryStats:
    total_events = len(events)
    total_hours = sum(
        max(0.0, (e.end_time - e.start_time).total_seconds() / 3600) for e in events
    )
    avg_duration = total_hours / total_events if total_events else 0

    return SummaryStats(
        total_events=total_events,
        total_hours=round(total_hours, 1),
        avg_duration=round(avg_duration, 1),
        avg_per_day=round(total_events / AVG_PER_DAY_DENOMINATOR, 1),
    )


def analyze_productivity_patterns(events: list[Event]) -> ProductivityPatterns:
    hourly = [0] * 24
    daily = [0] * 7
    for event in events:
        hourly[event.start_time.hour] += 1
        daily[sunday_weekday(event.start_time)] += 1

    busiest_day = DAY_NAMES[daily.index(max(daily))] if events else None
    return ProductivityPatterns(
        peak_hours=top_hours(hourly),
        busiest_day=busiest_day,
        hourly_distribution=hourly,
        daily_distribution=daily,
    )


def analyze_time_distribution(events: list[Event]) -> dict[str, int]:
    buckets = empty_time_distribution()
    for event in events:
        minutes = duration_minutes(event.start_time, event.end_time)
        if minutes < 30:
            buckets[SHORT] += 1
        elif minutes <= 60:
            buckets[MEDIUM] += 1
        elif minutes <= 120:
            buckets[LONG] += 1
        else:
            buckets[EXTENDED] += 1
    return buckets


def calculate_free_time(events: list[Event]) -> FreeTime:
    """Gaps between consecutive events (by start); non-adjacent gaps are ignored."""
    if not events:
        return FreeTime(avg_block=EMPTY_DAY_FREE_MINUTES, longest=EMPTY_DAY_FREE_MINUTES)

    ordered = sorted(events, key=lambda e: e.start_time)
    gaps = []
    for current, following in zip(ordered, ordered[1:]):
        gap = duration_minutes(current.end_time, following.start_time)
        if gap > 0:
            gaps.append(gap)

    if not gaps:
        return FreeTime()
    return FreeTime(avg_block=round(sum(gaps) / len(gaps)), longest=round(max(gaps)))


def analyze_meeting_patterns(events: list[Event]) -> MeetingPatterns:
    free_time = calculate_free_time(events)
    recurring = sum(1 for e in events if e.is_recurring)

    return MeetingPatterns(
        conflict_count=len(find_pairwise_conflicts(events)),
        avg_free_time_block=free_time.avg_block,
        longest_free_block=free_time.longest,
        recurring_events_count=recurring,
        recurring_percentage=round(recurring / len(events) * 100) if events else 0,
    )


def generate_recommendations(
    summary: SummaryStats,
    productivity: ProductivityPatterns,
    meetings: MeetingPatterns,
) -> list[Recommendation]:
    recommendations = []

    if summary.total_hours > HEAVY_LOAD_HOURS:
        recommendations.append(Recommendation(
            type="warning",
            category="workload",
            title="Heavy Meeting Load",
            message=f"You have {summary.total_hours}h of meetings. Consider blocking focus time.",
            priority="high",
        ))

    if meetings.conflict_count > 0:
        recommendations.append(Recommendation(
            type="warning",
            category="scheduling",
            title="Schedule Conflicts",
            message=f"You have {meetings.conflict_count} overlapping events. Review your calendar.",
            priority="high",
        ))

    if meetings.avg_free_time_block < MIN_FOCUS_BLOCK_MINUTES:
        recommendations.append(Recommendation(
            type="warning",
            category="balance",
            title="Limited Focus Time",
            message="Consider consolidating meetings to create longer focus blocks.",
            priority="medium",
        ))

    if productivity.peak_hours:
        recommendations.append(Recommendation(
            type="info",
            category="productivity",
            title="Optimize Peak Hours",
            message=(
                f"Your peak meeting time is {format_hour(productivity.peak_hours[0])}. "
                "Schedule important tasks accordingly."
            ),
            priority="medium",
        ))

    return recommendations


def build_report(events: Iterable, time_range_days: int = 30, now: datetime | None = None) -> AnalyticsReport:
    """Analytics report over an already-fetched list of events."""
    events = coerce_events(events)

    summary = _safe("summary", lambda: calculate_summary_stats(events), SummaryStats)
    productivity = _safe("productivity", lambda: analyze_productivity_patterns(events), ProductivityPatterns)
    distribution = _safe("time_distribution", lambda: analyze_time_distribution(events), empty_time_distribution)
    meetings = _safe("meeting_patterns", lambda: analyze_meeting_patterns(events), MeetingPatterns)
    recommendations = _safe(
        "recommendations",
        lambda: generate_recommendations(summary, productivity, meetings),
        list,
    )

    return AnalyticsReport(
        summary=summary,
        productivity=productivity,
        time_distribution=distribution,
        meeting_patterns=meetings,
        recommendations=recommendations,
        time_range_days=time_range_days,
        generated_at=now or utc_now(),
    )


class AnalyticsService:
    """Calendar analytics over an event store."""

    def __init__(self, store: EventStore):
        self.store = store

    def get_calendar_analytics(
        self,
        user_email: str,
        time_range_days: int = 30,
        now: datetime | None = None,
    ) -> AnalyticsReport:
        """Report over events starting in [now - time_range_days, now]."""
        now = now or utc_now()
        try:
            events = self.store.get_events_in_range(user_email, now - timedelta(days=time_range_days), now)
        except Exception as e:
            logger.error(f"Failed to load events for analytics ({user_email}): {e}")
            events = []
        return build_report(events, time_range_days, now)

    def get_user_engagement(self, user_email: str, now: datetime | None = None) -> UserEngagement:
        now = now or utc_now()
        try:
            events = coerce_events(self.store.get_all_events(user_email))
        except Exception as e:
            logger.error(f"Failed to load events for engagement ({user_email}): {e}")
            return UserEngagement()

        cutoff = now - timedelta(days=ENGAGEMENT_WINDOW_DAYS)
        created = [e.created_at for e in events if e.created_at is not None]
        recent = [c for c in created if c >= cutoff]

        return UserEngagement(
            total_events=len(events),
            recent_events=len(recent),
            avg_events_per_week=round(len(recent) / 4, 1),
            last_activity=max(created) if created else None,
        )
