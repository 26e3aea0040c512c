"""
Analytics feature: API routes for calendar analytics, engagement and insights.
"""

from datetime import timedelta

from cachetools import TTLCache
from fastapi import APIRouter, Depends, Query

from app.core.dependencies import get_event_store, get_user_email
from app.core.timeutils import utc_now
from app.features.analytics.insights import calculate_calendar_stats, generate_rule_based_insights
from app.features.analytics.service import AnalyticsService
from app.features.calendar.service import EventStore

router = APIRouter()

# Reports are cheap to serve stale for a few minutes
_analytics_cache: TTLCache = TTLCache(maxsize=1000, ttl=600)
_engagement_cache: TTLCache = TTLCache(maxsize=1000, ttl=900)


@router.get("/calendar")
async def calendar_analytics(
    time_range: int = Query(30, gt=0, le=365),
    user_email: str = Depends(get_user_email),
    store: EventStore = Depends(get_event_store),
):
    """Summary, productivity, distribution, meeting patterns, recommendations."""
    cache_key = f"analytics:calendar:{user_email}:{time_range}"
    report = _analytics_cache.get(cache_key)
    if report is None:
        report = AnalyticsService(store).get_calendar_analytics(user_email, time_range)
        _analytics_cache[cache_key] = report

    return {
        "data": report,
        "meta": {"time_range": time_range, "user_email": user_email, "generated_at": report.generated_at},
    }


@router.get("/engagement")
async def user_engagement(
    user_email: str = Depends(get_user_email),
    store: EventStore = Depends(get_event_store),
):
    """Event totals and recent activity."""
    cache_key = f"analytics:engagement:{user_email}"
    engagement = _engagement_cache.get(cache_key)
    if engagement is None:
        engagement = AnalyticsService(store).get_user_engagement(user_email)
        _engagement_cache[cache_key] = engagement
    return {"data": engagement}


@router.get("/insights")
async def calendar_insights(
    user_email: str = Depends(get_user_email),
    store: EventStore = Depends(get_event_store),
):
    """Rule-based insights on the current week."""
    now = utc_now()
    events = store.get_events_in_range(user_email, now - timedelta(days=30), now + timedelta(days=7))
    stats = calculate_calendar_stats(events, now)
    return {"data": generate_rule_based_insights(stats), "stats": stats}


def invalidate_user_analytics(user_email: str | None = None) -> None:
    """Drop cached reports for one owner (or everyone) after calendar writes."""
    if user_email is None:
        _analytics_cache.clear()
        _engagement_cache.clear()
        return

    for cache in (_analytics_cache, _engagement_cache):
        for key in [k for k in list(cache.keys()) if k.split(":")[2] == user_email]:
            cache.pop(key, None)
