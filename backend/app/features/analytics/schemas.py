"""
Analytics feature: Schemas for analytics reports and insights.
"""

from datetime import datetime

from pydantic import BaseModel, Field

SHORT = "Short (< 30min)"
MEDIUM = "Medium (30min - 1h)"
LONG = "Long (1h - 2h)"
EXTENDED = "Extended (> 2h)"


class SummaryStats(BaseModel):
    total_events: int = 0
    total_hours: float = 0
    avg_duration: float = 0  # hours per event
    avg_per_day: float = 0


class ProductivityPatterns(BaseModel):
    peak_hours: list[int] = []
    busiest_day: str | None = None
    hourly_distribution: list[int] = Field(default_factory=lambda: [0] * 24)
    daily_distribution: list[int] = Field(default_factory=lambda: [0] * 7)  # Sunday first


def empty_time_distribution() -> dict[str, int]:
    return {SHORT: 0, MEDIUM: 0, LONG: 0, EXTENDED: 0}


class FreeTime(BaseModel):
    avg_block: int = 0  # minutes
    longest: int = 0


class MeetingPatterns(BaseModel):
    conflict_count: int = 0
    avg_free_time_block: int = 0  # minutes
    longest_free_block: int = 0
    recurring_events_count: int = 0
    recurring_percentage: int = 0


class Recommendation(BaseModel):
    type: str  # warning | info
    category: str  # workload | scheduling | balance | productivity
    title: str
    message: str
    priority: str  # high | medium | low


class AnalyticsReport(BaseModel):
    summary: SummaryStats = Field(default_factory=SummaryStats)
    productivity: ProductivityPatterns = Field(default_factory=ProductivityPatterns)
    time_distribution: dict[str, int] = Field(default_factory=empty_time_distribution)
    meeting_patterns: MeetingPatterns = Field(default_factory=MeetingPatterns)
    recommendations: list[Recommendation] = []
    time_range_days: int = 30
    generated_at: datetime | None = None


class UserEngagement(BaseModel):
    total_events: int = 0
    recent_events: int = 0
    avg_events_per_week: float = 0
    last_activity: datetime | None = None


class CalendarStats(BaseModel):
    """Current-week load used by rule-based insights."""
    weekly_events: int = 0
    avg_daily_meetings: float = 0
    total_hours: float = 0
    busiest_day: str | None = None
    common_time: str | None = None
    hour_distribution: list[int] = Field(default_factory=lambda: [0] * 24)


class Insight(BaseModel):
    type: str  # warning | success | info
    title: str
    message: str
    priority: int  # 1 (low) .. 5 (high)
