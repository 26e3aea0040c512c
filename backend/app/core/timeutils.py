"""
Naive datetime helpers shared by the calendar engine.

All calendar times are naive ISO-8601 instants. Timezone-aware inputs
(e.g. a trailing "Z") are converted to UTC and stripped of tzinfo so that
every comparison inside the engine is naive-vs-naive.
"""

from datetime import date, datetime, timezone

# Sunday-first, matching the weekday histograms exposed to clients
DAY_NAMES = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]


def parse_datetime(value) -> datetime | None:
    """Parse an ISO-8601 string / date / datetime into a naive datetime.

    Returns None for anything that cannot be interpreted, never raises.
    """
    if value is None or value == "":
        return None

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def parse_date(value) -> date | None:
    """Parse the date part of a date/datetime/ISO string."""
    if isinstance(value, date) and not isinstance(value, datetime):
        return value
    parsed = parse_datetime(value)
    return parsed.date() if parsed else None


def utc_now() -> datetime:
    """Current time as a naive UTC datetime."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def sunday_weekday(value: datetime) -> int:
    """Weekday index with Sunday=0 ... Saturday=6."""
    return (value.weekday() + 1) % 7


def duration_minutes(start: datetime, end: datetime) -> float:
    return (end - start).total_seconds() / 60


def format_hour(hour: int) -> str:
    """24h hour -> '10:00 AM' style label."""
    period = "PM" if hour >= 12 else "AM"
    display_hour = hour % 12 or 12
    return f"{display_hour}:00 {period}"


def format_clock(value: datetime) -> str:
    """'9:30 AM' style label for a datetime."""
    period = "PM" if value.hour >= 12 else "AM"
    display_hour = value.hour % 12 or 12
    return f"{display_hour}:{value.minute:02d} {period}"


def format_day_label(value: datetime) -> str:
    """'Monday, Jun 2' style label for a datetime."""
    return f"{value:%A}, {value:%b} {value.day}"
