"""
Scheduling feature: free-slot search inside working hours.

Candidates are generated every `step_minutes` from the start of working
hours, day by day, and kept when they fit before the end of working hours
and overlap no blocking event (same predicate as conflict detection).
"""

import logging
import math
from collections.abc import Iterable, Mapping
from datetime import datetime, time, timedelta

from pydantic import BaseModel, Field, ValidationError, model_validator

from app.core.timeutils import format_clock, format_day_label, sunday_weekday, utc_now
from app.features.calendar.conflicts import is_blocking
from app.features.calendar.schemas import coerce_events

logger = logging.getLogger(__name__)


class WorkingHours(BaseModel):
    """Daily window (whole hours) within which slots may be placed."""
    start: int = Field(9, ge=0, le=24)
    end: int = Field(17, ge=0, le=24)

    @model_validator(mode="after")
    def _check_order(self):
        if self.end <= self.start:
            raise ValueError("working hours end must be after start")
        return self


class TimeSlot(BaseModel):
    start: datetime
    end: datetime
    day: str  # "Monday, Jun 2"
    time: str  # "9:00 AM"
    day_of_week: int  # Sunday=0
    hour: int

    @classmethod
    def from_bounds(cls, start: datetime, end: datetime) -> "TimeSlot":
        return cls(
            start=start,
            end=end,
            day=format_day_label(start),
            time=format_clock(start),
            day_of_week=sunday_weekday(start),
            hour=start.hour,
        )

    @property
    def label(self) -> str:
        return f"{self.day} at {self.time}"


def _round_up(moment: datetime, day_start: datetime, step: timedelta) -> datetime:
    """Next step boundary (counted from midnight) at or after `moment`."""
    midnight = datetime.combine(moment.date(), time.min)
    steps = math.ceil((moment - midnight) / step)
    return max(midnight + steps * step, day_start)


def _resolve_working_hours(working_hours) -> WorkingHours | None:
    if working_hours is None:
        return WorkingHours()
    if isinstance(working_hours, WorkingHours):
        return working_hours
    try:
        return WorkingHours.model_validate(working_hours)
    except ValidationError as e:
        logger.warning(f"Slot search skipped: invalid working hours {working_hours!r}: {e.error_count()} error(s)")
        return None


def find_available_slots(
    existing_events: Iterable,
    duration_minutes: int,
    horizon_days: int = 7,
    working_hours: WorkingHours | Mapping | None = None,
    step_minutes: int = 30,
    count: int | None = None,
    now: datetime | None = None,
) -> list[TimeSlot]:
    """Free slots of `duration_minutes` in chronological order.

    Returns an empty list (never raises) when nothing fits or the inputs make
    no sense. Stops early once `count` slots have been found.
    """
    if duration_minutes is None or duration_minutes <= 0 or step_minutes <= 0 or horizon_days <= 0:
        logger.warning(
            f"Slot search skipped: duration={duration_minutes}, step={step_minutes}, horizon={horizon_days}"
        )
        return []

    hours = _resolve_working_hours(working_hours)
    if hours is None:
        return []

    now = now or utc_now()
    duration = timedelta(minutes=duration_minutes)
    step = timedelta(minutes=step_minutes)
    busy = [(e.start_time, e.end_time) for e in coerce_events(existing_events) if is_blocking(e)]

    slots: list[TimeSlot] = []
    for offset in range(horizon_days):
        midnight = datetime.combine(now.date() + timedelta(days=offset), time.min)
        day_start = midnight + timedelta(hours=hours.start)
        day_end = midnight + timedelta(hours=hours.end)

        candidate = day_start
        if offset == 0 and candidate < now:
            candidate = _round_up(now, day_start, step)

        while candidate < day_end:
            slot_end = candidate + duration
            if slot_end > day_end:
                break

            if not any(candidate < busy_end and busy_start < slot_end for busy_start, busy_end in busy):
                slots.append(TimeSlot.from_bounds(candidate, slot_end))
                if count is not None and len(slots) >= count:
                    return slots

            candidate += step

    return slots
