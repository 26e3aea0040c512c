"""
Scheduling feature: API routes for free slots, patterns and time suggestions.
"""

from datetime import timedelta

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field, ValidationError

from app.config import get_settings
from app.core.dependencies import get_event_store, get_slot_ranker, get_user_email
from app.core.timeutils import utc_now
from app.features.calendar.service import EventStore, load_expanded_events
from app.features.scheduling.oracle import SlotRanker, suggest_time_slot
from app.features.scheduling.patterns import analyze_scheduling_patterns
from app.features.scheduling.slots import WorkingHours, find_available_slots

router = APIRouter()

HISTORY_DAYS = 90  # look-back for pattern analysis


class SuggestTimeRequest(BaseModel):
    duration_minutes: int = Field(60, gt=0, le=24 * 60)
    context: str = ""


def _working_hours(start: int | None, end: int | None) -> WorkingHours:
    settings = get_settings()
    try:
        return WorkingHours(
            start=settings.WORKING_HOURS_START if start is None else start,
            end=settings.WORKING_HOURS_END if end is None else end,
        )
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


def _schedule_window(store: EventStore, user_email: str, horizon_days: int):
    """History for patterns plus every instance inside the search horizon."""
    now = utc_now()
    return load_expanded_events(
        store, user_email, now - timedelta(days=HISTORY_DAYS), now + timedelta(days=horizon_days + 1)
    )


@router.get("/slots")
async def available_slots(
    duration_minutes: int = Query(60, gt=0, le=24 * 60),
    count: int | None = Query(None, gt=0),
    horizon_days: int | None = Query(None, gt=0, le=60),
    work_start: int | None = None,
    work_end: int | None = None,
    user_email: str = Depends(get_user_email),
    store: EventStore = Depends(get_event_store),
):
    """Free slots in working hours, chronological."""
    settings = get_settings()
    horizon = horizon_days or settings.SLOT_HORIZON_DAYS
    events = _schedule_window(store, user_email, horizon)
    slots = find_available_slots(
        events,
        duration_minutes,
        horizon_days=horizon,
        working_hours=_working_hours(work_start, work_end),
        step_minutes=settings.SLOT_STEP_MINUTES,
        count=count,
    )
    return {"count": len(slots), "data": slots}


@router.get("/patterns")
async def scheduling_patterns(
    user_email: str = Depends(get_user_email),
    store: EventStore = Depends(get_event_store),
):
    """Peak hours, average duration and weekday distribution."""
    now = utc_now()
    events = store.get_events_in_range(user_email, now - timedelta(days=HISTORY_DAYS), now)
    return {"data": analyze_scheduling_patterns(events)}


@router.post("/suggest-time")
async def suggest_time(
    data: SuggestTimeRequest,
    user_email: str = Depends(get_user_email),
    store: EventStore = Depends(get_event_store),
    ranker: SlotRanker | None = Depends(get_slot_ranker),
):
    """Best slot for a new event; AI-ranked when the oracle is enabled."""
    settings = get_settings()
    events = _schedule_window(store, user_email, settings.SLOT_HORIZON_DAYS)
    suggestion = await suggest_time_slot(
        events,
        data.duration_minutes,
        context=data.context,
        ranker=ranker,
        timeout=settings.ORACLE_TIMEOUT_SECONDS,
        working_hours=_working_hours(None, None),
        horizon_days=settings.SLOT_HORIZON_DAYS,
        step_minutes=settings.SLOT_STEP_MINUTES,
    )
    return {"data": suggestion}
