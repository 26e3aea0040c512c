"""
Calendar feature: API routes for event management.
"""

from fastapi import APIRouter, Depends, HTTPException, status

from app.core.dependencies import get_calendar_service, get_user_email
from app.core.exceptions import AppBaseError, app_error_to_http
from app.core.timeutils import parse_datetime
from app.features.analytics.router import invalidate_user_analytics
from app.features.calendar.conflicts import find_conflicts
from app.features.calendar.recurrence import create_recurrence_rule, parse_recurrence_rule
from app.features.calendar.schemas import (
    EventCreate,
    EventUpdate,
    InstanceDelete,
    InstanceEdit,
)
from app.features.calendar.service import CalendarService

router = APIRouter()


def _conflict_payload(conflicts: list) -> dict:
    if not conflicts:
        return {}
    return {
        "warning": f"This event overlaps with {len(conflicts)} existing event(s)",
        "conflicts": [
            {"id": c.id, "title": c.title, "start_time": c.start_time, "end_time": c.end_time}
            for c in conflicts
        ],
    }


@router.get("/")
async def list_events(
    start: str | None = None,
    end: str | None = None,
    user_email: str = Depends(get_user_email),
    service: CalendarService = Depends(get_calendar_service),
):
    """List events; with a start/end window recurring events are expanded."""
    if start and end:
        start_dt, end_dt = parse_datetime(start), parse_datetime(end)
        if start_dt is None or end_dt is None:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid start/end")
        events = service.list_expanded_events(user_email, start_dt, end_dt)
    else:
        events = service.get_all_events(user_email)
    return {"count": len(events), "data": events}


@router.get("/check-conflicts")
async def check_conflicts(
    start_time: str,
    end_time: str,
    exclude_id: int | None = None,
    user_email: str = Depends(get_user_email),
    service: CalendarService = Depends(get_calendar_service),
):
    """Report events overlapping a candidate interval (informational only)."""
    start_dt, end_dt = parse_datetime(start_time), parse_datetime(end_time)
    if start_dt is None or end_dt is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid start_time/end_time")

    candidates = service.conflict_candidates(user_email, start_dt, end_dt)
    conflicts = find_conflicts(start_dt, end_dt, candidates, exclude_id=exclude_id)
    return {"has_conflicts": bool(conflicts), "count": len(conflicts), "data": conflicts}


@router.get("/recurrence-rule")
async def build_recurrence_rule(
    freq: str,
    interval: int = 1,
    count: int | None = None,
    until: str | None = None,
):
    """Build (and echo back parsed) a recurrence rule string."""
    try:
        rule = create_recurrence_rule(freq, interval, count, until)
    except AppBaseError as e:
        raise app_error_to_http(e)
    return {"data": {"rule": rule, "parsed": parse_recurrence_rule(rule)}}


@router.get("/{event_id}")
async def get_event(
    event_id: int,
    user_email: str = Depends(get_user_email),
    service: CalendarService = Depends(get_calendar_service),
):
    """Get a single event, with its exceptions when recurring."""
    event = service.get_event(user_email, event_id)
    if event is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Event not found with id: {event_id}")

    exceptions = service.get_exceptions(event_id) if event.is_recurring else []
    return {"data": event, "exceptions": exceptions}


@router.post("/", status_code=status.HTTP_201_CREATED)
async def create_event(
    data: EventCreate,
    user_email: str = Depends(get_user_email),
    service: CalendarService = Depends(get_calendar_service),
):
    """Create a new calendar event. Overlaps are reported, not blocked."""
    try:
        event, conflicts = service.create_event(user_email, data.model_dump())
    except AppBaseError as e:
        raise app_error_to_http(e)
    invalidate_user_analytics(user_email)
    return {"data": event, **_conflict_payload(conflicts)}


@router.put("/{event_id}")
async def update_event(
    event_id: int,
    data: EventUpdate,
    user_email: str = Depends(get_user_email),
    service: CalendarService = Depends(get_calendar_service),
):
    """Update an existing event."""
    try:
        event, conflicts = service.update_event(user_email, event_id, data.model_dump())
    except AppBaseError as e:
        raise app_error_to_http(e)
    invalidate_user_analytics(user_email)
    return {"data": event, **_conflict_payload(conflicts)}


@router.delete("/{event_id}")
async def delete_event(
    event_id: int,
    user_email: str = Depends(get_user_email),
    service: CalendarService = Depends(get_calendar_service),
):
    """Delete an event and its exceptions."""
    service.delete_event(user_email, event_id)
    invalidate_user_analytics(user_email)
    return {"message": "Event deleted"}


@router.put("/{event_id}/recurring-instance")
async def update_recurring_instance(
    event_id: int,
    data: InstanceEdit,
    user_email: str = Depends(get_user_email),
    service: CalendarService = Depends(get_calendar_service),
):
    """Move one occurrence of a recurring event."""
    try:
        exception = service.add_exception(
            user_email,
            event_id,
            data.exception_date,
            new_start_time=data.new_start_time,
            new_end_time=data.new_end_time,
        )
    except AppBaseError as e:
        raise app_error_to_http(e)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    invalidate_user_analytics(user_email)
    return {"message": "Recurring instance updated", "data": exception}


@router.delete("/{event_id}/recurring-instance")
async def delete_recurring_instance(
    event_id: int,
    data: InstanceDelete,
    user_email: str = Depends(get_user_email),
    service: CalendarService = Depends(get_calendar_service),
):
    """Drop one occurrence of a recurring event."""
    try:
        exception = service.add_exception(user_email, event_id, data.exception_date, is_deleted=True)
    except AppBaseError as e:
        raise app_error_to_http(e)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    invalidate_user_analytics(user_email)
    return {"message": "Recurring instance deleted", "data": exception}
