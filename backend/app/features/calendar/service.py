"""
Calendar feature: Service layer for calendar event management.

`CalendarService` is the Supabase-backed event store. The recurrence and
conflict engines never write; only this layer persists events, exceptions
and conflict audit rows.
"""

import logging
from collections.abc import Mapping
from datetime import datetime, timedelta
from typing import Protocol

from supabase import Client

from app.config import get_settings
from app.core.exceptions import (
    EventNotFoundError,
    EventNotRecurringError,
    InvalidEventError,
)
from app.core.timeutils import parse_datetime, utc_now
from app.features.calendar.conflicts import build_conflict_records, find_conflicts
from app.features.calendar.recurrence import expand_events
from app.features.calendar.schemas import (
    Conflict,
    Event,
    EventException,
    RecurrenceRule,
    coerce_event,
    coerce_events,
    coerce_exceptions,
    validate_event_payload,
)

logger = logging.getLogger(__name__)

EVENTS_TABLE = "calendar_events"
EXCEPTIONS_TABLE = "event_exceptions"
CONFLICTS_TABLE = "event_conflicts"


class EventStore(Protocol):
    """Read-only view of the event store consumed by the engines."""

    def get_events_in_range(self, user_email: str, start: datetime, end: datetime) -> list[Event]: ...

    def get_recurring_events(self, user_email: str, before: datetime) -> list[Event]: ...

    def get_exceptions(self, event_id: int) -> list[EventException]: ...

    def get_all_events(self, user_email: str) -> list[Event]: ...


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _build_row(data: Mapping, partial: bool = False) -> dict:
    """Map a validated request payload to a `calendar_events` row."""
    settings = get_settings()
    row = {}

    if "title" in data and data["title"] is not None:
        row["title"] = data["title"].strip()
    for key in ("description", "location"):
        if key in data and (data[key] is not None or not partial):
            row[key] = (data[key] or "").strip() or None
    for key in ("start_time", "end_time", "recurrence_end_date"):
        if data.get(key):
            row[key] = _iso(parse_datetime(data[key]))
    if data.get("is_all_day") is not None or not partial:
        row["is_all_day"] = bool(data.get("is_all_day"))
    if data.get("color") or not partial:
        row["color"] = data.get("color") or settings.DEFAULT_EVENT_COLOR
    if data.get("recurrence_rule"):
        row["recurrence_rule"] = RecurrenceRule.from_text(data["recurrence_rule"]).to_text()
    if data.get("reminder_minutes") is not None:
        row["reminder_minutes"] = max(0, int(data["reminder_minutes"]))
    elif not partial:
        row["reminder_minutes"] = settings.DEFAULT_REMINDER_MINUTES

    return row


class CalendarService:
    """CRUD operations for calendar events, exceptions and conflict logs."""

    def __init__(self, db: Client):
        self.db = db

    # ── Reads (EventStore) ───────────────────────────────

    def get_all_events(self, user_email: str) -> list[Event]:
        result = (
            self.db.table(EVENTS_TABLE)
            .select("*")
            .eq("user_email", user_email)
            .order("start_time", desc=False)
            .execute()
        )
        return coerce_events(result.data)

    def get_events_in_range(self, user_email: str, start: datetime, end: datetime) -> list[Event]:
        """Events whose start falls inside [start, end], oldest first."""
        result = (
            self.db.table(EVENTS_TABLE)
            .select("*")
            .eq("user_email", user_email)
            .gte("start_time", _iso(start))
            .lte("start_time", _iso(end))
            .order("start_time", desc=False)
            .execute()
        )
        return coerce_events(result.data)

    def get_recurring_events(self, user_email: str, before: datetime) -> list[Event]:
        """Recurring series that started on or before `before`."""
        result = (
            self.db.table(EVENTS_TABLE)
            .select("*")
            .eq("user_email", user_email)
            .not_.is_("recurrence_rule", "null")
            .lte("start_time", _iso(before))
            .execute()
        )
        return coerce_events(result.data)

    def get_event(self, user_email: str, event_id: int) -> Event | None:
        result = (
            self.db.table(EVENTS_TABLE)
            .select("*")
            .eq("id", event_id)
            .eq("user_email", user_email)
            .execute()
        )
        return coerce_event(result.data[0]) if result.data else None

    def get_exceptions(self, event_id: int) -> list[EventException]:
        result = (
            self.db.table(EXCEPTIONS_TABLE)
            .select("*")
            .eq("event_id", event_id)
            .execute()
        )
        return coerce_exceptions(result.data)

    # ── Expanded views ───────────────────────────────────

    def list_expanded_events(self, user_email: str, start: datetime, end: datetime) -> list[Event]:
        """All concrete instances starting in [start, end], sorted by start.

        Recurring series that began before the window are pulled in so their
        later occurrences are not lost.
        """
        return load_expanded_events(self, user_email, start, end)

    def conflict_candidates(self, user_email: str, start: datetime, end: datetime) -> list[Event]:
        """Single events plus recurring instances near [start, end]."""
        events = self.get_all_events(user_email)
        single = [e for e in events if not e.is_recurring]
        recurring = [e for e in events if e.is_recurring]
        exceptions = {e.id: self.get_exceptions(e.id) for e in recurring}
        return single + expand_events(recurring, start - timedelta(days=1), end, exceptions)

    # ── Writes ───────────────────────────────────────────

    def create_event(self, user_email: str, data: Mapping) -> tuple[Event, list[Event]]:
        """Validate, check conflicts, insert. Conflicts are logged, never blocking.

        Raises:
            InvalidEventError: payload failed validation.
        """
        errors = validate_event_payload(data)
        if errors:
            raise InvalidEventError(errors)

        row = _build_row(data)
        row["user_email"] = user_email
        row["reminder_sent"] = False

        start, end = parse_datetime(row["start_time"]), parse_datetime(row["end_time"])
        conflicts = []
        if not row["is_all_day"]:
            conflicts = find_conflicts(start, end, self.conflict_candidates(user_email, start, end))

        result = self.db.table(EVENTS_TABLE).insert(row).execute()
        event = coerce_event(result.data[0])

        if conflicts:
            self.log_conflicts(build_conflict_records(event.title, event.start_time, conflicts, event.id))
        return event, conflicts

    def update_event(self, user_email: str, event_id: int, data: Mapping) -> tuple[Event, list[Event]]:
        """Partial update; the event itself is excluded from its conflict check.

        Raises:
            InvalidEventError: a provided field failed validation.
            EventNotFoundError: no such event for this owner.
        """
        current = self.get_event(user_email, event_id)
        if current is None:
            raise EventNotFoundError(event_id)

        merged = {
            "start_time": current.start_time.isoformat(),
            "end_time": current.end_time.isoformat(),
            "is_all_day": current.is_all_day,
            **{k: v for k, v in data.items() if v is not None},
        }
        errors = validate_event_payload(merged, partial=True)
        if errors:
            raise InvalidEventError(errors)

        row = _build_row({k: v for k, v in data.items() if v is not None}, partial=True)
        if "start_time" in row or "end_time" in row:
            row["reminder_sent"] = False

        start, end = parse_datetime(merged["start_time"]), parse_datetime(merged["end_time"])
        conflicts = []
        if not merged["is_all_day"]:
            conflicts = find_conflicts(
                start, end, self.conflict_candidates(user_email, start, end), exclude_id=event_id
            )

        if not row:
            return current, conflicts

        result = (
            self.db.table(EVENTS_TABLE)
            .update(row)
            .eq("id", event_id)
            .eq("user_email", user_email)
            .execute()
        )
        event = coerce_event(result.data[0]) if result.data else current

        if conflicts:
            self.log_conflicts(build_conflict_records(event.title, event.start_time, conflicts, event.id))
        return event, conflicts

    def delete_event(self, user_email: str, event_id: int) -> None:
        """Hard delete an event and its exceptions."""
        self.db.table(EXCEPTIONS_TABLE).delete().eq("event_id", event_id).execute()
        (
            self.db.table(EVENTS_TABLE)
            .delete()
            .eq("id", event_id)
            .eq("user_email", user_email)
            .execute()
        )

    def add_exception(
        self,
        user_email: str,
        event_id: int,
        exception_date,
        new_start_time=None,
        new_end_time=None,
        is_deleted: bool = False,
    ) -> EventException:
        """Override or delete one occurrence; replaces any earlier override for that date.

        Raises:
            EventNotFoundError: no such event for this owner.
            EventNotRecurringError: the event has no recurrence rule.
        """
        event = self.get_event(user_email, event_id)
        if event is None:
            raise EventNotFoundError(event_id)
        if not event.is_recurring:
            raise EventNotRecurringError(event_id)

        exception = EventException(
            event_id=event_id,
            exception_date=exception_date,
            new_start_time=new_start_time,
            new_end_time=new_end_time,
            is_deleted=is_deleted,
        )
        row = exception.model_dump(mode="json", exclude={"id"})
        result = (
            self.db.table(EXCEPTIONS_TABLE)
            .upsert(row, on_conflict="event_id,exception_date")
            .execute()
        )
        return coerce_exceptions(result.data)[0] if result.data else exception

    def log_conflicts(self, conflicts: list[Conflict]) -> None:
        """Persist conflict audit rows. Failures are logged, never raised."""
        if not conflicts:
            return
        try:
            rows = [c.model_dump(mode="json") for c in conflicts]
            self.db.table(CONFLICTS_TABLE).insert(rows).execute()
        except Exception as e:
            logger.error(f"Failed to log {len(conflicts)} conflict(s): {e}")

    # ── Reminders ────────────────────────────────────────

    def get_upcoming_reminders(self, user_email: str | None = None, now: datetime | None = None) -> list[Event]:
        """Future events with a reminder configured and not yet sent."""
        now = now or utc_now()
        query = (
            self.db.table(EVENTS_TABLE)
            .select("*")
            .eq("reminder_sent", False)
            .gt("reminder_minutes", 0)
            .gt("start_time", _iso(now))
        )
        if user_email:
            query = query.eq("user_email", user_email)
        result = query.order("start_time", desc=False).execute()
        return coerce_events(result.data)

    def mark_reminder_sent(self, event_id: int) -> None:
        self.db.table(EVENTS_TABLE).update({"reminder_sent": True}).eq("id", event_id).execute()


def load_expanded_events(store: EventStore, user_email: str, start: datetime, end: datetime) -> list[Event]:
    """Expand everything the store holds for [start, end] into concrete instances."""
    in_range = store.get_events_in_range(user_email, start, end)
    series = {e.id: e for e in store.get_recurring_events(user_email, end)}
    for event in in_range:
        if event.is_recurring:
            series.setdefault(event.id, event)

    singles = [e for e in in_range if not e.is_recurring]
    exceptions = {event_id: store.get_exceptions(event_id) for event_id in series}
    return sorted(
        singles + expand_events(series.values(), start, end, exceptions),
        key=lambda e: e.start_time,
    )
