"""
Calendar feature: Schemas for events, exceptions, conflicts and requests.
"""

import logging
import re
from collections.abc import Iterable, Mapping
from datetime import date, datetime, timedelta

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from app.core.exceptions import EventErrorCode
from app.core.timeutils import parse_date, parse_datetime

logger = logging.getLogger(__name__)

DEFAULT_COLOR = "#1967d2"
SUPPORTED_FREQUENCIES = ("DAILY", "WEEKLY", "MONTHLY", "YEARLY")

_HEX_COLOR = re.compile(r"^#[0-9A-Fa-f]{6}$")


def _to_int(value) -> int | None:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _strict_datetime(value):
    """Before-validator: normalize to naive datetime, reject garbage."""
    if value is None:
        return None
    parsed = parse_datetime(value)
    if parsed is None:
        raise ValueError(f"invalid datetime: {value!r}")
    return parsed


class RecurrenceRule(BaseModel):
    """Structured form of `FREQ=..;INTERVAL=..;COUNT=..;UNTIL=..`."""
    freq: str
    interval: int = Field(1, ge=1)
    count: int | None = Field(None, ge=1)
    until: datetime | None = None

    @field_validator("freq", mode="before")
    @classmethod
    def _upper_freq(cls, value):
        return str(value).strip().upper()

    @field_validator("until", mode="before")
    @classmethod
    def _lenient_until(cls, value):
        return parse_datetime(value)

    @classmethod
    def from_text(cls, text) -> "RecurrenceRule | None":
        """Parse the persisted text form. Returns None when there is no FREQ."""
        if not text or not isinstance(text, str):
            return None

        body = text.strip()
        if body.upper().startswith("RRULE:"):
            body = body[len("RRULE:"):]

        parts: dict[str, str] = {}
        for part in body.split(";"):
            key, sep, value = part.partition("=")
            key, value = key.strip().upper(), value.strip()
            if sep and key and value:
                parts[key] = value

        if "FREQ" not in parts:
            return None

        count = _to_int(parts.get("COUNT"))
        return cls(
            freq=parts["FREQ"],
            interval=max(1, _to_int(parts.get("INTERVAL")) or 1),
            count=count if count and count > 0 else None,
            until=parts.get("UNTIL"),
        )

    def to_text(self) -> str:
        rule = f"FREQ={self.freq};INTERVAL={self.interval}"
        if self.count:
            rule += f";COUNT={self.count}"
        if self.until:
            rule += f";UNTIL={self.until.isoformat()}"
        return rule


class Event(BaseModel):
    """A stored calendar event (one row of `calendar_events`)."""
    model_config = ConfigDict(extra="ignore")

    id: int
    user_email: str = "default@user.com"
    title: str
    description: str | None = None
    location: str | None = None
    start_time: datetime
    end_time: datetime
    is_all_day: bool = False
    color: str = DEFAULT_COLOR
    recurrence_rule: RecurrenceRule | None = None
    recurrence_end_date: datetime | None = None
    reminder_minutes: int = Field(0, ge=0)
    reminder_sent: bool = False
    created_at: datetime | None = None

    @field_validator("start_time", "end_time", "created_at", mode="before")
    @classmethod
    def _normalize_times(cls, value):
        return _strict_datetime(value)

    @field_validator("recurrence_end_date", mode="before")
    @classmethod
    def _lenient_end_date(cls, value):
        return parse_datetime(value)

    @field_validator("recurrence_rule", mode="before")
    @classmethod
    def _parse_rule(cls, value):
        if isinstance(value, str):
            return RecurrenceRule.from_text(value)
        return value

    @field_validator("reminder_minutes", mode="before")
    @classmethod
    def _default_reminder(cls, value):
        return 0 if value is None else value

    @field_validator("color", mode="before")
    @classmethod
    def _default_color(cls, value):
        return value or DEFAULT_COLOR

    @property
    def duration(self) -> timedelta:
        return self.end_time - self.start_time

    @property
    def is_recurring(self) -> bool:
        return self.recurrence_rule is not None


class ExpandedInstance(Event):
    """A materialized occurrence of a recurring event. Never persisted."""
    id: str
    parent_id: int
    is_recurring_instance: bool = True
    exception_applied: bool = False


class EventException(BaseModel):
    """Per-date override of one occurrence of a recurring event."""
    model_config = ConfigDict(extra="ignore")

    id: int | None = None
    event_id: int
    exception_date: date
    new_start_time: datetime | None = None
    new_end_time: datetime | None = None
    is_deleted: bool = False

    @field_validator("exception_date", mode="before")
    @classmethod
    def _parse_exception_date(cls, value):
        parsed = parse_date(value)
        if parsed is None:
            raise ValueError(f"invalid exception date: {value!r}")
        return parsed

    @field_validator("new_start_time", "new_end_time", mode="before")
    @classmethod
    def _normalize_times(cls, value):
        return _strict_datetime(value)


class Conflict(BaseModel):
    """A detected overlap between a candidate event and an existing one."""
    event1_id: int | str | None = None
    event1_title: str
    event1_start: datetime
    event2_id: int | str | None = None
    event2_title: str
    event2_start: datetime
    conflict_type: str = "time_overlap"
    resolved: bool = False
    detected_at: datetime | None = None


# ── Request models ───────────────────────────────────────

class EventCreate(BaseModel):
    """Request to create a new calendar event."""
    title: str
    description: str | None = None
    location: str | None = None
    start_time: str  # ISO format: YYYY-MM-DDTHH:MM[:SS][Z]
    end_time: str
    is_all_day: bool = False
    color: str | None = None
    recurrence_rule: str | None = None  # FREQ=WEEKLY;INTERVAL=1;COUNT=10
    recurrence_end_date: str | None = None
    reminder_minutes: int | None = None


class EventUpdate(BaseModel):
    """Request to update an existing event."""
    title: str | None = None
    description: str | None = None
    location: str | None = None
    start_time: str | None = None
    end_time: str | None = None
    is_all_day: bool | None = None
    color: str | None = None
    recurrence_rule: str | None = None
    recurrence_end_date: str | None = None
    reminder_minutes: int | None = None


class InstanceEdit(BaseModel):
    """Request to move one occurrence of a recurring event."""
    exception_date: str
    new_start_time: str | None = None
    new_end_time: str | None = None


class InstanceDelete(BaseModel):
    """Request to drop one occurrence of a recurring event."""
    exception_date: str


# ── Boundary validation ──────────────────────────────────

def validate_event_payload(data: Mapping, partial: bool = False) -> list[EventErrorCode]:
    """Validate a raw create/update payload.

    Returns the list of failures (empty when valid). With `partial=True`
    missing fields are allowed, but any field that is present must be valid.
    """
    errors: list[EventErrorCode] = []

    title = data.get("title")
    if (not partial or title is not None) and (not title or not str(title).strip()):
        errors.append(EventErrorCode.TITLE_REQUIRED)

    start_raw, end_raw = data.get("start_time"), data.get("end_time")
    start = end = None
    if start_raw:
        start = parse_datetime(start_raw)
        if start is None:
            errors.append(EventErrorCode.INVALID_START)
    elif not partial:
        errors.append(EventErrorCode.START_REQUIRED)

    if end_raw:
        end = parse_datetime(end_raw)
        if end is None:
            errors.append(EventErrorCode.INVALID_END)
    elif not partial:
        errors.append(EventErrorCode.END_REQUIRED)

    if start and end:
        if end < start or (end == start and not data.get("is_all_day")):
            errors.append(EventErrorCode.END_BEFORE_START)

    color = data.get("color")
    if color and (not isinstance(color, str) or not _HEX_COLOR.match(color)):
        errors.append(EventErrorCode.INVALID_COLOR)

    rule = data.get("recurrence_rule")
    if rule:
        parsed = RecurrenceRule.from_text(rule) if isinstance(rule, str) else None
        if parsed is None or parsed.freq not in SUPPORTED_FREQUENCIES:
            errors.append(EventErrorCode.INVALID_RECURRENCE)

    reminder = data.get("reminder_minutes")
    if reminder is not None and (_to_int(reminder) is None or _to_int(reminder) < 0):
        errors.append(EventErrorCode.INVALID_REMINDER)

    return errors


def coerce_event(record) -> Event | None:
    """Turn a store row (or an Event) into an Event, or None if malformed."""
    if isinstance(record, Event):
        return record
    if not isinstance(record, Mapping):
        logger.warning(f"Skipping non-mapping event record: {type(record).__name__}")
        return None
    try:
        return Event.model_validate(record)
    except ValidationError as e:
        logger.warning(f"Skipping malformed event {record.get('id')!r}: {e.error_count()} error(s)")
        return None


def coerce_events(records: Iterable) -> list[Event]:
    """Validate a batch of store rows, dropping malformed ones."""
    events = []
    for record in records or []:
        event = coerce_event(record)
        if event is not None:
            events.append(event)
    return events


def coerce_exceptions(records: Iterable) -> list[EventException]:
    exceptions = []
    for record in records or []:
        if isinstance(record, EventException):
            exceptions.append(record)
            continue
        try:
            exceptions.append(EventException.model_validate(record))
        except ValidationError as e:
            logger.warning(f"Skipping malformed event exception: {e.error_count()} error(s)")
    return exceptions
