"""
Custom exception classes for unified error handling.
"""

from enum import Enum

from fastapi import HTTPException, status


class AppBaseError(Exception):
    """Base exception for all application errors."""
    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, detail: str | None = None):
        self.message = message
        self.detail = detail
        super().__init__(message)


class EventErrorCode(str, Enum):
    """Validation failures reported by the event boundary validator."""
    TITLE_REQUIRED = "title_required"
    START_REQUIRED = "start_time_required"
    END_REQUIRED = "end_time_required"
    INVALID_START = "invalid_start_time"
    INVALID_END = "invalid_end_time"
    END_BEFORE_START = "end_before_start"
    INVALID_COLOR = "invalid_color"
    INVALID_RECURRENCE = "invalid_recurrence_rule"
    INVALID_REMINDER = "invalid_reminder_minutes"


class InvalidEventError(AppBaseError):
    """Raised when an event payload fails validation."""
    def __init__(self, codes: list[EventErrorCode]):
        self.codes = codes
        super().__init__(
            message="Invalid event data",
            detail=", ".join(code.value for code in codes),
        )


class EventNotFoundError(AppBaseError):
    """Raised when an event id does not exist for the owner."""
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, event_id: int | str):
        super().__init__(
            message=f"Event not found with id: {event_id}",
            detail="The event may have been deleted.",
        )


class EventNotRecurringError(AppBaseError):
    """Raised when an instance operation targets a single-occurrence event."""
    def __init__(self, event_id: int | str):
        super().__init__(
            message="Event is not recurring",
            detail=f"Event {event_id} has no recurrence rule.",
        )


class InvalidRecurrenceRuleError(AppBaseError):
    """Raised when a recurrence rule cannot be built."""
    def __init__(self, reason: str):
        super().__init__(
            message="Invalid recurrence rule",
            detail=reason,
        )


# ── Utility: convert to HTTPException ────────────────────

def app_error_to_http(error: AppBaseError, status_code: int | None = None) -> HTTPException:
    """Convert an AppBaseError to an HTTPException with consistent JSON body."""
    detail = {
        "error": error.message,
        "detail": error.detail,
        "type": type(error).__name__,
    }
    if isinstance(error, InvalidEventError):
        detail["codes"] = [code.value for code in error.codes]
    return HTTPException(
        status_code=status_code or error.status_code,
        detail=detail,
    )
