"""
FastAPI dependency injection functions.
"""

from fastapi import Depends, Header
from supabase import Client

from app.config import get_settings
from app.core.database import get_supabase_client
from app.core.llm_provider import llm_available
from app.features.calendar.service import CalendarService, EventStore
from app.features.scheduling.oracle import LLMSlotRanker, SlotRanker


def get_db() -> Client:
    """Dependency: get Supabase client."""
    return get_supabase_client()


def get_calendar_service(db: Client = Depends(get_db)) -> CalendarService:
    """Dependency: Supabase-backed calendar service."""
    return CalendarService(db)


def get_event_store(service: CalendarService = Depends(get_calendar_service)) -> EventStore:
    """Dependency: read-only event store for the engines."""
    return service


def get_user_email(x_user_email: str | None = Header(default=None)) -> str:
    """Dependency: owner partition key from the `X-User-Email` header.

    Returns:
        str: The owner's email, or the configured default owner.
    """
    email = (x_user_email or "").strip().lower()
    return email or get_settings().DEFAULT_USER_EMAIL


def get_slot_ranker() -> SlotRanker | None:
    """Dependency: LLM slot ranker, or None when the oracle is disabled."""
    return LLMSlotRanker() if llm_available() else None
