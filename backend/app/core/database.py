"""
Database connections: Supabase client setup.

Tables used: calendar_events, event_exceptions, event_conflicts.
"""

from functools import lru_cache
from supabase import create_client, Client

from app.config import get_settings


@lru_cache
def get_supabase_client() -> Client:
    """Get the Supabase client (singleton), anon key."""
    settings = get_settings()
    return create_client(settings.SUPABASE_URL, settings.SUPABASE_KEY)


@lru_cache
def get_background_client() -> Client:
    """Client for background jobs that scan every owner's events.

    Prefers the service_role key (bypasses RLS) and falls back to the anon
    key when no service key is configured.
    """
    settings = get_settings()
    key = settings.SUPABASE_SERVICE_KEY or settings.SUPABASE_KEY
    return create_client(settings.SUPABASE_URL, key)
