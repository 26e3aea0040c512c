"""
Application configuration using Pydantic Settings.
All config is loaded from environment variables / .env file.
"""

from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings loaded from .env file."""

    # ── App ──────────────────────────────────────────────
    APP_NAME: str = "smart-calendar-engine"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:5173"  # comma-separated

    # ── Supabase ─────────────────────────────────────────
    SUPABASE_URL: str
    SUPABASE_KEY: str  # anon/public key
    SUPABASE_SERVICE_KEY: str = ""  # service_role key (for admin ops)

    # ── Calendar ─────────────────────────────────────────
    DEFAULT_USER_EMAIL: str = "default@user.com"  # owner when no X-User-Email header
    DEFAULT_EVENT_COLOR: str = "#1967d2"
    DEFAULT_REMINDER_MINUTES: int = 30

    # ── Scheduling (free-slot search) ────────────────────
    WORKING_HOURS_START: int = 9
    WORKING_HOURS_END: int = 17
    SLOT_STEP_MINUTES: int = 30
    SLOT_HORIZON_DAYS: int = 7
    ORACLE_TIMEOUT_SECONDS: float = 15.0  # LLM ranking, falls back to rule-based

    # ── LLM (Provider-Agnostic) ──────────────────────────
    LLM_ENABLED: bool = False  # slot ranking oracle off = chronological order
    LLM_PROVIDER: str = "groq"  # gemini | openai | groq
    LLM_MODEL: str = "llama-3.3-70b-versatile"
    LLM_API_KEY: str = ""
    LLM_TEMPERATURE: float = 0.5

    # ── Reminders ────────────────────────────────────────
    REMINDER_POLL_SECONDS: int = 60
    REMINDERS_ENABLED: bool = True

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": True,
    }

    @property
    def cors_origins(self) -> list[str]:
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]


@lru_cache
def get_settings() -> Settings:
    """Cached settings instance (singleton)."""
    return Settings()
