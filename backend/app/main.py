"""
Smart Calendar Engine - FastAPI Application Entry Point.

Feature-based modular architecture:
  Each feature in app/features/ has its own schemas, service and router.
  calendar   -> events, recurrence expansion, conflict detection
  scheduling -> free slots, scheduling patterns, time suggestions
  analytics  -> reports, engagement, insights
"""

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config import get_settings
from app.background.scheduler import init_scheduler, shutdown_scheduler

# ── Feature Routers ──────────────────────────────────────
from app.features.calendar.router import router as calendar_router
from app.features.scheduling.router import router as scheduling_router
from app.features.analytics.router import router as analytics_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle: startup & shutdown."""
    settings = get_settings()
    logging.basicConfig(level=logging.DEBUG if settings.DEBUG else logging.INFO)
    logger.info(f"🚀 {settings.APP_NAME} v{settings.APP_VERSION} starting...")
    logger.info(
        f"🤖 Slot ranking: {settings.LLM_PROVIDER} ({settings.LLM_MODEL})"
        if settings.LLM_ENABLED else "🤖 Slot ranking: rule-based"
    )
    init_scheduler()
    yield
    shutdown_scheduler()
    logger.info("👋 Shutting down...")


def create_app() -> FastAPI:
    """Application factory."""
    settings = get_settings()

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description="Recurring events, conflict detection, free-slot search and calendar analytics",
        lifespan=lifespan,
    )

    # ── CORS ─────────────────────────────────────────────
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ── Register Feature Routers ─────────────────────────
    app.include_router(calendar_router, prefix="/api/events", tags=["Events"])
    app.include_router(scheduling_router, prefix="/api/scheduling", tags=["Scheduling"])
    app.include_router(analytics_router, prefix="/api/analytics", tags=["Analytics"])

    # ── Health Check ─────────────────────────────────────
    @app.get("/health", tags=["System"])
    async def health_check():
        return {
            "status": "healthy",
            "app": settings.APP_NAME,
            "version": settings.APP_VERSION,
        }

    return app


app = create_app()
