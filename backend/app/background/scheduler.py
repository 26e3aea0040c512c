"""
Background scheduler for event reminders.

A single APScheduler interval job polls the store for events whose reminder
window has opened, hands each one to a dispatcher and marks it sent. State
lives in the `reminder_sent` column, so nothing is lost across restarts.
Delivery itself (email, push) belongs to the dispatcher.
"""

import logging
from collections.abc import Callable
from datetime import datetime, timedelta

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from app.config import get_settings
from app.core.database import get_background_client
from app.core.timeutils import utc_now
from app.features.calendar.schemas import Event
from app.features.calendar.service import CalendarService

logger = logging.getLogger(__name__)

REMINDER_JOB_ID = "event_reminder_poll"

# Singleton scheduler instance (naive UTC, like every stored timestamp)
scheduler = AsyncIOScheduler(timezone="UTC")

ReminderDispatcher = Callable[[Event], None]


def log_reminder(event: Event) -> None:
    """Default dispatcher: record the reminder in the application log."""
    logger.info(
        f"🔔 Reminder for {event.user_email}: '{event.title}' starts at {event.start_time.isoformat()}"
    )


_dispatcher: ReminderDispatcher = log_reminder


def set_reminder_dispatcher(dispatcher: ReminderDispatcher | None) -> None:
    """Plug in a delivery channel (None restores the logging dispatcher)."""
    global _dispatcher
    _dispatcher = dispatcher or log_reminder


def is_reminder_due(event: Event, now: datetime) -> bool:
    if event.reminder_minutes <= 0 or event.reminder_sent:
        return False
    return event.start_time - timedelta(minutes=event.reminder_minutes) <= now < event.start_time


def process_due_reminders(
    service: CalendarService,
    now: datetime | None = None,
    dispatch: ReminderDispatcher | None = None,
) -> int:
    """Dispatch every due reminder once. Returns how many were sent."""
    now = now or utc_now()
    dispatch = dispatch or _dispatcher

    sent = 0
    for event in service.get_upcoming_reminders(now=now):
        if not is_reminder_due(event, now):
            continue
        try:
            dispatch(event)
            service.mark_reminder_sent(event.id)
            sent += 1
        except Exception as e:
            logger.error(f"❌ Reminder for event {event.id} failed: {e}")
    return sent


async def run_reminder_poll():
    """Callback for the APScheduler reminder job."""
    try:
        sent = process_due_reminders(CalendarService(get_background_client()))
        if sent:
            logger.info(f"✅ Sent {sent} reminder(s)")
    except Exception as e:
        logger.error(f"❌ Reminder poll failed: {e}", exc_info=True)


def init_scheduler():
    """Register the reminder job and start the scheduler.

    Called during FastAPI lifespan startup.
    """
    settings = get_settings()
    if not settings.REMINDERS_ENABLED:
        logger.info("📅 Reminders disabled, scheduler not started.")
        return

    scheduler.add_job(
        func=run_reminder_poll,
        trigger=IntervalTrigger(seconds=settings.REMINDER_POLL_SECONDS),
        id=REMINDER_JOB_ID,
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )
    scheduler.start()
    logger.info(f"📅 Scheduler started: reminder poll every {settings.REMINDER_POLL_SECONDS}s")


def shutdown_scheduler():
    """Gracefully shutdown the scheduler."""
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("📅 Scheduler shut down.")
