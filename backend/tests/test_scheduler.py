"""Unit tests for the reminder scheduler."""
from datetime import datetime, timedelta

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from app.background import scheduler as reminder_scheduler
from app.background.scheduler import (
    REMINDER_JOB_ID,
    init_scheduler,
    is_reminder_due,
    log_reminder,
    process_due_reminders,
    run_reminder_poll,
    scheduler,
    set_reminder_dispatcher,
)
from app.config import get_settings
from conftest import make_event

NOW = datetime(2025, 6, 2, 8, 45)


def test_all():
    settings = get_settings()
    print("=== Unit Test: Reminder Scheduler ===")

    # Test 1: Scheduler runs on naive UTC
    sched_tz = str(scheduler.timezone)
    print(f"1. Scheduler timezone = {sched_tz}")
    assert "UTC" in sched_tz, f"Expected UTC, got {sched_tz}"
    print("   PASS: Scheduler timezone configured correctly")

    # Test 2: Reminders disabled in tests -> scheduler not started
    assert settings.REMINDERS_ENABLED is False
    init_scheduler()
    assert not scheduler.running, "Scheduler must not start when reminders are disabled"
    print("2. PASS: init_scheduler respects REMINDERS_ENABLED")

    # Test 3: Poll job can be registered/replaced on a paused scheduler
    test_sched = BackgroundScheduler(timezone="UTC")
    test_sched.start(paused=True)
    for _ in range(2):
        test_sched.add_job(run_reminder_poll, IntervalTrigger(seconds=settings.REMINDER_POLL_SECONDS),
                           id=REMINDER_JOB_ID, replace_existing=True)
    jobs = test_sched.get_jobs()
    assert len(jobs) == 1, f"Expected 1 job after replace, got {len(jobs)}"
    print(f"3. PASS: reminder job registered once: {[j.id for j in jobs]}")
    test_sched.shutdown(wait=False)

    print("=== All scheduler tests passed ===")


class TestIsReminderDue:
    def test_inside_window(self):
        event = make_event("2025-06-02T09:00:00", "2025-06-02T10:00:00", reminder_minutes=30)
        assert is_reminder_due(event, NOW) is True

    def test_window_opens_at_lead_time(self):
        event = make_event("2025-06-02T09:00:00", "2025-06-02T10:00:00", reminder_minutes=15)
        assert is_reminder_due(event, NOW) is True
        assert is_reminder_due(event, NOW - timedelta(minutes=1)) is False

    def test_not_yet(self):
        event = make_event("2025-06-02T12:00:00", "2025-06-02T13:00:00", reminder_minutes=30)
        assert is_reminder_due(event, NOW) is False

    def test_started_sent_or_disabled(self):
        started = make_event("2025-06-02T08:30:00", "2025-06-02T09:30:00", reminder_minutes=30)
        sent = make_event("2025-06-02T09:00:00", "2025-06-02T10:00:00", reminder_minutes=30, reminder_sent=True)
        disabled = make_event("2025-06-02T09:00:00", "2025-06-02T10:00:00", reminder_minutes=0)
        assert not any(is_reminder_due(e, NOW) for e in (started, sent, disabled))


class TestProcessDueReminders:
    def test_dispatches_once_and_marks_sent(self, service, fake_db):
        due = fake_db.seed_event(start_time="2025-06-02T09:00:00", end_time="2025-06-02T10:00:00",
                                 reminder_minutes=30)
        fake_db.seed_event(start_time="2025-06-02T15:00:00", end_time="2025-06-02T16:00:00",
                           reminder_minutes=30)
        delivered = []

        assert process_due_reminders(service, now=NOW, dispatch=delivered.append) == 1
        assert [e.id for e in delivered] == [due["id"]]
        assert fake_db.tables["calendar_events"][0]["reminder_sent"] is True

        # second poll finds nothing new
        assert process_due_reminders(service, now=NOW, dispatch=delivered.append) == 0
        assert len(delivered) == 1

    def test_failed_dispatch_is_retried_next_poll(self, service, fake_db):
        fake_db.seed_event(start_time="2025-06-02T09:00:00", end_time="2025-06-02T10:00:00",
                           reminder_minutes=30)

        def broken(event):
            raise ConnectionError("smtp down")

        assert process_due_reminders(service, now=NOW, dispatch=broken) == 0
        assert fake_db.tables["calendar_events"][0]["reminder_sent"] is False

    def test_default_dispatcher_logs(self, service, fake_db, caplog):
        caplog.set_level("INFO", logger=reminder_scheduler.__name__)
        fake_db.seed_event(title="Dentist", start_time="2025-06-02T09:00:00",
                           end_time="2025-06-02T10:00:00", reminder_minutes=30)

        set_reminder_dispatcher(None)
        assert reminder_scheduler._dispatcher is log_reminder
        assert process_due_reminders(service, now=NOW) == 1
        assert "Reminder for owner@example.com: 'Dentist'" in caplog.text

    def test_custom_dispatcher(self, service, fake_db):
        fake_db.seed_event(start_time="2025-06-02T09:00:00", end_time="2025-06-02T10:00:00",
                           reminder_minutes=30)
        delivered = []
        set_reminder_dispatcher(delivered.append)
        try:
            assert process_due_reminders(service, now=NOW) == 1
        finally:
            set_reminder_dispatcher(None)
        assert len(delivered) == 1
