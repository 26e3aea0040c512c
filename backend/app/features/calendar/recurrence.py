"""
Calendar feature: recurrence rule parsing and occurrence expansion.

A rule is persisted as `FREQ=<DAILY|WEEKLY|MONTHLY|YEARLY>;INTERVAL=<n>;COUNT=<n>;UNTIL=<ts>`.
Expansion walks the series from the event's original start and materializes
the occurrences that start inside the query window.
"""

import logging
from collections.abc import Iterable
from datetime import date, datetime, timedelta

from dateutil.relativedelta import relativedelta

from app.core.exceptions import InvalidRecurrenceRuleError
from app.core.timeutils import parse_datetime
from app.features.calendar.schemas import (
    SUPPORTED_FREQUENCIES,
    Event,
    EventException,
    ExpandedInstance,
    RecurrenceRule,
    coerce_event,
    coerce_exceptions,
)

logger = logging.getLogger(__name__)

# Series length cap (applied to COUNT, and used when COUNT is absent)
MAX_INSTANCES = 100
# Hard cap on generation steps for one expansion
MAX_ITERATIONS = 1000

MAX_INTERVAL = 365
MAX_COUNT = 1000


def parse_recurrence_rule(text: str | None) -> RecurrenceRule | None:
    """Parse the text form into a RecurrenceRule (None if absent or no FREQ)."""
    rule = RecurrenceRule.from_text(text)
    if text and rule is None:
        logger.warning(f"Ignoring recurrence rule without FREQ: {text!r}")
    return rule


def create_recurrence_rule(
    frequency: str,
    interval: int = 1,
    count: int | None = None,
    until=None,
) -> str:
    """Build the text form of a rule.

    Raises:
        InvalidRecurrenceRuleError: unknown frequency or unparseable UNTIL.
    """
    freq = str(frequency or "").strip().upper()
    if freq not in SUPPORTED_FREQUENCIES:
        raise InvalidRecurrenceRuleError(f"Unsupported frequency: {frequency!r}")

    try:
        safe_interval = max(1, min(int(interval or 1), MAX_INTERVAL))
    except (TypeError, ValueError):
        safe_interval = 1

    safe_count = None
    if count is not None:
        try:
            safe_count = min(int(count), MAX_COUNT) if int(count) > 0 else None
        except (TypeError, ValueError):
            raise InvalidRecurrenceRuleError(f"COUNT must be an integer, got {count!r}")

    until_dt = None
    if until is not None and until != "":
        until_dt = parse_datetime(until)
        if until_dt is None:
            raise InvalidRecurrenceRuleError(f"UNTIL is not a valid timestamp: {until!r}")

    return RecurrenceRule(
        freq=freq, interval=safe_interval, count=safe_count, until=until_dt
    ).to_text()


def nth_occurrence(start: datetime, rule: RecurrenceRule, n: int) -> datetime | None:
    """Start of the n-th occurrence (0-based), or None for an unknown FREQ.

    Offsets are computed from the series start so month-end clamping does not
    drift across the series (Jan 31 -> Feb 28 -> Mar 31).
    """
    if n == 0:
        return start

    steps = n * rule.interval
    match rule.freq:
        case "DAILY":
            return start + timedelta(days=steps)
        case "WEEKLY":
            return start + timedelta(weeks=steps)
        case "MONTHLY":
            return start + relativedelta(months=steps)
        case "YEARLY":
            return start + relativedelta(years=steps)
        case _:
            return None


def _exception_index(exceptions: Iterable) -> dict[date, EventException]:
    # Later rows win for the same date
    return {ex.exception_date: ex for ex in coerce_exceptions(exceptions)}


def _build_instance(
    event: Event,
    occurrence: datetime,
    exception: EventException | None,
) -> ExpandedInstance:
    start = occurrence
    end = occurrence + event.duration
    applied = False

    if exception is not None and (exception.new_start_time or exception.new_end_time):
        applied = True
        if exception.new_start_time:
            start = exception.new_start_time
            end = start + event.duration
        if exception.new_end_time:
            end = exception.new_end_time

    data = event.model_dump(exclude={"id", "start_time", "end_time"})
    return ExpandedInstance(
        **data,
        id=f"{event.id}_{occurrence.isoformat()}",
        parent_id=event.id,
        start_time=start,
        end_time=end,
        exception_applied=applied,
    )


def expand_event(
    event,
    window_start,
    window_end,
    exceptions: Iterable | None = None,
) -> list[Event]:
    """Materialize the occurrences of `event` starting in [window_start, window_end].

    Non-recurring events come back as-is when they start inside the window.
    Malformed events or windows yield an empty list, never an exception.
    """
    base = coerce_event(event)
    start_bound = parse_datetime(window_start)
    end_bound = parse_datetime(window_end)
    if base is None or start_bound is None or end_bound is None:
        logger.warning("Recurrence expansion skipped: malformed event or window")
        return []

    rule = base.recurrence_rule
    if rule is None:
        return [base] if start_bound <= base.start_time <= end_bound else []

    series_length = min(rule.count or MAX_INSTANCES, MAX_INSTANCES)
    until = rule.until or base.recurrence_end_date
    by_date = _exception_index(exceptions or [])

    instances: list[Event] = []
    n = 0
    while n < series_length:
        # Only reachable when MAX_INSTANCES is raised above MAX_ITERATIONS
        if n >= MAX_ITERATIONS:
            logger.warning(
                f"Recurrence expansion of event {base.id} stopped after {MAX_ITERATIONS} iterations"
            )
            break

        occurrence = nth_occurrence(base.start_time, rule, n)
        if occurrence is None:
            logger.warning(f"Unknown recurrence frequency {rule.freq!r} on event {base.id}")
            break
        if occurrence > end_bound or (until is not None and occurrence > until):
            break

        if occurrence >= start_bound:
            exception = by_date.get(occurrence.date())
            if exception is None or not exception.is_deleted:
                instances.append(_build_instance(base, occurrence, exception))
        n += 1

    return instances


def expand_events(
    events: Iterable,
    window_start,
    window_end,
    exceptions_by_event: dict | None = None,
) -> list[Event]:
    """Expand a batch of events and return all instances sorted by start."""
    exceptions_by_event = exceptions_by_event or {}
    expanded: list[Event] = []
    for event in events or []:
        base = coerce_event(event)
        if base is None:
            continue
        expanded.extend(
            expand_event(base, window_start, window_end, exceptions_by_event.get(base.id))
        )
    return sorted(expanded, key=lambda e: e.start_time)
