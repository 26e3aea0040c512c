"""
Shared pytest fixtures: environment for Settings, event factory and an
in-memory stand-in for the Supabase table client.
"""

import os
from datetime import datetime
from itertools import count

import pytest

os.environ.setdefault("SUPABASE_URL", "http://localhost:54321")
os.environ.setdefault("SUPABASE_KEY", "test-anon-key")
os.environ.setdefault("REMINDERS_ENABLED", "false")
os.environ.setdefault("LLM_ENABLED", "false")

from app.features.calendar.schemas import Event  # noqa: E402

_ids = count(1)


def make_event(start: str, end: str, **overrides) -> Event:
    """Build a validated Event; ids are unique unless given."""
    data = {
        "id": next(_ids),
        "user_email": "owner@example.com",
        "title": "Meeting",
        "start_time": start,
        "end_time": end,
    }
    data.update(overrides)
    return Event.model_validate(data)


# ── Fake Supabase client ─────────────────────────────────

class _Result:
    def __init__(self, data):
        self.data = data


class FakeQuery:
    """Just enough of the postgrest query builder for CalendarService."""

    def __init__(self, db: "FakeSupabase", table: str):
        self.db = db
        self.table_name = table
        self.op = "select"
        self.payload = None
        self.on_conflict = None
        self.filters = []
        self.order_by = None
        self._negate = False

    # operations
    def select(self, *_columns):
        self.op = "select"
        return self

    def insert(self, payload):
        self.op, self.payload = "insert", payload
        return self

    def update(self, payload):
        self.op, self.payload = "update", payload
        return self

    def upsert(self, payload, on_conflict=None):
        self.op, self.payload, self.on_conflict = "upsert", payload, on_conflict
        return self

    def delete(self):
        self.op = "delete"
        return self

    # filters
    def _add(self, predicate):
        negate, self._negate = self._negate, False
        self.filters.append((lambda row: not predicate(row)) if negate else predicate)
        return self

    @property
    def not_(self):
        self._negate = True
        return self

    def eq(self, column, value):
        return self._add(lambda row: row.get(column) == value)

    def gt(self, column, value):
        return self._add(lambda row: row.get(column) is not None and row[column] > value)

    def gte(self, column, value):
        return self._add(lambda row: row.get(column) is not None and row[column] >= value)

    def lte(self, column, value):
        return self._add(lambda row: row.get(column) is not None and row[column] <= value)

    def is_(self, column, value):
        assert value == "null"
        return self._add(lambda row: row.get(column) is None)

    def order(self, column, desc=False):
        self.order_by = (column, desc)
        return self

    def execute(self):
        rows = self.db.tables.setdefault(self.table_name, [])

        if self.op == "insert":
            payloads = self.payload if isinstance(self.payload, list) else [self.payload]
            inserted = []
            for payload in payloads:
                row = {"id": self.db.next_id(), "created_at": self.db.now, **payload}
                rows.append(row)
                inserted.append(dict(row))
            return _Result(inserted)

        if self.op == "upsert":
            keys = self.on_conflict.split(",") if self.on_conflict else ["id"]
            for row in rows:
                if all(row.get(k) == self.payload.get(k) for k in keys):
                    row.update(self.payload)
                    return _Result([dict(row)])
            row = {"id": self.db.next_id(), **self.payload}
            rows.append(row)
            return _Result([dict(row)])

        matched = [row for row in rows if all(f(row) for f in self.filters)]

        if self.op == "update":
            for row in matched:
                row.update(self.payload)
            return _Result([dict(row) for row in matched])

        if self.op == "delete":
            self.db.tables[self.table_name] = [row for row in rows if row not in matched]
            return _Result([dict(row) for row in matched])

        if self.order_by:
            column, desc = self.order_by
            matched = sorted(matched, key=lambda row: row.get(column) or "", reverse=desc)
        return _Result([dict(row) for row in matched])


class FakeSupabase:
    def __init__(self):
        self.tables: dict[str, list[dict]] = {}
        self._ids = count(1)
        self.now = datetime(2025, 6, 1, 8, 0).isoformat()

    def next_id(self) -> int:
        return next(self._ids)

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def seed_event(self, **row) -> dict:
        data = {
            "id": self.next_id(),
            "user_email": "owner@example.com",
            "title": "Seeded",
            "is_all_day": False,
            "color": "#1967d2",
            "recurrence_rule": None,
            "reminder_minutes": 0,
            "reminder_sent": False,
            "created_at": self.now,
            **row,
        }
        self.tables.setdefault("calendar_events", []).append(data)
        return data


@pytest.fixture
def fake_db():
    return FakeSupabase()


@pytest.fixture
def service(fake_db):
    from app.features.calendar.service import CalendarService

    return CalendarService(fake_db)
