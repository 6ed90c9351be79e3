import os
import sys
import threading
from datetime import datetime, timedelta, timezone
from pathlib import Path
from types import SimpleNamespace

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

os.environ.setdefault("SECRET_KEY", "test")
os.environ.setdefault("SUPABASE_URL", "http://localhost")
os.environ.setdefault("SUPABASE_SERVICE_KEY", "service")

import assembly_qc as app_module
from assembly_qc import create_app
from assembly_qc.main import routes
from assembly_qc.shifts import format_instant

LOCAL = timezone(timedelta(hours=7))
# 2024-05-01 10:00 local, two hours into the day shift.
NOW = datetime(2024, 5, 1, 10, 0, tzinfo=LOCAL)


def _same(left, right):
    if left == right:
        return True
    if left is None or right is None:
        return False
    return str(left) == str(right)


class FakeQuery:
    def __init__(self, supabase, table_name):
        self.supabase = supabase
        self.table_name = table_name
        self._operation = None
        self._payload = None
        self._filters = []
        self._limit = None
        self._range = None
        self._order = None
        self._count = None
        self._on_conflict = ""
        self._select = "*"
        self._head = False

    def select(self, columns="*", count=None, head=None):
        self._operation = "select"
        self._select = columns
        self._count = count
        self._head = bool(head)
        return self

    def insert(self, rows):
        self._operation = "insert"
        self._payload = rows
        return self

    def upsert(self, rows, on_conflict=""):
        self._operation = "upsert"
        self._payload = rows
        self._on_conflict = on_conflict
        return self

    def update(self, fields):
        self._operation = "update"
        self._payload = fields
        return self

    def delete(self):
        self._operation = "delete"
        return self

    def eq(self, column, value):
        self._filters.append(("eq", column, value))
        return self

    def gte(self, column, value):
        self._filters.append(("gte", column, value))
        return self

    def lt(self, column, value):
        self._filters.append(("lt", column, value))
        return self

    def order(self, column, desc=False):
        self._order = (column, desc)
        return self

    def limit(self, value):
        self._limit = value
        return self

    def range(self, start, end):
        self._range = (start, end)
        return self

    def _matches(self, row):
        for op, column, value in self._filters:
            current = row.get(column)
            if op == "eq" and not _same(current, value):
                return False
            if op == "gte" and (current is None or current < value):
                return False
            if op == "lt" and (current is None or current >= value):
                return False
        return True

    def _insert_row(self, table, row):
        new_row = dict(row)
        new_row.setdefault("id", self.supabase.next_id())
        table.append(new_row)
        return dict(new_row)

    def execute(self):
        if self.table_name in self.supabase.failing_tables:
            raise RuntimeError(f"{self.table_name} unavailable")

        table = self.supabase.tables.setdefault(self.table_name, [])
        payload = self._payload
        if isinstance(payload, dict):
            payload = [payload]

        if self._operation == "select":
            data = [row for row in table if self._matches(row)]
            total = len(data)
            if self._order:
                column, desc = self._order
                data.sort(
                    key=lambda row: (row.get(column) is None, row.get(column) or ""),
                    reverse=desc,
                )
            if self._range is not None:
                start, end = self._range
                data = data[start : end + 1]
            if self._limit is not None:
                data = data[: self._limit]
            if self._select != "*":
                columns = [col.strip() for col in self._select.split(",")]
                data = [{col: row.get(col) for col in columns} for row in data]
            else:
                data = [dict(row) for row in data]
            if self._head:
                data = []
            return SimpleNamespace(data=data, count=total if self._count else None)

        if self._operation == "insert":
            inserted = [self._insert_row(table, row) for row in payload]
            return SimpleNamespace(data=inserted, count=len(inserted))

        if self._operation == "upsert":
            keys = [key.strip() for key in self._on_conflict.split(",") if key.strip()]
            saved = []
            for row in payload:
                existing = None
                if keys:
                    existing = next(
                        (
                            candidate
                            for candidate in table
                            if all(_same(candidate.get(key), row.get(key)) for key in keys)
                        ),
                        None,
                    )
                if existing is None:
                    saved.append(self._insert_row(table, row))
                else:
                    existing.update(row)
                    saved.append(dict(existing))
            return SimpleNamespace(data=saved, count=len(saved))

        if self._operation == "update":
            updated = []
            for row in table:
                if self._matches(row):
                    row.update(self._payload)
                    updated.append(dict(row))
            return SimpleNamespace(data=updated, count=len(updated))

        if self._operation == "delete":
            deleted = [row for row in table if self._matches(row)]
            self.supabase.tables[self.table_name] = [
                row for row in table if not self._matches(row)
            ]
            return SimpleNamespace(data=deleted, count=len(deleted))

        return SimpleNamespace(data=None, count=None)


class FakeSupabase:
    def __init__(self):
        self.tables: dict[str, list[dict]] = {}
        self.failing_tables: set[str] = set()
        self._ids = 0
        self._lock = threading.Lock()

    def next_id(self):
        with self._lock:
            self._ids += 1
            return self._ids

    def table(self, name):
        return FakeQuery(self, name)


@pytest.fixture
def fake_supabase():
    return FakeSupabase()


@pytest.fixture
def app_instance(monkeypatch, fake_supabase):
    monkeypatch.setattr(app_module, "create_client", lambda url, key: fake_supabase)
    app = create_app()
    return app


@pytest.fixture
def client(app_instance, monkeypatch):
    monkeypatch.setattr(routes, "_now", lambda: NOW)
    client = app_instance.test_client()
    with client.session_transaction() as sess:
        sess["username"] = "tester"
        sess["user_id"] = "op-1"
        sess["full_name"] = "Tester"
    return client


@pytest.fixture
def seed_event(fake_supabase):
    """Insert a ``qc_log`` row stamped at a local wall-clock time."""

    def _seed(model="M1", status="OK", at="08:00", day=NOW.date(), **fields):
        hour, minute = (int(part) for part in at.split(":"))
        stamp = datetime(day.year, day.month, day.day, hour, minute, tzinfo=LOCAL)
        row = {
            "model": model,
            "part_code": None,
            "serial_number": "-",
            "status": status,
            "defect": None,
            "side": None,
            "timestamp": format_instant(stamp),
            "operator_id": "op-1",
            "operator_name": "Tester",
            "rework_checked_by": None,
            "rework_checked_at": None,
        }
        row.update(fields)
        return FakeQuery(fake_supabase, "qc_log").insert(row).execute().data[0]

    return _seed


@pytest.fixture
def now():
    return NOW
