from __future__ import annotations

import json
from datetime import date, datetime, timezone

from src.timeclock.timeclock.attendance.model import BreakRecord
from src.timeclock.timeclock.attendance.mysql_attendance_repository import MySQLAttendanceStore, encode_field, row_to_record
from src.timeclock.timeclock.attendance.repository import DELETE_FIELD


class FakeCursor:
    def __init__(self, rows=(), rowcount=1):
        self.rows = list(rows)
        self.rowcount = rowcount
        self.executed = []

    def execute(self, sql, params=()):
        self.executed.append((" ".join(sql.split()), params))

    def fetchone(self):
        return self.rows.pop(0) if self.rows else None

    def fetchall(self):
        rows, self.rows = self.rows, []
        return rows

    def close(self):
        pass


class FakeConnection:
    def __init__(self, cursor):
        self._cursor = cursor
        self.commits = 0

    def cursor(self, dictionary=True):
        return self._cursor

    def commit(self):
        self.commits += 1

    def rollback(self):
        pass

    def close(self):
        pass


class FakeConnFactory:
    def __init__(self, cursor):
        self.cursor = cursor

    def connect(self):
        return FakeConnection(self.cursor)


def test_encode_field():
    aware = datetime(2025, 1, 6, 10, 0, tzinfo=timezone.utc)
    assert encode_field("clock_in", aware) == datetime(2025, 1, 6, 10, 0)
    assert encode_field("clock_out", DELETE_FIELD) is None
    assert encode_field("is_edited_by_management", True) == 1
    assert json.loads(encode_field("breaks", [BreakRecord(start_time=aware)])) == [{"startTime": "2025-01-06T10:00:00+00:00"}]


def test_row_to_record():
    record = row_to_record(
        {
            "employee_id": "emp1",
            "work_date": date(2025, 1, 6),
            "clock_in": datetime(2025, 1, 6, 9, 0),
            "clock_out": None,
            "breaks": '[{"startTime": "2025-01-06T12:00:00Z"}]',
            "total_hours": None,
            "is_edited_by_management": 0,
        }
    )

    assert record.date == "2025-01-06"
    assert record.clock_in.tzinfo is timezone.utc
    assert record.open_break is not None
    assert record.state.value == "ON_BREAK"


def test_set_merges_only_given_columns():
    cursor = FakeCursor()
    MySQLAttendanceStore(FakeConnFactory(cursor)).set("emp1", "2025-01-06", {"total_hours": 7.5})

    sql, params = cursor.executed[0]
    assert "INSERT INTO attendance_days (employee_id, work_date, total_hours)" in sql
    assert "ON DUPLICATE KEY UPDATE total_hours=VALUES(total_hours)" in sql
    assert params == ("emp1", "2025-01-06", 7.5)


def test_patch_unchanged_row_still_counts_as_existing():
    cursor = FakeCursor(rows=[{"found": 1}], rowcount=0)
    assert MySQLAttendanceStore(FakeConnFactory(cursor)).patch("emp1", "2025-01-06", {"total_hours": 7.5}) is True


def test_patch_missing_row():
    cursor = FakeCursor(rows=[], rowcount=0)
    assert MySQLAttendanceStore(FakeConnFactory(cursor)).patch("emp1", "2025-01-06", {"total_hours": 7.5}) is False
