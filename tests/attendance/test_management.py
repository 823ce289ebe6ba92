from __future__ import annotations

from datetime import timedelta

import pytest

from src.timeclock.timeclock.attendance.engine import AttendanceEngine
from src.timeclock.timeclock.attendance.management import AttendanceManagementService

DAY = "2025-01-06"


@pytest.fixture
def management(attendance_store):
    return AttendanceManagementService(attendance_store)


def test_edit_marks_record_and_recomputes_hours(management, attendance_store, fixed_now):
    AttendanceEngine(attendance_store).clock_in("emp1", DAY, now=fixed_now)

    result = management.update_attendance(
        "emp1",
        DAY,
        {
            "clock_out": "2025-01-06T17:00:00Z",
            "breaks": [{"startTime": "2025-01-06T12:00:00Z", "endTime": "2025-01-06T13:00:00Z", "duration": 60}],
            "manager_note": "Forgot to clock out",
        },
        edited_by="mgr1",
        now=fixed_now + timedelta(days=1),
    )

    assert result.success
    record = attendance_store.get("emp1", DAY)
    assert record.total_hours == 7.0
    assert record.is_edited_by_management
    assert record.edited_by == "mgr1"
    assert record.manager_note == "Forgot to clock out"


def test_clearing_clock_out_removes_total(management, attendance_store, fixed_now):
    engine = AttendanceEngine(attendance_store)
    engine.clock_in("emp1", DAY, now=fixed_now)
    engine.clock_out("emp1", DAY, now=fixed_now + timedelta(hours=8))

    assert management.update_attendance("emp1", DAY, {"clock_out": ""}, edited_by="mgr1", now=fixed_now).success

    record = attendance_store.get("emp1", DAY)
    assert record.clock_out is None
    assert record.total_hours is None


def test_edit_can_create_missing_day(management, attendance_store, fixed_now):
    result = management.update_attendance(
        "emp1",
        "2025-01-03T00:00:00Z",
        {"clock_in": "2025-01-03T09:00:00Z", "clock_out": "2025-01-03T13:30:00Z"},
        edited_by="mgr1",
        now=fixed_now,
    )
    assert result.success
    assert management.get_attendance_by_date("emp1", "2025-01-03").total_hours == 4.5


@pytest.mark.parametrize(
    "updates, message",
    [
        ({"clock_in": "2025-01-06T17:00:00Z", "clock_out": "2025-01-06T09:00:00Z"}, "Clock out cannot be earlier than clock in"),
        ({"total_hours": 12}, "Unsupported fields: total_hours"),
        (
            {"breaks": [{"startTime": "2025-01-06T10:00:00Z"}, {"startTime": "2025-01-06T11:00:00Z"}]},
            "Only one break may be open at a time",
        ),
        ({"clock_in": "yesterday"}, "Invalid timestamp 'yesterday'"),
    ],
)
def test_invalid_edits_are_rejected(management, attendance_store, fixed_now, updates, message):
    result = management.update_attendance("emp1", DAY, updates, edited_by="mgr1", now=fixed_now)

    assert not result.success
    assert result.error == message
    assert attendance_store.get("emp1", DAY) is None
