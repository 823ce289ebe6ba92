from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from ..common.datetime_utils import parse_instant, to_iso
from ..core.enums import AttendanceState


@dataclass(frozen=True)
class BreakRecord:
    start_time: datetime
    end_time: Optional[datetime] = None
    duration: Optional[int] = None  # minutes
    type: Optional[str] = None
    is_paid: Optional[bool] = None

    @property
    def is_open(self) -> bool:
        return self.end_time is None

    def to_dict(self) -> dict:
        out: dict = {"startTime": to_iso(self.start_time)}
        if self.end_time is not None:
            out["endTime"] = to_iso(self.end_time)
        if self.duration is not None:
            out["duration"] = self.duration
        if self.type is not None:
            out["type"] = self.type
        if self.is_paid is not None:
            out["isPaid"] = self.is_paid
        return out

    @classmethod
    def from_dict(cls, raw: dict) -> "BreakRecord":
        duration = raw.get("duration")
        is_paid = raw.get("isPaid")
        return cls(
            start_time=parse_instant(raw["startTime"]),
            end_time=parse_instant(raw.get("endTime")),
            duration=int(duration) if duration is not None else None,
            type=raw.get("type") or None,
            is_paid=bool(is_paid) if is_paid is not None else None,
        )


@dataclass(frozen=True)
class AttendanceRecord:
    """Domain entity: one employee's attendance for one local calendar day."""

    employee_id: str
    date: str  # YYYY-MM-DD, employee-local
    clock_in: Optional[datetime] = None
    clock_out: Optional[datetime] = None
    breaks: tuple[BreakRecord, ...] = field(default_factory=tuple)
    total_hours: Optional[float] = None
    is_edited_by_management: bool = False
    edited_by: Optional[str] = None
    edited_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    payroll_id: Optional[str] = None
    no_show_reason: Optional[str] = None
    employee_note: Optional[str] = None
    manager_note: Optional[str] = None

    @property
    def record_id(self) -> str:
        return f"{self.employee_id}_{self.date}"

    @property
    def open_break(self) -> Optional[BreakRecord]:
        for b in self.breaks:
            if b.is_open:
                return b
        return None

    @property
    def open_break_index(self) -> int:
        for i, b in enumerate(self.breaks):
            if b.is_open:
                return i
        return -1

    @property
    def is_open_shift(self) -> bool:
        return self.clock_in is not None and self.clock_out is None

    @property
    def state(self) -> AttendanceState:
        if self.clock_in is None:
            return AttendanceState.NO_RECORD
        if self.clock_out is not None:
            return AttendanceState.CLOCKED_OUT
        if self.open_break is not None:
            return AttendanceState.ON_BREAK
        return AttendanceState.CLOCKED_IN

    def to_dict(self) -> dict:
        """Public camelCase shape used by the JSON API."""
        return {
            "id": self.record_id,
            "employeeId": self.employee_id,
            "date": self.date,
            "clockIn": to_iso(self.clock_in),
            "clockOut": to_iso(self.clock_out),
            "breaks": [b.to_dict() for b in self.breaks],
            "totalHours": self.total_hours,
            "isEditedByManagement": self.is_edited_by_management,
            "editedBy": self.edited_by,
            "editedAt": to_iso(self.edited_at),
            "createdAt": to_iso(self.created_at),
            "updatedAt": to_iso(self.updated_at),
            "payrollId": self.payroll_id,
            "noShowReason": self.no_show_reason,
            "employeeNote": self.employee_note,
            "managerNote": self.manager_note,
            "state": self.state.value,
        }


@dataclass(frozen=True)
class AttendanceStats:
    total_days: int
    present_days: int
    total_hours: float
    average_hours: float
    attendance_rate: float
    recent_trend: list[dict]
