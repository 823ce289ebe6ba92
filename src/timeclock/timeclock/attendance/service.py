from __future__ import annotations

from typing import Optional

from ..common.datetime_utils import require_date_key, shift_date_key
from ..common.validators import require_non_empty
from ..core.constants import DEFAULT_HISTORY_LIMIT, DEFAULT_STATS_DAYS, DEFAULT_TREND_LENGTH
from ..core.enums import AttendanceState
from .calculator.standard_calculator import break_minutes, format_break_length
from .model import AttendanceRecord, AttendanceStats
from .repository import AttendanceStore


class AttendanceService:
    """Read side of attendance: history, per-employee stats, view rows."""

    def __init__(self, attendance: AttendanceStore):
        self._attendance = attendance

    def get_history(self, employee_id: str, *, limit: int = DEFAULT_HISTORY_LIMIT) -> list[AttendanceRecord]:
        employee_id = require_non_empty(employee_id, "employee_id")
        return list(self._attendance.list_for_employee(employee_id, limit=int(limit)))

    def get_history_ui(self, employee_id: str, *, limit: int = DEFAULT_HISTORY_LIMIT) -> list[dict]:
        return [self._to_ui(r) for r in self.get_history(employee_id, limit=limit)]

    def get_employee_stats(
        self,
        employee_id: str,
        end_date_key: str,
        *,
        days: int = DEFAULT_STATS_DAYS,
    ) -> AttendanceStats:
        """Presence and hours over the `days` calendar days ending at `end_date_key` (inclusive)."""
        employee_id = require_non_empty(employee_id, "employee_id")
        end = require_date_key(end_date_key)
        days = max(int(days), 0)
        start = shift_date_key(end, -days)

        records = self._attendance.list_for_employee(employee_id, start=start, end=end)
        present = [r for r in records if r.clock_in is not None]
        total_hours = sum(r.total_hours or 0.0 for r in records)
        average = total_hours / len(present) if present else 0.0
        rate = (len(present) / days) * 100 if days > 0 else 0.0

        trend = [{"date": r.date, "hours": r.total_hours or 0.0} for r in records[:DEFAULT_TREND_LENGTH]]
        return AttendanceStats(
            total_days=days,
            present_days=len(present),
            total_hours=total_hours,
            average_hours=average,
            attendance_rate=rate,
            recent_trend=trend,
        )

    def _to_ui(self, r: AttendanceRecord) -> dict:
        state = r.state
        label = {
            AttendanceState.NO_RECORD: "No clock in",
            AttendanceState.CLOCKED_IN: "Clocked in",
            AttendanceState.ON_BREAK: "On break",
            AttendanceState.CLOCKED_OUT: "Completed",
        }.get(state, state.value)

        css = {
            AttendanceState.CLOCKED_IN: "bg-success",
            AttendanceState.ON_BREAK: "bg-warning text-dark",
            AttendanceState.CLOCKED_OUT: "bg-secondary",
        }.get(state, "bg-light text-dark")

        total: Optional[float] = r.total_hours
        return {
            "date": r.date,
            "clock_in": r.clock_in.strftime("%H:%M:%S") if r.clock_in else "-",
            "clock_out": r.clock_out.strftime("%H:%M:%S") if r.clock_out else "-",
            "breaks": [format_break_length(b) or "ongoing" for b in r.breaks],
            "break_minutes": break_minutes(r),
            "total_hours": f"{total:.2f}" if total is not None else "-",
            "status": label,
            "css_class": css,
            "edited": r.is_edited_by_management,
        }
