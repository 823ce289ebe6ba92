from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Mapping, Optional

from ..common.datetime_utils import normalize_date_string, now_utc, parse_instant, require_date_key
from ..common.validators import require_non_empty
from ..core.exceptions import DomainError, ValidationError
from ..core.result import OperationResult
from .calculator.base import HoursCalculator
from .calculator.standard_calculator import StandardHoursCalculator
from .model import AttendanceRecord, BreakRecord
from .repository import DELETE_FIELD, AttendanceStore

logger = logging.getLogger(__name__)

NOTE_FIELDS = ("payroll_id", "no_show_reason", "employee_note", "manager_note")
EDITABLE_FIELDS = ("clock_in", "clock_out", "breaks") + NOTE_FIELDS


class AttendanceManagementService:
    """Management edits to attendance days.

    Edits may rewrite any field retroactively; the record itself is never
    deleted. `total_hours` is recomputed whenever both clock times survive
    the edit and removed otherwise.
    """

    def __init__(self, attendance: AttendanceStore, *, calculator: Optional[HoursCalculator] = None):
        self._attendance = attendance
        self._calculator = calculator or StandardHoursCalculator()

    def get_attendance_by_date(self, employee_id: str, date: str) -> Optional[AttendanceRecord]:
        employee_id = require_non_empty(employee_id, "employee_id")
        date_key = require_date_key(normalize_date_string(date))
        return self._attendance.get(employee_id, date_key)

    def update_attendance(
        self,
        employee_id: str,
        date: str,
        updates: Mapping[str, Any],
        edited_by: str,
        *,
        now: Optional[datetime] = None,
    ) -> OperationResult:
        try:
            record = self._update(employee_id, date, updates, edited_by, now or now_utc())
        except DomainError as e:
            logger.warning("Attendance edit rejected for %s on %s: %s", employee_id, date, e)
            return OperationResult.from_exception(e)
        except Exception as e:
            logger.exception("Attendance edit error for %s on %s", employee_id, date)
            return OperationResult.from_exception(e)

        logger.info("Attendance for %s on %s edited by %s", record.employee_id, record.date, edited_by)
        return OperationResult.ok(record)

    def _update(
        self,
        employee_id: str,
        date: str,
        updates: Mapping[str, Any],
        edited_by: str,
        now: datetime,
    ) -> AttendanceRecord:
        employee_id = require_non_empty(employee_id, "employee_id")
        edited_by = require_non_empty(edited_by, "edited_by")
        date_key = require_date_key(normalize_date_string(date))

        unknown = set(updates) - set(EDITABLE_FIELDS)
        if unknown:
            raise ValidationError(f"Unsupported fields: {', '.join(sorted(unknown))}")

        existing = self._attendance.get(employee_id, date_key)

        fields: dict[str, Any] = {
            "is_edited_by_management": True,
            "edited_by": edited_by,
            "edited_at": now,
            "updated_at": now,
        }
        if existing is None:
            fields["created_at"] = now

        clock_in = self._resolve_instant(updates, "clock_in", existing, fields)
        clock_out = self._resolve_instant(updates, "clock_out", existing, fields)

        breaks = list(existing.breaks) if existing else []
        if updates.get("breaks") is not None:
            breaks = [b if isinstance(b, BreakRecord) else BreakRecord.from_dict(b) for b in updates["breaks"]]
            if sum(1 for b in breaks if b.is_open) > 1:
                raise ValidationError("Only one break may be open at a time")
            fields["breaks"] = breaks

        for name in NOTE_FIELDS:
            if name in updates:
                fields[name] = updates[name] or None

        if clock_in is not None and clock_out is not None:
            if clock_out < clock_in:
                raise ValidationError("Clock out cannot be earlier than clock in")
            fields["total_hours"] = self._calculator.calculate(clock_in, clock_out, breaks)
        else:
            fields["total_hours"] = DELETE_FIELD

        self._attendance.set(employee_id, date_key, fields, merge=True)
        record = self._attendance.get(employee_id, date_key)
        if record is None:
            raise ValidationError("Attendance update was not stored")
        return record

    @staticmethod
    def _resolve_instant(
        updates: Mapping[str, Any],
        name: str,
        existing: Optional[AttendanceRecord],
        fields: dict[str, Any],
    ) -> Optional[datetime]:
        if name not in updates:
            return getattr(existing, name) if existing else None

        value = updates[name]
        if value in ("", None):
            fields[name] = DELETE_FIELD
            return None
        instant = parse_instant(value)
        fields[name] = instant
        return instant
