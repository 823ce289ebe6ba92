from __future__ import annotations

import json
from datetime import date, datetime
from typing import Any, Mapping, Optional, Sequence

from ..core.constants import DATE_KEY_FORMAT
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone, from_mysql_datetime, load_json_column, to_mysql_datetime
from .model import AttendanceRecord, BreakRecord
from .repository import DELETE_FIELD, RECORD_FIELDS, AttendanceStore, check_fields

_DATETIME_FIELDS = {"clock_in", "clock_out", "edited_at", "created_at", "updated_at"}

_SELECT = """
    SELECT employee_id, work_date, clock_in, clock_out, breaks, total_hours,
           is_edited_by_management, edited_by, edited_at, created_at, updated_at,
           payroll_id, no_show_reason, employee_note, manager_note
    FROM attendance_days
"""


def encode_field(name: str, value: Any) -> Any:
    if value is DELETE_FIELD or value is None:
        return None
    if name in _DATETIME_FIELDS:
        return to_mysql_datetime(value)
    if name == "breaks":
        return json.dumps([b.to_dict() if isinstance(b, BreakRecord) else dict(b) for b in value])
    if name == "is_edited_by_management":
        return 1 if value else 0
    if name == "total_hours":
        return float(value)
    return value


def row_to_record(r: Mapping[str, Any]) -> AttendanceRecord:
    work_date = r["work_date"]
    if isinstance(work_date, (date, datetime)):
        work_date = work_date.strftime(DATE_KEY_FORMAT)
    total = r.get("total_hours")
    return AttendanceRecord(
        employee_id=str(r["employee_id"]),
        date=str(work_date),
        clock_in=from_mysql_datetime(r.get("clock_in")),
        clock_out=from_mysql_datetime(r.get("clock_out")),
        breaks=tuple(BreakRecord.from_dict(b) for b in load_json_column(r.get("breaks"), [])),
        total_hours=float(total) if total is not None else None,
        is_edited_by_management=bool(r.get("is_edited_by_management") or 0),
        edited_by=r.get("edited_by"),
        edited_at=from_mysql_datetime(r.get("edited_at")),
        created_at=from_mysql_datetime(r.get("created_at")),
        updated_at=from_mysql_datetime(r.get("updated_at")),
        payroll_id=r.get("payroll_id"),
        no_show_reason=r.get("no_show_reason"),
        employee_note=r.get("employee_note"),
        manager_note=r.get("manager_note"),
    )


class MySQLAttendanceStore(AttendanceStore):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get(self, employee_id: str, date_key: str) -> Optional[AttendanceRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(_SELECT + " WHERE employee_id=%s AND work_date=%s", (employee_id, date_key))
            r = fetchone(cur)
            return row_to_record(r) if r else None

    def set(self, employee_id: str, date_key: str, fields: Mapping[str, Any], *, merge: bool = True) -> None:
        check_fields(fields)
        if merge:
            names = [n for n in RECORD_FIELDS if n in fields]
        else:
            names = list(RECORD_FIELDS)

        values = [encode_field(n, fields.get(n)) for n in names]
        if "is_edited_by_management" in names and values[names.index("is_edited_by_management")] is None:
            values[names.index("is_edited_by_management")] = 0

        columns = ", ".join(["employee_id", "work_date"] + names)
        placeholders = ", ".join(["%s"] * (len(names) + 2))
        if names:
            updates = ", ".join(f"{n}=VALUES({n})" for n in names)
        else:
            updates = "employee_id=employee_id"

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                INSERT INTO attendance_days ({columns})
                VALUES ({placeholders})
                ON DUPLICATE KEY UPDATE {updates}
                """,
                (employee_id, date_key, *values),
            )

    def patch(self, employee_id: str, date_key: str, fields: Mapping[str, Any]) -> bool:
        check_fields(fields)
        names = [n for n in RECORD_FIELDS if n in fields]
        if not names:
            return self.get(employee_id, date_key) is not None

        assignments = ", ".join(f"{n}=%s" for n in names)
        values = [encode_field(n, fields[n]) for n in names]
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"UPDATE attendance_days SET {assignments} WHERE employee_id=%s AND work_date=%s",
                (*values, employee_id, date_key),
            )
            if cur.rowcount > 0:
                return True
            # MySQL reports 0 affected rows when the values did not change.
            cur.execute(
                "SELECT 1 AS found FROM attendance_days WHERE employee_id=%s AND work_date=%s",
                (employee_id, date_key),
            )
            return fetchone(cur) is not None

    def list_for_employee(
        self,
        employee_id: str,
        *,
        limit: Optional[int] = None,
        start: Optional[str] = None,
        end: Optional[str] = None,
    ) -> Sequence[AttendanceRecord]:
        clauses = ["employee_id=%s"]
        params: list[object] = [employee_id]
        if start is not None:
            clauses.append("work_date >= %s")
            params.append(start)
        if end is not None:
            clauses.append("work_date <= %s")
            params.append(end)

        sql = _SELECT + f" WHERE {' AND '.join(clauses)} ORDER BY work_date DESC"
        if limit is not None:
            sql += " LIMIT %s"
            params.append(int(limit))

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(sql, tuple(params))
            return [row_to_record(r) for r in fetchall(cur)]
