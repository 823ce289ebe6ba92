from __future__ import annotations

from typing import Any, Mapping, Optional, Protocol, Sequence

from .model import AttendanceRecord


class _DeleteField:
    """Sentinel: the store removes (NULLs) a field set to this value."""

    _instance: Optional["_DeleteField"] = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "DELETE_FIELD"


DELETE_FIELD = _DeleteField()

# Writable fields, keyed by AttendanceRecord attribute name.
RECORD_FIELDS = (
    "clock_in",
    "clock_out",
    "breaks",
    "total_hours",
    "is_edited_by_management",
    "edited_by",
    "edited_at",
    "created_at",
    "updated_at",
    "payroll_id",
    "no_show_reason",
    "employee_note",
    "manager_note",
)


class AttendanceStore(Protocol):
    """Read-merge-write contract over per-(employee, day) records.

    There is no cross-call lock: callers read, validate and then write, so
    two near-simultaneous writers for the same key can interleave.
    """

    def get(self, employee_id: str, date_key: str) -> Optional[AttendanceRecord]:
        raise NotImplementedError

    def set(self, employee_id: str, date_key: str, fields: Mapping[str, Any], *, merge: bool = True) -> None:
        """Create the record or merge `fields` into it (replace it when merge=False)."""

        raise NotImplementedError

    def patch(self, employee_id: str, date_key: str, fields: Mapping[str, Any]) -> bool:
        """Update an existing record; returns False when it does not exist."""

        raise NotImplementedError

    def list_for_employee(
        self,
        employee_id: str,
        *,
        limit: Optional[int] = None,
        start: Optional[str] = None,
        end: Optional[str] = None,
    ) -> Sequence[AttendanceRecord]:
        """Records newest day first, optionally bounded by inclusive date keys."""

        raise NotImplementedError


def check_fields(fields: Mapping[str, Any]) -> None:
    unknown = set(fields) - set(RECORD_FIELDS)
    if unknown:
        raise KeyError(f"Unknown attendance fields: {sorted(unknown)}")
