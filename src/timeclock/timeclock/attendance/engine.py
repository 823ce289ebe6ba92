from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime
from typing import Any, Callable, Mapping, Optional

from ..common.datetime_utils import now_utc, previous_date_key, require_date_key
from ..common.validators import require_non_empty
from ..core.enums import AttendanceState, ClockAction
from ..core.exceptions import (
    AlreadyClockedInError,
    AlreadyClockedOutError,
    AlreadyOnBreakError,
    DomainError,
    NoActiveBreakError,
    NotClockedInError,
    OnBreakError,
)
from ..core.result import OperationResult
from .calculator.base import HoursCalculator
from .calculator.standard_calculator import StandardHoursCalculator, round_half_up
from .model import AttendanceRecord, BreakRecord
from .repository import AttendanceStore

logger = logging.getLogger(__name__)


class AttendanceEngine:
    """Per (employee, local day) state machine: clock in, breaks, clock out.

    States: NO_RECORD -> CLOCKED_IN -> (ON_BREAK <-> CLOCKED_IN) -> CLOCKED_OUT.
    An overnight shift is yesterday's record left open into today; every
    transition that needs the open shift looks at the given day first and
    then at the day before.

    Every call is read-validate-write against the store with no lock held,
    so two requests for the same key landing together can both pass
    validation. Human-paced input keeps that window narrow; it is not
    closed here.
    """

    def __init__(self, store: AttendanceStore, *, calculator: Optional[HoursCalculator] = None):
        self._store = store
        self._calculator = calculator or StandardHoursCalculator()

    # ------------------------------------------------------------------ public

    def clock_in(self, employee_id: str, date_key: str, *, now: Optional[datetime] = None) -> OperationResult:
        return self._run("Clock in", self._clock_in, employee_id, date_key, now)

    def clock_out(self, employee_id: str, date_key: str, *, now: Optional[datetime] = None) -> OperationResult:
        return self._run("Clock out", self._clock_out, employee_id, date_key, now)

    def start_break(self, employee_id: str, date_key: str, *, now: Optional[datetime] = None) -> OperationResult:
        return self._run("Start break", self._start_break, employee_id, date_key, now)

    def end_break(self, employee_id: str, date_key: str, *, now: Optional[datetime] = None) -> OperationResult:
        return self._run("End break", self._end_break, employee_id, date_key, now)

    def perform(self, action: ClockAction, employee_id: str, date_key: str, *, now: Optional[datetime] = None) -> OperationResult:
        handler = {
            ClockAction.CLOCK_IN: self.clock_in,
            ClockAction.CLOCK_OUT: self.clock_out,
            ClockAction.START_BREAK: self.start_break,
            ClockAction.END_BREAK: self.end_break,
        }[ClockAction(action)]
        return handler(employee_id, date_key, now=now)

    def get_current_record(self, employee_id: str, date_key: str) -> Optional[AttendanceRecord]:
        """Today's record if present, else yesterday's only while it is still an open shift."""
        employee_id = require_non_empty(employee_id, "employee_id")
        date_key = require_date_key(date_key)

        today = self._store.get(employee_id, date_key)
        if today is not None:
            return today

        yesterday = self._store.get(employee_id, previous_date_key(date_key))
        if yesterday is not None and yesterday.is_open_shift:
            return yesterday
        return None

    def get_state(self, employee_id: str, date_key: str) -> AttendanceState:
        record = self.get_current_record(employee_id, date_key)
        return record.state if record else AttendanceState.NO_RECORD

    # ------------------------------------------------------------ transitions

    def _clock_in(self, employee_id: str, date_key: str, now: datetime) -> AttendanceRecord:
        existing = self._store.get(employee_id, date_key)
        if existing is not None and existing.clock_in is not None:
            raise AlreadyClockedInError("Already clocked in today")

        yesterday_key = previous_date_key(date_key)
        yesterday = self._store.get(employee_id, yesterday_key)
        if yesterday is not None and yesterday.is_open_shift:
            raise AlreadyClockedInError(f"Still clocked in from {yesterday_key}; clock out of that shift first")

        fields: dict[str, Any] = {
            "clock_in": now,
            "breaks": [],
            "is_edited_by_management": False,
            "updated_at": now,
        }
        if existing is None:
            fields["created_at"] = now
        return self._write(employee_id, date_key, fields, create=True)

    def _clock_out(self, employee_id: str, date_key: str, now: datetime) -> AttendanceRecord:
        record = self._resolve_open_record(employee_id, date_key)
        if record is None:
            raise NotClockedInError("No clock-in record found for today")
        if record.clock_in is None:
            raise NotClockedInError("Must clock in before clocking out")
        if record.clock_out is not None:
            raise AlreadyClockedOutError("Already clocked out today")
        if record.open_break is not None:
            raise OnBreakError("End your break before clocking out")

        total_hours = self._calculator.calculate(record.clock_in, now, record.breaks)
        return self._write(
            employee_id,
            record.date,
            {"clock_out": now, "total_hours": total_hours, "updated_at": now},
        )

    def _start_break(self, employee_id: str, date_key: str, now: datetime) -> AttendanceRecord:
        record = self._resolve_open_record(employee_id, date_key)
        if record is None or not record.is_open_shift:
            raise NotClockedInError("Must be clocked in to take a break")
        if record.open_break is not None:
            raise AlreadyOnBreakError("Already on a break")

        breaks = list(record.breaks) + [BreakRecord(start_time=now)]
        return self._write(employee_id, record.date, {"breaks": breaks, "updated_at": now})

    def _end_break(self, employee_id: str, date_key: str, now: datetime) -> AttendanceRecord:
        record = self._resolve_break_record(employee_id, date_key)
        if record is None:
            raise NoActiveBreakError("No attendance record found")

        index = record.open_break_index
        if index == -1:
            raise NoActiveBreakError("No active break found")

        current = record.breaks[index]
        duration = int(round_half_up((now - current.start_time).total_seconds() / 60.0))
        breaks = list(record.breaks)
        breaks[index] = replace(current, end_time=now, duration=max(duration, 0))

        fields: dict[str, Any] = {"breaks": breaks, "updated_at": now}
        if record.clock_in is not None and record.clock_out is not None:
            # Stored total predates this break closing; recompute from the new list.
            fields["total_hours"] = self._calculator.calculate(record.clock_in, record.clock_out, breaks)
        return self._write(employee_id, record.date, fields)

    # ---------------------------------------------------------------- helpers

    def _resolve_open_record(self, employee_id: str, date_key: str) -> Optional[AttendanceRecord]:
        today = self._store.get(employee_id, date_key)
        if today is not None and today.is_open_shift:
            return today

        yesterday = self._store.get(employee_id, previous_date_key(date_key))
        if yesterday is not None and yesterday.is_open_shift:
            logger.info("Using overnight shift %s for %s (requested %s)", yesterday.date, employee_id, date_key)
            return yesterday
        return today

    def _resolve_break_record(self, employee_id: str, date_key: str) -> Optional[AttendanceRecord]:
        today = self._store.get(employee_id, date_key)
        if today is not None and today.open_break is not None:
            return today

        yesterday = self._store.get(employee_id, previous_date_key(date_key))
        if yesterday is not None and yesterday.is_open_shift and yesterday.open_break is not None:
            return yesterday
        return today

    def _write(self, employee_id: str, date_key: str, fields: Mapping[str, Any], *, create: bool = False) -> AttendanceRecord:
        logger.debug("Writing %s for %s/%s (unlocked read-then-write)", sorted(fields), employee_id, date_key)
        if create:
            self._store.set(employee_id, date_key, fields, merge=True)
        elif not self._store.patch(employee_id, date_key, fields):
            raise NotClockedInError("No attendance record found")
        record = self._store.get(employee_id, date_key)
        if record is None:
            raise NotClockedInError("No attendance record found")
        return record

    def _run(
        self,
        label: str,
        op: Callable[[str, str, datetime], AttendanceRecord],
        employee_id: str,
        date_key: str,
        now: Optional[datetime],
    ) -> OperationResult:
        try:
            eid = require_non_empty(employee_id, "employee_id")
            key = require_date_key(date_key)
            record = op(eid, key, now or now_utc())
        except DomainError as e:
            logger.warning("%s rejected for %s on %s: %s", label, employee_id, date_key, e)
            return OperationResult.from_exception(e)
        except Exception as e:
            logger.exception("%s error for %s on %s", label, employee_id, date_key)
            return OperationResult.from_exception(e)

        logger.info("%s ok for %s on %s (state=%s)", label, employee_id, record.date, record.state.value)
        return OperationResult.ok(record)
