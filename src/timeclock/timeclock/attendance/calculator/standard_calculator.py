from __future__ import annotations

import math
from datetime import datetime
from typing import Iterable, Optional

from ...core.constants import HOURS_PRECISION
from ..model import AttendanceRecord, BreakRecord
from .base import HoursCalculator


def round_half_up(value: float, ndigits: int = 0) -> float:
    factor = 10 ** ndigits
    return math.floor(value * factor + 0.5) / factor


def calculate_hours(clock_in: datetime, clock_out: datetime, breaks: Iterable[BreakRecord]) -> float:
    """Worked hours between clock_in and clock_out minus closed breaks.

    Each closed break is clamped to [clock_in, clock_out] so a break logged
    outside the shift cannot over-subtract. Open breaks count as zero.
    """
    span = max((clock_out - clock_in).total_seconds(), 0.0)

    break_seconds = 0.0
    for b in breaks or ():
        if b.start_time is None or b.end_time is None:
            continue
        start = max(b.start_time, clock_in)
        end = min(b.end_time, clock_out)
        if end > start:
            break_seconds += (end - start).total_seconds()

    hours = max(span - break_seconds, 0.0) / 3600.0
    return max(round_half_up(hours, HOURS_PRECISION), 0.0)


def break_minutes(record: AttendanceRecord) -> int:
    total = 0
    for b in record.breaks:
        if b.duration is not None:
            total += int(b.duration)
        elif b.end_time is not None:
            total += int(round_half_up((b.end_time - b.start_time).total_seconds() / 60.0))
    return total


def format_break_length(b: BreakRecord) -> str:
    minutes: Optional[int] = b.duration
    if minutes is None and b.end_time is not None:
        minutes = int(round_half_up((b.end_time - b.start_time).total_seconds() / 60.0))
    if minutes is None:
        return ""
    hours, mins = divmod(int(minutes), 60)
    if hours > 0:
        return f"{hours}h {mins}min"
    return f"{mins} min"


class StandardHoursCalculator(HoursCalculator):
    """Standard rule: (out - in) - clamped closed breaks, not below 0."""

    def calculate(self, clock_in: datetime, clock_out: datetime, breaks: Iterable[BreakRecord]) -> float:
        return calculate_hours(clock_in, clock_out, breaks)
