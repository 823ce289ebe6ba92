from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    """Session roles used for route access."""

    EMPLOYEE = "employee"
    MANAGEMENT = "management"


class AttendanceState(str, Enum):
    """Derived state of one employee-day record."""

    NO_RECORD = "NO_RECORD"
    CLOCKED_IN = "CLOCKED_IN"
    ON_BREAK = "ON_BREAK"
    CLOCKED_OUT = "CLOCKED_OUT"


class ClockAction(str, Enum):
    CLOCK_IN = "clockIn"
    CLOCK_OUT = "clockOut"
    START_BREAK = "startBreak"
    END_BREAK = "endBreak"


class VerificationStep(str, Enum):
    LOADING = "loading"
    CAMERA = "camera"
    DETECTING = "detecting"
    VERIFYING = "verifying"
    SUCCESS = "success"
    ERROR = "error"


class MatchBand(str, Enum):
    """Distance bands used for user-facing verification feedback."""

    ACCEPT = "ACCEPT"
    MARGINAL = "MARGINAL"
    MISMATCH = "MISMATCH"
    STRONG_MISMATCH = "STRONG_MISMATCH"
