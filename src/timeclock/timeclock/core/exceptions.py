from __future__ import annotations

from typing import Optional

from .enums import MatchBand


class DomainError(Exception):
    """Base exception for business rule violations."""


class ValidationError(DomainError):
    """Raised when input data is malformed (descriptor, date key, ...)."""


class StateConflictError(DomainError):
    """Raised when an attendance transition is not allowed from the current state."""


class AlreadyClockedInError(StateConflictError):
    pass


class AlreadyClockedOutError(StateConflictError):
    pass


class NotClockedInError(StateConflictError):
    pass


class AlreadyOnBreakError(StateConflictError):
    pass


class NoActiveBreakError(StateConflictError):
    pass


class OnBreakError(StateConflictError):
    """Clock-out attempted while a break is still open."""


class ResourceUnavailableError(DomainError):
    """Camera or detection model could not be acquired."""


class DetectionTransient(DomainError):
    """Unusable frame. Self-recovering, never surfaced as a hard error."""


class IdentityMismatchError(DomainError):
    def __init__(self, message: str, *, distance: float, band: Optional[MatchBand] = None):
        super().__init__(message)
        self.distance = float(distance)
        self.band = band
