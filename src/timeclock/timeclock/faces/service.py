from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional, Sequence

from ..common.datetime_utils import now_utc
from ..common.validators import require_descriptor, require_non_empty
from ..core.exceptions import DomainError, ValidationError
from ..core.result import OperationResult
from .matcher import FaceMatcher
from .model import VerifyOutcome
from .repository import FaceStore

logger = logging.getLogger(__name__)


class FaceService:
    """Enrolled face descriptors: read, enroll, server-side verify, forget."""

    def __init__(self, faces: FaceStore, *, matcher: Optional[FaceMatcher] = None):
        self._faces = faces
        self._matcher = matcher or FaceMatcher()

    def get_descriptor(self, employee_id: str) -> Optional[list[float]]:
        """Enrolled descriptor, or None when missing or malformed."""
        stored = self._faces.get(require_non_empty(employee_id, "employee_id"))
        if stored is None:
            return None
        try:
            return require_descriptor(stored.descriptor)
        except ValidationError:
            logger.warning("Ignoring malformed face descriptor for %s (%d values)", employee_id, len(stored.descriptor))
            return None

    def is_enrolled(self, employee_id: str) -> bool:
        return self.get_descriptor(employee_id) is not None

    def save_descriptor(
        self,
        employee_id: str,
        descriptor: Sequence[float],
        *,
        now: Optional[datetime] = None,
    ) -> OperationResult:
        try:
            employee_id = require_non_empty(employee_id, "employee_id")
            values = require_descriptor(descriptor)
            self._faces.save(employee_id, values, updated_at=now or now_utc())
        except DomainError as e:
            logger.warning("Face enrollment rejected for %s: %s", employee_id, e)
            return OperationResult.from_exception(e)
        except Exception as e:
            logger.exception("Face enrollment error for %s", employee_id)
            return OperationResult.from_exception(e)

        logger.info("Face descriptor saved for %s", employee_id)
        return OperationResult.ok()

    def verify_descriptor(self, employee_id: str, descriptor: Sequence[float]) -> VerifyOutcome:
        candidate = require_descriptor(descriptor)
        enrolled = self.get_descriptor(employee_id)
        if enrolled is None:
            return VerifyOutcome(match=False, enrolled=False)

        decision = self._matcher.compare(candidate, enrolled)
        return VerifyOutcome(match=decision.matched, enrolled=True, distance=decision.distance, band=decision.band)

    def forget(self, employee_id: str) -> bool:
        """Best-effort removal when an employee goes away. Never raises."""
        try:
            removed = self._faces.delete(employee_id)
        except Exception:
            logger.warning("Could not remove face descriptor for %s", employee_id, exc_info=True)
            return False
        logger.info("Face descriptor for %s %s", employee_id, "removed" if removed else "was not enrolled")
        return removed
