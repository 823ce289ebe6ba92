"""Face-gated clocking.

Each attendance action goes through here: employees with an enrolled face
must pass a verification session first, everyone else clocks straight away.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Optional

from ..attendance.engine import AttendanceEngine
from ..core.enums import ClockAction
from ..core.result import OperationResult
from ..faces.camera import CameraProvider
from ..faces.detector import FaceDetector
from ..faces.service import FaceService
from ..faces.verification import SessionView, VerificationSession, VerificationSettings

logger = logging.getLogger(__name__)

ResultCallback = Callable[[OperationResult], None]


class FaceGatedClock:
    def __init__(
        self,
        engine: AttendanceEngine,
        faces: FaceService,
        *,
        detector: FaceDetector,
        camera: CameraProvider,
        settings: Optional[VerificationSettings] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        self._engine = engine
        self._faces = faces
        self._detector = detector
        self._camera = camera
        self._settings = settings
        self._clock = clock

    def begin(
        self,
        employee_id: str,
        action: ClockAction,
        date_key: str,
        *,
        on_result: ResultCallback,
        on_closed: Optional[Callable[[], None]] = None,
        on_change: Optional[Callable[[SessionView], None]] = None,
        now: Optional[Callable[[], Optional[datetime]]] = None,
    ) -> Optional[VerificationSession]:
        """Run `action` behind face verification when the employee is enrolled.

        Returns the session the caller must `start()`, or None when the
        action already ran (no enrolled face) and `on_result` has been called.
        `now` is evaluated when the action actually runs, after verification.
        """
        action = ClockAction(action)
        stamp = now or (lambda: None)

        def perform() -> None:
            result = self._engine.perform(action, employee_id, date_key, now=stamp())
            on_result(result)

        descriptor = self._faces.get_descriptor(employee_id)
        if descriptor is None:
            logger.info("No enrolled face for %s; %s runs without verification", employee_id, action.value)
            perform()
            return None

        kwargs = {"settings": self._settings}
        if self._clock is not None:
            kwargs["clock"] = self._clock
        logger.info("Face verification required for %s before %s", employee_id, action.value)
        return VerificationSession(
            detector=self._detector,
            camera=self._camera,
            stored_descriptor=descriptor,
            on_verified=perform,
            on_closed=on_closed,
            on_change=on_change,
            **kwargs,
        )
