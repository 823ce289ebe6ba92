from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Optional

from ..core.constants import (
    CAMERA_ACQUIRE_ATTEMPTS,
    CAMERA_RETRY_DELAY_SECONDS,
    DETECTOR_INPUT_SIZE,
    FIRST_FRAME_TIMEOUT_SECONDS,
    FRAME_INTERVAL_SECONDS,
    MIN_DETECTION_SCORE,
)
from ..core.exceptions import DomainError, ResourceUnavailableError
from ..core.result import OperationResult
from .camera import CameraProvider, CameraStream
from .detector import DetectorOptions, FaceDetector
from .service import FaceService

logger = logging.getLogger(__name__)

NO_FACE_MESSAGE = "No face detected. Please position your face in the frame and try again."


class EnrollmentSession:
    """Capture one confident face from the camera and store its descriptor.

    The camera is released on every exit path, including cancellation.
    """

    def __init__(
        self,
        *,
        detector: FaceDetector,
        camera: CameraProvider,
        faces: FaceService,
        capture_timeout: float = FIRST_FRAME_TIMEOUT_SECONDS,
        camera_attempts: int = CAMERA_ACQUIRE_ATTEMPTS,
        camera_retry_delay: float = CAMERA_RETRY_DELAY_SECONDS,
        frame_interval: float = FRAME_INTERVAL_SECONDS,
        options: Optional[DetectorOptions] = None,
    ):
        self._detector = detector
        self._camera = camera
        self._faces = faces
        self._capture_timeout = capture_timeout
        self._camera_attempts = max(int(camera_attempts), 1)
        self._camera_retry_delay = camera_retry_delay
        self._frame_interval = frame_interval
        self._options = options or DetectorOptions(input_size=DETECTOR_INPUT_SIZE, score_threshold=MIN_DETECTION_SCORE)

    async def run(self, employee_id: str, *, now: Optional[datetime] = None) -> OperationResult:
        loop = asyncio.get_running_loop()
        stream: Optional[CameraStream] = None
        try:
            await loop.run_in_executor(None, self._detector.load)
            stream = await self._acquire()
            descriptor = await self._capture(stream)
        except DomainError as e:
            logger.warning("Enrollment capture failed for %s: %s", employee_id, e)
            return OperationResult.from_exception(e)
        except Exception as e:
            logger.exception("Enrollment capture error for %s", employee_id)
            return OperationResult.from_exception(e)
        finally:
            if stream is not None:
                stream.stop()

        return self._faces.save_descriptor(employee_id, descriptor, now=now)

    async def _acquire(self) -> CameraStream:
        for _ in range(self._camera_attempts):
            stream = self._camera.open()
            if stream is not None:
                return stream
            await asyncio.sleep(self._camera_retry_delay)
        raise ResourceUnavailableError("Camera not available. Please close and reopen.")

    async def _capture(self, stream: CameraStream) -> tuple[float, ...]:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._capture_timeout
        saw_frame = False
        while True:
            frame = stream.read()
            if frame is not None:
                saw_frame = True
                detection = await loop.run_in_executor(None, self._detector.detect, frame, self._options)
                if detection is not None and detection.descriptor and detection.score >= self._options.score_threshold:
                    logger.info("Enrollment face captured (score=%.2f)", detection.score)
                    return detection.descriptor
            if loop.time() >= deadline:
                if not saw_frame:
                    raise ResourceUnavailableError("Camera did not deliver video. Please close and reopen.")
                raise ResourceUnavailableError(NO_FACE_MESSAGE)
            await asyncio.sleep(self._frame_interval)
