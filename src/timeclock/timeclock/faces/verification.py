"""Hold-to-verify face session.

A session owns one camera stream from `start()` until `close()`. It moves
through LOADING -> CAMERA -> DETECTING -> VERIFYING and ends in SUCCESS or
ERROR. A face has to stay in view with a confident detection for the hold
duration; any missed frame restarts the hold. The descriptor of the frame
that completes the hold is compared against the enrolled one exactly once.

Everything runs on the caller's asyncio loop. Detection itself is blocking
(dlib), so it goes through the default executor, one frame at a time.
"""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

from ..common.validators import require_descriptor
from ..core.constants import (
    CAMERA_ACQUIRE_ATTEMPTS,
    CAMERA_RETRY_DELAY_SECONDS,
    DETECTION_ERROR_LOG_EVERY,
    DETECTION_THROTTLE,
    DETECTOR_INPUT_SIZE,
    FACE_MATCH_THRESHOLD,
    FIRST_FRAME_TIMEOUT_SECONDS,
    FRAME_INTERVAL_SECONDS,
    HOLD_DURATION_SECONDS,
    MIN_DETECTION_SCORE,
    NO_SIGNAL_FRAMES_PER_SECOND,
    NO_SIGNAL_GUIDANCE_EVERY,
    SUCCESS_CLOSE_DELAY_SECONDS,
)
from ..core.enums import VerificationStep
from ..core.exceptions import (
    DetectionTransient,
    DomainError,
    IdentityMismatchError,
    ResourceUnavailableError,
    ValidationError,
)
from .camera import CameraProvider, CameraStream
from .detector import Detection, DetectorOptions, FaceDetector
from .matcher import FaceMatcher, mismatch_message

logger = logging.getLogger(__name__)

NOT_ENROLLED_MESSAGE = "Face not registered. Please register your face first from the dashboard."
CAMERA_UNAVAILABLE_MESSAGE = "Camera not available. Please close and reopen."
NO_VIDEO_MESSAGE = "Camera did not deliver video. Please close and reopen."
CAMERA_START_MESSAGE = "Failed to start camera. Please allow camera access."
CAMERA_LOST_MESSAGE = "Camera stopped unexpectedly. Please close and reopen."

POSITION_TEXT = "Position your face in the frame"
LOW_CONFIDENCE_TEXT = "Move closer or improve lighting..."
LOW_CONFIDENCE_EVERY = 45


def hold_status_text(progress: float) -> str:
    if progress < 30:
        return "Face detected! Hold still..."
    if progress < 70:
        return "Keep holding... almost there"
    if progress < 100:
        return "Just a moment more..."
    return "Verifying identity..."


def no_signal_text(missed_frames: int) -> str:
    seconds = missed_frames // NO_SIGNAL_FRAMES_PER_SECOND
    if seconds < 3:
        return "Looking for your face..."
    if seconds < 6:
        return "Make sure your face is well-lit and centered"
    if seconds < 10:
        return "Try moving closer to the camera"
    return "Having trouble? Try better lighting or move to a brighter spot"


@dataclass(frozen=True)
class VerificationSettings:
    hold_duration: float = HOLD_DURATION_SECONDS
    match_threshold: float = FACE_MATCH_THRESHOLD
    min_detection_score: float = MIN_DETECTION_SCORE
    detector_input_size: int = DETECTOR_INPUT_SIZE
    detection_throttle: int = DETECTION_THROTTLE
    frame_interval: float = FRAME_INTERVAL_SECONDS
    success_close_delay: float = SUCCESS_CLOSE_DELAY_SECONDS
    camera_attempts: int = CAMERA_ACQUIRE_ATTEMPTS
    camera_retry_delay: float = CAMERA_RETRY_DELAY_SECONDS
    first_frame_timeout: float = FIRST_FRAME_TIMEOUT_SECONDS


@dataclass(frozen=True)
class SessionView:
    """What a renderer needs to draw the session; never mutated."""

    step: VerificationStep
    progress: float
    status_text: str
    face_detected: bool
    error: Optional[str] = None
    distance: Optional[float] = None
    retryable: bool = False

    def to_dict(self) -> dict:
        return {
            "step": self.step.value,
            "progress": round(self.progress, 1),
            "statusText": self.status_text,
            "faceDetected": self.face_detected,
            "error": self.error,
            "distance": self.distance,
            "retryable": self.retryable,
        }


def _current_task() -> Optional[asyncio.Task]:
    try:
        return asyncio.current_task()
    except RuntimeError:
        return None


class VerificationSession:
    def __init__(
        self,
        *,
        detector: FaceDetector,
        camera: CameraProvider,
        stored_descriptor: Optional[Sequence[float]],
        on_verified: Callable[[], None],
        on_closed: Optional[Callable[[], None]] = None,
        on_change: Optional[Callable[[SessionView], None]] = None,
        settings: Optional[VerificationSettings] = None,
        matcher: Optional[FaceMatcher] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._detector = detector
        self._camera = camera
        self._stored_raw = stored_descriptor
        self._stored: Optional[list[float]] = None
        self._on_verified = on_verified
        self._on_closed = on_closed
        self._on_change = on_change
        self.settings = settings or VerificationSettings()
        self._matcher = matcher or FaceMatcher(self.settings.match_threshold)
        self._clock = clock

        self._step = VerificationStep.LOADING
        self._status_text = "Loading face recognition..."
        self._progress = 0.0
        self._face_detected = False
        self._error: Optional[str] = None
        self._distance: Optional[float] = None
        self._retryable = False
        self.failure: Optional[DomainError] = None

        self._stream: Optional[CameraStream] = None
        self._hold_started: Optional[float] = None
        self._no_signal_count = 0
        self._frame_count = 0
        self._verify_started = False
        self._verified_notified = False
        self._started = False
        self._closed = False
        self._closed_event = asyncio.Event()
        self._loop_task: Optional[asyncio.Task] = None
        self._close_handle: Optional[asyncio.TimerHandle] = None

    # ------------------------------------------------------------ properties

    @property
    def step(self) -> VerificationStep:
        return self._step

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def camera_open(self) -> bool:
        return self._stream is not None

    def snapshot(self) -> SessionView:
        return SessionView(
            step=self._step,
            progress=self._progress,
            status_text=self._status_text,
            face_detected=self._face_detected,
            error=self._error,
            distance=self._distance,
            retryable=self._retryable,
        )

    def update_callbacks(
        self,
        *,
        on_verified: Optional[Callable[[], None]] = None,
        on_closed: Optional[Callable[[], None]] = None,
        on_change: Optional[Callable[[SessionView], None]] = None,
    ) -> None:
        """Swap callbacks without restarting the session or touching the camera."""
        if on_verified is not None:
            self._on_verified = on_verified
        if on_closed is not None:
            self._on_closed = on_closed
        if on_change is not None:
            self._on_change = on_change

    # ------------------------------------------------------------ lifecycle

    async def start(self) -> None:
        if self._started:
            raise RuntimeError("Verification session already started")
        self._started = True

        try:
            self._stored = require_descriptor(self._stored_raw)
        except ValidationError:
            self._fail(ResourceUnavailableError(NOT_ENROLLED_MESSAGE), retryable=False)
            return

        loop = asyncio.get_running_loop()
        self._notify()
        try:
            await loop.run_in_executor(None, self._detector.load)
            if self._closed:
                return

            self._set_step(VerificationStep.CAMERA, "Starting camera...")
            stream = await self._acquire_camera()
            if stream is None:
                return
            self._stream = stream

            if not await self._wait_first_frame():
                return
        except ResourceUnavailableError as e:
            logger.warning("Verification start failed: %s", e)
            self._release_camera()
            self._fail(e, retryable=False)
            return
        except Exception as e:
            logger.exception("Verification start error")
            self._release_camera()
            self._fail(ResourceUnavailableError(str(e) or CAMERA_START_MESSAGE), retryable=False)
            return

        self._set_step(VerificationStep.DETECTING, POSITION_TEXT)
        self._spawn_loop()

    def retry(self) -> bool:
        """Restart detection after a mismatch on the stream that is already open."""
        if self._closed or self._step is not VerificationStep.ERROR or not self._retryable:
            return False
        if self._stream is None:
            return False

        logger.info("Verification retry")
        self._hold_started = None
        self._progress = 0.0
        self._face_detected = False
        self._no_signal_count = 0
        self._frame_count = 0
        self._verify_started = False
        self._error = None
        self._distance = None
        self._retryable = False
        self.failure = None
        self._set_step(VerificationStep.DETECTING, POSITION_TEXT)
        self._spawn_loop()
        return True

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True

        if self._close_handle is not None:
            self._close_handle.cancel()
            self._close_handle = None

        task = self._loop_task
        if task is not None and not task.done() and task is not _current_task():
            task.cancel()

        self._release_camera()
        self._closed_event.set()
        logger.info("Verification session closed at step %s", self._step.value)

        callback = self._on_closed
        if callback is not None:
            try:
                callback()
            except Exception:
                logger.exception("on_closed callback failed")

    async def wait(self) -> VerificationStep:
        """Wait for the current detection run to finish (success, error or close)."""
        task = self._loop_task
        if task is not None:
            try:
                await task
            except asyncio.CancelledError:
                if not self._closed:
                    raise
        return self._step

    async def wait_closed(self) -> None:
        await self._closed_event.wait()

    # ------------------------------------------------------------ camera

    async def _acquire_camera(self) -> Optional[CameraStream]:
        attempts = max(int(self.settings.camera_attempts), 1)
        for attempt in range(1, attempts + 1):
            if self._closed:
                return None
            stream = self._camera.open()
            if stream is not None:
                if self._closed:
                    stream.stop()
                    return None
                logger.debug("Camera acquired on attempt %d", attempt)
                return stream
            logger.debug("Camera not ready (attempt %d/%d)", attempt, attempts)
            await asyncio.sleep(self.settings.camera_retry_delay)
        raise ResourceUnavailableError(CAMERA_UNAVAILABLE_MESSAGE)

    async def _wait_first_frame(self) -> bool:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.settings.first_frame_timeout
        while not self._closed:
            stream = self._stream
            if stream is None:
                return False
            if stream.read() is not None:
                return True
            if loop.time() >= deadline:
                raise ResourceUnavailableError(NO_VIDEO_MESSAGE)
            await asyncio.sleep(self.settings.frame_interval)
        return False

    def _release_camera(self) -> None:
        stream, self._stream = self._stream, None
        if stream is None:
            return
        try:
            stream.stop()
        except Exception:
            logger.warning("Camera stop failed", exc_info=True)

    # ------------------------------------------------------------ detection

    def _spawn_loop(self) -> None:
        self._loop_task = asyncio.get_running_loop().create_task(self._detection_loop())

    def _detecting(self) -> bool:
        return not self._closed and self._step is VerificationStep.DETECTING and not self._verify_started

    async def _detection_loop(self) -> None:
        loop = asyncio.get_running_loop()
        options = DetectorOptions(
            input_size=self.settings.detector_input_size,
            score_threshold=self.settings.min_detection_score,
        )
        throttle = max(int(self.settings.detection_throttle), 1)

        while self._detecting():
            stream = self._stream
            if stream is None:
                return
            try:
                frame = stream.read()
            except Exception:
                logger.exception("Camera read failed")
                self._release_camera()
                self._fail(ResourceUnavailableError(CAMERA_LOST_MESSAGE), retryable=False)
                return

            if frame is not None:
                self._frame_count += 1
                if self._frame_count % throttle == 0:
                    try:
                        detection = await loop.run_in_executor(None, self._detector.detect, frame, options)
                    except DetectionTransient as e:
                        logger.debug("Skipped frame: %s", e)
                    except Exception as e:
                        if self._frame_count % DETECTION_ERROR_LOG_EVERY == 0:
                            logger.error("Face detection error: %s", e)
                    else:
                        if not self._detecting():
                            return
                        self._on_detection(detection)
                        if not self._detecting():
                            return

            await asyncio.sleep(self.settings.frame_interval)

    def _on_detection(self, detection: Optional[Detection]) -> None:
        if detection is None or not detection.descriptor or detection.score < self.settings.min_detection_score:
            self._on_no_signal(low_confidence=detection is not None)
            return

        self._no_signal_count = 0
        self._face_detected = True
        now = self._clock()
        if self._hold_started is None:
            self._hold_started = now
            logger.debug("Face detected, hold started")
        elapsed = now - self._hold_started
        hold = self.settings.hold_duration
        self._progress = min(elapsed / hold, 1.0) * 100 if hold > 0 else 100.0
        self._status_text = hold_status_text(self._progress)

        if elapsed >= hold and not self._verify_started:
            self._verify_started = True
            self._verify(detection)
            return
        self._notify()

    def _on_no_signal(self, *, low_confidence: bool) -> None:
        self._face_detected = False
        self._hold_started = None
        self._progress = 0.0
        self._no_signal_count += 1
        if low_confidence and self._no_signal_count % LOW_CONFIDENCE_EVERY == 0:
            self._status_text = LOW_CONFIDENCE_TEXT
        elif self._no_signal_count % NO_SIGNAL_GUIDANCE_EVERY == 0:
            self._status_text = no_signal_text(self._no_signal_count)
        self._notify()

    def _verify(self, detection: Detection) -> None:
        self._set_step(VerificationStep.VERIFYING, "Verifying identity...")
        try:
            decision = self._matcher.compare(detection.descriptor, self._stored)
        except ValidationError as e:
            logger.warning("Live descriptor rejected: %s", e)
            self._fail(e, retryable=True)
            return

        self._distance = decision.distance
        if not decision.matched:
            logger.info("Face mismatch (distance=%.3f, band=%s)", decision.distance, decision.band.value)
            self._fail(
                IdentityMismatchError(mismatch_message(decision.band), distance=decision.distance, band=decision.band),
                retryable=True,
            )
            return

        logger.info("Face verified (distance=%.3f)", decision.distance)
        self._progress = 100.0
        self._set_step(VerificationStep.SUCCESS, "Verified successfully!")
        self._fire_verified()
        if not self._closed:
            loop = asyncio.get_running_loop()
            self._close_handle = loop.call_later(self.settings.success_close_delay, self.close)

    def _fire_verified(self) -> None:
        if self._verified_notified:
            return
        self._verified_notified = True
        try:
            self._on_verified()
        except Exception:
            logger.exception("on_verified callback failed")

    # ------------------------------------------------------------ state

    def _set_step(self, step: VerificationStep, status_text: str) -> None:
        if step is not self._step:
            logger.debug("Verification step %s -> %s", self._step.value, step.value)
        self._step = step
        self._status_text = status_text
        self._notify()

    def _fail(self, error: DomainError, *, retryable: bool) -> None:
        self.failure = error
        self._error = str(error)
        self._retryable = retryable
        self._face_detected = False
        self._set_step(VerificationStep.ERROR, self._error)

    def _notify(self) -> None:
        callback = self._on_change
        if callback is None or self._closed:
            return
        try:
            callback(self.snapshot())
        except Exception:
            logger.exception("on_change callback failed")
