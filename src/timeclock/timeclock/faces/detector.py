"""Face detection capability: a scored face box plus its 128-d descriptor.

The session only depends on the `FaceDetector` protocol; the dlib /
face_recognition implementation below is the production one.
"""
from __future__ import annotations

import base64
import logging
from dataclasses import dataclass
from typing import Optional, Protocol, Tuple

import cv2
import numpy as np

from ..core.constants import DETECTOR_INPUT_SIZE, MIN_DETECTION_SCORE
from ..core.exceptions import DetectionTransient, ResourceUnavailableError

logger = logging.getLogger(__name__)

Box = Tuple[int, int, int, int]  # top, right, bottom, left (face_recognition order)


@dataclass(frozen=True)
class DetectorOptions:
    input_size: int = DETECTOR_INPUT_SIZE
    score_threshold: float = MIN_DETECTION_SCORE


@dataclass(frozen=True)
class Detection:
    score: float
    descriptor: tuple[float, ...]
    box: Optional[Box] = None


class FaceDetector(Protocol):
    def load(self) -> None:
        """Load model weights; raises ResourceUnavailableError on failure."""

    def detect(self, frame: np.ndarray, options: DetectorOptions) -> Optional[Detection]:
        """Best face in the frame, or None when no face clears the threshold."""


def to_rgb(img: np.ndarray) -> np.ndarray:
    """BGR / BGRA / grayscale frame -> contiguous uint8 RGB (what dlib expects)."""
    if img.ndim == 3 and img.shape[2] == 4:
        img = cv2.cvtColor(img, cv2.COLOR_BGRA2BGR)
    elif img.ndim == 2:
        img = cv2.cvtColor(img, cv2.COLOR_GRAY2BGR)
    rgb = cv2.cvtColor(img, cv2.COLOR_BGR2RGB)
    return np.ascontiguousarray(rgb, dtype=np.uint8)


def decode_data_url(data: str) -> Optional[np.ndarray]:
    """Decode a base64 image (optionally a `data:image/...;base64,` URL) to a BGR frame."""
    payload = data.split(",", 1)[1] if "," in data else data
    try:
        raw = base64.b64decode(payload, validate=False)
    except (ValueError, TypeError):
        return None
    buf = np.frombuffer(raw, np.uint8)
    if buf.size == 0:
        return None
    return cv2.imdecode(buf, cv2.IMREAD_UNCHANGED)


class FaceRecognitionDetector:
    """dlib HOG detector for scored boxes, face_recognition for the descriptor."""

    def __init__(self, *, upsample: int = 0, num_jitters: int = 1, landmark_model: str = "large"):
        self._upsample = int(upsample)
        self._num_jitters = int(num_jitters)
        self._landmark_model = landmark_model
        self._hog = None
        self._encode = None

    def load(self) -> None:
        if self._hog is not None:
            return
        try:
            import dlib
            import face_recognition
        except ImportError as e:
            raise ResourceUnavailableError(f"Face recognition models are not installed: {e}") from e
        try:
            self._hog = dlib.get_frontal_face_detector()
        except RuntimeError as e:
            raise ResourceUnavailableError(f"Failed to load face detector: {e}") from e
        self._encode = face_recognition.face_encodings
        logger.info("Face detector loaded (upsample=%d, landmarks=%s)", self._upsample, self._landmark_model)

    def detect(self, frame: np.ndarray, options: DetectorOptions) -> Optional[Detection]:
        if self._hog is None:
            self.load()

        try:
            rgb = to_rgb(frame)
            height, width = rgb.shape[:2]
            longest = max(height, width)
            scale = options.input_size / longest if longest > options.input_size else 1.0
            small = rgb
            if scale < 1.0:
                small = np.ascontiguousarray(cv2.resize(rgb, None, fx=scale, fy=scale, interpolation=cv2.INTER_AREA))
        except cv2.error as e:
            raise DetectionTransient(f"Unusable frame: {e}") from e

        rects, scores, _ = self._hog.run(small, self._upsample, 0.0)
        if not rects:
            return None

        best = max(range(len(rects)), key=lambda i: scores[i])
        score = float(scores[best])
        if score < options.score_threshold:
            return None

        rect = rects[best]
        box = (
            max(int(rect.top() / scale), 0),
            min(int(rect.right() / scale), width),
            min(int(rect.bottom() / scale), height),
            max(int(rect.left() / scale), 0),
        )
        encodings = self._encode(rgb, known_face_locations=[box], num_jitters=self._num_jitters, model=self._landmark_model)
        if not encodings:
            return None
        return Detection(score=score, descriptor=tuple(float(v) for v in encodings[0]), box=box)
