"""Camera access: exclusive streams that are stopped exactly once."""
from __future__ import annotations

import logging
from typing import Optional, Protocol, Union

import cv2
import numpy as np

from ..core.constants import DEFAULT_CAMERA_HEIGHT, DEFAULT_CAMERA_WIDTH

logger = logging.getLogger(__name__)

SourceType = Union[int, str]


class CameraStream(Protocol):
    def read(self) -> Optional[np.ndarray]:
        """Latest decodable frame, or None while the device has nothing to give."""

    def stop(self) -> None:
        """Release the device. Safe to call more than once."""


class CameraProvider(Protocol):
    def open(self) -> Optional[CameraStream]:
        """Acquire the camera.

        Returns None while the device is not ready yet (callers retry a
        bounded number of times) and raises ResourceUnavailableError when
        access is refused outright.
        """


class OpenCVCameraStream:
    def __init__(self, capture: cv2.VideoCapture):
        self._capture = capture
        self._stopped = False

    def read(self) -> Optional[np.ndarray]:
        if self._stopped:
            return None
        ok, frame = self._capture.read()
        if not ok or frame is None or frame.size == 0:
            return None
        return frame

    def stop(self) -> None:
        if self._stopped:
            return
        self._stopped = True
        self._capture.release()
        logger.debug("Camera released")


class OpenCVCameraProvider:
    def __init__(
        self,
        source: SourceType = 0,
        *,
        width: Optional[int] = DEFAULT_CAMERA_WIDTH,
        height: Optional[int] = DEFAULT_CAMERA_HEIGHT,
    ):
        self._source = int(source) if isinstance(source, str) and source.isdigit() else source
        self._width = int(width) if width and width > 0 else None
        self._height = int(height) if height and height > 0 else None

    def open(self) -> Optional[OpenCVCameraStream]:
        capture = cv2.VideoCapture(self._source)
        if not capture.isOpened():
            capture.release()
            logger.debug("Camera %r not ready", self._source)
            return None
        if self._width:
            capture.set(cv2.CAP_PROP_FRAME_WIDTH, self._width)
        if self._height:
            capture.set(cv2.CAP_PROP_FRAME_HEIGHT, self._height)
        return OpenCVCameraStream(capture)
