"""Live video frame source backed by OpenCV."""

from __future__ import annotations

import logging
from typing import Optional

import cv2
import numpy as np

from palm_capture.errors import CameraError

logger = logging.getLogger("palm_capture.camera")


class CameraSource:
    """Reads RGB frames from a local camera device.

    Usage:
        with CameraSource(0) as camera:
            frame = camera.read()
    """

    def __init__(self, index: int = 0, width: int = 640, height: int = 480):
        self.index = index
        self.width = width
        self.height = height
        self._capture: Optional[cv2.VideoCapture] = None

    def open(self):
        if self._capture is not None:
            return
        capture = cv2.VideoCapture(self.index)
        if not capture.isOpened():
            capture.release()
            raise CameraError(
                f"Could not open camera {self.index}. Check that it is "
                "connected, not in use by another app, and that camera "
                "permissions are granted."
            )
        capture.set(cv2.CAP_PROP_FRAME_WIDTH, self.width)
        capture.set(cv2.CAP_PROP_FRAME_HEIGHT, self.height)
        self._capture = capture
        logger.info("Camera %d opened", self.index)

    def read(self) -> Optional[np.ndarray]:
        """Return the current frame as RGB uint8, or None if none is ready."""
        if self._capture is None:
            self.open()
        ret, frame = self._capture.read()
        if not ret:
            return None
        return cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)

    @property
    def is_open(self) -> bool:
        return self._capture is not None

    def release(self):
        if self._capture is not None:
            self._capture.release()
            self._capture = None
            logger.info("Camera %d released", self.index)

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, *args):
        self.release()
