"""Local storage for accepted captures as JPEG files."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import cv2
import numpy as np

from palm_capture.session import CaptureController, CaptureEvent

logger = logging.getLogger("palm_capture.store")


@dataclass
class StoredCapture:
    label: str
    filename: str
    path: str
    width: int
    height: int
    variance: float
    saved_at: float

    def to_dict(self) -> dict:
        return {
            "label": self.label,
            "filename": self.filename,
            "path": self.path,
            "width": self.width,
            "height": self.height,
            "variance": round(self.variance, 2),
            "saved_at": self.saved_at,
        }


def decode_image(data: bytes) -> Optional[np.ndarray]:
    """Decode encoded image bytes (JPEG, PNG, ...) to RGB. None if undecodable."""
    if not data:
        return None
    image = cv2.imdecode(np.frombuffer(data, dtype=np.uint8), cv2.IMREAD_COLOR)
    if image is None:
        return None
    return cv2.cvtColor(image, cv2.COLOR_BGR2RGB)


def fit_within(image: np.ndarray, max_width: int, max_height: int) -> np.ndarray:
    """Downscale an image to fit max_width x max_height, keeping aspect ratio."""
    h, w = image.shape[:2]
    if w <= max_width and h <= max_height:
        return image
    scale = min(max_width / w, max_height / h)
    size = (max(1, int(round(w * scale))), max(1, int(round(h * scale))))
    return cv2.resize(image, size, interpolation=cv2.INTER_AREA)


def enhance(image: np.ndarray, contrast: float = 1.2, brightness: float = 1.1) -> np.ndarray:
    """Boost contrast around mid-gray, then scale brightness, saturating at 0 and 255."""
    gain = contrast * brightness
    offset = brightness * 127.5 * (1.0 - contrast)
    return cv2.addWeighted(image, gain, image, 0.0, offset)


class CaptureStore:
    """Writes accepted stills to ``directory`` as ``img-<ms>-<Label>.jpg``.

    Images are expected as RGB and are capped to max_width x max_height
    before JPEG encoding. With ``enhance`` set, stored images also get a
    mild contrast and brightness boost.
    """

    def __init__(
        self,
        directory: str | Path,
        max_width: int = 640,
        max_height: int = 480,
        jpeg_quality: int = 80,
        enhance: bool = False,
    ):
        self.directory = Path(directory)
        self.max_width = max_width
        self.max_height = max_height
        self.jpeg_quality = jpeg_quality
        self.enhance = enhance
        self._records: dict[str, StoredCapture] = {}

    def encode(self, image: np.ndarray) -> bytes:
        """Resize, optionally enhance, and JPEG-encode an RGB image."""
        return self._encode(self._prepare(image))

    def _prepare(self, image: np.ndarray) -> np.ndarray:
        image = fit_within(image, self.max_width, self.max_height)
        return enhance(image) if self.enhance else image

    def _encode(self, image: np.ndarray) -> bytes:
        if image.ndim == 3 and image.shape[2] == 3:
            image = cv2.cvtColor(image, cv2.COLOR_RGB2BGR)
        ok, buf = cv2.imencode(".jpg", image, [cv2.IMWRITE_JPEG_QUALITY, self.jpeg_quality])
        if not ok:
            raise ValueError("JPEG encoding failed")
        return buf.tobytes()

    def save(self, event: CaptureEvent, saved_at: Optional[float] = None) -> StoredCapture:
        saved_at = time.time() if saved_at is None else saved_at
        self.directory.mkdir(parents=True, exist_ok=True)

        filename = f"img-{int(saved_at * 1000)}-{event.label.slug}.jpg"
        path = self.directory / filename
        resized = self._prepare(event.image)
        data = self._encode(resized)
        path.write_bytes(data)

        h, w = resized.shape[:2]
        record = StoredCapture(
            label=event.label.value,
            filename=filename,
            path=str(path),
            width=w,
            height=h,
            variance=event.variance,
            saved_at=saved_at,
        )
        self._records[filename] = record
        logger.info("Saved %s to %s (%.1f KB)", event.label.value, path, len(data) / 1024)
        return record

    def attach(self, controller: CaptureController):
        """Save every capture the controller accepts and record its path."""
        def _save(event: CaptureEvent):
            record = self.save(event)
            controller.state.checklist.set_path(event.label, record.path)

        controller.on_capture(_save)

    def get(self, filename: str) -> Optional[StoredCapture]:
        return self._records.get(filename)

    @property
    def records(self) -> list[StoredCapture]:
        return list(self._records.values())

    def clear(self):
        """Forget saved records. Files on disk are left in place."""
        self._records.clear()
