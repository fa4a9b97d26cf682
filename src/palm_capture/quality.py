"""Frame quality gate: Laplacian-variance sharpness and hand framing checks."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

import cv2
import numpy as np

logger = logging.getLogger("palm_capture.quality")


@dataclass
class QualityVerdict:
    """Outcome of a sharpness check on one still frame."""
    acceptable: bool
    variance: float

    def __bool__(self) -> bool:
        return self.acceptable


def to_grayscale(frame: np.ndarray) -> np.ndarray:
    """Convert an RGB/RGBA/gray frame to a 2-D 8-bit grayscale image."""
    if frame.dtype != np.uint8:
        frame = np.clip(frame, 0, 255).astype(np.uint8)
    if frame.ndim == 2:
        return frame
    if frame.ndim == 3 and frame.shape[2] == 1:
        return frame[:, :, 0]
    if frame.ndim == 3 and frame.shape[2] == 3:
        return cv2.cvtColor(frame, cv2.COLOR_RGB2GRAY)
    if frame.ndim == 3 and frame.shape[2] == 4:
        return cv2.cvtColor(frame, cv2.COLOR_RGBA2GRAY)
    raise ValueError(f"Unsupported frame shape: {frame.shape}")


def laplacian_variance(frame: np.ndarray, stride: int = 1) -> float:
    """Variance of the 4-neighbour Laplacian over interior pixels.

    The response is ``cv2.Laplacian`` with ``ksize=1``. Every ``stride``-th
    interior row is sampled, and every other sampled row has its columns
    shifted by an odd offset near ``stride // 2``. The staggered grid keeps
    fine periodic detail such as a 1-pixel checkerboard from aliasing to a
    constant response.

    Args:
        frame: Image as numpy array, (H, W) or (H, W, C).
        stride: Sampling step in pixels, >= 1.

    Returns:
        Variance of the Laplacian response. 0.0 for frames smaller than 3x3.
    """
    if stride < 1:
        raise ValueError("stride must be >= 1")

    gray = to_grayscale(frame)
    h, w = gray.shape
    if h < 3 or w < 3:
        return 0.0

    response = cv2.Laplacian(gray, cv2.CV_64F, ksize=1)[1:h - 1, 1:w - 1]
    rows = response[::stride]
    shift = (stride // 2) | 1 if stride > 1 else 0
    samples = np.concatenate([
        rows[0::2, ::stride].ravel(),
        rows[1::2, shift::stride].ravel(),
    ])
    return float(samples.var())


def hand_coverage(landmarks: np.ndarray) -> float:
    """Fraction of the frame covered by the hand's landmark bounding box."""
    xs = np.clip(landmarks[:, 0], 0.0, 1.0)
    ys = np.clip(landmarks[:, 1], 0.0, 1.0)
    return float((xs.max() - xs.min()) * (ys.max() - ys.min()))


class FrameQualityGate:
    """Rejects blurry stills before they reach the capture checklist.

    A frame is acceptable when its Laplacian variance is strictly above
    ``threshold`` (about 20 on an 8-bit scale). ``framing``, when set, is a
    (min, max) range for the hand's share of the frame.
    """

    def __init__(
        self,
        threshold: float = 20.0,
        stride: int = 2,
        framing: Optional[tuple[float, float]] = None,
    ):
        if stride < 1:
            raise ValueError("stride must be >= 1")
        self.threshold = threshold
        self.stride = stride
        self.framing = framing

    def assess(self, frame: np.ndarray) -> QualityVerdict:
        variance = laplacian_variance(frame, self.stride)
        acceptable = variance > self.threshold
        if not acceptable:
            logger.debug(
                "Frame too blurry: variance %.2f <= threshold %.2f",
                variance, self.threshold,
            )
        return QualityVerdict(acceptable=acceptable, variance=variance)

    def is_acceptable(self, frame: np.ndarray) -> bool:
        """On-demand boolean check for a still image."""
        return self.assess(frame).acceptable

    def check_framing(self, landmarks: np.ndarray) -> bool:
        """True when no framing range is set or the hand fills the range."""
        if self.framing is None:
            return True
        lo, hi = self.framing
        coverage = hand_coverage(landmarks)
        return lo < coverage < hi
