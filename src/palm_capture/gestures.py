"""Gesture vocabulary: poses, handedness, facing modes and labels."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

import numpy as np


class FacingMode(Enum):
    """Which way the camera faces the subject.

    The front (selfie) camera produces a mirrored image, so the detector's
    handedness label must be flipped to name the subject's real hand.
    """
    FRONT = "front"
    BACK = "back"


class Handedness(Enum):
    LEFT = "Left"
    RIGHT = "Right"

    def mirrored(self) -> Handedness:
        return Handedness.RIGHT if self is Handedness.LEFT else Handedness.LEFT


class Pose(Enum):
    """Per-hand pose derived from landmark depth."""
    PALM = "palm"
    THUMB_BACK = "thumb_back"
    NONE = "none"


class Gesture(Enum):
    """Discrete gesture labels the capture checklist is built from."""
    LEFT_PALM = "Left Palm"
    RIGHT_PALM = "Right Palm"
    LEFT_THUMB = "Left Thumb"
    RIGHT_THUMB = "Right Thumb"
    THUMBS_BACK = "Thumbs Back"
    NONE = "None"

    @classmethod
    def from_parts(cls, hand: Handedness, pose: Pose) -> Gesture:
        if pose == Pose.PALM:
            return cls.LEFT_PALM if hand == Handedness.LEFT else cls.RIGHT_PALM
        if pose == Pose.THUMB_BACK:
            return cls.LEFT_THUMB if hand == Handedness.LEFT else cls.RIGHT_THUMB
        return cls.NONE

    @property
    def slug(self) -> str:
        """Label without spaces, used in capture filenames."""
        return self.value.replace(" ", "")


DEFAULT_CHECKLIST = [
    Gesture.RIGHT_PALM,
    Gesture.LEFT_PALM,
    Gesture.LEFT_THUMB,
    Gesture.RIGHT_THUMB,
]


@dataclass
class HandObservation:
    """One detected hand: 21 landmarks plus the detector's handedness guess.

    ``landmarks`` has shape (21, 3). x and y are normalized to the frame,
    z is depth relative to the wrist (smaller is nearer the camera).
    ``handedness`` is the raw detector label, before mirror correction.
    """
    landmarks: np.ndarray
    handedness: Handedness
    score: float = 1.0
