"""Hand detection and landmark extraction using MediaPipe."""

from __future__ import annotations

import logging

import numpy as np

try:
    import mediapipe as mp
except ImportError:
    mp = None

from palm_capture.errors import DetectorError
from palm_capture.gestures import HandObservation, Handedness

logger = logging.getLogger("palm_capture.detector")


class HandDetector:
    """Extracts 21 3D hand landmarks and handedness per hand using MediaPipe Hands.

    Each landmark is (x, y, z) with x, y normalized to [0, 1] relative to
    image dimensions and z the depth relative to the wrist. Returns up to
    `max_hands` detected hands per frame.
    """

    def __init__(
        self,
        max_hands: int = 2,
        min_detection_confidence: float = 0.7,
        min_tracking_confidence: float = 0.5,
        static_image_mode: bool = False,
    ):
        if mp is None:
            raise DetectorError(
                "mediapipe is required for hand detection. "
                "Install with: pip install mediapipe"
            )

        self.max_hands = max_hands
        try:
            self._hands = mp.solutions.hands.Hands(
                static_image_mode=static_image_mode,
                max_num_hands=max_hands,
                min_detection_confidence=min_detection_confidence,
                min_tracking_confidence=min_tracking_confidence,
            )
        except Exception as e:
            raise DetectorError(f"Could not load the hand landmark model: {e}") from e
        self._closed = False

    def detect(self, frame_rgb: np.ndarray) -> list[HandObservation]:
        """Detect hands in one frame.

        Args:
            frame_rgb: RGB image as numpy array (H, W, 3), uint8.

        Returns:
            One HandObservation per detected hand, in detector order.
            Empty list if no hands detected.
        """
        results = self._hands.process(frame_rgb)

        if not results.multi_hand_landmarks:
            return []

        handedness = results.multi_handedness or []
        hands = []
        for i, hand_landmarks in enumerate(results.multi_hand_landmarks):
            landmarks = np.array(
                [[lm.x, lm.y, lm.z] for lm in hand_landmarks.landmark],
                dtype=np.float32,
            )
            label, score = "Right", 0.0
            if i < len(handedness):
                top = handedness[i].classification[0]
                label, score = top.label, float(top.score)
            hands.append(HandObservation(
                landmarks=landmarks,
                handedness=Handedness(label),
                score=score,
            ))

        return hands

    def close(self):
        """Release MediaPipe resources."""
        if not self._closed:
            self._hands.close()
            self._closed = True
            logger.debug("Hand detector closed")

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()
