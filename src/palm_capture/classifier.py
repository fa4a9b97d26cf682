"""Gesture classification from landmark depth and handedness."""

from __future__ import annotations

from enum import Enum
from typing import Optional, Sequence

import numpy as np

from palm_capture.gestures import (
    FacingMode,
    Gesture,
    HandObservation,
    Handedness,
    Pose,
)

_WRIST = 0
_THUMB_JOINT = 2
_THUMB_TIP = 4
_MIDDLE_MCP = 9


class TieBreak(Enum):
    """Which hand wins when more than one hand shows a qualifying pose."""
    LAST = "last"
    CONFIDENT = "confident"


def resolve_handedness(raw: Handedness, facing: FacingMode) -> Handedness:
    """Map the detector's label to the subject's real hand.

    The front camera mirrors the image, so a raw "Left" is the subject's
    right hand. The rear camera needs no correction.
    """
    if facing == FacingMode.FRONT:
        return raw.mirrored()
    return raw


class GestureClassifier:
    """Maps one frame's hand observations to a discrete Gesture.

    Per hand, the pose comes from two depth comparisons:

    1. Palm facing the camera: the wrist is nearer than the middle-finger
       base by at least ``palm_tolerance``.
    2. Thumb back: otherwise, the thumb tip is nearer than the thumb joint.

    Handedness is mirror-corrected for the facing mode and combined with the
    pose. With several qualifying hands, ``tie_break`` decides the winner;
    ``combine_thumbs`` collapses two thumb-back hands into THUMBS_BACK.
    """

    def __init__(
        self,
        palm_tolerance: float = 0.01,
        tie_break: TieBreak = TieBreak.LAST,
        combine_thumbs: bool = False,
    ):
        self.palm_tolerance = palm_tolerance
        self.tie_break = tie_break
        self.combine_thumbs = combine_thumbs

    def classify_pose(self, landmarks: np.ndarray) -> Pose:
        """Classify a single hand's pose.

        Args:
            landmarks: Hand landmarks, shape (21, 3).

        Returns:
            PALM, THUMB_BACK or NONE. Non-finite depths compare false and
            fall through to NONE.
        """
        wrist_z = float(landmarks[_WRIST][2])
        middle_z = float(landmarks[_MIDDLE_MCP][2])
        if wrist_z < middle_z - self.palm_tolerance:
            return Pose.PALM

        tip_z = float(landmarks[_THUMB_TIP][2])
        joint_z = float(landmarks[_THUMB_JOINT][2])
        if tip_z < joint_z:
            return Pose.THUMB_BACK

        return Pose.NONE

    def classify_hand(self, hand: HandObservation, facing: FacingMode) -> Gesture:
        """Classify one hand into a labeled gesture."""
        pose = self.classify_pose(hand.landmarks)
        if pose == Pose.NONE:
            return Gesture.NONE
        return Gesture.from_parts(resolve_handedness(hand.handedness, facing), pose)

    def classify(
        self,
        hands: Sequence[HandObservation],
        facing: FacingMode = FacingMode.FRONT,
    ) -> Gesture:
        """Classify all hands in a frame into a single current gesture.

        Returns Gesture.NONE when no hand is present or none qualifies.
        """
        if not hands:
            return Gesture.NONE

        qualifying: list[tuple[HandObservation, Pose, Gesture]] = []
        for hand in hands:
            pose = self.classify_pose(hand.landmarks)
            if pose == Pose.NONE:
                continue
            gesture = Gesture.from_parts(resolve_handedness(hand.handedness, facing), pose)
            qualifying.append((hand, pose, gesture))

        if not qualifying:
            return Gesture.NONE

        if self.combine_thumbs:
            thumbs = [q for q in qualifying if q[1] == Pose.THUMB_BACK]
            if len(thumbs) >= 2:
                return Gesture.THUMBS_BACK

        return self._pick(qualifying)

    def _pick(self, qualifying: list[tuple[HandObservation, Pose, Gesture]]) -> Gesture:
        if self.tie_break == TieBreak.CONFIDENT:
            best: Optional[tuple[HandObservation, Pose, Gesture]] = None
            for q in qualifying:
                # ties keep the later hand, same as LAST
                if best is None or q[0].score >= best[0].score:
                    best = q
            return best[2]
        return qualifying[-1][2]
