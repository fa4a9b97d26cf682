"""Edge cases: degenerate landmarks, tiny frames, odd configs."""

import numpy as np

from palm_capture.classifier import GestureClassifier
from palm_capture.config import SessionConfig
from palm_capture.gestures import FacingMode, Gesture, Handedness, HandObservation, Pose
from palm_capture.quality import FrameQualityGate, hand_coverage, laplacian_variance
from palm_capture.session import CaptureController
from palm_capture.stability import StabilityFilter


class TestDegenerateLandmarks:
    def test_nan_landmarks_are_none(self):
        lm = np.full((21, 3), np.nan, dtype=np.float32)
        assert GestureClassifier().classify_pose(lm) == Pose.NONE

    def test_inf_depths_are_none(self):
        lm = np.zeros((21, 3), dtype=np.float32)
        lm[:, 2] = np.inf
        assert GestureClassifier().classify_pose(lm) == Pose.NONE

    def test_all_zero_landmarks(self):
        lm = np.zeros((21, 3), dtype=np.float32)
        hands = [HandObservation(lm, Handedness.RIGHT)]
        assert GestureClassifier().classify(hands, FacingMode.FRONT) == Gesture.NONE

    def test_point_hand_has_zero_coverage(self):
        lm = np.full((21, 3), 0.5, dtype=np.float32)
        assert hand_coverage(lm) == 0.0


class TestTinyFrames:
    def test_single_pixel(self):
        assert laplacian_variance(np.zeros((1, 1, 3), dtype=np.uint8)) == 0.0

    def test_three_by_three(self):
        frame = np.zeros((3, 3), dtype=np.uint8)
        frame[1, 1] = 255
        # one interior pixel, so no spread
        assert laplacian_variance(frame) == 0.0

    def test_tiny_frame_rejected(self):
        assert not FrameQualityGate().is_acceptable(np.zeros((2, 2, 3), dtype=np.uint8))

    def test_stride_larger_than_frame(self):
        frame = np.random.RandomState(0).randint(0, 256, (16, 16), dtype=np.uint8)
        assert laplacian_variance(frame, stride=100) == 0.0


class TestOddConfigs:
    def test_single_sample_window(self):
        f = StabilityFilter(window=1, min_samples=0)
        f.push(Gesture.LEFT_PALM)
        assert f.confirmed() == Gesture.LEFT_PALM
        f.push(Gesture.RIGHT_PALM)
        assert f.confirmed() == Gesture.RIGHT_PALM

    def test_full_ratio(self):
        f = StabilityFilter(match_ratio=1.0, min_samples=0)
        f.extend([Gesture.LEFT_PALM] * 29 + [Gesture.NONE])
        assert f.confirmed() == Gesture.LEFT_PALM
        f.push(Gesture.RIGHT_PALM)
        assert f.confirmed() is None

    def test_thumbs_back_checklist(self):
        ctrl = CaptureController(SessionConfig(
            required_gestures=[Gesture.THUMBS_BACK],
            combine_thumbs=True,
            min_samples=0,
            capture_interval=0,
            framing=(0.1, 0.9),
        ))
        lm = np.zeros((21, 3), dtype=np.float32)
        lm[:, 0] = np.linspace(0.2, 0.8, 21)
        lm[:, 1] = np.linspace(0.2, 0.8, 21)
        lm[4, 2] = -0.05
        hands = [HandObservation(lm, Handedness.LEFT), HandObservation(lm.copy(), Handedness.RIGHT)]

        y, x = np.indices((64, 64))
        board = ((((y // 8) + (x // 8)) % 2) * 255).astype(np.uint8)
        result = ctrl.process(hands, board, now=0.0)
        assert result.capture is not None
        assert result.capture.label == Gesture.THUMBS_BACK
        assert ctrl.state.checklist.is_complete
