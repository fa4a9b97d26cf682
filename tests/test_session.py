"""Tests for the capture controller and session lifecycle."""

import numpy as np
import pytest

from palm_capture.config import SessionConfig
from palm_capture.gestures import FacingMode, Gesture, Handedness, HandObservation
from palm_capture.session import CaptureController, SessionStatus


def make_landmarks(wrist_z=0.0, middle_z=0.0, thumb_tip_z=0.0, thumb_joint_z=0.0, extent=(0.3, 0.7)):
    lm = np.zeros((21, 3), dtype=np.float32)
    lm[:, 0] = np.linspace(extent[0], extent[1], 21)
    lm[:, 1] = np.linspace(extent[0], extent[1], 21)
    lm[0, 2] = wrist_z
    lm[9, 2] = middle_z
    lm[4, 2] = thumb_tip_z
    lm[2, 2] = thumb_joint_z
    return lm


def palm(raw=Handedness.LEFT, **kw):
    return HandObservation(make_landmarks(wrist_z=-0.05, **kw), raw)


def thumb(raw=Handedness.LEFT):
    return HandObservation(make_landmarks(thumb_tip_z=-0.05), raw)


def gray_frame():
    return np.full((64, 64, 3), 128, dtype=np.uint8)


def sharp_frame():
    y, x = np.indices((64, 64))
    board = ((((y // 8) + (x // 8)) % 2) * 255).astype(np.uint8)
    return np.stack([board] * 3, axis=-1)


def controller(**overrides):
    return CaptureController(SessionConfig(**overrides))


class TestCaptureScenario:
    def test_palm_held_then_sharp_frame(self):
        # raw "Left" through a front camera is the user's right hand
        ctrl = controller()
        for i in range(150):
            result = ctrl.process([palm()], gray_frame(), now=i / 30)
            assert result.capture is None
            assert result.rejected is None

        result = ctrl.process([palm()], sharp_frame(), now=5.0)
        assert result.capture is not None
        assert result.capture.label == Gesture.RIGHT_PALM

        checklist = ctrl.state.checklist
        assert checklist.is_captured(Gesture.RIGHT_PALM)
        assert checklist.captured_count == 1

    def test_capture_happens_once(self):
        ctrl = controller(min_samples=0, capture_interval=0)
        captures = [
            ctrl.process([palm()], sharp_frame(), now=t).capture
            for t in range(20)
        ]
        assert sum(c is not None for c in captures) == 1

    def test_capture_copies_frame(self):
        ctrl = controller(min_samples=0, capture_interval=0)
        frame = sharp_frame()
        result = ctrl.process([palm()], frame, now=0.0)
        frame[:] = 0
        assert result.capture.image.max() == 255


class TestIntervalGate:
    def test_no_capture_before_interval(self):
        ctrl = controller(min_samples=0)
        ctrl.start(now=0.0)
        assert ctrl.process([palm()], sharp_frame(), now=4.9).capture is None
        assert ctrl.process([palm()], sharp_frame(), now=5.0).capture is not None

    def test_interval_measured_from_last_capture(self):
        ctrl = controller(min_samples=0, capture_interval=2.0)
        ctrl.start(now=0.0)
        assert ctrl.process([palm()], sharp_frame(), now=2.0).capture is not None
        assert ctrl.process([thumb()], sharp_frame(), now=3.0).capture is None
        result = ctrl.process([thumb()], sharp_frame(), now=4.0)
        assert result.capture.label == Gesture.RIGHT_THUMB

    def test_process_auto_starts(self):
        ctrl = controller(min_samples=0)
        ctrl.process([], None, now=10.0)
        assert ctrl.state.status == SessionStatus.ACTIVE
        assert ctrl.state.started_at == 10.0


class TestQualityRejection:
    def test_blurry_frame_rejected_then_retried(self):
        ctrl = controller(min_samples=0, capture_interval=0)
        result = ctrl.process([palm()], gray_frame(), now=0.0)
        assert result.confirmed
        assert result.rejected == "blur"
        assert result.capture is None
        assert ctrl.state.checklist.is_pending(Gesture.RIGHT_PALM)

        result = ctrl.process([palm()], sharp_frame(), now=0.1)
        assert result.capture is not None
        assert ctrl.state.rejections == {"blur": 1}

    def test_no_frame_no_capture(self):
        ctrl = controller(min_samples=0, capture_interval=0)
        result = ctrl.process([palm()], None, now=0.0)
        assert result.confirmed
        assert result.capture is None

    def test_store_failure_leaves_entry_pending(self):
        ctrl = controller(min_samples=0, capture_interval=0)
        failures = [OSError("disk full")]

        def flaky_store(event):
            if failures:
                raise failures.pop()

        ctrl.on_capture(flaky_store)
        result = ctrl.process([palm()], sharp_frame(), now=0.0)

        state = ctrl.state
        assert result.rejected == "store"
        assert result.capture is None
        assert state.checklist.is_pending(Gesture.RIGHT_PALM)
        assert state.last_capture_at is None
        assert state.status == SessionStatus.ACTIVE
        assert state.rejections == {"store": 1}

        retry = ctrl.process([palm()], sharp_frame(), now=0.1)
        assert retry.capture is not None
        assert state.checklist.is_captured(Gesture.RIGHT_PALM)
        assert state.last_capture_at == 0.1

    def test_framing_rejected(self):
        ctrl = controller(min_samples=0, capture_interval=0, framing=(0.3, 0.7))
        tiny = palm(extent=(0.45, 0.55))
        assert ctrl.process([tiny], sharp_frame(), now=0.0).rejected == "framing"

        good = palm(extent=(0.1, 0.8))
        assert ctrl.process([good], sharp_frame(), now=0.1).capture is not None


class TestDebounce:
    def test_unconfirmed_gesture_not_captured(self):
        ctrl = controller(capture_interval=0)
        ctrl.start(now=0.0)
        for i in range(30):
            ctrl.process([palm(Handedness.RIGHT)], gray_frame(), now=i / 30)
        # one Right Palm frame against a full window of Left Palms
        result = ctrl.process([palm(Handedness.LEFT)], sharp_frame(), now=1.0)
        assert result.gesture == Gesture.RIGHT_PALM
        assert not result.confirmed
        assert result.capture is None

    def test_gesture_not_on_checklist_ignored(self):
        ctrl = controller(min_samples=0, capture_interval=0, required_gestures=[Gesture.LEFT_PALM])
        result = ctrl.process([palm()], sharp_frame(), now=0.0)
        assert result.gesture == Gesture.RIGHT_PALM
        assert not result.confirmed
        assert result.capture is None


class TestLifecycle:
    def test_completes_full_checklist(self):
        ctrl = controller(min_samples=0, capture_interval=0)
        sequence = [
            palm(Handedness.LEFT),     # Right Palm
            palm(Handedness.RIGHT),    # Left Palm
            thumb(Handedness.RIGHT),   # Left Thumb
            thumb(Handedness.LEFT),    # Right Thumb
        ]
        t = 0.0
        for hand in sequence:
            for _ in range(30):
                ctrl.process([hand], sharp_frame(), now=t)
                t += 0.1

        assert ctrl.state.checklist.is_complete
        assert ctrl.state.status == SessionStatus.COMPLETE

    def test_no_capture_after_complete(self):
        ctrl = controller(min_samples=0, capture_interval=0, required_gestures=[Gesture.RIGHT_PALM])
        ctrl.process([palm()], sharp_frame(), now=0.0)
        assert ctrl.state.status == SessionStatus.COMPLETE
        result = ctrl.process([palm()], sharp_frame(), now=1.0)
        assert result.capture is None

    def test_cancel_stops_captures(self):
        ctrl = controller(min_samples=0, capture_interval=0)
        ctrl.start(now=0.0)
        ctrl.cancel("user")
        assert ctrl.state.status == SessionStatus.CANCELLED
        assert ctrl.process([palm()], sharp_frame(), now=1.0).capture is None

    def test_cancel_only_from_active(self):
        ctrl = controller(required_gestures=[Gesture.RIGHT_PALM], min_samples=0, capture_interval=0)
        ctrl.process([palm()], sharp_frame(), now=0.0)
        ctrl.cancel()
        assert ctrl.state.status == SessionStatus.COMPLETE

    def test_fail_records_error(self):
        ctrl = controller()
        ctrl.fail("camera unavailable")
        assert ctrl.state.status == SessionStatus.FAILED
        assert ctrl.state.to_dict()["error"] == "camera unavailable"

    def test_restart_clears_progress(self):
        ctrl = controller(min_samples=0, capture_interval=0)
        ctrl.process([palm()], sharp_frame(), now=0.0)
        ctrl.process([palm()], gray_frame(), now=0.5)
        ctrl.restart(now=1.0)

        state = ctrl.state
        assert state.status == SessionStatus.ACTIVE
        assert state.checklist.captured_count == 0
        assert len(state.history) == 0
        assert state.last_capture_at is None
        assert state.rejections == {}
        assert ctrl.process([palm()], sharp_frame(), now=1.0).capture is not None

    def test_callbacks_fire_on_capture(self):
        ctrl = controller(min_samples=0, capture_interval=0)
        seen = []
        ctrl.on_capture(seen.append)
        ctrl.process([palm()], gray_frame(), now=0.0)
        ctrl.process([palm()], sharp_frame(), now=0.1)
        assert [e.label for e in seen] == [Gesture.RIGHT_PALM]
        assert seen[0].variance > 20

    def test_back_camera_labels(self):
        ctrl = controller(min_samples=0, capture_interval=0, facing_mode=FacingMode.BACK)
        result = ctrl.process([palm(Handedness.LEFT)], sharp_frame(), now=0.0)
        assert result.capture.label == Gesture.LEFT_PALM


class TestSessionState:
    def test_to_dict(self):
        ctrl = controller()
        data = ctrl.state.to_dict()
        assert data["status"] == "idle"
        assert data["next_pending"] == "Right Palm"
        assert data["progress"] == 0.0
        assert len(data["checklist"]) == 4

    @pytest.mark.parametrize("status", [SessionStatus.COMPLETE, SessionStatus.CANCELLED])
    def test_inactive_states(self, status):
        ctrl = controller()
        ctrl.state.status = status
        assert not ctrl.state.is_active
