"""Tests for the capture checklist."""

import pytest

from palm_capture.checklist import CaptureChecklist
from palm_capture.gestures import DEFAULT_CHECKLIST, Gesture


class TestCaptureChecklist:
    def test_order_preserved(self):
        checklist = CaptureChecklist(DEFAULT_CHECKLIST)
        assert [e.label for e in checklist] == DEFAULT_CHECKLIST
        assert checklist.next_pending == Gesture.RIGHT_PALM

    def test_duplicate_labels_rejected(self):
        with pytest.raises(ValueError):
            CaptureChecklist([Gesture.LEFT_PALM, Gesture.LEFT_PALM])

    def test_none_label_rejected(self):
        with pytest.raises(ValueError):
            CaptureChecklist([Gesture.NONE])

    def test_mark_captured_once(self):
        checklist = CaptureChecklist([Gesture.LEFT_PALM, Gesture.RIGHT_PALM])
        assert checklist.mark_captured(Gesture.LEFT_PALM, 1.0)
        assert not checklist.mark_captured(Gesture.LEFT_PALM, 2.0)

        entry = next(iter(checklist))
        assert entry.captured
        assert entry.captured_at == 1.0
        assert checklist.captured_count == 1

    def test_unknown_label_ignored(self):
        checklist = CaptureChecklist([Gesture.LEFT_PALM])
        assert not checklist.mark_captured(Gesture.RIGHT_THUMB, 1.0)
        assert not checklist.requires(Gesture.RIGHT_THUMB)
        assert not checklist.is_pending(Gesture.RIGHT_THUMB)

    def test_next_pending_skips_captured(self):
        checklist = CaptureChecklist(DEFAULT_CHECKLIST)
        checklist.mark_captured(Gesture.RIGHT_PALM, 1.0)
        assert checklist.next_pending == Gesture.LEFT_PALM

    def test_out_of_order_capture(self):
        checklist = CaptureChecklist(DEFAULT_CHECKLIST)
        checklist.mark_captured(Gesture.RIGHT_THUMB, 1.0)
        assert checklist.next_pending == Gesture.RIGHT_PALM
        assert checklist.is_captured(Gesture.RIGHT_THUMB)

    def test_complete_and_progress(self):
        checklist = CaptureChecklist([Gesture.LEFT_PALM, Gesture.RIGHT_PALM])
        assert checklist.progress == 0.0
        checklist.mark_captured(Gesture.LEFT_PALM, 1.0)
        assert checklist.progress == 0.5
        assert not checklist.is_complete
        checklist.mark_captured(Gesture.RIGHT_PALM, 2.0)
        assert checklist.is_complete
        assert checklist.next_pending is None

    def test_reset(self):
        checklist = CaptureChecklist([Gesture.LEFT_PALM])
        checklist.mark_captured(Gesture.LEFT_PALM, 1.0)
        checklist.set_path(Gesture.LEFT_PALM, "/tmp/x.jpg")
        checklist.reset()
        assert checklist.is_pending(Gesture.LEFT_PALM)
        assert checklist.to_list() == [
            {"label": "Left Palm", "captured": False, "captured_at": None, "path": None}
        ]

    def test_unmark(self):
        checklist = CaptureChecklist([Gesture.LEFT_PALM, Gesture.RIGHT_PALM])
        checklist.mark_captured(Gesture.LEFT_PALM, 1.0)
        checklist.set_path(Gesture.LEFT_PALM, "/tmp/x.jpg")
        checklist.unmark(Gesture.LEFT_PALM)
        assert checklist.next_pending == Gesture.LEFT_PALM
        assert checklist.to_list()[0] == {
            "label": "Left Palm", "captured": False, "captured_at": None, "path": None,
        }
        assert checklist.mark_captured(Gesture.LEFT_PALM, 2.0)
