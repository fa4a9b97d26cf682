"""Capture controller: walks the checklist using classifier, debounce and quality gate."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional, Sequence

import numpy as np

from palm_capture.checklist import CaptureChecklist
from palm_capture.classifier import GestureClassifier
from palm_capture.config import SessionConfig
from palm_capture.gestures import Gesture, HandObservation, Pose
from palm_capture.quality import FrameQualityGate
from palm_capture.stability import StabilityFilter

logger = logging.getLogger("palm_capture.session")


class SessionStatus(Enum):
    IDLE = "idle"
    ACTIVE = "active"
    COMPLETE = "complete"
    CANCELLED = "cancelled"
    FAILED = "failed"


@dataclass
class CaptureEvent:
    """An accepted still for one checklist entry."""
    label: Gesture
    image: np.ndarray
    timestamp: float
    variance: float


@dataclass
class FrameResult:
    """Outcome of one detection cycle."""
    gesture: Gesture
    confirmed: bool = False
    capture: Optional[CaptureEvent] = None
    rejected: Optional[str] = None  # "blur", "framing" or "store"


@dataclass
class SessionState:
    """All mutable per-session state, owned by the controller."""
    checklist: CaptureChecklist
    history: StabilityFilter
    status: SessionStatus = SessionStatus.IDLE
    started_at: Optional[float] = None
    last_capture_at: Optional[float] = None
    last_gesture: Gesture = Gesture.NONE
    error: Optional[str] = None
    rejections: dict[str, int] = field(default_factory=dict)

    @property
    def is_active(self) -> bool:
        return self.status == SessionStatus.ACTIVE

    def to_dict(self) -> dict:
        return {
            "status": self.status.value,
            "error": self.error,
            "last_gesture": self.last_gesture.value,
            "next_pending": self.checklist.next_pending.value if self.checklist.next_pending else None,
            "progress": round(self.checklist.progress, 3),
            "checklist": self.checklist.to_list(),
            "rejections": dict(self.rejections),
        }


class CaptureController:
    """Decides when to take a still and advances the capture checklist.

    Each call to ``process`` is one detection cycle. A checklist entry is
    captured only when all of these hold in the same cycle:

    - the frame's gesture matches a pending entry
    - the stability filter confirms it
    - ``capture_interval`` seconds have passed since the session started
      or the previous capture
    - the frame passes the quality gate (and framing check, if configured)

    A failed quality check is a soft rejection; the next cycle retries.
    So is a capture callback raising OSError or ValueError (the still could
    not be stored): the entry is returned to pending.
    """

    def __init__(
        self,
        config: Optional[SessionConfig] = None,
        classifier: Optional[GestureClassifier] = None,
        quality_gate: Optional[FrameQualityGate] = None,
    ):
        self.config = config or SessionConfig()
        self.classifier = classifier or GestureClassifier(
            palm_tolerance=self.config.palm_tolerance,
            tie_break=self.config.tie_break,
            combine_thumbs=self.config.combine_thumbs,
        )
        self.quality_gate = quality_gate or FrameQualityGate(
            threshold=self.config.blur_threshold,
            stride=self.config.blur_stride,
            framing=self.config.framing,
        )
        self.state = SessionState(
            checklist=CaptureChecklist(self.config.required_gestures),
            history=StabilityFilter(
                window=self.config.history_size,
                min_samples=self.config.min_samples,
                match_ratio=self.config.match_ratio,
            ),
        )
        self._callbacks: list[Callable[[CaptureEvent], None]] = []

    def on_capture(self, callback: Callable[[CaptureEvent], None]):
        """Register a callback for accepted captures."""
        self._callbacks.append(callback)

    def start(self, now: Optional[float] = None):
        now = time.monotonic() if now is None else now
        self.state.status = SessionStatus.ACTIVE
        self.state.started_at = now
        self.state.error = None
        logger.info(
            "Capture session started: %s",
            ", ".join(g.value for g in self.config.required_gestures),
        )

    def restart(self, now: Optional[float] = None):
        """Clear the checklist, history and timers, then start again."""
        self.state.checklist.reset()
        self.state.history.clear()
        self.state.last_capture_at = None
        self.state.last_gesture = Gesture.NONE
        self.state.rejections.clear()
        self.start(now)

    def cancel(self, reason: str = "stopped"):
        if self.state.status == SessionStatus.ACTIVE:
            self.state.status = SessionStatus.CANCELLED
            logger.info("Capture session cancelled: %s", reason)

    def fail(self, message: str):
        self.state.status = SessionStatus.FAILED
        self.state.error = message
        logger.error("Capture session failed: %s", message)

    def process(
        self,
        hands: Sequence[HandObservation],
        frame: Optional[np.ndarray] = None,
        now: Optional[float] = None,
    ) -> FrameResult:
        """Run one detection cycle.

        Args:
            hands: Hand observations for this frame, in detector order.
            frame: The frame the hands were detected in; used as the
                capture still.
            now: Monotonic timestamp in seconds. Defaults to time.monotonic().
        """
        now = time.monotonic() if now is None else now
        state = self.state

        if state.status == SessionStatus.IDLE:
            self.start(now)

        gesture = self.classifier.classify(hands, self.config.facing_mode)
        state.history.push(gesture)
        state.last_gesture = gesture
        result = FrameResult(gesture=gesture)

        if not state.is_active or not state.checklist.is_pending(gesture):
            return result

        if not state.history.is_confirmed(gesture):
            return result
        result.confirmed = True

        since = state.last_capture_at if state.last_capture_at is not None else state.started_at
        if now - since < self.config.capture_interval:
            return result

        if frame is None:
            return result

        for hand in self._matching_hands(hands, gesture):
            if not self.quality_gate.check_framing(hand.landmarks):
                return self._reject(result, "framing")

        verdict = self.quality_gate.assess(frame)
        if not verdict.acceptable:
            return self._reject(result, "blur")

        previous_capture_at = state.last_capture_at
        state.checklist.mark_captured(gesture, now)
        state.last_capture_at = now
        event = CaptureEvent(
            label=gesture,
            image=frame.copy(),
            timestamp=now,
            variance=verdict.variance,
        )

        try:
            for cb in self._callbacks:
                cb(event)
        except (OSError, ValueError) as e:
            # the still never reached storage; the entry stays pending
            state.checklist.unmark(gesture)
            state.last_capture_at = previous_capture_at
            logger.error("Could not store %s capture: %s", gesture.value, e)
            return self._reject(result, "store")

        result.capture = event
        logger.info(
            "Captured %s (variance %.1f, %d/%d)",
            gesture.value, verdict.variance,
            state.checklist.captured_count, len(state.checklist),
        )

        if state.checklist.is_complete:
            state.status = SessionStatus.COMPLETE
            logger.info("All %d gestures captured", len(state.checklist))

        return result

    def _reject(self, result: FrameResult, reason: str) -> FrameResult:
        self.state.rejections[reason] = self.state.rejections.get(reason, 0) + 1
        result.rejected = reason
        logger.debug("Rejected %s capture: %s", result.gesture.value, reason)
        return result

    def _matching_hands(
        self, hands: Sequence[HandObservation], gesture: Gesture
    ) -> list[HandObservation]:
        facing = self.config.facing_mode
        if gesture == Gesture.THUMBS_BACK:
            return [h for h in hands if self.classifier.classify_pose(h.landmarks) == Pose.THUMB_BACK]
        return [h for h in hands if self.classifier.classify_hand(h, facing) == gesture]
