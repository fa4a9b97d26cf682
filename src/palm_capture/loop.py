"""Cooperative single-threaded detection loop."""

from __future__ import annotations

import logging
import time
from typing import Optional, Protocol, Sequence

import numpy as np

from palm_capture.errors import CameraError, InitializationError
from palm_capture.gestures import Gesture, HandObservation
from palm_capture.metrics import MetricsCollector
from palm_capture.profiler import LoopProfiler
from palm_capture.session import CaptureController, FrameResult, SessionStatus

logger = logging.getLogger("palm_capture.loop")


class FrameSource(Protocol):
    def read(self) -> Optional[np.ndarray]: ...
    def release(self) -> None: ...


class LandmarkDetector(Protocol):
    def detect(self, frame_rgb: np.ndarray) -> Sequence[HandObservation]: ...
    def close(self) -> None: ...


class CaptureLoop:
    """Drives one capture session: frame -> hands -> controller, once per cycle.

    The loop ends when the session leaves the active state (all gestures
    captured, cancelled or failed), when ``stop()`` is called, or after
    ``max_frames`` camera reads. The camera and detector are released on
    every exit path. A camera that returns no frame for
    ``max_empty_reads`` reads in a row is treated as disconnected.
    Initialization errors fail the session and propagate; nothing else
    raised by a cycle is expected.
    """

    idle_sleep = 0.005  # seconds to wait after an empty read

    def __init__(
        self,
        camera: FrameSource,
        detector: LandmarkDetector,
        controller: CaptureController,
        metrics: Optional[MetricsCollector] = None,
        profiler: Optional[LoopProfiler] = None,
    ):
        self.camera = camera
        self.detector = detector
        self.controller = controller
        self.metrics = metrics
        self.profiler = profiler or LoopProfiler(controller.config.frame_budget_ms)
        self.max_empty_reads = controller.config.max_empty_reads
        self._empty_reads = 0
        self._running = False
        self._closed = False

    def step(self, now: Optional[float] = None) -> Optional[FrameResult]:
        """Process one frame. Returns None when the camera had no frame ready."""
        t_start = time.perf_counter()

        try:
            with self.profiler.stage("read"):
                frame = self.camera.read()
        except InitializationError as e:
            self.controller.fail(str(e))
            raise

        if frame is None:
            self._empty_reads += 1
            if self._empty_reads >= self.max_empty_reads:
                error = CameraError(
                    f"No frames from the camera after {self._empty_reads} reads. "
                    "Check that it is still connected."
                )
                self.controller.fail(str(error))
                raise error
            return None
        self._empty_reads = 0

        with self.profiler.stage("detection"):
            hands = self.detector.detect(frame)

        with self.profiler.stage("session"):
            result = self.controller.process(hands, frame, now)

        elapsed = time.perf_counter() - t_start
        self.profiler.add_frame(elapsed * 1000.0)
        self._record(result, elapsed, len(hands))
        return result

    def _record(self, result: FrameResult, elapsed: float, hands: int):
        if self.metrics is None:
            return
        self.metrics.record_frame(elapsed, hands)
        if result.gesture != Gesture.NONE:
            self.metrics.record_gesture(result.gesture.value)
        if result.capture is not None:
            self.metrics.record_capture(result.capture.label.value, result.capture.variance)
        if result.rejected is not None:
            self.metrics.record_rejection(result.rejected)
        self.metrics.set_progress(self.controller.state.checklist.progress)

    def start(self):
        """Mark the loop running and start the session if it has not begun."""
        self._running = True
        if not self.controller.state.is_active:
            self.controller.start()

    def run(self, max_frames: Optional[int] = None) -> SessionStatus:
        """Step until the session ends, stop() is called or max_frames reads are done."""
        reads = 0
        try:
            self.start()
            while self._running and self.controller.state.is_active:
                result = self.step()
                reads += 1
                if max_frames is not None and reads >= max_frames:
                    break
                if result is None:
                    time.sleep(self.idle_sleep)
        finally:
            self._running = False
            self.close()
        return self.controller.state.status

    def stop(self, reason: str = "stopped"):
        self._running = False
        self.controller.cancel(reason)

    @property
    def running(self) -> bool:
        return self._running

    def close(self):
        """Release the camera and detector. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        try:
            self.camera.release()
        finally:
            self.detector.close()
        logger.info(
            "Capture loop stopped after %d frames (%d over budget)",
            self.profiler.frames, self.profiler.over_budget,
        )
