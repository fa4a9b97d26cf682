"""palm-capture - Gesture-guided hand image capture with blur rejection."""

__version__ = "0.1.0"

from palm_capture.gestures import FacingMode, Gesture, Handedness, HandObservation, Pose
from palm_capture.classifier import GestureClassifier, TieBreak, resolve_handedness
from palm_capture.stability import StabilityFilter
from palm_capture.quality import FrameQualityGate, QualityVerdict, laplacian_variance
from palm_capture.checklist import CaptureChecklist, ChecklistEntry
from palm_capture.config import SessionConfig, load_config, save_config
from palm_capture.session import (
    CaptureController,
    CaptureEvent,
    FrameResult,
    SessionState,
    SessionStatus,
)
from palm_capture.loop import CaptureLoop
from palm_capture.store import CaptureStore, StoredCapture
from palm_capture.metrics import MetricsCollector
from palm_capture.profiler import LoopProfiler
from palm_capture.errors import CameraError, ConfigError, DetectorError, InitializationError
