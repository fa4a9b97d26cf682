"""Prometheus-compatible metrics for the capture service.

Generates the text exposition format directly, no client library needed.

Tracked metrics:
- palm_capture_frames_total (counter)
- palm_capture_hands_detected_total (counter)
- palm_capture_gestures_total (counter, by gesture label)
- palm_capture_captures_total (counter, by gesture label)
- palm_capture_rejections_total (counter, by reason)
- palm_capture_blur_variance (gauge, last assessed still)
- palm_capture_frame_latency_seconds (histogram)
- palm_capture_checklist_progress (gauge)
- palm_capture_active_connections (gauge)
"""

from __future__ import annotations

import threading
import time
from collections import Counter


class _Histogram:
    """Simple histogram with configurable buckets."""

    def __init__(self, buckets: list[float]):
        self.buckets = sorted(buckets)
        self.bucket_counts = [0] * len(self.buckets)
        self.count = 0
        self.sum = 0.0
        self._lock = threading.Lock()

    def observe(self, value: float):
        with self._lock:
            self.count += 1
            self.sum += value
            for i, b in enumerate(self.buckets):
                if value <= b:
                    self.bucket_counts[i] += 1
                    break

    def render(self, name: str, help_text: str) -> list[str]:
        lines = [
            f"# HELP {name} {help_text}",
            f"# TYPE {name} histogram",
        ]
        with self._lock:
            cumulative = 0
            for i, b in enumerate(self.buckets):
                cumulative += self.bucket_counts[i]
                lines.append(f'{name}_bucket{{le="{b}"}} {cumulative}')
            lines.append(f'{name}_bucket{{le="+Inf"}} {self.count}')
            lines.append(f"{name}_sum {self.sum:.6f}")
            lines.append(f"{name}_count {self.count}")
        return lines


def _labeled(name: str, help_text: str, label: str, counts: Counter) -> list[str]:
    lines = [f"# HELP {name} {help_text}", f"# TYPE {name} counter"]
    for key, count in sorted(counts.items()):
        lines.append(f'{name}{{{label}="{key}"}} {count}')
    return lines


class MetricsCollector:
    """Collects and renders capture pipeline metrics."""

    def __init__(self):
        self._gesture_counts: Counter = Counter()
        self._capture_counts: Counter = Counter()
        self._rejection_counts: Counter = Counter()
        self._frames_total = 0
        self._hands_total = 0
        self._blur_variance = 0.0
        self._progress = 0.0
        self._active_connections = 0
        self._lock = threading.Lock()

        # 1ms to 100ms; the frame budget at 30 fps sits at 33ms
        self._latency = _Histogram(
            [0.001, 0.002, 0.005, 0.010, 0.020, 0.033, 0.050, 0.100]
        )
        self._start_time = time.time()

    def record_frame(self, latency_seconds: float, hands_detected: int):
        with self._lock:
            self._frames_total += 1
            self._hands_total += hands_detected
        self._latency.observe(latency_seconds)

    def record_gesture(self, label: str):
        with self._lock:
            self._gesture_counts[label] += 1

    def record_capture(self, label: str, variance: float):
        with self._lock:
            self._capture_counts[label] += 1
            self._blur_variance = variance

    def record_rejection(self, reason: str):
        with self._lock:
            self._rejection_counts[reason] += 1

    def set_progress(self, progress: float):
        self._progress = progress

    def set_connections(self, count: int):
        self._active_connections = count

    def render(self) -> str:
        """Render all metrics in Prometheus text exposition format."""
        uptime = time.time() - self._start_time
        lines: list[str] = [
            "# HELP palm_capture_uptime_seconds Time since start",
            "# TYPE palm_capture_uptime_seconds gauge",
            f"palm_capture_uptime_seconds {uptime:.1f}",
            "",
        ]

        with self._lock:
            lines += _labeled(
                "palm_capture_gestures_total", "Classified gestures by label",
                "gesture", self._gesture_counts,
            )
            lines.append("")
            lines += _labeled(
                "palm_capture_captures_total", "Accepted captures by label",
                "gesture", self._capture_counts,
            )
            lines.append("")
            lines += _labeled(
                "palm_capture_rejections_total", "Rejected capture attempts by reason",
                "reason", self._rejection_counts,
            )
            lines.append("")
            frames, hands = self._frames_total, self._hands_total
            variance = self._blur_variance

        lines += self._latency.render(
            "palm_capture_frame_latency_seconds",
            "Detection cycle latency in seconds",
        )
        lines.append("")

        lines += [
            "# HELP palm_capture_frames_total Total frames processed",
            "# TYPE palm_capture_frames_total counter",
            f"palm_capture_frames_total {frames}",
            "",
            "# HELP palm_capture_hands_detected_total Total hands detected across all frames",
            "# TYPE palm_capture_hands_detected_total counter",
            f"palm_capture_hands_detected_total {hands}",
            "",
            "# HELP palm_capture_blur_variance Laplacian variance of the last accepted still",
            "# TYPE palm_capture_blur_variance gauge",
            f"palm_capture_blur_variance {variance:.2f}",
            "",
            "# HELP palm_capture_checklist_progress Fraction of required gestures captured",
            "# TYPE palm_capture_checklist_progress gauge",
            f"palm_capture_checklist_progress {self._progress:.3f}",
            "",
            "# HELP palm_capture_active_connections Current WebSocket connections",
            "# TYPE palm_capture_active_connections gauge",
            f"palm_capture_active_connections {self._active_connections}",
            "",
        ]

        return "\n".join(lines) + "\n"

    @property
    def gesture_counts(self) -> dict[str, int]:
        with self._lock:
            return dict(self._gesture_counts)

    @property
    def capture_counts(self) -> dict[str, int]:
        with self._lock:
            return dict(self._capture_counts)

    @property
    def rejection_counts(self) -> dict[str, int]:
        with self._lock:
            return dict(self._rejection_counts)

    @property
    def frames_total(self) -> int:
        return self._frames_total

    @property
    def hands_total(self) -> int:
        return self._hands_total
