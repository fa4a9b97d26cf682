"""Per-stage timing for the capture loop, with a frame-budget check.

Each detection cycle should fit in one display frame. The profiler keeps a
rolling window of stage timings and counts cycles that overran the budget.
"""

from __future__ import annotations

import time
from collections import deque
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator


@dataclass
class StageStats:
    """Timing statistics for a single loop stage."""
    name: str
    avg_ms: float
    max_ms: float
    p95_ms: float
    call_count: int


class LoopProfiler:
    """Times loop stages and tracks frame-budget overruns.

    Usage:
        profiler = LoopProfiler(frame_budget_ms=33.3)

        with profiler.frame():
            with profiler.stage("detection"):
                hands = detector.detect(frame)
    """

    def __init__(self, frame_budget_ms: float = 1000.0 / 30, window_size: int = 120):
        self.frame_budget_ms = frame_budget_ms
        self._window_size = window_size
        self._timings: dict[str, deque[float]] = {}
        self._counts: dict[str, int] = {}
        self.frames = 0
        self.over_budget = 0
        self.last_frame_ms = 0.0

    @contextmanager
    def stage(self, name: str) -> Iterator[None]:
        """Context manager to time one stage of a cycle."""
        t0 = time.perf_counter()
        try:
            yield
        finally:
            self._record(name, (time.perf_counter() - t0) * 1000.0)

    @contextmanager
    def frame(self) -> Iterator[None]:
        """Context manager around a whole cycle; checks it against the budget."""
        t0 = time.perf_counter()
        try:
            yield
        finally:
            self.add_frame((time.perf_counter() - t0) * 1000.0)

    def add_frame(self, elapsed_ms: float):
        self._record("total", elapsed_ms)
        self.frames += 1
        self.last_frame_ms = elapsed_ms
        if elapsed_ms > self.frame_budget_ms:
            self.over_budget += 1

    def _record(self, name: str, elapsed_ms: float):
        if name not in self._timings:
            self._timings[name] = deque(maxlen=self._window_size)
            self._counts[name] = 0
        self._timings[name].append(elapsed_ms)
        self._counts[name] += 1

    def get_stage_stats(self, name: str) -> StageStats | None:
        timings = self._timings.get(name)
        if not timings:
            return None

        sorted_t = sorted(timings)
        n = len(sorted_t)
        return StageStats(
            name=name,
            avg_ms=sum(sorted_t) / n,
            max_ms=sorted_t[-1],
            p95_ms=sorted_t[int(n * 0.95)] if n >= 2 else sorted_t[-1],
            call_count=self._counts[name],
        )

    @property
    def avg_frame_ms(self) -> float:
        stats = self.get_stage_stats("total")
        return stats.avg_ms if stats else 0.0

    @property
    def fps(self) -> float:
        avg = self.avg_frame_ms
        return 1000.0 / avg if avg > 0 else 0.0

    def summary(self) -> dict:
        stages = {}
        for name in self._timings:
            stats = self.get_stage_stats(name)
            if stats:
                stages[name] = {
                    "avg_ms": round(stats.avg_ms, 3),
                    "max_ms": round(stats.max_ms, 3),
                    "p95_ms": round(stats.p95_ms, 3),
                    "calls": stats.call_count,
                }
        return {
            "frames": self.frames,
            "over_budget": self.over_budget,
            "frame_budget_ms": round(self.frame_budget_ms, 3),
            "stages": stages,
        }

    def reset(self):
        self._timings.clear()
        self._counts.clear()
        self.frames = 0
        self.over_budget = 0
        self.last_frame_ms = 0.0
