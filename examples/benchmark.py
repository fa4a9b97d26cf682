#!/usr/bin/env python3
"""palm-capture benchmark: per-cycle cost of classification, debounce and blur scoring.

Uses synthetic landmarks and frames. No camera required.

Usage:
    python examples/benchmark.py
    python examples/benchmark.py --iterations 5000 --width 1280 --height 720
"""

from __future__ import annotations

import argparse
import gc
import sys
import time

import numpy as np

from palm_capture.classifier import GestureClassifier
from palm_capture.gestures import FacingMode, Gesture, Handedness, HandObservation
from palm_capture.quality import laplacian_variance
from palm_capture.stability import StabilityFilter


def synthetic_hands(n: int, seed: int = 0) -> list[list[HandObservation]]:
    """Random one- or two-hand frames with depth noise around the palm and thumb."""
    rng = np.random.RandomState(seed)
    frames = []
    for _ in range(n):
        hands = []
        for _ in range(rng.randint(1, 3)):
            lm = rng.uniform(0.2, 0.8, (21, 3)).astype(np.float32)
            lm[:, 2] = rng.normal(0.0, 0.03, 21)
            raw = Handedness.LEFT if rng.rand() < 0.5 else Handedness.RIGHT
            hands.append(HandObservation(lm, raw, float(rng.uniform(0.5, 1.0))))
        frames.append(hands)
    return frames


def timed(fn, items) -> dict:
    for item in items[:10]:
        fn(item)

    gc.collect()
    times = []
    for item in items:
        t0 = time.perf_counter()
        fn(item)
        times.append(time.perf_counter() - t0)

    times_ms = np.array(times) * 1000
    return {
        "mean_ms": float(np.mean(times_ms)),
        "p95_ms": float(np.percentile(times_ms, 95)),
        "throughput": 1000.0 / float(np.mean(times_ms)),
    }


def print_table(title: str, rows: list[tuple[str, str]]):
    max_key = max(len(r[0]) for r in rows)
    max_val = max(len(r[1]) for r in rows)
    width = max_key + max_val + 7

    print()
    print(f"  ╭{'─' * width}╮")
    print(f"  │ {title:<{width-2}} │")
    print(f"  ├{'─' * width}┤")
    for key, val in rows:
        print(f"  │ {key:<{max_key}}   {val:>{max_val}} │")
    print(f"  ╰{'─' * width}╯")


def main():
    parser = argparse.ArgumentParser(description="palm-capture benchmark")
    parser.add_argument("-n", "--iterations", type=int, default=2000, help="Number of iterations")
    parser.add_argument("--width", type=int, default=640, help="Synthetic frame width")
    parser.add_argument("--height", type=int, default=480, help="Synthetic frame height")
    args = parser.parse_args()

    n = args.iterations
    classifier = GestureClassifier()
    history = StabilityFilter()

    print(f"\n  Generating {n} synthetic frames...")
    hands = synthetic_hands(n)
    rng = np.random.RandomState(1)
    images = [
        rng.randint(0, 256, (args.height, args.width, 3), dtype=np.uint8)
        for _ in range(min(n, 50))
    ]

    classify = timed(lambda h: classifier.classify(h, FacingMode.FRONT), hands)

    labels = [classifier.classify(h, FacingMode.FRONT) for h in hands]

    def debounce(label: Gesture):
        history.push(label)
        history.confirmed()

    stability = timed(debounce, labels)

    print_table("Gesture classification", [
        ("Mean latency", f"{classify['mean_ms']:.4f} ms"),
        ("P95 latency", f"{classify['p95_ms']:.4f} ms"),
        ("Throughput", f"{classify['throughput']:.0f} frames/sec"),
    ])
    print_table("Stability filter", [
        ("Mean latency", f"{stability['mean_ms']:.4f} ms"),
        ("Throughput", f"{stability['throughput']:.0f} pushes/sec"),
    ])

    for stride in (1, 2, 4):
        blur = timed(lambda img: laplacian_variance(img, stride), images)
        print_table(f"Laplacian variance {args.width}x{args.height}, stride {stride}", [
            ("Mean latency", f"{blur['mean_ms']:.3f} ms"),
            ("P95 latency", f"{blur['p95_ms']:.3f} ms"),
        ])

    print()
    print(f"  Platform: {sys.platform}, Python {sys.version.split()[0]}, NumPy {np.__version__}")
    print()


if __name__ == "__main__":
    main()
