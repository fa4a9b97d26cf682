"""Rolling-history debounce for per-frame gesture labels."""

from __future__ import annotations

from collections import Counter, deque
from typing import Iterable, Optional

from palm_capture.gestures import Gesture


class StabilityFilter:
    """Suppresses single-frame noise before a gesture is acted on.

    Keeps the last ``window`` labels (about one second at 30 fps). A
    candidate is confirmed when at least ``match_ratio`` of the non-NONE
    labels in the history equal it.

    Until the history holds more than ``min_samples`` labels, every
    candidate other than NONE is provisionally accepted so a fresh session
    does not stall for the first half second.
    """

    def __init__(self, window: int = 30, min_samples: int = 15, match_ratio: float = 0.5):
        if window < 1:
            raise ValueError("window must be >= 1")
        if not 0.0 < match_ratio <= 1.0:
            raise ValueError("match_ratio must be in (0, 1]")
        self.window = window
        self.min_samples = min_samples
        self.match_ratio = match_ratio
        self._history: deque[Gesture] = deque(maxlen=window)

    def push(self, label: Gesture):
        """Append one cycle's classification, NONE included."""
        self._history.append(label)

    def extend(self, labels: Iterable[Gesture]):
        for label in labels:
            self.push(label)

    def is_confirmed(self, candidate: Gesture) -> bool:
        if candidate == Gesture.NONE:
            return False
        if len(self._history) <= self.min_samples:
            return True

        counts = Counter(g for g in self._history if g != Gesture.NONE)
        total = sum(counts.values())
        if total == 0:
            return False
        return counts[candidate] / total >= self.match_ratio

    def confirmed(self) -> Optional[Gesture]:
        """Return the most recent non-NONE label if it is confirmed."""
        for label in reversed(self._history):
            if label != Gesture.NONE:
                return label if self.is_confirmed(label) else None
        return None

    def clear(self):
        self._history.clear()

    @property
    def history(self) -> list[Gesture]:
        return list(self._history)

    def __len__(self) -> int:
        return len(self._history)
