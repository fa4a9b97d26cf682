"""Ordered checklist of poses a capture session must collect."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Iterator, Optional

from palm_capture.gestures import Gesture


@dataclass
class ChecklistEntry:
    label: Gesture
    captured: bool = False
    captured_at: Optional[float] = None
    path: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "label": self.label.value,
            "captured": self.captured,
            "captured_at": self.captured_at,
            "path": self.path,
        }


class CaptureChecklist:
    """Required gesture labels, each with a captured flag.

    Labels are unique. An entry flips to captured at most once until
    ``reset()`` or ``unmark()`` is called.
    """

    def __init__(self, labels: Iterable[Gesture]):
        labels = list(labels)
        if len(set(labels)) != len(labels):
            raise ValueError("Checklist labels must be unique")
        if Gesture.NONE in labels:
            raise ValueError("Gesture.NONE cannot be a checklist entry")
        self._entries: dict[Gesture, ChecklistEntry] = {
            label: ChecklistEntry(label=label) for label in labels
        }

    def requires(self, label: Gesture) -> bool:
        return label in self._entries

    def is_captured(self, label: Gesture) -> bool:
        entry = self._entries.get(label)
        return entry is not None and entry.captured

    def is_pending(self, label: Gesture) -> bool:
        entry = self._entries.get(label)
        return entry is not None and not entry.captured

    def mark_captured(self, label: Gesture, timestamp: float) -> bool:
        """Flip an entry to captured.

        Returns False, and changes nothing, if the label is not on the
        checklist or was already captured.
        """
        entry = self._entries.get(label)
        if entry is None or entry.captured:
            return False
        entry.captured = True
        entry.captured_at = timestamp
        return True

    def unmark(self, label: Gesture):
        """Return an entry to pending, e.g. when its image could not be stored."""
        entry = self._entries[label]
        entry.captured = False
        entry.captured_at = None
        entry.path = None

    def set_path(self, label: Gesture, path: str):
        self._entries[label].path = path

    @property
    def next_pending(self) -> Optional[Gesture]:
        for entry in self._entries.values():
            if not entry.captured:
                return entry.label
        return None

    @property
    def is_complete(self) -> bool:
        return all(e.captured for e in self._entries.values())

    @property
    def captured_count(self) -> int:
        return sum(1 for e in self._entries.values() if e.captured)

    @property
    def progress(self) -> float:
        return self.captured_count / len(self._entries)

    def reset(self):
        for entry in self._entries.values():
            entry.captured = False
            entry.captured_at = None
            entry.path = None

    def to_list(self) -> list[dict]:
        return [e.to_dict() for e in self._entries.values()]

    def __iter__(self) -> Iterator[ChecklistEntry]:
        return iter(self._entries.values())

    def __len__(self) -> int:
        return len(self._entries)
