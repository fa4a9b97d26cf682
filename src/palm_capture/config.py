"""Capture session configuration, loaded from and saved to YAML."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Optional

import yaml

from palm_capture.classifier import TieBreak
from palm_capture.errors import ConfigError
from palm_capture.gestures import DEFAULT_CHECKLIST, FacingMode, Gesture

logger = logging.getLogger("palm_capture.config")


@dataclass
class SessionConfig:
    facing_mode: FacingMode = FacingMode.FRONT
    required_gestures: list[Gesture] = field(default_factory=lambda: list(DEFAULT_CHECKLIST))

    # stabilization
    history_size: int = 30
    min_samples: int = 15
    match_ratio: float = 0.5
    capture_interval: float = 5.0  # seconds between accepted captures

    # classification policy
    palm_tolerance: float = 0.01
    tie_break: TieBreak = TieBreak.LAST
    combine_thumbs: bool = False

    # quality gate
    blur_threshold: float = 20.0
    blur_stride: int = 2
    framing: Optional[tuple[float, float]] = None

    # camera
    camera_index: int = 0
    camera_width: int = 640
    camera_height: int = 480
    frame_budget_ms: float = 1000.0 / 30
    max_empty_reads: int = 100  # consecutive empty reads before the camera counts as lost

    # storage
    output_dir: str = "captures"
    max_width: int = 640
    max_height: int = 480
    jpeg_quality: int = 80
    enhance: bool = False  # contrast and brightness boost on stored images

    def __post_init__(self):
        self.validate()

    def validate(self):
        if not self.required_gestures:
            raise ConfigError("required_gestures must not be empty")
        if Gesture.NONE in self.required_gestures:
            raise ConfigError("'None' cannot be a required gesture")
        if len(set(self.required_gestures)) != len(self.required_gestures):
            raise ConfigError("required_gestures must be unique")
        if Gesture.THUMBS_BACK in self.required_gestures and not self.combine_thumbs:
            raise ConfigError("'Thumbs Back' is only produced with combine_thumbs enabled")
        if self.history_size < 1:
            raise ConfigError("history_size must be >= 1")
        if self.min_samples < 0:
            raise ConfigError("min_samples must be >= 0")
        if not 0.0 < self.match_ratio <= 1.0:
            raise ConfigError("match_ratio must be in (0, 1]")
        if self.capture_interval < 0:
            raise ConfigError("capture_interval must be >= 0")
        if self.max_empty_reads < 1:
            raise ConfigError("max_empty_reads must be >= 1")
        if self.blur_stride < 1:
            raise ConfigError("blur_stride must be >= 1")
        if self.framing is not None:
            lo, hi = self.framing
            if not 0.0 <= lo < hi <= 1.0:
                raise ConfigError("framing must be a (min, max) range within [0, 1]")
        if not 1 <= self.jpeg_quality <= 100:
            raise ConfigError("jpeg_quality must be in [1, 100]")
        if self.max_width < 1 or self.max_height < 1:
            raise ConfigError("max_width and max_height must be positive")

    def to_dict(self) -> dict[str, Any]:
        return {
            "facing_mode": self.facing_mode.value,
            "required_gestures": [g.value for g in self.required_gestures],
            "history_size": self.history_size,
            "min_samples": self.min_samples,
            "match_ratio": self.match_ratio,
            "capture_interval": self.capture_interval,
            "palm_tolerance": self.palm_tolerance,
            "tie_break": self.tie_break.value,
            "combine_thumbs": self.combine_thumbs,
            "blur_threshold": self.blur_threshold,
            "blur_stride": self.blur_stride,
            "framing": list(self.framing) if self.framing else None,
            "camera_index": self.camera_index,
            "camera_width": self.camera_width,
            "camera_height": self.camera_height,
            "frame_budget_ms": self.frame_budget_ms,
            "max_empty_reads": self.max_empty_reads,
            "output_dir": self.output_dir,
            "max_width": self.max_width,
            "max_height": self.max_height,
            "jpeg_quality": self.jpeg_quality,
            "enhance": self.enhance,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SessionConfig:
        known = {f.name for f in fields(cls)}
        kwargs: dict[str, Any] = {}
        for key, value in (data or {}).items():
            if key not in known:
                logger.warning("Ignoring unknown config key: %s", key)
                continue
            kwargs[key] = value

        try:
            if "facing_mode" in kwargs:
                kwargs["facing_mode"] = FacingMode(kwargs["facing_mode"])
            if "tie_break" in kwargs:
                kwargs["tie_break"] = TieBreak(kwargs["tie_break"])
            if "required_gestures" in kwargs:
                kwargs["required_gestures"] = [Gesture(g) for g in kwargs["required_gestures"]]
        except ValueError as e:
            raise ConfigError(str(e)) from e

        if kwargs.get("framing") is not None:
            framing = kwargs["framing"]
            if len(framing) != 2:
                raise ConfigError("framing must have exactly two values")
            kwargs["framing"] = (float(framing[0]), float(framing[1]))

        return cls(**kwargs)


def load_config(path: str | Path) -> SessionConfig:
    """Load a session config from a YAML file."""
    with open(path) as f:
        data = yaml.safe_load(f)
    if data is not None and not isinstance(data, dict):
        raise ConfigError(f"{path}: expected a mapping at the top level")
    return SessionConfig.from_dict(data or {})


def save_config(config: SessionConfig, path: str | Path):
    """Save a session config to YAML."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        yaml.dump(config.to_dict(), f, default_flow_style=False, sort_keys=False)
