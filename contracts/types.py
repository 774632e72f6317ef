"""Core data contracts for capture, reprojection, segmentation and persistence."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum, IntEnum
from typing import Any, Dict, List, Optional, Tuple

import numpy as np


class ConfidenceLevel(IntEnum):
    """Per-pixel depth confidence as reported by the sensor."""

    LOW = 0
    MEDIUM = 1
    HIGH = 2


class PromptLabel(IntEnum):
    BACKGROUND = 0
    FOREGROUND = 1


@dataclass(frozen=True)
class Resolution:
    width: int
    height: int


@dataclass(frozen=True)
class Intrinsics:
    """Pinhole intrinsics in colour-image pixel units."""

    fx: float
    fy: float
    cx: float
    cy: float
    skew: float = 0.0

    def __post_init__(self) -> None:
        if not (self.fx > 0 and self.fy > 0):
            raise ValueError(f"Focal lengths must be positive, got fx={self.fx}, fy={self.fy}")

    @classmethod
    def from_matrix(cls, K: Any) -> "Intrinsics":
        K = np.asarray(K, dtype=np.float64)
        if K.shape != (3, 3):
            raise ValueError(f"Intrinsics matrix must be 3x3, got {K.shape}")
        return cls(fx=float(K[0, 0]), fy=float(K[1, 1]), cx=float(K[0, 2]), cy=float(K[1, 2]), skew=float(K[0, 1]))

    def matrix(self) -> np.ndarray:
        return np.array(
            [[self.fx, self.skew, self.cx], [0.0, self.fy, self.cy], [0.0, 0.0, 1.0]],
            dtype=np.float64,
        )


@dataclass(frozen=True)
class PointSet:
    """Camera-space coloured points, one row per surviving depth sample.

    positions: (N, 3) float32, colors: (N, 3) uint8 RGB.
    """

    positions: np.ndarray
    colors: np.ndarray

    def __post_init__(self) -> None:
        if self.positions.shape[0] != self.colors.shape[0]:
            raise ValueError(
                f"positions ({self.positions.shape[0]}) and colors ({self.colors.shape[0]}) differ in length"
            )

    def __len__(self) -> int:
        return int(self.positions.shape[0])

    @classmethod
    def empty(cls) -> "PointSet":
        return cls(np.zeros((0, 3), dtype=np.float32), np.zeros((0, 3), dtype=np.uint8))

    def as_records(self) -> List[Dict[str, float]]:
        """Return the points as a list of {x, y, z, r, g, b} dicts."""
        return [
            {"x": float(p[0]), "y": float(p[1]), "z": float(p[2]), "r": int(c[0]), "g": int(c[1]), "b": int(c[2])}
            for p, c in zip(self.positions, self.colors)
        ]


@dataclass(frozen=True)
class CapturedFrame:
    color: np.ndarray  # (H', W', 3|4) uint8 RGB(A)
    depth_m: np.ndarray  # (H, W) float32 metres, 0/non-finite invalid
    confidence: Optional[np.ndarray]  # (H, W) uint8 ConfidenceLevel values
    intrinsics: Intrinsics
    extrinsics: np.ndarray  # (4, 4) camera-to-world
    timestamp_ns: int


@dataclass(frozen=True)
class PromptPoint:
    x: float
    y: float
    label: PromptLabel = PromptLabel.FOREGROUND


@dataclass(frozen=True)
class SensorPose:
    """View and projection computed by a live sensor for the current frame."""

    view: np.ndarray
    projection: np.ndarray


class ViewMode(str, Enum):
    LIVE_SENSOR = "live_sensor"
    ORBIT = "orbit"


def _new_id() -> str:
    return str(uuid.uuid4()).upper()


def _now() -> datetime:
    return datetime.now(timezone.utc).replace(microsecond=0)


@dataclass
class Vignette:
    """One captured RGB-D frame plus its derived segmentation state.

    The raw logits and chosen threshold are the canonical mask state;
    binary masks and cutouts are always regenerated from them.
    """

    color: np.ndarray
    depth_m: np.ndarray
    intrinsics: Intrinsics
    extrinsics: np.ndarray
    confidence: Optional[np.ndarray] = None
    id: str = field(default_factory=_new_id)
    created_at: datetime = field(default_factory=_now)
    device_model: str = "unknown"
    note: Optional[str] = None
    raw_logits: Optional[np.ndarray] = None
    mask_threshold: Optional[float] = None

    def __post_init__(self) -> None:
        self.depth_m = np.asarray(self.depth_m, dtype=np.float32)
        if self.depth_m.ndim != 2:
            raise ValueError(f"Depth must be 2D, got shape {self.depth_m.shape}")
        self.extrinsics = np.asarray(self.extrinsics, dtype=np.float32)
        if self.extrinsics.shape != (4, 4):
            raise ValueError(f"Extrinsics must be 4x4, got {self.extrinsics.shape}")
        if self.confidence is not None and self.confidence.shape != self.depth_m.shape:
            raise ValueError(
                f"Confidence shape {self.confidence.shape} does not match depth shape {self.depth_m.shape}"
            )

    @property
    def resolution(self) -> Resolution:
        h, w = self.depth_m.shape
        return Resolution(width=w, height=h)

    @property
    def color_size(self) -> Tuple[int, int]:
        """Colour image size as (width, height)."""
        return int(self.color.shape[1]), int(self.color.shape[0])

    @classmethod
    def from_frame(cls, frame: CapturedFrame, device_model: str = "unknown", note: Optional[str] = None) -> "Vignette":
        return cls(
            color=frame.color,
            depth_m=frame.depth_m,
            intrinsics=frame.intrinsics,
            extrinsics=frame.extrinsics,
            confidence=frame.confidence,
            device_model=device_model,
            note=note,
        )
