"""Shared data contracts for capture, reprojection and masking."""

from .types import (
    CapturedFrame,
    ConfidenceLevel,
    Intrinsics,
    PointSet,
    PromptLabel,
    PromptPoint,
    Resolution,
    SensorPose,
    ViewMode,
    Vignette,
)

__all__ = [
    "CapturedFrame",
    "ConfidenceLevel",
    "Intrinsics",
    "PointSet",
    "PromptLabel",
    "PromptPoint",
    "Resolution",
    "SensorPose",
    "ViewMode",
    "Vignette",
]
