"""Segmentation service boundary."""

from .service import (
    GuardedSegmentationService,
    RawLogits,
    SegmentationService,
    SimulatedSegmentationService,
    scale_prompt_points,
)
from .timeout_utils import RetryPolicy, retry_on_failure, run_with_timeout

__all__ = [
    "GuardedSegmentationService",
    "RawLogits",
    "RetryPolicy",
    "SegmentationService",
    "SimulatedSegmentationService",
    "retry_on_failure",
    "run_with_timeout",
    "scale_prompt_points",
]
