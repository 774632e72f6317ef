"""Boundary to the promptable segmentation model."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Sequence, Tuple

import numpy as np

from configs.settings import SegmentationConfig
from contracts import PromptLabel, PromptPoint
from exceptions import MalformedLogitsError, PromptError, SegmentationError, SegmentationUnavailableError
from log_config.logger import get_logger

from .timeout_utils import RetryPolicy, retry_on_failure, run_with_timeout

logger = get_logger(__name__)

DEFAULT_MODEL_INPUT_SIZE = (1024, 1024)


@dataclass(frozen=True)
class RawLogits:
    """Per-pixel logits at the model's own resolution."""

    logits: np.ndarray  # (H'', W'') float32

    @property
    def shape(self) -> Tuple[int, int]:
        return int(self.logits.shape[0]), int(self.logits.shape[1])


def scale_prompt_points(
    points: Sequence[PromptPoint],
    image_size: Tuple[int, int],
    model_input_size: Tuple[int, int] = DEFAULT_MODEL_INPUT_SIZE,
) -> np.ndarray:
    """Map colour-image pixel prompts into model input coordinates.

    Returns an (N, 3) float32 array of (x, y, label).
    """
    width, height = image_size
    model_w, model_h = model_input_size
    scaled = np.empty((len(points), 3), dtype=np.float32)
    for i, point in enumerate(points):
        scaled[i] = (point.x / width * model_w, point.y / height * model_h, int(point.label))
    return scaled


class SegmentationService(ABC):
    @abstractmethod
    def infer_logits(self, color: np.ndarray, prompt_points: Sequence[PromptPoint]) -> RawLogits:
        """Run the model on ``color`` with prompt points in colour-image pixels."""


class GuardedSegmentationService(SegmentationService):
    """Wraps a service with prompt checks, a timeout, retry and result validation.

    The inner service is treated as slow and fallible. Timeouts and
    transport failures surface as ``SegmentationUnavailableError``; a
    result that is not a finite 2D float array surfaces as
    ``MalformedLogitsError``.
    """

    def __init__(self, inner: SegmentationService, config: SegmentationConfig):
        self.inner = inner
        self.config = config
        self._policy = RetryPolicy(max_attempts=config.max_attempts, retry_on=(SegmentationUnavailableError,))

    def infer_logits(self, color: np.ndarray, prompt_points: Sequence[PromptPoint]) -> RawLogits:
        self._check_prompts(color, prompt_points)

        @retry_on_failure(self._policy)
        def attempt() -> RawLogits:
            return run_with_timeout(
                self._call_inner,
                self.config.timeout_s,
                "Segmentation request timed out",
                color,
                prompt_points,
            )

        result = attempt()
        self._validate(result)
        logger.info(f"Segmentation returned {result.shape[1]}x{result.shape[0]} logits")
        return result

    def _call_inner(self, color: np.ndarray, prompt_points: Sequence[PromptPoint]) -> RawLogits:
        try:
            return self.inner.infer_logits(color, prompt_points)
        except SegmentationError:
            raise
        except (ConnectionError, OSError) as e:
            raise SegmentationUnavailableError(f"Segmentation service unreachable: {e}") from e

    def _check_prompts(self, color: np.ndarray, prompt_points: Sequence[PromptPoint]) -> None:
        if not prompt_points:
            raise PromptError("At least one prompt point is required")
        height, width = color.shape[:2]
        for point in prompt_points:
            if not (0 <= point.x < width and 0 <= point.y < height):
                raise PromptError(f"Prompt point ({point.x}, {point.y}) lies outside the {width}x{height} image")
        if not any(p.label == PromptLabel.FOREGROUND for p in prompt_points):
            logger.warning("Segmentation prompted with background points only")

    @staticmethod
    def _validate(result: object) -> None:
        if not isinstance(result, RawLogits):
            raise MalformedLogitsError(f"Expected RawLogits, got {type(result).__name__}")
        logits = result.logits
        if not isinstance(logits, np.ndarray) or logits.ndim != 2:
            raise MalformedLogitsError(f"Logits must be a 2D array, got {getattr(logits, 'shape', None)}")
        if not np.issubdtype(logits.dtype, np.floating):
            raise MalformedLogitsError(f"Logits must be floating point, got {logits.dtype}")
        if not np.all(np.isfinite(logits)):
            raise MalformedLogitsError("Logits contain non-finite values")


class SimulatedSegmentationService(SegmentationService):
    """Disc-shaped logits around each foreground prompt.

    Logits fall off linearly from +``peak`` at the prompt to negative
    values beyond ``radius`` (in model pixels). Background prompts carve
    out a matching negative disc.
    """

    def __init__(
        self,
        model_input_size: Tuple[int, int] = (256, 256),
        radius: float = 48.0,
        peak: float = 8.0,
    ):
        self.model_input_size = model_input_size
        self.radius = radius
        self.peak = peak
        self.calls = 0

    def infer_logits(self, color: np.ndarray, prompt_points: Sequence[PromptPoint]) -> RawLogits:
        self.calls += 1
        model_w, model_h = self.model_input_size
        height, width = color.shape[:2]
        scaled = scale_prompt_points(prompt_points, (width, height), self.model_input_size)

        yy, xx = np.mgrid[0:model_h, 0:model_w].astype(np.float32)
        logits = np.full((model_h, model_w), -self.peak, dtype=np.float32)
        for x, y, label in scaled:
            falloff = self.peak * (1.0 - np.hypot(xx - x, yy - y) / self.radius)
            if int(label) == PromptLabel.FOREGROUND:
                logits = np.maximum(logits, falloff)
            else:
                logits = np.minimum(logits, -falloff)
        return RawLogits(logits=logits)


__all__ = [
    "DEFAULT_MODEL_INPUT_SIZE",
    "GuardedSegmentationService",
    "RawLogits",
    "SegmentationService",
    "SimulatedSegmentationService",
    "scale_prompt_points",
]
