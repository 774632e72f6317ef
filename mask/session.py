"""Interactive threshold preview and commit over one set of logits."""

from __future__ import annotations

import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Optional

import cv2
import numpy as np

from exceptions import MaskConversionError
from log_config.logger import get_logger, log_performance

from .pipeline import composite, morphological_open, resize, threshold

logger = get_logger(__name__)

PREVIEW_CACHE_SIZE = 32


@dataclass(frozen=True)
class CommittedMask:
    threshold: float
    mask: np.ndarray  # (H', W') uint8 at colour resolution, cleaned
    cutout: np.ndarray  # (H', W', 4) uint8 RGBA


class MaskSession:
    """Binds a colour image to the logits inferred for it.

    Slider previews only re-threshold the logits, so moving the slider
    never triggers another inference. Previews are memoised per
    threshold value.
    """

    def __init__(
        self,
        color: np.ndarray,
        logits: np.ndarray,
        cleanup_radius: int = 5,
        interpolation: str = "nearest",
    ):
        logits = np.asarray(logits, dtype=np.float32)
        if logits.ndim != 2:
            raise ValueError(f"Logits must be 2D, got shape {logits.shape}")
        self.color = color
        self.logits = logits
        self.cleanup_radius = cleanup_radius
        self.interpolation = interpolation
        self._previews: "OrderedDict[float, np.ndarray]" = OrderedDict()
        self._lock = threading.Lock()

    @property
    def is_empty(self) -> bool:
        return self.logits.size == 0

    def preview_mask(self, t: float) -> Optional[np.ndarray]:
        """Binary mask at logits resolution for threshold ``t``, or None if there are no logits."""
        if self.is_empty:
            return None
        key = float(t)
        with self._lock:
            cached = self._previews.get(key)
            if cached is not None:
                self._previews.move_to_end(key)
                return cached
        mask = threshold(self.logits, key)
        mask.setflags(write=False)
        with self._lock:
            self._previews[key] = mask
            while len(self._previews) > PREVIEW_CACHE_SIZE:
                self._previews.popitem(last=False)
        return mask

    def finalize(self, t: float) -> Optional[CommittedMask]:
        """Clean, upscale and composite the mask for ``t``."""
        if self.is_empty:
            logger.info("Finalize requested without logits; no mask produced")
            return None
        start = time.perf_counter()
        binary = self.preview_mask(t)
        cleaned = morphological_open(binary, self.cleanup_radius)
        height, width = self.color.shape[:2]
        try:
            full = resize(cleaned, (width, height), self.interpolation)
        except cv2.error as e:
            raise MaskConversionError(f"Failed to resize mask to {width}x{height}: {e}") from e
        cutout = composite(self.color, full)
        log_performance("finalize mask", (time.perf_counter() - start) * 1000.0, threshold_ms=100.0)
        logger.info(f"Mask finalized at threshold {t:.3f}: {int(np.count_nonzero(full))} foreground pixels")
        return CommittedMask(threshold=float(t), mask=full, cutout=cutout)


__all__ = ["CommittedMask", "MaskSession"]
