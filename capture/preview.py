"""Preview rasters for a captured depth frame and its confidence map."""

from __future__ import annotations

from typing import Optional

import numpy as np

from contracts import ConfidenceLevel

# RGBA per ConfidenceLevel; values outside the enum render opaque black
CONFIDENCE_COLORS = {
    ConfidenceLevel.LOW: (255, 0, 0, 255),
    ConfidenceLevel.MEDIUM: (255, 255, 0, 255),
    ConfidenceLevel.HIGH: (0, 255, 0, 255),
}
UNKNOWN_CONFIDENCE_COLOR = (0, 0, 0, 255)


def _confidence_lut() -> np.ndarray:
    lut = np.empty((256, 4), dtype=np.uint8)
    lut[:] = UNKNOWN_CONFIDENCE_COLOR
    for level, rgba in CONFIDENCE_COLORS.items():
        lut[int(level)] = rgba
    return lut


_CONFIDENCE_LUT = _confidence_lut()


def depth_preview_image(depth_m: np.ndarray) -> Optional[np.ndarray]:
    """Grayscale (H, W) uint8 image of a depth map.

    Valid depths are stretched between the nearest (0) and farthest (255)
    valid sample; invalid samples are black. A frame whose valid samples
    all share one depth renders them white.

    Returns:
        The preview, or None when the map has no valid sample
    """
    depth = np.asarray(depth_m, dtype=np.float64)
    if depth.ndim != 2:
        raise ValueError(f"Depth must be 2D, got shape {depth.shape}")
    with np.errstate(invalid="ignore"):
        valid = np.isfinite(depth) & (depth > 0)
    if not valid.any():
        return None

    values = depth[valid]
    lo, hi = float(values.min()), float(values.max())
    image = np.zeros(depth.shape, dtype=np.uint8)
    if hi > lo:
        image[valid] = np.clip((values - lo) / (hi - lo) * 255.0, 0, 255).astype(np.uint8)
    else:
        image[valid] = 255
    return image


def confidence_preview_image(confidence: Optional[np.ndarray]) -> Optional[np.ndarray]:
    """RGBA (H, W, 4) image: low red, medium yellow, high green.

    Returns None when the frame carries no confidence map.
    """
    if confidence is None:
        return None
    confidence = np.asarray(confidence)
    if confidence.ndim != 2:
        raise ValueError(f"Confidence must be 2D, got shape {confidence.shape}")
    if not np.issubdtype(confidence.dtype, np.integer):
        raise ValueError(f"Confidence must be integral, got {confidence.dtype}")
    # Anything outside 0..255 is unknown; 255 is never a level
    index = np.where((confidence >= 0) & (confidence < 256), confidence, 255).astype(np.uint8)
    return _CONFIDENCE_LUT[index]


__all__ = [
    "CONFIDENCE_COLORS",
    "UNKNOWN_CONFIDENCE_COLOR",
    "confidence_preview_image",
    "depth_preview_image",
]
