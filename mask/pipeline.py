"""Pure mask stages. Masks are uint8 with 0 = background, 255 = foreground."""

from __future__ import annotations

from typing import Optional, Tuple

import cv2
import numpy as np

from exceptions import MaskConversionError
from log_config.logger import get_logger

logger = get_logger(__name__)

FOREGROUND = 255
BACKGROUND = 0

_INTERPOLATION = {
    "nearest": cv2.INTER_NEAREST,
    "bilinear": cv2.INTER_LINEAR,
}


def threshold(logits: np.ndarray, t: float) -> np.ndarray:
    """Binary mask where logit > t. Pixels equal to ``t`` are background."""
    logits = np.asarray(logits)
    if logits.ndim != 2:
        raise ValueError(f"Logits must be 2D, got shape {logits.shape}")
    return np.where(logits > t, FOREGROUND, BACKGROUND).astype(np.uint8)


def morphological_open(mask: np.ndarray, radius: int) -> np.ndarray:
    """Erode then dilate with an elliptic kernel of diameter 2*radius+1.

    Foreground blobs narrower than the kernel disappear; larger regions
    keep roughly their outline.
    """
    mask = np.asarray(mask, dtype=np.uint8)
    if mask.ndim != 2:
        raise ValueError(f"Mask must be 2D, got shape {mask.shape}")
    if radius < 0:
        raise ValueError(f"Radius must be non-negative, got {radius}")
    if radius == 0 or mask.size == 0:
        return mask.copy()
    size = 2 * int(radius) + 1
    kernel = cv2.getStructuringElement(cv2.MORPH_ELLIPSE, (size, size))
    # Outside the image counts as background for erosion
    eroded = cv2.erode(mask, kernel, borderType=cv2.BORDER_CONSTANT, borderValue=BACKGROUND)
    return cv2.dilate(eroded, kernel, borderType=cv2.BORDER_CONSTANT, borderValue=BACKGROUND)


def resize(mask: np.ndarray, size: Tuple[int, int], interpolation: str = "nearest") -> np.ndarray:
    """Resample a mask to ``size`` = (width, height), keeping it binary."""
    mask = np.asarray(mask, dtype=np.uint8)
    width, height = int(size[0]), int(size[1])
    if width <= 0 or height <= 0:
        raise ValueError(f"Target size must be positive, got {size}")
    if mask.shape == (height, width):
        return mask.copy()
    if interpolation not in _INTERPOLATION:
        raise ValueError(f"Unknown interpolation '{interpolation}'")
    resized = cv2.resize(mask, (width, height), interpolation=_INTERPOLATION[interpolation])
    if interpolation != "nearest":
        resized = np.where(resized >= 128, FOREGROUND, BACKGROUND).astype(np.uint8)
    return resized


def composite(color: np.ndarray, mask: np.ndarray) -> np.ndarray:
    """RGBA image with RGB from ``color`` and alpha from ``mask``."""
    color = np.asarray(color)
    mask = np.asarray(mask)
    if color.ndim != 3 or color.shape[2] not in (3, 4):
        raise ValueError(f"Color must be HxWx3 or HxWx4, got {color.shape}")
    if mask.shape != color.shape[:2]:
        raise ValueError(f"Mask {mask.shape} does not match color {color.shape[:2]}; resize it first")
    try:
        rgba = np.empty((color.shape[0], color.shape[1], 4), dtype=np.uint8)
        rgba[..., :3] = color[..., :3].astype(np.uint8, copy=False)
        rgba[..., 3] = mask.astype(np.uint8, copy=False)
    except (TypeError, ValueError) as e:
        raise MaskConversionError(f"Failed to composite cutout: {e}") from e
    return rgba


def make_cutout(
    color: np.ndarray,
    logits: Optional[np.ndarray],
    t: float,
    radius: int = 5,
    interpolation: str = "nearest",
) -> Optional[np.ndarray]:
    """Run threshold, cleanup, resize and composite in order.

    Returns None for missing or empty logits.
    """
    if logits is None or np.asarray(logits).size == 0:
        logger.debug("No logits to build a cutout from")
        return None
    binary = threshold(logits, t)
    cleaned = morphological_open(binary, radius)
    height, width = color.shape[:2]
    full = resize(cleaned, (width, height), interpolation)
    return composite(color, full)


__all__ = ["BACKGROUND", "FOREGROUND", "composite", "make_cutout", "morphological_open", "resize", "threshold"]
