"""Depth map to camera-space coloured point cloud."""

from __future__ import annotations

import time
from typing import Optional

import numpy as np

from contracts import Intrinsics, PointSet, Vignette
from log_config.logger import get_logger, log_performance

logger = get_logger(__name__)


def reproject(
    depth: np.ndarray,
    color: np.ndarray,
    intrinsics: Intrinsics,
    sample_stride: int = 1,
    max_depth: Optional[float] = None,
) -> PointSet:
    """Unproject every ``sample_stride``-th depth pixel into camera space.

    Camera space is right-handed with +X left, +Y up and -Z forward, so a
    sample at depth ``d`` lands at ``z = -d``. The principal point is
    taken as the depth-grid centre and the focal lengths are rescaled
    from colour-image pixels to depth-grid pixels. Colour is sampled from
    the nearest colour pixel; no distortion correction is applied.

    Args:
        depth: (H, W) depth in metres; 0 or non-finite marks no return
        color: (H', W', 3|4) uint8 RGB(A) image, any resolution
        intrinsics: Pinhole intrinsics in colour-image pixels
        sample_stride: Decimation factor applied on both axes
        max_depth: Optional far cut-off in metres

    Returns:
        PointSet in row-major scan order; empty when nothing is valid
    """
    depth = np.asarray(depth, dtype=np.float32)
    color = np.asarray(color)
    if depth.ndim != 2:
        raise ValueError(f"Depth must be 2D, got shape {depth.shape}")
    if color.ndim != 3 or color.shape[2] < 3:
        raise ValueError(f"Color must be (H, W, 3|4), got shape {color.shape}")
    if sample_stride < 1:
        raise ValueError(f"sample_stride must be >= 1, got {sample_stride}")
    if depth.size == 0 or color.shape[0] == 0 or color.shape[1] == 0:
        return PointSet.empty()

    start = time.perf_counter()
    h_d, w_d = depth.shape
    h_c, w_c = color.shape[:2]

    fx_s = intrinsics.fx * (w_d / w_c)
    fy_s = intrinsics.fy * (h_d / h_c)

    sampled = depth[::sample_stride, ::sample_stride]
    rows = np.arange(0, h_d, sample_stride, dtype=np.float64)
    cols = np.arange(0, w_d, sample_stride, dtype=np.float64)
    grid_u, grid_v = np.meshgrid(cols, rows)

    with np.errstate(invalid="ignore"):
        valid = np.isfinite(sampled) & (sampled > 0)
        if max_depth is not None:
            valid &= sampled <= max_depth

    d = sampled[valid]
    u = grid_u[valid]
    v = grid_v[valid]

    z = -d.astype(np.float64)
    x = -(u - w_d / 2.0) / fx_s * z
    y = (v - h_d / 2.0) / fy_s * z

    positions = np.empty((d.shape[0], 3), dtype=np.float32)
    positions[:, 0] = x
    positions[:, 1] = y
    positions[:, 2] = -d

    # Round half away from zero; u, v are non-negative
    rx = np.clip(np.floor(u * (w_c / w_d) + 0.5).astype(np.int64), 0, w_c - 1)
    ry = np.clip(np.floor(v * (h_c / h_d) + 0.5).astype(np.int64), 0, h_c - 1)
    colors = np.ascontiguousarray(color[ry, rx, :3]).astype(np.uint8, copy=False)

    duration_ms = (time.perf_counter() - start) * 1000.0
    log_performance(f"reproject {w_d}x{h_d} stride {sample_stride} -> {len(d)} points", duration_ms, 50.0)
    if len(d) == 0:
        logger.debug("Reprojection produced no valid points")
    return PointSet(positions=positions, colors=colors)


def reproject_vignette(vignette: Vignette, sample_stride: int = 1, max_depth: Optional[float] = None) -> PointSet:
    """Reproject a stored or captured vignette into camera space."""
    return reproject(vignette.depth_m, vignette.color, vignette.intrinsics, sample_stride, max_depth)


__all__ = ["reproject", "reproject_vignette"]
