"""Right-handed 4x4 matrix helpers.

Matrices are numpy arrays in math convention (row-major storage,
column vectors: ``p_clip = P @ V @ M @ p``). ``to_gpu_bytes`` converts to
the column-major layout GLSL uniforms expect.
"""

from __future__ import annotations

import math
from typing import Sequence

import numpy as np

WORLD_UP = np.array([0.0, 1.0, 0.0], dtype=np.float64)


def _normalize(v: np.ndarray) -> np.ndarray:
    n = float(np.linalg.norm(v))
    if n == 0.0:
        raise ValueError("Cannot normalize a zero-length vector")
    return v / n


def look_at_rh(eye: Sequence[float], target: Sequence[float], up: Sequence[float] = WORLD_UP) -> np.ndarray:
    """World-to-camera matrix for a camera at ``eye`` looking at ``target``.

    Camera space is right-handed with -Z forward. Degenerate when the
    forward direction is parallel to ``up``.
    """
    eye = np.asarray(eye, dtype=np.float64)
    target = np.asarray(target, dtype=np.float64)
    up = np.asarray(up, dtype=np.float64)

    z = _normalize(eye - target)  # points from target back to the eye
    x = _normalize(np.cross(up, z))
    y = np.cross(z, x)

    view = np.identity(4, dtype=np.float64)
    view[0, :3] = x
    view[1, :3] = y
    view[2, :3] = z
    view[0, 3] = -np.dot(x, eye)
    view[1, 3] = -np.dot(y, eye)
    view[2, 3] = -np.dot(z, eye)
    return view.astype(np.float32)


def perspective_rh_zo(fov_y: float, aspect: float, near: float, far: float) -> np.ndarray:
    """Right-handed perspective projection with clip depth in [0, 1].

    View-space z = -near maps to depth 0 and z = -far to depth 1; w = -z.
    """
    if not (0.0 < near < far):
        raise ValueError(f"Require 0 < near < far, got near={near}, far={far}")
    if aspect <= 0.0:
        raise ValueError(f"Aspect ratio must be positive, got {aspect}")
    f = 1.0 / math.tan(fov_y * 0.5)
    nf = 1.0 / (near - far)
    proj = np.zeros((4, 4), dtype=np.float64)
    proj[0, 0] = f / aspect
    proj[1, 1] = f
    proj[2, 2] = far * nf
    proj[2, 3] = near * far * nf
    proj[3, 2] = -1.0
    return proj.astype(np.float32)


def invert_rigid(transform: np.ndarray) -> np.ndarray:
    """Inverse of a rotation+translation transform without a general solve."""
    transform = np.asarray(transform, dtype=np.float64)
    rot = transform[:3, :3]
    trans = transform[:3, 3]
    inv = np.identity(4, dtype=np.float64)
    inv[:3, :3] = rot.T
    inv[:3, 3] = -rot.T @ trans
    return inv.astype(np.float32)


def to_gpu_bytes(matrix: np.ndarray) -> bytes:
    """Pack a 4x4 matrix column-major as float32 for a mat4 uniform."""
    return np.ascontiguousarray(np.asarray(matrix, dtype=np.float32).T).tobytes()


def flatten_3x3(matrix: np.ndarray) -> list[float]:
    """Row-major list of 9 floats."""
    matrix = np.asarray(matrix, dtype=np.float64)
    if matrix.shape != (3, 3):
        raise ValueError(f"Expected a 3x3 matrix, got {matrix.shape}")
    return [float(v) for v in matrix.reshape(-1)]


def inflate_3x3(values: Sequence[float]) -> np.ndarray:
    """Inverse of :func:`flatten_3x3`."""
    if len(values) != 9:
        raise ValueError(f"Expected 9 values for a 3x3 matrix, got {len(values)}")
    return np.asarray(values, dtype=np.float64).reshape(3, 3)


def flatten_4x4(matrix: np.ndarray) -> list[list[float]]:
    """Four row lists of four floats each."""
    matrix = np.asarray(matrix, dtype=np.float64)
    if matrix.shape != (4, 4):
        raise ValueError(f"Expected a 4x4 matrix, got {matrix.shape}")
    return [[float(v) for v in row] for row in matrix]


def inflate_4x4(rows: Sequence[Sequence[float]]) -> np.ndarray:
    """Inverse of :func:`flatten_4x4`."""
    if len(rows) != 4 or any(len(row) != 4 for row in rows):
        raise ValueError("Expected 4 rows of 4 values for a 4x4 matrix")
    return np.asarray(rows, dtype=np.float64)


__all__ = [
    "WORLD_UP",
    "flatten_3x3",
    "flatten_4x4",
    "inflate_3x3",
    "inflate_4x4",
    "invert_rigid",
    "look_at_rh",
    "perspective_rh_zo",
    "to_gpu_bytes",
]
