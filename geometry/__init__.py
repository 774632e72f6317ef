"""Camera model: matrix math and the orbit camera."""

from .matrices import (
    flatten_3x3,
    flatten_4x4,
    inflate_3x3,
    inflate_4x4,
    invert_rigid,
    look_at_rh,
    perspective_rh_zo,
    to_gpu_bytes,
)
from .orbit_camera import MIN_DISTANCE, PITCH_LIMIT, OrbitCamera, OrbitCameraState, projection_matrix, view_matrix

__all__ = [
    "MIN_DISTANCE",
    "OrbitCamera",
    "OrbitCameraState",
    "PITCH_LIMIT",
    "flatten_3x3",
    "flatten_4x4",
    "inflate_3x3",
    "inflate_4x4",
    "invert_rigid",
    "look_at_rh",
    "perspective_rh_zo",
    "projection_matrix",
    "to_gpu_bytes",
    "view_matrix",
]
