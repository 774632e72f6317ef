"""Orbit camera: spherical eye position around a target, plus gesture helpers."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

import numpy as np

from geometry.matrices import look_at_rh, perspective_rh_zo

MIN_DISTANCE = 0.05
PITCH_EPSILON = 0.01
PITCH_LIMIT = math.pi / 2 - PITCH_EPSILON


@dataclass(frozen=True)
class OrbitCameraState:
    target: Tuple[float, float, float]
    distance: float
    yaw: float
    pitch: float
    fov_y: float
    aspect: float
    near: float
    far: float


class OrbitCamera:
    """Camera orbiting ``target`` at ``distance``, steered by yaw and pitch.

    Yaw 0 puts the eye on +Z looking down -Z. Every mutation re-applies
    the distance floor and the pitch clamp, so an out-of-range state is
    never observable.
    """

    def __init__(
        self,
        target: Sequence[float] = (0.0, 0.0, 0.0),
        distance: float = 1.5,
        yaw: float = 0.0,
        pitch: float = 0.0,
        fov_y: float = math.radians(60.0),
        aspect: float = 1.0,
        near: float = 0.01,
        far: float = 100.0,
    ) -> None:
        self.target = np.asarray(target, dtype=np.float64)
        self._distance = MIN_DISTANCE
        self._pitch = 0.0
        self.distance = distance
        self.yaw = float(yaw)
        self.pitch = pitch
        self.fov_y = float(fov_y)
        self.aspect = float(aspect)
        self.near = float(near)
        self.far = float(far)

    @classmethod
    def from_config(cls, config) -> "OrbitCamera":
        """Build from an ``OrbitConfig``."""
        return cls(
            distance=config.distance_m,
            yaw=math.radians(config.yaw_deg),
            pitch=math.radians(config.pitch_deg),
            fov_y=math.radians(config.fov_y_deg),
            near=config.near_m,
            far=config.far_m,
        )

    @property
    def distance(self) -> float:
        return self._distance

    @distance.setter
    def distance(self, value: float) -> None:
        value = float(value)
        self._distance = value if value > MIN_DISTANCE else MIN_DISTANCE

    @property
    def pitch(self) -> float:
        return self._pitch

    @pitch.setter
    def pitch(self, value: float) -> None:
        value = float(value)
        if math.isnan(value):
            return
        self._pitch = min(max(value, -PITCH_LIMIT), PITCH_LIMIT)

    @property
    def position(self) -> np.ndarray:
        """Eye position in world space."""
        cp = math.cos(self._pitch)
        offset = np.array(
            [
                self._distance * cp * math.sin(self.yaw),
                self._distance * math.sin(self._pitch),
                self._distance * cp * math.cos(self.yaw),
            ]
        )
        return self.target + offset

    def state(self) -> OrbitCameraState:
        return OrbitCameraState(
            target=tuple(float(v) for v in self.target),
            distance=self._distance,
            yaw=self.yaw,
            pitch=self._pitch,
            fov_y=self.fov_y,
            aspect=self.aspect,
            near=self.near,
            far=self.far,
        )

    # Gestures

    def pan(self, delta: Tuple[float, float], viewport_size: Tuple[float, float], speed: float = 1.2) -> None:
        """Rotate by a screen drag; drag right looks right, drag up looks up."""
        width, height = viewport_size
        if width <= 0 or height <= 0:
            return
        dx = delta[0] / width
        dy = delta[1] / height
        self.yaw -= dx * speed * math.pi
        self.pitch = self._pitch - dy * speed * math.pi * 0.5

    def zoom_pinch(self, scale: float) -> None:
        """Pinch zoom with exponential response.

        Spreading (scale >= 1) divides the distance by ``2 ** (scale - 1)``;
        pinching (scale < 1) mirrors it with the reciprocal scale, so a
        scale of 2 halves the distance and 0.5 doubles it.
        """
        if not scale > 0:
            return
        if scale >= 1.0:
            self.distance = self._distance / (2.0 ** (scale - 1.0))
        else:
            self.distance = self._distance * (2.0 ** (1.0 / scale - 1.0))

    def zoom_wheel(self, delta: float, sensitivity: float = 0.002) -> None:
        """Wheel/trackpad zoom; positive delta moves closer."""
        self.distance = self._distance * math.exp(-delta * sensitivity)

    def set_aspect_from_viewport(self, width: float, height: float) -> None:
        self.aspect = float(width) / max(float(height), 1.0)

    # Matrices

    def view_matrix(self) -> np.ndarray:
        return look_at_rh(self.position, self.target)

    def projection_matrix(self) -> np.ndarray:
        return perspective_rh_zo(self.fov_y, self.aspect, self.near, self.far)


def view_matrix(camera: OrbitCamera) -> np.ndarray:
    return camera.view_matrix()


def projection_matrix(camera: OrbitCamera, aspect: Optional[float] = None) -> np.ndarray:
    if aspect is None:
        return camera.projection_matrix()
    return perspective_rh_zo(camera.fov_y, aspect, camera.near, camera.far)


__all__ = [
    "MIN_DISTANCE",
    "OrbitCamera",
    "OrbitCameraState",
    "PITCH_LIMIT",
    "projection_matrix",
    "view_matrix",
]
