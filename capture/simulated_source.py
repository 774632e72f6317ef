"""Simulated RGB-D source for pipeline testing and demos."""

from __future__ import annotations

import math
import time
from typing import Optional, Tuple

import numpy as np

from contracts import CapturedFrame, ConfidenceLevel, Intrinsics, SensorPose
from exceptions import CaptureNotAttachedError, CaptureUnsupportedError, NoDepthError, NoFrameAvailableError
from geometry.matrices import invert_rigid, perspective_rh_zo
from log_config.logger import get_logger

from .capture_source import CaptureSource

logger = get_logger(__name__)


class SimulatedCaptureSource(CaptureSource):
    """Renders a back wall with a sphere in front of it.

    The sensor walks sideways by ``step_m`` per frame so consecutive
    captures have distinct extrinsics. Confidence drops to LOW at the
    sphere silhouette, as real time-of-flight sensors do at depth edges.
    """

    device_model = "simulated"

    def __init__(
        self,
        depth_size: Tuple[int, int] = (64, 48),
        color_size: Tuple[int, int] = (128, 96),
        wall_distance_m: float = 2.0,
        sphere_radius_m: float = 0.35,
        step_m: float = 0.05,
        supported: bool = True,
        attached: bool = True,
        with_depth: bool = True,
        near: float = 0.001,
        far: float = 100.0,
    ) -> None:
        self._depth_size = depth_size
        self._color_size = color_size
        self._wall = wall_distance_m
        self._radius = sphere_radius_m
        self._step = step_m
        self._supported = supported
        self._attached = attached
        self._with_depth = with_depth
        self._near = near
        self._far = far
        self._running = False
        self._frame_index = 0
        self._latest: Optional[CapturedFrame] = None

        cw, ch = color_size
        self.intrinsics = Intrinsics(fx=cw * 0.9, fy=cw * 0.9, cx=cw / 2.0, cy=ch / 2.0)

    @property
    def is_supported(self) -> bool:
        return self._supported

    @property
    def frame_index(self) -> int:
        return self._frame_index

    def start(self) -> None:
        if not self._supported:
            raise CaptureUnsupportedError("Device does not provide scene depth", source=self.device_model)
        if not self._attached:
            raise CaptureNotAttachedError("Capture source is not attached to a session", source=self.device_model)
        self._running = True
        logger.info(f"Simulated capture started ({self._depth_size[0]}x{self._depth_size[1]} depth)")

    def stop(self) -> None:
        self._running = False

    def next_frame(self) -> CapturedFrame:
        if not self._supported:
            raise CaptureUnsupportedError("Device does not provide scene depth", source=self.device_model)
        if not self._running:
            raise NoFrameAvailableError("No frame has arrived yet", source=self.device_model)
        if not self._with_depth:
            raise NoDepthError("Current frame carries no depth", source=self.device_model)

        self._frame_index += 1
        depth, confidence = self._render_depth()
        frame = CapturedFrame(
            color=self._render_color(),
            depth_m=depth,
            confidence=confidence,
            intrinsics=self.intrinsics,
            extrinsics=self._pose(),
            timestamp_ns=time.monotonic_ns(),
        )
        self._latest = frame
        return frame

    def sensor_pose(self) -> Optional[SensorPose]:
        if self._latest is None:
            return None
        cw, ch = self._color_size
        fov_y = 2.0 * math.atan(ch / (2.0 * self.intrinsics.fy))
        return SensorPose(
            view=invert_rigid(self._latest.extrinsics),
            projection=perspective_rh_zo(fov_y, cw / ch, self._near, self._far),
        )

    def _pose(self) -> np.ndarray:
        pose = np.identity(4, dtype=np.float32)
        pose[0, 3] = self._step * self._frame_index
        return pose

    def _render_depth(self) -> Tuple[np.ndarray, np.ndarray]:
        w, h = self._depth_size
        cw, _ = self._color_size
        f = self.intrinsics.fx * (w / cw)
        u, v = np.meshgrid(np.arange(w, dtype=np.float64), np.arange(h, dtype=np.float64))
        # Ray directions through each depth pixel, unit forward component
        rx = (u - w / 2.0) / f
        ry = (v - h / 2.0) / f

        depth = np.full((h, w), self._wall, dtype=np.float64)
        confidence = np.full((h, w), int(ConfidenceLevel.HIGH), dtype=np.uint8)

        # Sphere centred on the optical axis halfway to the wall
        center = self._wall / 2.0
        norm2 = rx * rx + ry * ry + 1.0
        disc = center * center - norm2 * (center * center - self._radius * self._radius)
        hit = disc >= 0
        t = (center - np.sqrt(np.where(hit, disc, 0.0))) / norm2
        depth = np.where(hit, t, depth)

        edge = hit & (disc < 0.05 * center * center)
        confidence[edge] = int(ConfidenceLevel.LOW)
        return depth.astype(np.float32), confidence

    def _render_color(self) -> np.ndarray:
        w, h = self._color_size
        u, v = np.meshgrid(np.linspace(0, 1, w), np.linspace(0, 1, h))
        color = np.empty((h, w, 3), dtype=np.uint8)
        color[..., 0] = (u * 255).astype(np.uint8)
        color[..., 1] = (v * 255).astype(np.uint8)
        color[..., 2] = 128
        # Subject disc in the middle of the frame
        r = np.hypot(u - 0.5, (v - 0.5) * h / w)
        color[r < 0.12] = (230, 60, 40)
        return color


__all__ = ["SimulatedCaptureSource"]
