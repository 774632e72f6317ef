"""Per-frame draw loop over the cloud store."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Optional, Tuple, Union

import numpy as np

from configs.settings import RenderConfig
from contracts import SensorPose, ViewMode
from geometry.orbit_camera import OrbitCamera
from log_config.logger import get_logger, log_performance

from .cloud_store import CloudStore
from .gpu_device import GpuDevice, PassSetup, PointUniforms
from .shaders import MIN_POINT_SIZE

logger = get_logger(__name__)

TRANSPARENT = (0.0, 0.0, 0.0, 0.0)

SensorPoseProvider = Callable[[], Optional[SensorPose]]


@dataclass(frozen=True)
class LiveSensorView:
    """Follow the sensor's own view/projection while sensor-driven."""

    provider: SensorPoseProvider
    sensor_driven: bool = True

    mode = ViewMode.LIVE_SENSOR


@dataclass(frozen=True)
class OrbitView:
    camera: OrbitCamera

    mode = ViewMode.ORBIT


ViewSource = Union[LiveSensorView, OrbitView]


@dataclass(frozen=True)
class FrameStats:
    mode: ViewMode
    draw_calls: int
    points: int
    duration_ms: float


class FrameRenderer:
    """Draws every visible cloud once per frame.

    The view source is resolved each frame. A live sensor source without
    a current pose falls back to the orbit camera; with neither the frame
    is skipped.
    """

    def __init__(
        self,
        device: GpuDevice,
        store: CloudStore,
        orbit_camera: Optional[OrbitCamera] = None,
        config: Optional[RenderConfig] = None,
    ):
        self.device = device
        self.store = store
        self.orbit_camera = orbit_camera
        self.config = config
        self.point_size = float(config.point_size_px) if config else 6.0
        self.attenuate = bool(config.attenuate_by_depth) if config else True
        self.background = tuple(config.background_rgba) if config else (0.0, 0.0, 0.0, 1.0)
        self.viewport: Tuple[int, int] = (1, 1)
        self._source: Optional[ViewSource] = OrbitView(orbit_camera) if orbit_camera is not None else None
        self.frames_drawn = 0
        self.frames_skipped = 0

        # Raises ShaderProgramError; there is no degraded mode without a program
        with device.current():
            device.build_point_program()
        logger.info("Frame renderer initialized")

    @property
    def view_source(self) -> Optional[ViewSource]:
        return self._source

    def bind_live_sensor(self, provider: SensorPoseProvider, sensor_driven: bool = True) -> None:
        self._source = LiveSensorView(provider=provider, sensor_driven=sensor_driven)
        logger.info("Renderer bound to live sensor")

    def set_sensor_driven(self, enabled: bool) -> None:
        if isinstance(self._source, LiveSensorView):
            self._source = LiveSensorView(provider=self._source.provider, sensor_driven=bool(enabled))

    def use_orbit(self, camera: Optional[OrbitCamera] = None) -> None:
        if camera is not None:
            self.orbit_camera = camera
        self._source = OrbitView(self.orbit_camera) if self.orbit_camera is not None else None

    def resize(self, width: int, height: int) -> None:
        self.viewport = (max(int(width), 1), max(int(height), 1))
        if self.orbit_camera is not None:
            self.orbit_camera.set_aspect_from_viewport(*self.viewport)

    def set_point_size(self, size: float, attenuate: Optional[bool] = None) -> None:
        self.point_size = max(float(size), MIN_POINT_SIZE)
        if attenuate is not None:
            self.attenuate = bool(attenuate)

    def resolve_view(self) -> Optional[Tuple[ViewMode, np.ndarray, np.ndarray]]:
        """Return (mode, view, projection) for this frame, or None to skip."""
        source = self._source
        if isinstance(source, LiveSensorView) and source.sensor_driven:
            pose = source.provider()
            if pose is not None:
                return ViewMode.LIVE_SENSOR, np.asarray(pose.view), np.asarray(pose.projection)

        if self.orbit_camera is not None:
            camera = self.orbit_camera
            return ViewMode.ORBIT, camera.view_matrix(), camera.projection_matrix()
        return None

    def draw_frame(self) -> Optional[FrameStats]:
        """Render one frame. Returns None when the frame was skipped."""
        start = time.perf_counter()
        resolved = self.resolve_view()
        if resolved is None:
            self.frames_skipped += 1
            logger.debug("Frame skipped: no view source")
            return None
        mode, view, projection = resolved
        view_proj = (projection @ view).astype(np.float32)

        # Live video shows through behind the clouds
        clear = TRANSPARENT if mode is ViewMode.LIVE_SENSOR else self.background
        if not self.device.begin_pass(PassSetup(viewport=self.viewport, clear_color=clear)):
            self.frames_skipped += 1
            logger.debug("Frame skipped: drawable unavailable")
            return None

        draw_calls = 0
        points = 0
        try:
            with self.store.locked_visible() as nodes:
                for node in nodes:
                    if node.count == 0:
                        continue
                    uniforms = PointUniforms(
                        view_proj=view_proj,
                        model=node.transform,
                        base_point_size=self.point_size,
                        attenuate=self.attenuate,
                    )
                    self.device.draw_points(node.positions, node.colors, node.count, uniforms)
                    draw_calls += 1
                    points += node.count
        finally:
            self.device.end_pass()

        duration_ms = (time.perf_counter() - start) * 1000.0
        log_performance(f"draw frame ({draw_calls} clouds)", duration_ms)
        self.frames_drawn += 1
        return FrameStats(mode=mode, draw_calls=draw_calls, points=points, duration_ms=duration_ms)


__all__ = ["FrameRenderer", "FrameStats", "LiveSensorView", "OrbitView", "ViewSource"]
