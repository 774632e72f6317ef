"""Render module."""

from .cloud_store import CloudInfo, CloudNode, CloudStore
from .frame_renderer import FrameRenderer, FrameStats, LiveSensorView, OrbitView
from .gpu_device import GpuDevice, PassSetup, PointUniforms
from .moderngl_device import ModernGLDevice
from .simulated_device import SimulatedGpuDevice

__all__ = [
    "CloudInfo",
    "CloudNode",
    "CloudStore",
    "FrameRenderer",
    "FrameStats",
    "GpuDevice",
    "LiveSensorView",
    "ModernGLDevice",
    "OrbitView",
    "PassSetup",
    "PointUniforms",
    "SimulatedGpuDevice",
]
