"""GPU abstraction for point-cloud rendering backends."""

from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Iterator, Tuple

import numpy as np


@dataclass(frozen=True)
class PointUniforms:
    """Per-cloud uniform block for one point-sprite draw."""

    view_proj: np.ndarray
    model: np.ndarray
    base_point_size: float
    attenuate: bool


@dataclass(frozen=True)
class PassSetup:
    viewport: Tuple[int, int]
    clear_color: Tuple[float, float, float, float]
    clear_depth: float = 1.0


class GpuDevice(ABC):
    """Minimal device surface the cloud store and frame renderer need.

    Buffer handles are opaque; only the device that created a handle may
    read or release it.
    """

    @abstractmethod
    def build_point_program(self) -> None:
        """Compile the point-sprite program; raise ShaderProgramError on failure."""

    @abstractmethod
    def create_buffer(self, data: np.ndarray) -> Any:
        """Upload a contiguous array and return a buffer handle."""

    @abstractmethod
    def release_buffer(self, buffer: Any) -> None:
        """Free a buffer. The handle must not be used afterwards."""

    @abstractmethod
    def begin_pass(self, setup: PassSetup) -> bool:
        """Acquire the drawable and clear it. False means skip this frame."""

    @abstractmethod
    def draw_points(self, positions: Any, colors: Any, count: int, uniforms: PointUniforms) -> None:
        """Draw ``count`` point sprites from a position/colour buffer pair."""

    @abstractmethod
    def end_pass(self) -> None:
        """Finish the pass and present it."""

    @abstractmethod
    def release(self) -> None:
        """Tear down the program and any device-owned state."""

    @contextmanager
    def current(self) -> Iterator[None]:
        """Make the device's context current for GPU calls made off the draw path."""
        yield


__all__ = ["GpuDevice", "PassSetup", "PointUniforms"]
