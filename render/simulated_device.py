"""Simulated GPU backend that records uploads and draw calls."""

from __future__ import annotations

import itertools
import threading
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import numpy as np

from exceptions import GpuUnavailableError, ShaderProgramError

from .gpu_device import GpuDevice, PassSetup, PointUniforms


@dataclass(frozen=True)
class SimulatedBuffer:
    handle: int
    nbytes: int


@dataclass(frozen=True)
class DrawCall:
    positions: int
    colors: int
    count: int
    uniforms: PointUniforms


@dataclass
class RecordedPass:
    setup: PassSetup
    draws: List[DrawCall] = field(default_factory=list)
    presented: bool = False


class SimulatedGpuDevice(GpuDevice):
    """In-memory device for tests and headless runs.

    Buffers are numpy copies keyed by integer handles. Reading or drawing
    a released handle raises, which makes use-after-free visible.
    """

    def __init__(self, available: bool = True, shaders_ok: bool = True) -> None:
        if not available:
            raise GpuUnavailableError("Simulated device configured as unavailable")
        self._shaders_ok = shaders_ok
        self._program_ready = False
        self._handles = itertools.count(1)
        self._buffers: Dict[int, np.ndarray] = {}
        self._lock = threading.Lock()
        self.released_handles: List[int] = []
        self.passes: List[RecordedPass] = []
        self.drawable_available = True
        self._open_pass: Optional[RecordedPass] = None

    def build_point_program(self) -> None:
        if not self._shaders_ok:
            raise ShaderProgramError("Simulated shader compilation failure")
        self._program_ready = True

    def create_buffer(self, data: np.ndarray) -> SimulatedBuffer:
        array = np.ascontiguousarray(data).copy()
        with self._lock:
            handle = next(self._handles)
            self._buffers[handle] = array
        return SimulatedBuffer(handle=handle, nbytes=array.nbytes)

    def release_buffer(self, buffer: SimulatedBuffer) -> None:
        with self._lock:
            if buffer.handle not in self._buffers:
                raise RuntimeError(f"Double release of buffer {buffer.handle}")
            del self._buffers[buffer.handle]
            self.released_handles.append(buffer.handle)

    def read_buffer(self, buffer: SimulatedBuffer) -> np.ndarray:
        with self._lock:
            if buffer.handle not in self._buffers:
                raise RuntimeError(f"Buffer {buffer.handle} was released")
            return self._buffers[buffer.handle]

    @property
    def live_buffer_count(self) -> int:
        with self._lock:
            return len(self._buffers)

    def begin_pass(self, setup: PassSetup) -> bool:
        if not self._program_ready:
            raise ShaderProgramError("Point program has not been built")
        if not self.drawable_available:
            return False
        self._open_pass = RecordedPass(setup=setup)
        return True

    def draw_points(self, positions: SimulatedBuffer, colors: SimulatedBuffer, count: int, uniforms: PointUniforms) -> None:
        if self._open_pass is None:
            raise RuntimeError("draw_points called outside a pass")
        # Touch both buffers so a released handle fails loudly
        self.read_buffer(positions)
        self.read_buffer(colors)
        self._open_pass.draws.append(
            DrawCall(positions=positions.handle, colors=colors.handle, count=count, uniforms=uniforms)
        )

    def end_pass(self) -> None:
        if self._open_pass is None:
            return
        self._open_pass.presented = True
        self.passes.append(self._open_pass)
        self._open_pass = None

    def release(self) -> None:
        self._program_ready = False

    @property
    def last_pass(self) -> Optional[RecordedPass]:
        return self.passes[-1] if self.passes else None


__all__ = ["DrawCall", "RecordedPass", "SimulatedBuffer", "SimulatedGpuDevice"]
