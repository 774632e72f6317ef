"""OpenGL backend built on moderngl."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, Optional, Tuple

import moderngl
import numpy as np

from exceptions import GpuUnavailableError, ShaderProgramError
from geometry.matrices import to_gpu_bytes
from log_config.logger import get_logger

from .gpu_device import GpuDevice, PassSetup, PointUniforms
from .shaders import POINT_FRAGMENT_SHADER, POINT_VERTEX_SHADER

logger = get_logger(__name__)

REQUIRED_GL_VERSION = 330


class ModernGLDevice(GpuDevice):
    """Point-sprite renderer on an OpenGL 3.3 core context.

    Two hosting modes:
    - ``from_current_context``: a context owned by a window toolkit (the
      Qt viewport). ``framebuffer_provider`` returns the framebuffer to
      draw into each frame, and ``make_current`` binds the context for
      uploads that happen outside the paint callback.
    - ``standalone``: a headless context rendering into an offscreen
      framebuffer, readable with :meth:`read_rgba`.
    """

    def __init__(
        self,
        ctx: moderngl.Context,
        framebuffer_provider: Optional[Callable[[], Optional[moderngl.Framebuffer]]] = None,
        make_current: Optional[Callable[[], None]] = None,
        done_current: Optional[Callable[[], None]] = None,
    ) -> None:
        if ctx.version_code < REQUIRED_GL_VERSION:
            raise GpuUnavailableError(
                f"OpenGL {REQUIRED_GL_VERSION // 100}.{REQUIRED_GL_VERSION % 100 // 10} required, "
                f"context reports {ctx.version_code}"
            )
        self.ctx = ctx
        self._framebuffer_provider = framebuffer_provider or ctx.detect_framebuffer
        self._make_current = make_current
        self._done_current = done_current
        self._program: Optional[moderngl.Program] = None
        self._vaos: Dict[Tuple[int, int], moderngl.VertexArray] = {}
        self._fbo: Optional[moderngl.Framebuffer] = None
        self._offscreen: Optional[moderngl.Framebuffer] = None
        logger.info(f"OpenGL device ready: {ctx.info.get('GL_RENDERER', 'unknown')} ({ctx.version_code})")

    @classmethod
    def from_current_context(
        cls,
        framebuffer_provider: Optional[Callable[[], Optional[moderngl.Framebuffer]]] = None,
        make_current: Optional[Callable[[], None]] = None,
        done_current: Optional[Callable[[], None]] = None,
    ) -> "ModernGLDevice":
        try:
            ctx = moderngl.create_context(require=REQUIRED_GL_VERSION)
        except Exception as e:
            logger.critical(f"No usable OpenGL context: {e}")
            raise GpuUnavailableError(f"Failed to attach to OpenGL context: {e}") from e
        return cls(ctx, framebuffer_provider, make_current, done_current)

    @classmethod
    def standalone(cls, size: Tuple[int, int]) -> "ModernGLDevice":
        try:
            ctx = moderngl.create_standalone_context(require=REQUIRED_GL_VERSION)
        except Exception as e:
            logger.critical(f"No usable OpenGL context: {e}")
            raise GpuUnavailableError(f"Failed to create standalone OpenGL context: {e}") from e
        device = cls(ctx)
        device.resize_offscreen(size)
        device._framebuffer_provider = lambda: device._offscreen
        return device

    def resize_offscreen(self, size: Tuple[int, int]) -> None:
        if self._offscreen is not None:
            self._offscreen.release()
        width, height = max(int(size[0]), 1), max(int(size[1]), 1)
        self._offscreen = self.ctx.framebuffer(
            color_attachments=[self.ctx.renderbuffer((width, height), 4)],
            depth_attachment=self.ctx.depth_renderbuffer((width, height)),
        )

    @contextmanager
    def current(self) -> Iterator[None]:
        if self._make_current is not None:
            self._make_current()
        try:
            yield
        finally:
            if self._done_current is not None:
                self._done_current()

    def build_point_program(self) -> None:
        try:
            self._program = self.ctx.program(
                vertex_shader=POINT_VERTEX_SHADER,
                fragment_shader=POINT_FRAGMENT_SHADER,
            )
        except moderngl.Error as e:
            logger.critical(f"Point-sprite shader program failed to build: {e}")
            raise ShaderProgramError(f"Failed to build point-sprite program: {e}") from e

        for name in ("u_view_proj", "u_model", "u_point_size", "u_attenuate"):
            if self._program.get(name, None) is None:
                raise ShaderProgramError(f"Point-sprite program is missing uniform {name}")

        self.ctx.enable(moderngl.DEPTH_TEST | moderngl.PROGRAM_POINT_SIZE | moderngl.BLEND)
        self.ctx.disable(moderngl.CULL_FACE)
        self.ctx.depth_func = "<="
        self.ctx.blend_func = moderngl.SRC_ALPHA, moderngl.ONE_MINUS_SRC_ALPHA

    def create_buffer(self, data: np.ndarray) -> moderngl.Buffer:
        return self.ctx.buffer(np.ascontiguousarray(data).tobytes())

    def release_buffer(self, buffer: moderngl.Buffer) -> None:
        # Vertex arrays referencing this buffer go first
        stale = [key for key in self._vaos if buffer.glo in key]
        for key in stale:
            self._vaos.pop(key).release()
        buffer.release()

    def _vertex_array(self, positions: moderngl.Buffer, colors: moderngl.Buffer) -> moderngl.VertexArray:
        key = (positions.glo, colors.glo)
        vao = self._vaos.get(key)
        if vao is None:
            vao = self.ctx.vertex_array(
                self._program,
                [
                    (positions, "3f", "in_position"),
                    (colors, "4f1", "in_color"),
                ],
            )
            self._vaos[key] = vao
        return vao

    def begin_pass(self, setup: PassSetup) -> bool:
        if self._program is None:
            raise ShaderProgramError("Point program has not been built")
        fbo = self._framebuffer_provider()
        if fbo is None:
            return False
        width, height = setup.viewport
        self._fbo = fbo
        fbo.viewport = (0, 0, width, height)
        fbo.depth_mask = True
        fbo.use()
        fbo.clear(*setup.clear_color, depth=setup.clear_depth)
        # Depth test stays on but clouds do not write depth
        fbo.depth_mask = False
        fbo.use()
        return True

    def draw_points(self, positions: Any, colors: Any, count: int, uniforms: PointUniforms) -> None:
        program = self._program
        program["u_view_proj"].write(to_gpu_bytes(uniforms.view_proj))
        program["u_model"].write(to_gpu_bytes(uniforms.model))
        program["u_point_size"].value = float(uniforms.base_point_size)
        program["u_attenuate"].value = 1.0 if uniforms.attenuate else 0.0
        self._vertex_array(positions, colors).render(mode=moderngl.POINTS, vertices=count)

    def end_pass(self) -> None:
        if self._fbo is not None:
            self._fbo.depth_mask = True
        self._fbo = None
        # The host toolkit swaps; a headless context just needs the queue drained
        if self._offscreen is not None:
            self.ctx.finish()

    def read_rgba(self) -> np.ndarray:
        """Read the offscreen colour target as (H, W, 4) uint8, top row first."""
        if self._offscreen is None:
            raise RuntimeError("read_rgba requires a standalone device")
        width, height = self._offscreen.size
        raw = self._offscreen.read(components=4, alignment=1)
        image = np.frombuffer(raw, dtype=np.uint8).reshape(height, width, 4)
        return np.flipud(image).copy()

    def release(self) -> None:
        for vao in self._vaos.values():
            vao.release()
        self._vaos.clear()
        if self._program is not None:
            self._program.release()
            self._program = None
        if self._offscreen is not None:
            self._offscreen.release()
            self._offscreen = None


__all__ = ["ModernGLDevice"]
