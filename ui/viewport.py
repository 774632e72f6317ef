"""Qt OpenGL widget hosting the frame renderer."""

from __future__ import annotations

from typing import Callable, Optional

from PySide6 import QtCore, QtGui, QtOpenGLWidgets

from app.vignette_service import VignetteService
from configs.settings import AppConfig
from exceptions import RenderError
from log_config.logger import get_logger
from render.gpu_device import GpuDevice
from render.moderngl_device import ModernGLDevice

logger = get_logger(__name__)

ServiceFactory = Callable[[GpuDevice], VignetteService]


def request_core_profile() -> None:
    """Ask Qt for an OpenGL 3.3 core context. Call before QApplication exists."""
    fmt = QtGui.QSurfaceFormat()
    fmt.setVersion(3, 3)
    fmt.setProfile(QtGui.QSurfaceFormat.CoreProfile)
    fmt.setDepthBufferSize(24)
    fmt.setAlphaBufferSize(8)
    QtGui.QSurfaceFormat.setDefaultFormat(fmt)


class PointCloudViewport(QtOpenGLWidgets.QOpenGLWidget):
    """Renders every visible cloud each tick and maps input to orbit gestures.

    The GPU device only exists once Qt has created the context, so the
    service is built in ``initializeGL`` and announced through
    ``serviceReady``. Worker threads post GPU work back here through the
    service dispatcher.
    """

    serviceReady = QtCore.Signal(object)
    gpuFailed = QtCore.Signal(str)
    _dispatch = QtCore.Signal(object)

    def __init__(self, config: AppConfig, service_factory: ServiceFactory, parent=None) -> None:
        super().__init__(parent)
        self._config = config
        self._service_factory = service_factory
        self._service: Optional[VignetteService] = None
        self._last_pos: Optional[QtCore.QPointF] = None

        self._dispatch.connect(self._run_dispatched, QtCore.Qt.QueuedConnection)

        self._timer = QtCore.QTimer(self)
        self._timer.setInterval(max(1, int(1000 / max(config.render.target_fps, 1))))
        self._timer.timeout.connect(self.update)

        self.setMinimumSize(320, 240)
        self.setFocusPolicy(QtCore.Qt.StrongFocus)
        self.grabGesture(QtCore.Qt.PinchGesture)

    @property
    def service(self) -> Optional[VignetteService]:
        return self._service

    def dispatch(self, fn: Callable[[], None]) -> None:
        """Run ``fn`` on the GUI thread, where the GL context lives."""
        self._dispatch.emit(fn)

    @QtCore.Slot(object)
    def _run_dispatched(self, fn: Callable[[], None]) -> None:
        # After shutdown the service has already resolved the futures behind fn
        if self._service is None:
            logger.debug("Dropped GPU work dispatched after shutdown")
            return
        self.makeCurrent()
        fn()

    # QOpenGLWidget hooks

    def initializeGL(self) -> None:
        try:
            device = ModernGLDevice.from_current_context(
                framebuffer_provider=self._current_framebuffer,
                make_current=self.makeCurrent,
            )
            self._service = self._service_factory(device)
        except RenderError as e:
            logger.critical(f"Viewport cannot render: {e}")
            self.gpuFailed.emit(str(e))
            return
        ratio = self.devicePixelRatioF()
        self._service.attach_viewport(int(self.width() * ratio), int(self.height() * ratio), self.dispatch)
        self._timer.start()
        self.serviceReady.emit(self._service)

    def _current_framebuffer(self):
        device = self._service.device if self._service is not None else None
        if not isinstance(device, ModernGLDevice):
            return None
        return device.ctx.detect_framebuffer(self.defaultFramebufferObject())

    def resizeGL(self, width: int, height: int) -> None:
        if self._service is not None:
            ratio = self.devicePixelRatioF()
            self._service.resize(int(width * ratio), int(height * ratio))

    def paintGL(self) -> None:
        if self._service is not None:
            self._service.renderer.draw_frame()

    # Input

    def mousePressEvent(self, event: QtGui.QMouseEvent) -> None:
        self._last_pos = event.position()

    def mouseMoveEvent(self, event: QtGui.QMouseEvent) -> None:
        if self._service is None or self._last_pos is None:
            return
        pos = event.position()
        delta = (pos.x() - self._last_pos.x(), pos.y() - self._last_pos.y())
        self._last_pos = pos
        orbit = self._config.orbit
        self._service.camera.pan(delta, (self.width(), self.height()), orbit.pan_speed)

    def mouseReleaseEvent(self, event: QtGui.QMouseEvent) -> None:
        self._last_pos = None

    def wheelEvent(self, event: QtGui.QWheelEvent) -> None:
        if self._service is None:
            return
        self._service.camera.zoom_wheel(event.angleDelta().y(), self._config.orbit.wheel_sensitivity)

    def event(self, event: QtCore.QEvent) -> bool:
        if event.type() == QtCore.QEvent.NativeGesture and self._service is not None:
            if event.gestureType() == QtCore.Qt.ZoomNativeGesture:
                # Native zoom reports an increment around 0
                self._service.camera.zoom_pinch(1.0 + event.value())
                return True
        if event.type() == QtCore.QEvent.Gesture and self._service is not None:
            pinch = event.gesture(QtCore.Qt.PinchGesture)
            if pinch is not None:
                self._service.camera.zoom_pinch(pinch.scaleFactor())
                return True
        return super().event(event)

    def shutdown(self) -> None:
        """Stop repainting and release the service on the GL context. Idempotent."""
        self._timer.stop()
        if self._service is None:
            return
        service, self._service = self._service, None
        self.makeCurrent()
        try:
            service.shutdown()
        finally:
            self.doneCurrent()

    def closeEvent(self, event: QtGui.QCloseEvent) -> None:
        self.shutdown()
        super().closeEvent(event)


__all__ = ["PointCloudViewport", "request_core_profile"]
