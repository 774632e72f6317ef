"""Smoke tests for the Qt viewer widgets."""

import dataclasses
import os

import pytest

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

QtWidgets = pytest.importorskip("PySide6.QtWidgets")
QtGui = pytest.importorskip("PySide6.QtGui")

from capture.simulated_source import SimulatedCaptureSource  # noqa: E402
from configs.settings import load_config  # noqa: E402
from contracts import PointSet, Vignette  # noqa: E402
from exceptions import ShaderProgramError  # noqa: E402
from render.simulated_device import SimulatedGpuDevice  # noqa: E402
from ui.viewer_window import ViewerWindow, parse_args  # noqa: E402
from ui.viewport import PointCloudViewport  # noqa: E402


@pytest.fixture(scope="module")
def qapp():
    app = QtWidgets.QApplication.instance() or QtWidgets.QApplication([])
    yield app


def test_parse_args_defaults() -> None:
    args = parse_args([])
    assert args.config.name == "default.yaml"


def test_viewport_without_gl_has_no_service(qapp) -> None:
    viewport = PointCloudViewport(load_config(), lambda device: None)
    assert viewport.service is None
    # Dispatched work before the context exists is dropped
    called = []
    viewport._run_dispatched(lambda: called.append(True))
    assert called == []


def test_window_controls_disabled_until_ready(qapp) -> None:
    window = ViewerWindow(load_config())
    assert not window._capture_button.isEnabled()
    assert not window._save_button.isEnabled()
    window.close()


@pytest.fixture
def tmp_config(tmp_path):
    config = load_config()
    return dataclasses.replace(config, storage=dataclasses.replace(config.storage, base_dir=str(tmp_path)))


def test_segmentation_uses_configured_model_size(qapp, tmp_config) -> None:
    window = ViewerWindow(tmp_config)
    service = window._build_service(SimulatedGpuDevice())
    try:
        assert service.segmentation.inner.model_input_size == tmp_config.segmentation.model_input_size
    finally:
        service.shutdown()
        window.close()


def test_closing_window_shuts_service_down(qapp, tmp_config) -> None:
    window = ViewerWindow(tmp_config)
    device = SimulatedGpuDevice()
    service = window._build_service(device)
    service.clouds.add(PointSet.empty(), cloud_id="a")
    window._viewport._service = service

    window.closeEvent(QtGui.QCloseEvent())

    assert window._viewport.service is None
    assert service.list_clouds() == []
    assert device.live_buffer_count == 0
    with pytest.raises(ShaderProgramError):
        service.renderer.draw_frame()
    # Closing twice is harmless
    window._viewport.shutdown()


def test_capture_previews_are_shown(qapp, tmp_config) -> None:
    window = ViewerWindow(tmp_config)
    source = SimulatedCaptureSource()
    source.start()
    vignette = Vignette.from_frame(source.next_frame())

    window._show_capture_previews(vignette)

    assert not window._depth_preview.pixmap().isNull()
    assert not window._confidence_preview.pixmap().isNull()
    window.close()
