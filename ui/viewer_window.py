"""Main window: viewport plus capture, cloud and mask controls."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Optional

import numpy as np
from PySide6 import QtCore, QtGui, QtWidgets

from app.vignette_service import VignetteService
from capture.preview import confidence_preview_image, depth_preview_image
from capture.simulated_source import SimulatedCaptureSource
from configs.settings import DEFAULT_CONFIG_PATH, AppConfig, load_config
from contracts import PromptPoint, Vignette
from exceptions import VignetteError
from log_config.logger import get_logger
from segmentation.service import SimulatedSegmentationService
from storage.vignette_store import VignetteStore
from ui.viewport import PointCloudViewport, request_core_profile

logger = get_logger(__name__)

SLIDER_STEPS = 200
SLIDER_RANGE = 10.0


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Spatial vignette point-cloud viewer.")
    parser.add_argument("--config", type=Path, default=DEFAULT_CONFIG_PATH)
    return parser.parse_args(argv)


def _gray_pixmap(gray: np.ndarray) -> QtGui.QPixmap:
    gray = np.ascontiguousarray(gray)
    h, w = gray.shape
    image = QtGui.QImage(gray.data, w, h, w, QtGui.QImage.Format_Grayscale8)
    return QtGui.QPixmap.fromImage(image.copy())


def _rgba_pixmap(rgba: np.ndarray) -> QtGui.QPixmap:
    rgba = np.ascontiguousarray(rgba)
    h, w = rgba.shape[:2]
    image = QtGui.QImage(rgba.data, w, h, 4 * w, QtGui.QImage.Format_RGBA8888)
    return QtGui.QPixmap.fromImage(image.copy())


class ViewerWindow(QtWidgets.QMainWindow):
    def __init__(self, config: AppConfig) -> None:
        super().__init__()
        self.setWindowTitle("Spatial Vignette")
        self._config = config
        self._capture = SimulatedCaptureSource(near=config.render.live_near_m, far=config.render.live_far_m)
        self._service: Optional[VignetteService] = None
        self._last_vignette: Optional[Vignette] = None

        self._viewport = PointCloudViewport(config, self._build_service)
        self._viewport.serviceReady.connect(self._on_service_ready)
        self._viewport.gpuFailed.connect(self._on_gpu_failed)

        self._capture_button = QtWidgets.QPushButton("Capture")
        self._clear_button = QtWidgets.QPushButton("Clear Clouds")
        self._segment_button = QtWidgets.QPushButton("Segment Center")
        self._save_button = QtWidgets.QPushButton("Save Vignette")
        self._follow_check = QtWidgets.QCheckBox("Follow sensor")
        self._point_size = QtWidgets.QDoubleSpinBox()
        self._point_size.setRange(1.0, 64.0)
        self._point_size.setValue(config.render.point_size_px)
        self._attenuate_check = QtWidgets.QCheckBox("Attenuate")
        self._attenuate_check.setChecked(config.render.attenuate_by_depth)
        self._threshold = QtWidgets.QSlider(QtCore.Qt.Horizontal)
        self._threshold.setRange(-SLIDER_STEPS, SLIDER_STEPS)
        self._threshold.setValue(int(config.mask.default_threshold / SLIDER_RANGE * SLIDER_STEPS))
        self._mask_preview = QtWidgets.QLabel()
        self._mask_preview.setFixedSize(160, 160)
        self._mask_preview.setScaledContents(True)
        self._cloud_list = QtWidgets.QListWidget()
        self._depth_preview = QtWidgets.QLabel()
        self._confidence_preview = QtWidgets.QLabel()
        for label in (self._depth_preview, self._confidence_preview):
            label.setFixedSize(96, 72)
            label.setScaledContents(True)
        previews = QtWidgets.QHBoxLayout()
        previews.addWidget(self._depth_preview)
        previews.addWidget(self._confidence_preview)

        controls = QtWidgets.QVBoxLayout()
        for widget in (
            self._capture_button,
            self._clear_button,
            self._follow_check,
            QtWidgets.QLabel("Point size"),
            self._point_size,
            self._attenuate_check,
            self._cloud_list,
            self._segment_button,
            QtWidgets.QLabel("Mask threshold"),
            self._threshold,
            self._mask_preview,
            self._save_button,
        ):
            controls.addWidget(widget)
        controls.insertLayout(1, previews)
        controls.addStretch(1)

        layout = QtWidgets.QHBoxLayout()
        layout.addWidget(self._viewport, 1)
        layout.addLayout(controls)
        central = QtWidgets.QWidget()
        central.setLayout(layout)
        self.setCentralWidget(central)
        self.statusBar()

        self._capture_button.clicked.connect(self._capture_cloud)
        self._clear_button.clicked.connect(self._clear_clouds)
        self._follow_check.toggled.connect(self._toggle_follow)
        self._point_size.valueChanged.connect(self._update_point_size)
        self._attenuate_check.toggled.connect(self._update_point_size)
        self._cloud_list.itemChanged.connect(self._toggle_cloud)
        self._segment_button.clicked.connect(self._segment)
        self._threshold.valueChanged.connect(self._preview_threshold)
        self._threshold.sliderReleased.connect(self._finalize_threshold)
        self._save_button.clicked.connect(self._save)
        self._set_controls_enabled(False)

    def _build_service(self, device) -> VignetteService:
        model_size = tuple(self._config.segmentation.model_input_size)
        return VignetteService(
            self._config,
            device,
            capture=self._capture,
            segmentation=SimulatedSegmentationService(model_input_size=model_size, radius=0.2 * min(model_size)),
            store=VignetteStore(self._config.storage.base_dir),
        )

    def _set_controls_enabled(self, enabled: bool) -> None:
        for widget in (self._capture_button, self._clear_button, self._follow_check, self._segment_button):
            widget.setEnabled(enabled)
        self._save_button.setEnabled(enabled and self._last_vignette is not None)

    def _threshold_value(self) -> float:
        return self._threshold.value() / SLIDER_STEPS * SLIDER_RANGE

    @QtCore.Slot(object)
    def _on_service_ready(self, service: VignetteService) -> None:
        self._service = service
        try:
            self._capture.start()
        except VignetteError as e:
            self.statusBar().showMessage(f"Capture unavailable: {e}")
            return
        self._set_controls_enabled(True)

    @QtCore.Slot(str)
    def _on_gpu_failed(self, message: str) -> None:
        QtWidgets.QMessageBox.critical(self, "No GPU", f"OpenGL 3.3 is required.\n{message}")

    def _capture_cloud(self) -> None:
        if self._service is None:
            return
        try:
            vignette = self._service.capture_vignette()
        except VignetteError as e:
            self.statusBar().showMessage(str(e))
            return
        self._last_vignette = vignette
        self._show_capture_previews(vignette)
        self._service.add_cloud(vignette)
        item = QtWidgets.QListWidgetItem(vignette.id[:8])
        item.setData(QtCore.Qt.UserRole, vignette.id)
        item.setFlags(item.flags() | QtCore.Qt.ItemIsUserCheckable)
        item.setCheckState(QtCore.Qt.Checked)
        self._cloud_list.addItem(item)
        self._save_button.setEnabled(True)

    def _show_capture_previews(self, vignette: Vignette) -> None:
        depth = depth_preview_image(vignette.depth_m)
        confidence = confidence_preview_image(vignette.confidence)
        if depth is None:
            self._depth_preview.clear()
        else:
            self._depth_preview.setPixmap(_gray_pixmap(depth))
        if confidence is None:
            self._confidence_preview.clear()
        else:
            self._confidence_preview.setPixmap(_rgba_pixmap(confidence))

    def _clear_clouds(self) -> None:
        if self._service is None:
            return
        self._viewport.makeCurrent()
        self._service.remove_all_clouds()
        self._cloud_list.clear()

    def _toggle_cloud(self, item: QtWidgets.QListWidgetItem) -> None:
        if self._service is not None:
            self._service.set_visible(item.data(QtCore.Qt.UserRole), item.checkState() == QtCore.Qt.Checked)

    def _toggle_follow(self, enabled: bool) -> None:
        if self._service is not None:
            self._service.follow_live_sensor(enabled)

    def _update_point_size(self, *_args) -> None:
        if self._service is not None:
            self._service.renderer.set_point_size(self._point_size.value(), self._attenuate_check.isChecked())

    def _segment(self) -> None:
        if self._service is None or self._last_vignette is None:
            return
        height, width = self._last_vignette.color.shape[:2]
        try:
            self._service.segment(self._last_vignette, [PromptPoint(width / 2.0, height / 2.0)])
        except VignetteError as e:
            self.statusBar().showMessage(f"Segmentation failed: {e}")
            return
        self._preview_threshold()

    def _preview_threshold(self, *_args) -> None:
        if self._service is None:
            return
        mask = self._service.preview_mask(self._threshold_value())
        if mask is not None:
            self._mask_preview.setPixmap(_gray_pixmap(mask))

    def _finalize_threshold(self) -> None:
        if self._service is None:
            return
        committed = self._service.finalize_mask(self._threshold_value())
        if committed is not None:
            self.statusBar().showMessage(f"Mask committed at threshold {committed.threshold:.2f}")

    def _save(self) -> None:
        if self._service is None or self._last_vignette is None:
            return
        try:
            vignette_id = self._service.save_vignette(self._last_vignette)
            if self._last_vignette.mask_threshold is not None:
                self._service.save_subject_cutout(self._last_vignette, self._last_vignette.mask_threshold)
        except VignetteError as e:
            self.statusBar().showMessage(f"Save failed: {e}")
            return
        self.statusBar().showMessage(f"Saved vignette {vignette_id}")

    def closeEvent(self, event: QtGui.QCloseEvent) -> None:
        # Child widgets get no close event when the window closes
        self._viewport.shutdown()
        self._service = None
        super().closeEvent(event)


def main(argv=None) -> int:
    args = parse_args(argv)
    config = load_config(args.config)
    request_core_profile()
    app = QtWidgets.QApplication(sys.argv[:1])
    window = ViewerWindow(config)
    window.resize(1280, 800)
    window.show()
    return app.exec()


if __name__ == "__main__":
    sys.exit(main())
