"""End-to-end tests for the application service on simulated collaborators."""

import dataclasses
import threading

import numpy as np
import pytest

from capture.simulated_source import SimulatedCaptureSource
from configs.settings import load_config
from contracts import PromptPoint, ViewMode
from exceptions import FrameBuildError, PromptError
from app.vignette_service import VignetteService
from render.simulated_device import SimulatedGpuDevice
from segmentation.service import SimulatedSegmentationService
from storage.vignette_store import VignetteStore


class RecordingDispatcher:
    """Holds GPU insertions until the test releases them."""

    def __init__(self):
        self.pending = []
        self.received = threading.Event()

    def __call__(self, fn):
        self.pending.append(fn)
        self.received.set()

    def run_all(self):
        while self.pending:
            self.pending.pop(0)()


@pytest.fixture
def config(tmp_path):
    config = load_config()
    return dataclasses.replace(config, storage=dataclasses.replace(config.storage, base_dir=str(tmp_path)))


@pytest.fixture
def segmentation():
    return SimulatedSegmentationService(model_input_size=(64, 64), radius=16)


@pytest.fixture
def service(config, segmentation):
    capture = SimulatedCaptureSource()
    capture.start()
    service = VignetteService(
        config,
        SimulatedGpuDevice(),
        capture=capture,
        segmentation=segmentation,
        store=VignetteStore(config.storage.base_dir),
    )
    service.resize(320, 240)
    yield service
    service.shutdown()


def test_capture_without_source(config) -> None:
    service = VignetteService(config, SimulatedGpuDevice())
    try:
        with pytest.raises(FrameBuildError):
            service.capture_vignette()
    finally:
        service.shutdown()


def test_captured_cloud_is_drawn(service) -> None:
    vignette = service.capture_vignette(note="first")

    cloud_id = service.add_cloud(vignette).result(timeout=5)

    assert cloud_id == vignette.id
    [info] = service.list_clouds()
    assert info.cloud_id == vignette.id and info.count > 0 and info.visible
    stats = service.renderer.draw_frame()
    assert stats.draw_calls == 1 and stats.points == info.count


def test_visibility_and_removal(service) -> None:
    first = service.capture_vignette()
    second = service.capture_vignette()
    service.add_cloud(first).result(timeout=5)
    service.add_cloud(second).result(timeout=5)

    assert service.set_visible(first.id, False)
    assert service.renderer.draw_frame().draw_calls == 1

    assert service.remove_cloud(second.id)
    assert not service.remove_cloud(second.id)
    assert service.remove_all_clouds() == 1
    assert service.list_clouds() == []
    assert service.device.live_buffer_count == 0


def test_insert_after_clear_is_discarded(config) -> None:
    dispatcher = RecordingDispatcher()
    capture = SimulatedCaptureSource()
    capture.start()
    service = VignetteService(config, SimulatedGpuDevice(), capture=capture, dispatcher=dispatcher)
    try:
        future = service.add_cloud(service.capture_vignette())
        assert dispatcher.received.wait(5)

        service.remove_all_clouds()
        dispatcher.run_all()

        assert future.result(timeout=5) is None
        assert service.list_clouds() == []
        assert service.device.live_buffer_count == 0
    finally:
        service.shutdown()


def test_follow_live_sensor(service) -> None:
    service.capture_vignette()

    service.follow_live_sensor(True)
    assert service.renderer.view_source.mode == ViewMode.LIVE_SENSOR
    service.follow_live_sensor(False)
    assert service.renderer.view_source.mode == ViewMode.ORBIT


def test_threshold_preview_does_not_rerun_inference(service, segmentation) -> None:
    vignette = service.capture_vignette()
    center = PromptPoint(64.0, 48.0)

    service.segment(vignette, [center])
    loose = service.preview_mask(-4.0)
    tight = service.preview_mask(4.0)

    assert segmentation.calls == 1
    assert loose.shape == vignette.raw_logits.shape
    assert np.count_nonzero(tight) < np.count_nonzero(loose)

    committed = service.finalize_mask(2.0)
    assert committed.cutout.shape == (96, 128, 4)
    assert vignette.mask_threshold == 2.0
    assert segmentation.calls == 1


def test_segment_rejects_bad_prompt(service) -> None:
    vignette = service.capture_vignette()
    with pytest.raises(PromptError):
        service.segment(vignette, [PromptPoint(500.0, 10.0)])
    assert vignette.raw_logits is None


def test_preview_without_session(service) -> None:
    assert service.preview_mask(0.0) is None
    assert service.finalize_mask(0.0) is None


def test_save_load_and_reopen_mask(service, segmentation) -> None:
    vignette = service.capture_vignette()
    service.segment(vignette, [PromptPoint(64.0, 48.0)])
    service.finalize_mask(1.0)

    vignette_id = service.save_vignette(vignette)
    service.save_subject_cutout(vignette, 1.0)
    assert service.list_vignettes() == [vignette_id]

    loaded = service.load_vignette(vignette_id)
    assert loaded.mask_threshold == 1.0
    service.open_mask_session(loaded)
    assert service.preview_mask(1.0) is not None
    assert segmentation.calls == 1

    service.add_cloud(loaded).result(timeout=5)
    assert service.delete_vignette(vignette_id)
    assert service.list_vignettes() == []
    assert service.list_clouds() == []


def test_shutdown_resolves_inserts_still_queued(config) -> None:
    dispatcher = RecordingDispatcher()
    capture = SimulatedCaptureSource()
    capture.start()
    service = VignetteService(config, SimulatedGpuDevice(), capture=capture, dispatcher=dispatcher)

    future = service.add_cloud(service.capture_vignette())
    assert dispatcher.received.wait(5)
    service.shutdown()

    assert future.result(timeout=5) is None
    # A late dispatch after shutdown is a no-op
    dispatcher.run_all()
    assert service.list_clouds() == []
    assert service.device.live_buffer_count == 0


def test_saved_cutout_matches_finalized_mask_under_bilinear(tmp_path, segmentation) -> None:
    config = load_config()
    config = dataclasses.replace(
        config,
        storage=dataclasses.replace(config.storage, base_dir=str(tmp_path)),
        mask=dataclasses.replace(config.mask, resize_interpolation="bilinear"),
    )
    capture = SimulatedCaptureSource()
    capture.start()
    service = VignetteService(
        config,
        SimulatedGpuDevice(),
        capture=capture,
        segmentation=segmentation,
        store=VignetteStore(tmp_path),
    )
    try:
        vignette = service.capture_vignette()
        service.segment(vignette, [PromptPoint(64.0, 48.0)])
        committed = service.finalize_mask(1.0)
        service.save_vignette(vignette)

        service.save_subject_cutout(vignette, 1.0)

        np.testing.assert_array_equal(service.store.load_subject_cutout(vignette.id), committed.cutout)
    finally:
        service.shutdown()
