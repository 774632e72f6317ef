"""Tests for per-frame view resolution and draw issuance."""

import numpy as np
import pytest

from configs.settings import load_config
from contracts import PointSet, SensorPose, ViewMode
from exceptions import GpuUnavailableError, ShaderProgramError
from geometry.matrices import perspective_rh_zo
from geometry.orbit_camera import OrbitCamera
from render.cloud_store import CloudStore
from render.frame_renderer import FrameRenderer, LiveSensorView, OrbitView
from render.shaders import MAX_POINT_SIZE, MIN_POINT_SIZE, point_size_for_depth
from render.simulated_device import SimulatedGpuDevice


def _points(n: int) -> PointSet:
    return PointSet(np.zeros((n, 3), dtype=np.float32), np.full((n, 3), 128, dtype=np.uint8))


@pytest.fixture
def rig():
    config = load_config()
    device = SimulatedGpuDevice()
    store = CloudStore(device)
    camera = OrbitCamera.from_config(config.orbit)
    renderer = FrameRenderer(device, store, camera, config.render)
    renderer.resize(640, 480)
    return device, store, camera, renderer


def test_draws_every_visible_cloud(rig) -> None:
    device, store, _, renderer = rig
    store.add(_points(10), cloud_id="a")
    store.add(_points(20), cloud_id="b")
    store.add(_points(5), cloud_id="hidden")
    store.set_visible("hidden", False)

    stats = renderer.draw_frame()

    assert stats.draw_calls == 2
    assert stats.points == 30
    assert stats.mode is ViewMode.ORBIT
    assert sorted(d.count for d in device.last_pass.draws) == [10, 20]
    assert device.last_pass.presented


def test_remove_then_render_issues_no_draws(rig) -> None:
    device, store, _, renderer = rig
    store.add(_points(100), cloud_id="a")
    store.remove("a")

    stats = renderer.draw_frame()

    assert store.list_active_clouds() == []
    assert stats.draw_calls == 0
    assert device.last_pass.draws == []


def test_uniforms_compose_projection_view_and_model(rig) -> None:
    device, store, camera, renderer = rig
    model = np.eye(4, dtype=np.float32)
    model[:3, 3] = [1.0, 2.0, 3.0]
    store.add(_points(1), model, cloud_id="a")

    renderer.draw_frame()

    uniforms = device.last_pass.draws[0].uniforms
    expected = camera.projection_matrix() @ camera.view_matrix()
    np.testing.assert_allclose(uniforms.view_proj, expected, rtol=1e-6)
    np.testing.assert_array_equal(uniforms.model, model)
    assert uniforms.base_point_size == renderer.point_size
    assert uniforms.attenuate == renderer.attenuate


def test_orbit_clears_to_background_and_far_depth(rig) -> None:
    device, _, _, renderer = rig
    renderer.draw_frame()

    setup = device.last_pass.setup
    assert setup.clear_color == renderer.background
    assert setup.clear_depth == 1.0
    assert setup.viewport == (640, 480)


def test_missing_drawable_skips_silently(rig) -> None:
    device, store, _, renderer = rig
    store.add(_points(3))
    device.drawable_available = False

    assert renderer.draw_frame() is None
    assert device.passes == []
    assert renderer.frames_skipped == 1


def test_no_view_source_skips() -> None:
    device = SimulatedGpuDevice()
    renderer = FrameRenderer(device, CloudStore(device))

    assert renderer.resolve_view() is None
    assert renderer.draw_frame() is None
    assert device.passes == []


def test_live_sensor_pose_is_passed_through(rig) -> None:
    device, store, _, renderer = rig
    view = np.eye(4, dtype=np.float32)
    view[2, 3] = -2.0
    projection = perspective_rh_zo(1.0, 1.0, 0.001, 100.0)
    renderer.bind_live_sensor(lambda: SensorPose(view=view, projection=projection))
    store.add(_points(1))

    stats = renderer.draw_frame()

    assert stats.mode is ViewMode.LIVE_SENSOR
    assert device.last_pass.setup.clear_color == (0.0, 0.0, 0.0, 0.0)
    np.testing.assert_allclose(device.last_pass.draws[0].uniforms.view_proj, projection @ view, rtol=1e-6)


def test_live_sensor_without_frame_falls_back_to_orbit(rig) -> None:
    _, _, _, renderer = rig
    renderer.bind_live_sensor(lambda: None)

    assert isinstance(renderer.view_source, LiveSensorView)
    assert renderer.draw_frame().mode is ViewMode.ORBIT


def test_sensor_driven_toggle(rig) -> None:
    _, _, _, renderer = rig
    pose = SensorPose(view=np.eye(4), projection=perspective_rh_zo(1.0, 1.0, 0.1, 10.0))
    renderer.bind_live_sensor(lambda: pose)

    renderer.set_sensor_driven(False)
    assert renderer.resolve_view()[0] is ViewMode.ORBIT

    renderer.set_sensor_driven(True)
    assert renderer.resolve_view()[0] is ViewMode.LIVE_SENSOR

    renderer.use_orbit()
    assert isinstance(renderer.view_source, OrbitView)


def test_point_size_is_clamped(rig) -> None:
    _, _, _, renderer = rig
    renderer.set_point_size(0.2, attenuate=False)

    assert renderer.point_size == MIN_POINT_SIZE
    assert renderer.attenuate is False


def test_resize_updates_orbit_aspect(rig) -> None:
    _, _, camera, renderer = rig
    renderer.resize(1000, 500)
    assert camera.aspect == 2.0


def test_shader_failure_is_fatal() -> None:
    device = SimulatedGpuDevice(shaders_ok=False)
    with pytest.raises(ShaderProgramError):
        FrameRenderer(device, CloudStore(device))


def test_unavailable_device_is_fatal() -> None:
    with pytest.raises(GpuUnavailableError):
        SimulatedGpuDevice(available=False)


def test_point_size_attenuation_rule() -> None:
    assert point_size_for_depth(8.0, 4.0, attenuate=False) == 8.0
    assert point_size_for_depth(8.0, 4.0, attenuate=True) == 2.0
    assert point_size_for_depth(8.0, 2.0, attenuate=True) > point_size_for_depth(8.0, 4.0, attenuate=True)
    assert point_size_for_depth(8.0, 0.0, attenuate=True) == MAX_POINT_SIZE
    assert point_size_for_depth(8.0, 100.0, attenuate=True) == MIN_POINT_SIZE
