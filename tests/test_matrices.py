import math

import numpy as np
import pytest

from geometry.matrices import (
    flatten_3x3,
    flatten_4x4,
    inflate_3x3,
    inflate_4x4,
    invert_rigid,
    look_at_rh,
    perspective_rh_zo,
    to_gpu_bytes,
)


def _project(proj: np.ndarray, z: float) -> float:
    clip = proj @ np.array([0.0, 0.0, z, 1.0])
    return clip[2] / clip[3]


def test_perspective_maps_near_to_zero_and_far_to_one() -> None:
    proj = perspective_rh_zo(math.radians(60.0), 1.5, 0.1, 50.0)

    assert _project(proj, -0.1) == pytest.approx(0.0, abs=1e-6)
    assert _project(proj, -50.0) == pytest.approx(1.0, abs=1e-5)
    assert 0.0 < _project(proj, -5.0) < 1.0


def test_perspective_divides_by_negative_z() -> None:
    proj = perspective_rh_zo(math.radians(90.0), 1.0, 0.1, 10.0)
    clip = proj @ np.array([1.0, 1.0, -2.0, 1.0])

    assert clip[3] == pytest.approx(2.0)
    assert clip[0] / clip[3] == pytest.approx(0.5, abs=1e-6)


@pytest.mark.parametrize("near,far,aspect", [(0.0, 10.0, 1.0), (1.0, 1.0, 1.0), (0.1, 10.0, 0.0)])
def test_perspective_rejects_bad_planes(near: float, far: float, aspect: float) -> None:
    with pytest.raises(ValueError):
        perspective_rh_zo(1.0, aspect, near, far)


def test_look_at_puts_target_down_negative_z() -> None:
    eye = np.array([1.0, 2.0, 3.0])
    target = np.array([1.0, 2.0, 0.0])
    view = look_at_rh(eye, target)

    eye_view = view @ np.append(eye, 1.0)
    target_view = view @ np.append(target, 1.0)

    np.testing.assert_allclose(eye_view[:3], 0.0, atol=1e-5)
    np.testing.assert_allclose(target_view[:3], [0.0, 0.0, -3.0], atol=1e-5)


def test_look_at_rotation_is_orthonormal() -> None:
    view = look_at_rh([2.0, 1.0, -4.0], [0.0, 0.5, 0.0]).astype(np.float64)
    rot = view[:3, :3]
    np.testing.assert_allclose(rot @ rot.T, np.eye(3), atol=1e-5)


def test_invert_rigid_matches_general_inverse() -> None:
    angle = 0.7
    transform = np.eye(4)
    transform[:3, :3] = [[math.cos(angle), 0, math.sin(angle)], [0, 1, 0], [-math.sin(angle), 0, math.cos(angle)]]
    transform[:3, 3] = [0.5, -1.0, 2.0]

    np.testing.assert_allclose(invert_rigid(transform), np.linalg.inv(transform), atol=1e-5)


def test_gpu_bytes_are_column_major() -> None:
    matrix = np.arange(16, dtype=np.float32).reshape(4, 4)
    packed = np.frombuffer(to_gpu_bytes(matrix), dtype=np.float32)

    np.testing.assert_array_equal(packed[:4], matrix[:, 0])


def test_flatten_inflate_round_trip() -> None:
    rng = np.random.default_rng(7)
    extrinsics = rng.normal(size=(4, 4)).astype(np.float32)
    intrinsics = rng.normal(size=(3, 3)).astype(np.float32)

    np.testing.assert_array_equal(inflate_4x4(flatten_4x4(extrinsics)), extrinsics)
    np.testing.assert_array_equal(inflate_3x3(flatten_3x3(intrinsics)), intrinsics)


def test_flatten_is_row_major() -> None:
    matrix = np.arange(9, dtype=np.float32).reshape(3, 3)
    assert flatten_3x3(matrix) == [0.0, 1.0, 2.0, 3.0, 4.0, 5.0, 6.0, 7.0, 8.0]


def test_inflate_rejects_wrong_sizes() -> None:
    with pytest.raises(ValueError):
        inflate_3x3([1.0] * 8)
    with pytest.raises(ValueError):
        inflate_4x4([[1.0] * 4] * 3)
