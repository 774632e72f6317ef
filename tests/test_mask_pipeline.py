import numpy as np
import pytest

from mask.pipeline import BACKGROUND, FOREGROUND, composite, make_cutout, morphological_open, resize, threshold


def test_threshold_scenario_is_strict() -> None:
    logits = np.array([[-1.0, 1.0], [0.5, -0.5]], dtype=np.float32)
    np.testing.assert_array_equal(threshold(logits, 0.0), [[0, 255], [255, 0]])


def test_equal_to_threshold_is_background() -> None:
    logits = np.array([[0.25, 0.2500001]], dtype=np.float64)
    np.testing.assert_array_equal(threshold(logits, 0.25), [[BACKGROUND, FOREGROUND]])


def test_threshold_is_monotonic() -> None:
    rng = np.random.default_rng(11)
    logits = rng.normal(scale=3.0, size=(64, 48)).astype(np.float32)

    counts = [int(np.count_nonzero(threshold(logits, t))) for t in np.linspace(-10.0, 10.0, 81)]

    assert all(a >= b for a, b in zip(counts, counts[1:]))
    assert counts[0] == logits.size
    assert counts[-1] == 0


def test_threshold_outside_range_is_uniform() -> None:
    logits = np.linspace(-1.0, 1.0, 20).reshape(4, 5)
    assert not threshold(logits, 5.0).any()
    assert threshold(logits, -5.0).all()


def test_open_removes_speckle_and_keeps_large_regions() -> None:
    mask = np.zeros((20, 20), dtype=np.uint8)
    mask[2:10, 2:10] = FOREGROUND
    mask[15, 15] = FOREGROUND

    cleaned = morphological_open(mask, 1)

    assert cleaned[15, 15] == BACKGROUND
    assert cleaned[3:9, 3:9].all()
    assert not cleaned[11:, :].any()


def test_open_is_idempotent() -> None:
    rng = np.random.default_rng(5)
    mask = np.where(rng.random((80, 80)) > 0.6, FOREGROUND, BACKGROUND).astype(np.uint8)
    mask[20:50, 10:60] = FOREGROUND

    for radius in (1, 2, 4):
        once = morphological_open(mask, radius)
        np.testing.assert_array_equal(morphological_open(once, radius), once)


def test_open_radius_zero_is_identity() -> None:
    mask = np.eye(6, dtype=np.uint8) * 255
    np.testing.assert_array_equal(morphological_open(mask, 0), mask)


def test_open_rejects_negative_radius() -> None:
    with pytest.raises(ValueError):
        morphological_open(np.zeros((3, 3), dtype=np.uint8), -1)


def test_resize_nearest_keeps_values() -> None:
    mask = np.array([[0, 255], [255, 0]], dtype=np.uint8)
    resized = resize(mask, (4, 6))

    assert resized.shape == (6, 4)
    assert set(np.unique(resized)) <= {0, 255}
    assert resized[0, 0] == 0 and resized[0, 3] == 255


def test_resize_bilinear_rebinarises() -> None:
    mask = np.zeros((8, 8), dtype=np.uint8)
    mask[:, 4:] = 255
    resized = resize(mask, (13, 5), "bilinear")

    assert resized.shape == (5, 13)
    assert set(np.unique(resized)) == {0, 255}


def test_resize_rejects_unknown_mode() -> None:
    with pytest.raises(ValueError):
        resize(np.zeros((2, 2), dtype=np.uint8), (4, 4), "lanczos")


def test_composite_sets_alpha_from_mask() -> None:
    color = np.full((3, 4, 3), 77, dtype=np.uint8)
    mask = np.zeros((3, 4), dtype=np.uint8)
    mask[1, 2] = 255

    rgba = composite(color, mask)

    assert rgba.shape == (3, 4, 4)
    np.testing.assert_array_equal(rgba[..., :3], color)
    np.testing.assert_array_equal(rgba[..., 3], mask)


def test_composite_requires_matching_size() -> None:
    with pytest.raises(ValueError):
        composite(np.zeros((3, 4, 3), dtype=np.uint8), np.zeros((4, 3), dtype=np.uint8))


def test_make_cutout_without_logits() -> None:
    color = np.zeros((4, 4, 3), dtype=np.uint8)
    assert make_cutout(color, None, 0.0) is None
    assert make_cutout(color, np.zeros((0, 0), dtype=np.float32), 0.0) is None


def test_make_cutout_runs_whole_chain() -> None:
    color = np.full((40, 60, 3), 9, dtype=np.uint8)
    logits = np.full((20, 20), -5.0, dtype=np.float32)
    logits[5:15, 5:15] = 5.0
    logits[0, 19] = 5.0  # speckle

    cutout = make_cutout(color, logits, 0.0, radius=1)

    assert cutout.shape == (40, 60, 4)
    alpha = cutout[..., 3]
    assert alpha[20, 30] == 255
    assert alpha[0, 59] == 0
