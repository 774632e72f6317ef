from pathlib import Path

import pytest

from configs.settings import DEFAULT_CONFIG_PATH, load_config
from exceptions import ConfigValidationError, InvalidConfigError


def test_load_config() -> None:
    config = load_config(DEFAULT_CONFIG_PATH)

    assert config.render.point_size_px == 6.0
    assert config.render.sample_stride == 1
    assert config.render.max_depth_m is None
    assert config.orbit.distance_m == 1.5
    assert config.mask.cleanup_radius_px == 5
    assert config.segmentation.model_input_size == (1024, 1024)
    assert config.storage.base_dir == "vignettes"


def test_optional_keys_get_schema_defaults(tmp_path: Path) -> None:
    text = DEFAULT_CONFIG_PATH.read_text()
    text = text.replace("  target_fps: 60\n", "").replace("  pan_speed: 1.2\n", "")
    path = tmp_path / "config.yaml"
    path.write_text(text)

    config = load_config(path)

    assert config.render.target_fps == 60
    assert config.orbit.pan_speed == 1.2


def test_missing_file_raises(tmp_path: Path) -> None:
    with pytest.raises(InvalidConfigError):
        load_config(tmp_path / "nope.yaml")


def test_bad_yaml_raises(tmp_path: Path) -> None:
    path = tmp_path / "config.yaml"
    path.write_text("render: [unclosed\n")
    with pytest.raises(InvalidConfigError):
        load_config(path)


def test_out_of_range_value_is_rejected(tmp_path: Path) -> None:
    path = tmp_path / "config.yaml"
    path.write_text(DEFAULT_CONFIG_PATH.read_text().replace("sample_stride: 1", "sample_stride: 0"))

    with pytest.raises(ConfigValidationError) as excinfo:
        load_config(path)

    assert any("sample_stride" in msg for msg in excinfo.value.validation_errors)
