"""Unit tests for configuration schema validation."""

import copy
import unittest

import yaml

from configs.settings import DEFAULT_CONFIG_PATH
from configs.validator import validate_config, validate_config_file
from exceptions import ConfigValidationError


class TestConfigValidator(unittest.TestCase):
    """Test schema validation of the YAML configuration."""

    def setUp(self):
        self.base = yaml.safe_load(DEFAULT_CONFIG_PATH.read_text())

    def _config(self):
        return copy.deepcopy(self.base)

    def test_default_config_passes(self):
        validate_config(self._config())

    def test_default_file_passes(self):
        validate_config_file(str(DEFAULT_CONFIG_PATH))

    def test_missing_section_fails(self):
        config = self._config()
        del config["mask"]
        with self.assertRaises(ConfigValidationError) as ctx:
            validate_config(config)
        self.assertTrue(any("mask" in msg for msg in ctx.exception.validation_errors))

    def test_point_size_below_one_fails(self):
        config = self._config()
        config["render"]["point_size_px"] = 0.5
        with self.assertRaises(ConfigValidationError):
            validate_config(config)

    def test_unknown_interpolation_fails(self):
        config = self._config()
        config["mask"]["resize_interpolation"] = "bicubic"
        with self.assertRaises(ConfigValidationError):
            validate_config(config)

    def test_pitch_at_pole_fails(self):
        config = self._config()
        config["orbit"]["pitch_deg"] = 90.0
        with self.assertRaises(ConfigValidationError):
            validate_config(config)

    def test_far_not_beyond_near_fails(self):
        config = self._config()
        config["orbit"]["far_m"] = config["orbit"]["near_m"]
        with self.assertRaises(ConfigValidationError) as ctx:
            validate_config(config)
        self.assertIn("orbit -> far_m: must be greater than near_m", ctx.exception.validation_errors)

    def test_all_errors_are_collected(self):
        config = self._config()
        config["render"]["sample_stride"] = 0
        config["segmentation"]["max_attempts"] = 0
        with self.assertRaises(ConfigValidationError) as ctx:
            validate_config(config)
        self.assertEqual(len(ctx.exception.validation_errors), 2)

    def test_defaults_are_filled_in(self):
        config = self._config()
        del config["mask"]["cleanup_radius_px"]
        validate_config(config)
        self.assertEqual(config["mask"]["cleanup_radius_px"], 5)

    def test_missing_file_fails(self):
        with self.assertRaises(ConfigValidationError):
            validate_config_file("does/not/exist.yaml")


if __name__ == "__main__":
    unittest.main()
