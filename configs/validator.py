"""Configuration validation using JSON Schema."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict

import jsonschema
import yaml
from jsonschema import Draft7Validator, validators

from exceptions import ConfigValidationError
from log_config.logger import get_logger

logger = get_logger(__name__)

_RGBA = {
    "type": "array",
    "items": {"type": "number", "minimum": 0.0, "maximum": 1.0},
    "minItems": 4,
    "maxItems": 4,
}

# JSON Schema for default.yaml configuration
CONFIG_SCHEMA = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "required": ["render", "orbit", "mask", "segmentation", "storage"],
    "properties": {
        "render": {
            "type": "object",
            "required": ["point_size_px", "attenuate_by_depth", "sample_stride"],
            "properties": {
                "point_size_px": {"type": "number", "minimum": 1.0, "maximum": 64.0},
                "attenuate_by_depth": {"type": "boolean"},
                "max_depth_m": {"type": ["number", "null"], "exclusiveMinimum": 0.0, "default": None},
                "sample_stride": {"type": "integer", "minimum": 1, "maximum": 64},
                "target_fps": {"type": "integer", "minimum": 1, "maximum": 240, "default": 60},
                "background_rgba": dict(_RGBA, default=[0.0, 0.0, 0.0, 1.0]),
                "live_near_m": {"type": "number", "exclusiveMinimum": 0.0, "default": 0.001},
                "live_far_m": {"type": "number", "exclusiveMinimum": 0.0, "default": 100.0},
            },
        },
        "orbit": {
            "type": "object",
            "required": ["distance_m", "fov_y_deg", "near_m", "far_m"],
            "properties": {
                "distance_m": {"type": "number", "minimum": 0.05},
                "yaw_deg": {"type": "number", "default": 0.0},
                "pitch_deg": {"type": "number", "exclusiveMinimum": -90.0, "exclusiveMaximum": 90.0, "default": 0.0},
                "fov_y_deg": {"type": "number", "exclusiveMinimum": 0.0, "exclusiveMaximum": 180.0},
                "near_m": {"type": "number", "exclusiveMinimum": 0.0},
                "far_m": {"type": "number", "exclusiveMinimum": 0.0},
                "pan_speed": {"type": "number", "exclusiveMinimum": 0.0, "default": 1.2},
                "wheel_sensitivity": {"type": "number", "exclusiveMinimum": 0.0, "default": 0.002},
            },
        },
        "mask": {
            "type": "object",
            "properties": {
                "default_threshold": {"type": "number", "default": 0.0},
                "cleanup_radius_px": {"type": "integer", "minimum": 0, "maximum": 100, "default": 5},
                "resize_interpolation": {
                    "type": "string",
                    "enum": ["nearest", "bilinear"],
                    "default": "nearest",
                },
            },
        },
        "segmentation": {
            "type": "object",
            "properties": {
                "timeout_s": {"type": "number", "exclusiveMinimum": 0.0, "maximum": 600.0, "default": 30.0},
                "max_attempts": {"type": "integer", "minimum": 1, "maximum": 10, "default": 2},
                "model_input_size": {
                    "type": "array",
                    "items": {"type": "integer", "minimum": 64, "maximum": 4096},
                    "minItems": 2,
                    "maxItems": 2,
                    "default": [1024, 1024],
                },
            },
        },
        "storage": {
            "type": "object",
            "properties": {
                "base_dir": {"type": "string", "minLength": 1, "default": "vignettes"},
            },
        },
    },
}


def extend_with_default(validator_class):
    """Extend JSON Schema validator to set default values."""
    validate_properties = validator_class.VALIDATORS["properties"]

    def set_defaults(validator, properties, instance, schema):
        if isinstance(instance, dict):
            for prop, subschema in properties.items():
                if "default" in subschema:
                    instance.setdefault(prop, subschema["default"])

        for error in validate_properties(validator, properties, instance, schema):
            yield error

    return validators.extend(validator_class, {"properties": set_defaults})


DefaultValidatingValidator = extend_with_default(Draft7Validator)


def validate_config(config: Dict[str, Any]) -> None:
    """Validate configuration against JSON Schema.

    Missing optional keys are filled in with schema defaults.

    Args:
        config: Configuration dictionary

    Raises:
        ConfigValidationError: If configuration is invalid
    """
    try:
        validator = DefaultValidatingValidator(CONFIG_SCHEMA)
        error_messages = []
        for error in validator.iter_errors(config):
            path = " -> ".join(str(p) for p in error.path) if error.path else "root"
            error_messages.append(f"{path}: {error.message}")

        # Cross-field constraint the schema cannot express
        if not error_messages:
            orbit = config["orbit"]
            if orbit["far_m"] <= orbit["near_m"]:
                error_messages.append("orbit -> far_m: must be greater than near_m")

        if error_messages:
            logger.error(f"Configuration validation failed with {len(error_messages)} errors")
            for msg in error_messages:
                logger.error(f"  - {msg}")

            raise ConfigValidationError(
                f"Configuration validation failed with {len(error_messages)} error(s). See logs for details.",
                validation_errors=error_messages,
            )

        logger.info("Configuration validation passed")

    except jsonschema.exceptions.SchemaError as e:
        logger.error(f"Invalid schema: {e}")
        raise ConfigValidationError(f"Invalid schema definition: {e}")


def validate_config_file(config_path: str) -> None:
    """Validate a YAML configuration file.

    Args:
        config_path: Path to configuration file

    Raises:
        ConfigValidationError: If configuration is invalid
    """
    path = Path(config_path)
    if not path.exists():
        raise ConfigValidationError(f"Configuration file not found: {config_path}")

    try:
        with open(path, "r") as f:
            config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        logger.error(f"Failed to parse YAML: {e}")
        raise ConfigValidationError(f"Failed to parse configuration file: {e}")

    validate_config(config)


__all__ = ["validate_config", "validate_config_file", "CONFIG_SCHEMA"]
