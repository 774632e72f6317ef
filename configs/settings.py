"""Configuration loading for the vignette viewer."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

import yaml

from configs.validator import validate_config
from exceptions import ConfigError, InvalidConfigError
from log_config.logger import get_logger

logger = get_logger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).parent / "default.yaml"


@dataclass(frozen=True)
class RenderConfig:
    point_size_px: float
    attenuate_by_depth: bool
    max_depth_m: Optional[float]
    sample_stride: int
    target_fps: int
    background_rgba: Tuple[float, float, float, float]
    live_near_m: float = 0.001  # Near plane for sensor-driven projection
    live_far_m: float = 100.0


@dataclass(frozen=True)
class OrbitConfig:
    distance_m: float
    yaw_deg: float
    pitch_deg: float
    fov_y_deg: float
    near_m: float
    far_m: float
    pan_speed: float = 1.2
    wheel_sensitivity: float = 0.002


@dataclass(frozen=True)
class MaskConfig:
    default_threshold: float
    cleanup_radius_px: int
    resize_interpolation: str  # "nearest" or "bilinear"


@dataclass(frozen=True)
class SegmentationConfig:
    timeout_s: float
    max_attempts: int
    model_input_size: Tuple[int, int]


@dataclass(frozen=True)
class StorageConfig:
    base_dir: str


@dataclass(frozen=True)
class AppConfig:
    render: RenderConfig
    orbit: OrbitConfig
    mask: MaskConfig
    segmentation: SegmentationConfig
    storage: StorageConfig


def load_config(path: Path = DEFAULT_CONFIG_PATH) -> AppConfig:
    """Load and validate configuration from YAML file.

    Args:
        path: Path to configuration file

    Returns:
        Validated AppConfig instance

    Raises:
        ConfigError: If configuration is invalid or cannot be loaded
    """
    try:
        logger.info(f"Loading configuration from {path}")
        if not path.exists():
            raise InvalidConfigError(f"Configuration file not found: {path}")

        data = yaml.safe_load(path.read_text())
        if not isinstance(data, dict):
            raise InvalidConfigError(f"Configuration root must be a mapping: {path}")

        # Validate against JSON Schema (fills declared defaults in place)
        validate_config(data)

        logger.debug("Parsing configuration sections")

    except yaml.YAMLError as e:
        logger.error(f"Failed to parse YAML configuration: {e}")
        raise InvalidConfigError(f"Failed to parse configuration file: {e}")

    try:
        render_data = data["render"]
        render = RenderConfig(
            point_size_px=float(render_data["point_size_px"]),
            attenuate_by_depth=bool(render_data["attenuate_by_depth"]),
            max_depth_m=render_data.get("max_depth_m"),
            sample_stride=int(render_data["sample_stride"]),
            target_fps=int(render_data["target_fps"]),
            background_rgba=tuple(render_data["background_rgba"]),
            live_near_m=float(render_data.get("live_near_m", 0.001)),
            live_far_m=float(render_data.get("live_far_m", 100.0)),
        )
        orbit = OrbitConfig(**data["orbit"])
        mask = MaskConfig(**data["mask"])
        seg_data = data["segmentation"]
        segmentation = SegmentationConfig(
            timeout_s=float(seg_data["timeout_s"]),
            max_attempts=int(seg_data["max_attempts"]),
            model_input_size=tuple(seg_data["model_input_size"]),
        )
        storage = StorageConfig(**data["storage"])

        config = AppConfig(
            render=render,
            orbit=orbit,
            mask=mask,
            segmentation=segmentation,
            storage=storage,
        )

        logger.info(
            f"Configuration loaded successfully: point size {config.render.point_size_px}px, "
            f"stride {config.render.sample_stride}, {config.render.target_fps}fps"
        )
        return config

    except ConfigError:
        raise
    except Exception as e:
        logger.error(f"Failed to construct configuration objects: {e}")
        raise InvalidConfigError(f"Failed to construct configuration: {e}")


__all__ = [
    "AppConfig",
    "DEFAULT_CONFIG_PATH",
    "MaskConfig",
    "OrbitConfig",
    "RenderConfig",
    "SegmentationConfig",
    "StorageConfig",
    "load_config",
]
