"""Capture module."""

from .capture_source import CaptureSource
from .preview import confidence_preview_image, depth_preview_image
from .simulated_source import SimulatedCaptureSource

__all__ = ["CaptureSource", "SimulatedCaptureSource", "confidence_preview_image", "depth_preview_image"]
