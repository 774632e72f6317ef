"""Vignette persistence."""

from .vignette_store import VignetteStore, depth_to_millimeters, millimeters_to_depth

__all__ = ["VignetteStore", "depth_to_millimeters", "millimeters_to_depth"]
