"""Reprojection module."""

from .reprojector import reproject, reproject_vignette

__all__ = ["reproject", "reproject_vignette"]
