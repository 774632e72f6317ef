"""UI module."""

from .viewport import PointCloudViewport, request_core_profile

__all__ = ["PointCloudViewport", "request_core_profile"]
