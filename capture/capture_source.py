"""Capture abstraction for RGB-D frame sources."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from contracts import CapturedFrame, SensorPose


class CaptureSource(ABC):
    """A depth sensor that produces one RGB-D frame on demand.

    Errors are the typed ``CaptureError`` subclasses: an unsupported
    device, a source that was never attached to a session, no frame yet,
    or a frame without depth.
    """

    device_model: str = "unknown"

    @property
    @abstractmethod
    def is_supported(self) -> bool:
        """Whether this device can deliver metric depth."""

    @abstractmethod
    def start(self) -> None:
        """Begin streaming frames."""

    @abstractmethod
    def stop(self) -> None:
        """Stop streaming. Safe to call when not started."""

    @abstractmethod
    def next_frame(self) -> CapturedFrame:
        """Return the most recent complete frame."""

    def sensor_pose(self) -> Optional[SensorPose]:
        """View/projection for the live frame, when the source tracks its pose."""
        return None
