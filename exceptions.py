"""Custom exception classes for the vignette viewer."""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Union


class VignetteError(Exception):
    """Base exception for all vignette viewer errors."""

    pass


class RenderError(VignetteError):
    """Base exception for rendering errors."""

    pass


class GpuUnavailableError(RenderError):
    """Raised when no GPU-capable rendering context can be created."""

    pass


class ShaderProgramError(RenderError):
    """Raised when the point-sprite shader program cannot be built."""

    pass


class StaleGenerationError(RenderError):
    """Raised when a cloud insert targets a store that was reset since submit."""

    def __init__(self, message: str, expected: int, actual: int):
        self.expected = expected
        self.actual = actual
        super().__init__(message)


class CaptureError(VignetteError):
    """Base exception for capture-related errors."""

    def __init__(self, message: str, source: Optional[str] = None):
        self.source = source
        super().__init__(message)


class CaptureUnsupportedError(CaptureError):
    """Raised when the device has no depth sensor."""

    pass


class CaptureNotAttachedError(CaptureError):
    """Raised when the capture source is not attached to a running session."""

    pass


class NoFrameAvailableError(CaptureError):
    """Raised when no frame has been produced yet."""

    pass


class NoDepthError(CaptureError):
    """Raised when the current frame carries no depth data."""

    pass


class FrameBuildError(CaptureError):
    """Raised when a vignette cannot be built from a captured frame."""

    pass


class SegmentationError(VignetteError):
    """Base exception for segmentation service errors."""

    pass


class SegmentationUnavailableError(SegmentationError):
    """Raised when the segmentation service is unreachable or times out."""

    pass


class MalformedLogitsError(SegmentationError):
    """Raised when logits returned or stored are malformed."""

    pass


class PromptError(SegmentationError):
    """Raised when a segmentation request has no usable prompt points."""

    pass


class MaskError(VignetteError):
    """Base exception for mask post-processing errors."""

    pass


class MaskConversionError(MaskError):
    """Raised when a mask or cutout image cannot be produced."""

    pass


class StorageError(VignetteError):
    """Base exception for persistence errors."""

    def __init__(self, message: str, path: Optional[Union[str, Path]] = None):
        self.path = Path(path) if path is not None else None
        super().__init__(message)


class DirectoryCreateError(StorageError):
    """Raised when a storage directory cannot be created."""

    pass


class DirectoryDeleteError(StorageError):
    """Raised when a vignette directory cannot be removed."""

    pass


class InvalidVignetteIdError(StorageError):
    """Raised when an id does not name a vignette directory inside the store."""

    pass


class FileMissingError(StorageError):
    """Raised when an expected file is not on disk."""

    pass


class ImageWriteError(StorageError):
    """Raised when a colour or cutout image cannot be written."""

    pass


class ImageReadError(StorageError):
    """Raised when a colour image cannot be decoded."""

    pass


class DepthWriteError(StorageError):
    """Raised when a depth raster cannot be written."""

    pass


class DepthReadError(StorageError):
    """Raised when a depth raster cannot be decoded."""

    pass


class ConfidenceWriteError(StorageError):
    """Raised when a confidence raster cannot be written."""

    pass


class ConfidenceReadError(StorageError):
    """Raised when a confidence raster cannot be decoded."""

    pass


class MetadataWriteError(StorageError):
    """Raised when the vignette JSON sidecar cannot be written."""

    pass


class MetadataReadError(StorageError):
    """Raised when the vignette JSON sidecar cannot be parsed."""

    pass


class MaskReadError(StorageError):
    """Raised when stored mask logits cannot be read."""

    pass


class ConfigError(VignetteError):
    """Base exception for configuration errors."""

    pass


class InvalidConfigError(ConfigError):
    """Raised when configuration file is invalid or corrupted."""

    pass


class ConfigValidationError(ConfigError):
    """Raised when configuration fails schema validation."""

    def __init__(self, message: str, validation_errors: Optional[list] = None):
        self.validation_errors = validation_errors or []
        super().__init__(message)
