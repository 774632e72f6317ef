"""On-disk persistence of vignettes: a JSON sidecar next to PNG rasters."""

from __future__ import annotations

import json
import os
import shutil
import uuid
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List

import cv2
import numpy as np

from contracts import Intrinsics, Vignette
from contracts.versioning import stamp_versions
from exceptions import (
    ConfidenceReadError,
    ConfidenceWriteError,
    DepthReadError,
    DepthWriteError,
    DirectoryCreateError,
    DirectoryDeleteError,
    FileMissingError,
    ImageReadError,
    ImageWriteError,
    InvalidVignetteIdError,
    MalformedLogitsError,
    MaskReadError,
    MetadataReadError,
    MetadataWriteError,
)
from geometry.matrices import flatten_3x3, flatten_4x4, inflate_3x3, inflate_4x4
from log_config.logger import get_logger
from mask.logits_codec import decode_logits, encode_logits
from mask.pipeline import make_cutout

logger = get_logger(__name__)

METADATA_FILE = "vignette.json"
RGB_FILE = "rgb.png"
DEPTH_FILE = "depth16.png"
CONFIDENCE_FILE = "confidence.png"
MASK_FILE = "sam_mask.json"
SUBJECT_FILE = "subject_mask.png"

MAX_DEPTH_MM = 65535


def depth_to_millimeters(depth_m: np.ndarray) -> np.ndarray:
    """Metres to uint16 millimetres; invalid samples become 0."""
    depth_m = np.asarray(depth_m, dtype=np.float64)
    with np.errstate(invalid="ignore"):
        valid = np.isfinite(depth_m) & (depth_m > 0)
    mm = np.zeros(depth_m.shape, dtype=np.float64)
    mm[valid] = np.rint(depth_m[valid] * 1000.0)
    return np.clip(mm, 0, MAX_DEPTH_MM).astype(np.uint16)


def millimeters_to_depth(depth_mm: np.ndarray) -> np.ndarray:
    return depth_mm.astype(np.float32) * np.float32(0.001)


def _is_vignette_id(name: str) -> bool:
    try:
        return str(uuid.UUID(name)).upper() == str(name).upper()
    except (TypeError, ValueError, AttributeError):
        return False


class VignetteStore:
    """Stores each vignette in ``base_dir/<ID>/``.

    The directory holds ``vignette.json`` plus ``rgb.png``,
    ``depth16.png`` (uint16 millimetres, 0 = invalid), an optional
    ``confidence.png`` and, once segmented, ``sam_mask.json`` and
    ``subject_mask.png``.
    """

    def __init__(self, base_dir: Path | str):
        self.base_dir = Path(base_dir)
        self._ensure_directory(self.base_dir)

    def folder_for(self, vignette_id: str) -> Path:
        """Directory for ``vignette_id``. Only canonical UUID strings name a folder.

        Raises:
            InvalidVignetteIdError: The id is not a canonical UUID string,
                e.g. ``""``, ``".."`` or a nested path.
        """
        if not _is_vignette_id(vignette_id):
            raise InvalidVignetteIdError(f"Not a vignette id: {vignette_id!r}", path=self.base_dir)
        return self.base_dir / vignette_id

    # Public API

    def save(self, vignette: Vignette) -> str:
        """Write every raster and the sidecar. Returns the vignette id."""
        folder = self.folder_for(vignette.id)
        self._ensure_directory(folder)

        self._write_color(vignette.color, folder / RGB_FILE)
        self._write_depth(vignette.depth_m, folder / DEPTH_FILE)
        if vignette.confidence is not None:
            self._write_confidence(vignette.confidence, folder / CONFIDENCE_FILE)
        if vignette.raw_logits is not None:
            self._write_logits(vignette.raw_logits, folder / MASK_FILE)
        self.update_metadata(vignette)

        logger.info(f"Saved vignette {vignette.id} to {folder}")
        return vignette.id

    def load(self, vignette_id: str) -> Vignette:
        folder = self.folder_for(vignette_id)
        meta_path = folder / METADATA_FILE
        if not meta_path.exists():
            raise FileMissingError(f"Vignette {vignette_id} has no metadata", path=meta_path)
        meta = self._read_metadata(meta_path)

        try:
            paths = meta["paths"]
            rgb_name = paths["rgb"]
            depth_name = paths["depth"]
            camera = meta["camera"]
            capture = meta.get("capture", {})
            intrinsics = Intrinsics.from_matrix(inflate_3x3(camera["intrinsics"]))
            extrinsics = inflate_4x4(camera["extrinsics"])
            stored_id = str(meta["id"])
            created_at = datetime.fromisoformat(meta["created_at"])
        except (KeyError, TypeError, ValueError) as e:
            raise MetadataReadError(f"Vignette metadata is incomplete: {e}", path=meta_path) from e

        color = self._read_color(folder / rgb_name)
        depth = self._read_depth(folder / depth_name)
        confidence = None
        if paths.get("confidence"):
            confidence = self._read_confidence(folder / paths["confidence"])
        logits = None
        if paths.get("sam_mask"):
            logits = self._read_logits(folder / paths["sam_mask"])

        vignette = Vignette(
            color=color,
            depth_m=depth,
            intrinsics=intrinsics,
            extrinsics=extrinsics,
            confidence=confidence,
            id=stored_id,
            created_at=created_at,
            device_model=capture.get("device_model", "unknown"),
            note=capture.get("note"),
            raw_logits=logits,
            mask_threshold=meta.get("sam_mask_threshold"),
        )
        logger.debug(f"Loaded vignette {vignette_id}")
        return vignette

    def list_ids(self) -> List[str]:
        """Ids of stored vignettes, oldest directory name first."""
        ids = []
        for entry in sorted(self.base_dir.iterdir()):
            if not entry.is_dir() or not (entry / METADATA_FILE).exists():
                continue
            if not _is_vignette_id(entry.name):
                continue
            ids.append(entry.name)
        return ids

    def delete(self, vignette_id: str) -> bool:
        folder = self.folder_for(vignette_id)
        if not folder.exists():
            return False
        try:
            shutil.rmtree(folder)
        except OSError as e:
            raise DirectoryDeleteError(f"Failed to delete vignette: {e}", path=folder) from e
        logger.info(f"Deleted vignette {vignette_id}")
        return True

    def save_mask(self, vignette: Vignette) -> bool:
        """Persist the raw logits and refresh the sidecar. False when there are none."""
        if vignette.raw_logits is None:
            logger.info(f"No mask logits to save for vignette {vignette.id}")
            return False
        folder = self._saved_folder(vignette)
        self._write_logits(vignette.raw_logits, folder / MASK_FILE)
        self.update_metadata(vignette)
        logger.info(f"Saved mask logits for vignette {vignette.id}")
        return True

    def save_subject_cutout(
        self,
        vignette: Vignette,
        threshold: float,
        radius: int = 5,
        interpolation: str = "nearest",
    ) -> Path:
        """Write the RGBA cutout for ``threshold`` and record the threshold.

        The vignette must already be saved.
        """
        folder = self.folder_for(vignette.id)
        path = folder / SUBJECT_FILE
        cutout = make_cutout(vignette.color, vignette.raw_logits, threshold, radius, interpolation)
        if cutout is None:
            raise ImageWriteError(f"Vignette {vignette.id} has no mask to cut out", path=path)
        self._saved_folder(vignette)
        vignette.mask_threshold = float(threshold)
        self._write_png(cv2.cvtColor(cutout, cv2.COLOR_RGBA2BGRA), path, ImageWriteError)
        self.update_metadata(vignette)
        logger.info(f"Saved subject cutout for vignette {vignette.id} at threshold {threshold:.3f}")
        return path

    def load_subject_cutout(self, vignette_id: str) -> np.ndarray:
        path = self.folder_for(vignette_id) / SUBJECT_FILE
        bgra = self._read_png(path, cv2.IMREAD_UNCHANGED, ImageReadError)
        if bgra.ndim != 3 or bgra.shape[2] != 4:
            raise ImageReadError(f"Subject cutout is not RGBA: {bgra.shape}", path=path)
        return cv2.cvtColor(bgra, cv2.COLOR_BGRA2RGBA)

    def update_metadata(self, vignette: Vignette) -> Dict[str, Any]:
        folder = self.folder_for(vignette.id)
        meta = self._metadata_for(vignette, folder)
        path = folder / METADATA_FILE
        tmp = path.with_suffix(".json.tmp")
        try:
            tmp.write_text(json.dumps(meta, indent=2, sort_keys=True))
            os.replace(tmp, path)
        except (OSError, TypeError, ValueError) as e:
            raise MetadataWriteError(f"Failed to write vignette metadata: {e}", path=path) from e
        return meta

    def _saved_folder(self, vignette: Vignette) -> Path:
        folder = self.folder_for(vignette.id)
        meta_path = folder / METADATA_FILE
        if not meta_path.exists():
            raise FileMissingError(f"Vignette {vignette.id} has not been saved", path=meta_path)
        return folder

    # Metadata

    @staticmethod
    def _metadata_for(vignette: Vignette, folder: Path) -> Dict[str, Any]:
        has_mask = vignette.raw_logits is not None and (folder / MASK_FILE).exists()
        has_subject = (folder / SUBJECT_FILE).exists()
        resolution = vignette.resolution
        meta: Dict[str, Any] = {
            "id": vignette.id,
            "created_at": vignette.created_at.isoformat(),
            "paths": {
                "rgb": RGB_FILE,
                "depth": DEPTH_FILE,
                "confidence": CONFIDENCE_FILE if vignette.confidence is not None else None,
                "sam_mask": MASK_FILE if has_mask else None,
                "sam_subject_crop": SUBJECT_FILE if has_subject else None,
            },
            "camera": {
                "resolution": {"width": resolution.width, "height": resolution.height},
                "intrinsics": flatten_3x3(vignette.intrinsics.matrix()),
                "extrinsics": flatten_4x4(vignette.extrinsics),
            },
            "capture": {
                "device_model": vignette.device_model,
                "note": vignette.note,
            },
            "sam_mask_threshold": vignette.mask_threshold,
        }
        return stamp_versions(meta)

    def _read_metadata(self, path: Path) -> Dict[str, Any]:
        try:
            meta = json.loads(path.read_text())
        except (OSError, json.JSONDecodeError) as e:
            raise MetadataReadError(f"Failed to read vignette metadata: {e}", path=path) from e
        if not isinstance(meta, dict):
            raise MetadataReadError("Vignette metadata root must be an object", path=path)
        return meta

    # Rasters

    def _write_color(self, color: np.ndarray, path: Path) -> None:
        color = np.asarray(color, dtype=np.uint8)
        if color.ndim != 3 or color.shape[2] not in (3, 4):
            raise ImageWriteError(f"Color must be HxWx3 or HxWx4, got {color.shape}", path=path)
        code = cv2.COLOR_RGB2BGR if color.shape[2] == 3 else cv2.COLOR_RGBA2BGRA
        self._write_png(cv2.cvtColor(color, code), path, ImageWriteError)

    def _read_color(self, path: Path) -> np.ndarray:
        image = self._read_png(path, cv2.IMREAD_UNCHANGED, ImageReadError)
        if image.ndim != 3:
            raise ImageReadError(f"Color image is not RGB: {image.shape}", path=path)
        code = cv2.COLOR_BGR2RGB if image.shape[2] == 3 else cv2.COLOR_BGRA2RGBA
        return cv2.cvtColor(image, code)

    def _write_depth(self, depth_m: np.ndarray, path: Path) -> None:
        self._write_png(depth_to_millimeters(depth_m), path, DepthWriteError)

    def _read_depth(self, path: Path) -> np.ndarray:
        raw = self._read_png(path, cv2.IMREAD_UNCHANGED, DepthReadError)
        if raw.dtype != np.uint16 or raw.ndim != 2:
            raise DepthReadError(f"Depth must be single-channel 16-bit, got {raw.dtype} {raw.shape}", path=path)
        return millimeters_to_depth(raw)

    def _write_confidence(self, confidence: np.ndarray, path: Path) -> None:
        confidence = np.asarray(confidence)
        if confidence.ndim != 2:
            raise ConfidenceWriteError(f"Confidence must be 2D, got {confidence.shape}", path=path)
        self._write_png(confidence.astype(np.uint8), path, ConfidenceWriteError)

    def _read_confidence(self, path: Path) -> np.ndarray:
        raw = self._read_png(path, cv2.IMREAD_UNCHANGED, ConfidenceReadError)
        if raw.dtype != np.uint8 or raw.ndim != 2:
            raise ConfidenceReadError(f"Confidence must be single-channel 8-bit, got {raw.dtype} {raw.shape}", path=path)
        return raw

    def _write_logits(self, logits: np.ndarray, path: Path) -> None:
        try:
            path.write_text(json.dumps(encode_logits(logits)))
        except OSError as e:
            raise MetadataWriteError(f"Failed to write mask logits: {e}", path=path) from e

    def _read_logits(self, path: Path) -> np.ndarray:
        if not path.exists():
            raise FileMissingError("Mask logits file is missing", path=path)
        try:
            return decode_logits(json.loads(path.read_text()))
        except (OSError, json.JSONDecodeError, MalformedLogitsError) as e:
            raise MaskReadError(f"Failed to read mask logits: {e}", path=path) from e

    @staticmethod
    def _write_png(image: np.ndarray, path: Path, error: type) -> None:
        try:
            ok = cv2.imwrite(str(path), image)
        except cv2.error as e:
            raise error(f"Failed to encode PNG: {e}", path=path) from e
        if not ok:
            raise error("Failed to write PNG", path=path)

    @staticmethod
    def _read_png(path: Path, flags: int, error: type) -> np.ndarray:
        if not path.exists():
            raise FileMissingError("Expected file is missing", path=path)
        image = cv2.imread(str(path), flags)
        if image is None:
            raise error("Failed to decode PNG", path=path)
        return image

    @staticmethod
    def _ensure_directory(path: Path) -> None:
        try:
            path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise DirectoryCreateError(f"Cannot create directory: {e}", path=path) from e


__all__ = ["VignetteStore", "depth_to_millimeters", "millimeters_to_depth"]
