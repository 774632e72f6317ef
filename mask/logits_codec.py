"""Encoding of raw segmentation logits for storage and service payloads."""

from __future__ import annotations

import base64
import binascii
from typing import Any, Dict, Mapping, Sequence

import numpy as np

from exceptions import MalformedLogitsError


def encode_logits(logits: np.ndarray) -> Dict[str, Any]:
    """Pack logits as little-endian float16 bytes in base64 plus their shape."""
    logits = np.asarray(logits)
    if logits.ndim != 2:
        raise ValueError(f"Logits must be 2D, got shape {logits.shape}")
    data = logits.astype("<f2").tobytes()
    return {
        "dtype": "float16",
        "shape": [int(logits.shape[0]), int(logits.shape[1])],
        "data": base64.b64encode(data).decode("ascii"),
    }


def decode_logits(stored: Mapping[str, Any]) -> np.ndarray:
    """Inverse of :func:`encode_logits`. Returns float32 (H, W)."""
    try:
        shape = stored["shape"]
        payload = stored["data"]
    except (KeyError, TypeError) as e:
        raise MalformedLogitsError(f"Stored logits missing field: {e}") from e
    dtype = stored.get("dtype", "float16")
    return decode_logits_response(payload, shape, dtype)


def decode_logits_response(payload: str, shape: Sequence[int], dtype: str = "float32") -> np.ndarray:
    """Decode base64 logits with shape [height, width] into float32 (H, W)."""
    if dtype not in ("float16", "float32"):
        raise MalformedLogitsError(f"Unsupported logits dtype '{dtype}'")
    if not isinstance(shape, (list, tuple)) or len(shape) != 2:
        raise MalformedLogitsError(f"Logits shape must be [height, width], got {shape!r}")
    try:
        height, width = int(shape[0]), int(shape[1])
    except (TypeError, ValueError) as e:
        raise MalformedLogitsError(f"Logits shape is not integral: {shape!r}") from e
    if height < 0 or width < 0:
        raise MalformedLogitsError(f"Logits shape must be non-negative, got {shape!r}")

    try:
        raw = base64.b64decode(payload, validate=True)
    except (binascii.Error, TypeError, ValueError) as e:
        raise MalformedLogitsError(f"Logits payload is not valid base64: {e}") from e

    item = 2 if dtype == "float16" else 4
    expected = height * width * item
    if len(raw) != expected:
        raise MalformedLogitsError(
            f"Logits payload has {len(raw)} bytes, expected {expected} for {height}x{width} {dtype}"
        )
    values = np.frombuffer(raw, dtype="<f2" if dtype == "float16" else "<f4")
    return values.astype(np.float32).reshape(height, width)


__all__ = ["decode_logits", "decode_logits_response", "encode_logits"]
