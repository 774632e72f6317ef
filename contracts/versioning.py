"""Schema and application version metadata for the vignette sidecar."""

from __future__ import annotations

from typing import Any, Dict

SCHEMA_VERSION = "1.0.0"
APP_VERSION = "0.4.0"


def stamp_versions(metadata: Dict[str, Any]) -> Dict[str, Any]:
    """Return a copy of a sidecar dict with schema/app versions attached."""
    stamped = dict(metadata)
    stamped["schema_version"] = SCHEMA_VERSION
    stamped["app_version"] = APP_VERSION
    return stamped


def is_supported_schema(version: str) -> bool:
    """Sidecars with the same major schema version can be read."""
    try:
        major = int(str(version).split(".")[0])
    except ValueError:
        return False
    return major == int(SCHEMA_VERSION.split(".")[0])


__all__ = ["SCHEMA_VERSION", "APP_VERSION", "stamp_versions", "is_supported_schema"]
