"""Centralized logging configuration using loguru."""

from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Optional

from loguru import logger

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | "
    "<cyan>{extra[name]}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {extra[name]}:{function}:{line} - {message}"

# Records logged through the bare logger still need extra[name] for the formats above
logger.configure(extra={"name": "vignette"})

# Remove default handler
logger.remove()

logger.add(
    sys.stderr,
    level=os.environ.get("VIGNETTE_LOG_LEVEL", "INFO"),
    format=CONSOLE_FORMAT,
    colorize=True,
)

logs_dir = Path(os.environ.get("VIGNETTE_LOG_DIR", "logs"))
logs_dir.mkdir(parents=True, exist_ok=True)

logger.add(
    logs_dir / "vignette_{time}.log",
    rotation="50 MB",
    retention="10 days",
    level="DEBUG",
    format=FILE_FORMAT,
    enqueue=True,  # Thread-safe logging; the render loop and workers both log
)

logger.add(
    logs_dir / "errors_{time}.log",
    rotation="10 MB",
    retention="30 days",
    level="ERROR",
    format=FILE_FORMAT,
    enqueue=True,
)


def get_logger(name: Optional[str] = None):
    """Get a logger instance with the given name.

    Args:
        name: Module name for the logger (usually __name__)

    Returns:
        Configured logger instance
    """
    if name:
        return logger.bind(name=name)
    return logger


def log_performance(operation: str, duration_ms: float, threshold_ms: float = 16.0) -> None:
    """Log timing of an operation, warning when it exceeds the threshold.

    The default threshold is one frame at 60 Hz.

    Args:
        operation: Description of the operation
        duration_ms: Duration in milliseconds
        threshold_ms: Threshold for warning
    """
    if duration_ms > threshold_ms:
        logger.warning(f"Slow operation: {operation} took {duration_ms:.2f}ms (threshold: {threshold_ms}ms)")
    else:
        logger.debug(f"Performance: {operation} took {duration_ms:.2f}ms")


__all__ = ["logger", "get_logger", "log_performance"]
