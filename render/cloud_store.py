"""GPU-resident point clouds keyed by id."""

from __future__ import annotations

import threading
import time
import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional

import numpy as np

from contracts import PointSet
from exceptions import StaleGenerationError
from log_config.logger import get_logger, log_performance

from .gpu_device import GpuDevice

logger = get_logger(__name__)


@dataclass
class CloudNode:
    """One uploaded cloud. Buffers belong to the store that created the node."""

    cloud_id: str
    positions: Any
    colors: Any
    count: int
    transform: np.ndarray
    visible: bool = True


@dataclass(frozen=True)
class CloudInfo:
    cloud_id: str
    count: int
    visible: bool


def _rgba(colors: np.ndarray) -> np.ndarray:
    rgba = np.full((colors.shape[0], 4), 255, dtype=np.uint8)
    rgba[:, :3] = colors[:, :3]
    return rgba


class CloudStore:
    """Owns every cloud's position and colour buffers.

    Mutations come from application threads while the renderer iterates
    visible nodes each frame. A single lock guards the node map and the
    generation counter; the renderer holds it for the whole draw so a
    node cannot be released mid-frame.
    """

    def __init__(self, device: GpuDevice):
        self._device = device
        self._nodes: Dict[str, CloudNode] = {}
        self._lock = threading.Lock()
        self._generation = 0

    @property
    def generation(self) -> int:
        with self._lock:
            return self._generation

    def __len__(self) -> int:
        with self._lock:
            return len(self._nodes)

    def __contains__(self, cloud_id: str) -> bool:
        with self._lock:
            return cloud_id in self._nodes

    def add(
        self,
        points: PointSet,
        transform: Optional[np.ndarray] = None,
        cloud_id: Optional[str] = None,
        expected_generation: Optional[int] = None,
    ) -> str:
        """Upload ``points`` and make them visible under ``cloud_id``.

        The node is inserted only after both buffers are populated.
        Passing ``expected_generation`` discards the upload if
        ``remove_all`` ran since the caller read the generation.

        Raises:
            StaleGenerationError: The store was reset after the caller
                captured ``expected_generation``.
        """
        if transform is None:
            transform = np.eye(4, dtype=np.float32)
        transform = np.asarray(transform, dtype=np.float32)
        if transform.shape != (4, 4):
            raise ValueError(f"Cloud transform must be 4x4, got {transform.shape}")
        cloud_id = cloud_id or str(uuid.uuid4())

        positions = np.ascontiguousarray(points.positions, dtype=np.float32)
        colors = _rgba(np.asarray(points.colors, dtype=np.uint8))

        start = time.perf_counter()
        with self._device.current():
            position_buffer = self._device.create_buffer(positions)
            color_buffer = self._device.create_buffer(colors)
        log_performance(f"upload cloud {cloud_id} ({len(points)} points)", (time.perf_counter() - start) * 1000.0)

        node = CloudNode(
            cloud_id=cloud_id,
            positions=position_buffer,
            colors=color_buffer,
            count=len(points),
            transform=transform.copy(),
        )

        with self._lock:
            stale = expected_generation is not None and expected_generation != self._generation
            actual = self._generation
            replaced = None
            if not stale:
                replaced = self._nodes.get(cloud_id)
                self._nodes[cloud_id] = node

        if stale:
            self._release_node(node)
            logger.info(f"Discarded cloud {cloud_id}: generation {expected_generation} is stale (now {actual})")
            raise StaleGenerationError(
                f"Cloud {cloud_id} was built for generation {expected_generation}, store is at {actual}",
                expected=expected_generation,
                actual=actual,
            )

        if replaced is not None:
            self._release_node(replaced)
            logger.debug(f"Replaced cloud {cloud_id}")
        logger.info(f"Added cloud {cloud_id} with {node.count} points")
        return cloud_id

    def remove(self, cloud_id: str) -> bool:
        """Remove a cloud and free its buffers. Returns False for unknown ids."""
        with self._lock:
            node = self._nodes.pop(cloud_id, None)
            # Release while locked so a frame in progress never sees freed buffers
            if node is not None:
                self._release_node(node)
        if node is None:
            logger.debug(f"remove: unknown cloud {cloud_id}")
            return False
        logger.info(f"Removed cloud {cloud_id}")
        return True

    def set_visible(self, cloud_id: str, visible: bool) -> bool:
        with self._lock:
            node = self._nodes.get(cloud_id)
            if node is None:
                return False
            node.visible = bool(visible)
        return True

    def remove_all(self) -> int:
        """Drop every cloud and start a new generation. Returns the count removed."""
        with self._lock:
            nodes = list(self._nodes.values())
            self._nodes.clear()
            self._generation += 1
            for node in nodes:
                self._release_node(node)
            generation = self._generation
        logger.info(f"Removed all clouds ({len(nodes)}), generation now {generation}")
        return len(nodes)

    def list_active_clouds(self) -> List[CloudInfo]:
        with self._lock:
            return [CloudInfo(n.cloud_id, n.count, n.visible) for n in self._nodes.values()]

    def snapshot(self) -> List[CloudNode]:
        """Visible nodes at this instant.

        Buffers in the returned nodes may be released once the lock is
        dropped; draw through :meth:`locked_visible` instead.
        """
        with self._lock:
            return [n for n in self._nodes.values() if n.visible]

    @contextmanager
    def locked_visible(self) -> Iterator[List[CloudNode]]:
        """Hold the store lock while yielding the visible nodes."""
        with self._lock:
            yield [n for n in self._nodes.values() if n.visible]

    def release(self) -> None:
        """Free every buffer at shutdown without bumping the generation."""
        with self._lock:
            nodes = list(self._nodes.values())
            self._nodes.clear()
            for node in nodes:
                self._release_node(node)

    def _release_node(self, node: CloudNode) -> None:
        with self._device.current():
            self._device.release_buffer(node.positions)
            self._device.release_buffer(node.colors)


__all__ = ["CloudInfo", "CloudNode", "CloudStore"]
