"""Application service wiring capture, reprojection, rendering, segmentation and storage."""

from __future__ import annotations

import threading
from concurrent.futures import Future, InvalidStateError, ThreadPoolExecutor
from typing import Callable, List, Optional, Sequence, Set

from capture.capture_source import CaptureSource
from configs.settings import AppConfig
from contracts import PromptPoint, Vignette
from exceptions import FrameBuildError, StaleGenerationError
from geometry.orbit_camera import OrbitCamera
from log_config.logger import get_logger
from mask.session import CommittedMask, MaskSession
from render.cloud_store import CloudInfo, CloudStore
from render.frame_renderer import FrameRenderer
from render.gpu_device import GpuDevice
from reproject.reprojector import reproject_vignette
from segmentation.service import GuardedSegmentationService, SegmentationService
from storage.vignette_store import VignetteStore

logger = get_logger(__name__)

Dispatcher = Callable[[Callable[[], None]], None]


def _call_inline(fn: Callable[[], None]) -> None:
    fn()


def _settle(future: Future, value) -> None:
    try:
        future.set_result(value)
    except InvalidStateError:
        pass  # already resolved


class VignetteService:
    """Front door for the viewer UI.

    Collaborators are injected. GPU uploads must run on the thread that
    owns the device, so reprojection results are handed to
    ``dispatcher`` for insertion; the Qt viewport passes one that posts
    to the GUI thread. The default runs insertion on the worker.

    Thread Safety:
        - Cloud mutations go through CloudStore's lock
        - A reprojection finishing after remove_all_clouds is discarded
        - Inserts still queued at shutdown resolve to None
        - Mask session state is guarded by an internal lock
    """

    def __init__(
        self,
        config: AppConfig,
        device: GpuDevice,
        capture: Optional[CaptureSource] = None,
        segmentation: Optional[SegmentationService] = None,
        store: Optional[VignetteStore] = None,
        dispatcher: Optional[Dispatcher] = None,
        max_workers: int = 2,
    ):
        self.config = config
        self.device = device
        self.capture = capture
        self.segmentation = (
            GuardedSegmentationService(segmentation, config.segmentation) if segmentation is not None else None
        )
        self.store = store
        self.dispatcher: Dispatcher = dispatcher or _call_inline

        self.clouds = CloudStore(device)
        self.camera = OrbitCamera.from_config(config.orbit)
        self.renderer = FrameRenderer(device, self.clouds, self.camera, config.render)

        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="reproject")
        self._lock = threading.Lock()
        self._mask_session: Optional[MaskSession] = None
        self._mask_vignette: Optional[Vignette] = None
        self._pending: Set[Future] = set()
        self._closed = False
        logger.info("Vignette service initialized")

    # Capture

    def capture_vignette(self, note: Optional[str] = None) -> Vignette:
        """Grab the current frame as a new vignette. Capture errors propagate."""
        if self.capture is None:
            raise FrameBuildError("No capture source configured")
        frame = self.capture.next_frame()
        try:
            vignette = Vignette.from_frame(frame, device_model=self.capture.device_model, note=note)
        except ValueError as e:
            raise FrameBuildError(f"Failed to build vignette from frame: {e}", source=self.capture.device_model) from e
        logger.info(f"Captured vignette {vignette.id}")
        return vignette

    def follow_live_sensor(self, enabled: bool = True) -> None:
        if self.capture is None:
            return
        if enabled:
            self.renderer.bind_live_sensor(self.capture.sensor_pose)
        else:
            self.renderer.use_orbit()

    # Clouds

    def add_cloud(self, vignette: Vignette, cloud_id: Optional[str] = None) -> "Future[Optional[str]]":
        """Reproject off-thread and insert the cloud under ``cloud_id``.

        The returned future yields the cloud id, or None when the store
        was cleared while the reprojection was running or the service
        shut down before the insert ran.
        """
        cloud_id = cloud_id or vignette.id
        generation = self.clouds.generation
        render = self.config.render
        result: "Future[Optional[str]]" = Future()
        with self._lock:
            self._pending.add(result)
        result.add_done_callback(self._forget)

        def insert(points) -> None:
            if self._closed or result.done():
                _settle(result, None)
                return
            try:
                result.set_result(
                    self.clouds.add(points, vignette.extrinsics, cloud_id=cloud_id, expected_generation=generation)
                )
            except StaleGenerationError:
                result.set_result(None)
            except Exception as e:
                logger.error(f"Failed to upload cloud {cloud_id}: {e}")
                result.set_exception(e)

        def work() -> None:
            try:
                points = reproject_vignette(vignette, render.sample_stride, render.max_depth_m)
            except Exception as e:
                logger.error(f"Reprojection of {vignette.id} failed: {e}")
                result.set_exception(e)
                return
            self.dispatcher(lambda: insert(points))

        self._executor.submit(work)
        return result

    def _forget(self, future: Future) -> None:
        with self._lock:
            self._pending.discard(future)

    def remove_cloud(self, cloud_id: str) -> bool:
        return self.clouds.remove(cloud_id)

    def set_visible(self, cloud_id: str, visible: bool) -> bool:
        return self.clouds.set_visible(cloud_id, visible)

    def remove_all_clouds(self) -> int:
        return self.clouds.remove_all()

    def list_clouds(self) -> List[CloudInfo]:
        return self.clouds.list_active_clouds()

    def resize(self, width: int, height: int) -> None:
        self.renderer.resize(width, height)

    def attach_viewport(self, width: int, height: int, dispatcher: Optional[Dispatcher] = None) -> None:
        """Register the render target size and its thread dispatcher."""
        if dispatcher is not None:
            self.dispatcher = dispatcher
        self.resize(width, height)

    # Segmentation

    def segment(self, vignette: Vignette, prompt_points: Sequence[PromptPoint]) -> MaskSession:
        """Run inference once and open a preview session over its logits."""
        if self.segmentation is None:
            raise RuntimeError("No segmentation service configured")
        raw = self.segmentation.infer_logits(vignette.color, prompt_points)
        vignette.raw_logits = raw.logits
        return self.open_mask_session(vignette)

    def open_mask_session(self, vignette: Vignette) -> MaskSession:
        """Start previewing a vignette's stored logits without new inference."""
        if vignette.raw_logits is None:
            raise ValueError(f"Vignette {vignette.id} has no logits")
        mask_config = self.config.mask
        session = MaskSession(
            vignette.color,
            vignette.raw_logits,
            cleanup_radius=mask_config.cleanup_radius_px,
            interpolation=mask_config.resize_interpolation,
        )
        with self._lock:
            self._mask_session = session
            self._mask_vignette = vignette
        return session

    def preview_mask(self, t: Optional[float] = None):
        session = self._current_session()
        if session is None:
            return None
        return session.preview_mask(self._threshold(t))

    def finalize_mask(self, t: Optional[float] = None) -> Optional[CommittedMask]:
        """Commit the threshold on the vignette and return the cleaned mask and cutout."""
        with self._lock:
            session, vignette = self._mask_session, self._mask_vignette
        if session is None or vignette is None:
            return None
        committed = session.finalize(self._threshold(t))
        if committed is not None:
            vignette.mask_threshold = committed.threshold
        return committed

    def _current_session(self) -> Optional[MaskSession]:
        with self._lock:
            return self._mask_session

    def _threshold(self, t: Optional[float]) -> float:
        return self.config.mask.default_threshold if t is None else float(t)

    # Persistence

    def _require_store(self) -> VignetteStore:
        if self.store is None:
            raise RuntimeError("No vignette store configured")
        return self.store

    def save_vignette(self, vignette: Vignette) -> str:
        return self._require_store().save(vignette)

    def load_vignette(self, vignette_id: str) -> Vignette:
        return self._require_store().load(vignette_id)

    def list_vignettes(self) -> List[str]:
        return self._require_store().list_ids()

    def delete_vignette(self, vignette_id: str) -> bool:
        self.clouds.remove(vignette_id)
        return self._require_store().delete(vignette_id)

    def save_mask(self, vignette: Vignette) -> bool:
        return self._require_store().save_mask(vignette)

    def save_subject_cutout(self, vignette: Vignette, t: Optional[float] = None):
        return self._require_store().save_subject_cutout(
            vignette,
            self._threshold(t),
            self.config.mask.cleanup_radius_px,
            self.config.mask.resize_interpolation,
        )

    # Lifecycle

    def shutdown(self) -> None:
        self._closed = True
        self._executor.shutdown(wait=True)
        with self._lock:
            pending = list(self._pending)
        for future in pending:
            _settle(future, None)
        if pending:
            logger.info(f"Resolved {len(pending)} pending cloud insert(s) at shutdown")
        self.clouds.release()
        with self.device.current():
            self.device.release()
        logger.info("Vignette service shut down")


__all__ = ["Dispatcher", "VignetteService"]
