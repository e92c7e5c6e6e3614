"""Periodic, cancellable recognition over a live camera stream.

The loop ticks on a fixed interval. Each tick starts one cycle (capture a
frame, detect faces, match each face against the gallery, emit the result,
render the overlay) unless the previous cycle is still running, in which case
the tick is skipped. Cycles never overlap and ticks never queue up.

Example:
    ```python
    loop = RecognitionLoop(model_service, OpenCVCamera(0), gallery, OverlayRenderer())
    loop.add_listener(lambda result: print([f.label for f in result.faces]))
    await loop.start()
    ...
    loop.stop()
    ```
"""
import asyncio
import inspect
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, List, Optional, Tuple, Union

import numpy as np

from facerecog.core.config import settings
from facerecog.core.exceptions import CameraAccessError, FaceRecognitionError, ModelLoadError
from facerecog.core.logging import get_logger
from facerecog.domain.entities.face import Detection
from facerecog.domain.entities.identity import Identity
from facerecog.domain.interfaces.camera.camera import Camera, CameraStream
from facerecog.domain.interfaces.recognition.model_service import ModelService
from facerecog.domain.value_objects.recognition import FrameResult, MatchResult, RecognizedFace
from facerecog.services.face_matching import DEFAULT_THRESHOLD, find_closest, match
from facerecog.services.gallery import Gallery
from facerecog.ui.overlay import OverlayRenderer

logger = get_logger(__name__)

ResultListener = Callable[[FrameResult], Union[None, Awaitable[None]]]
FrameListener = Callable[[np.ndarray, FrameResult], Union[None, Awaitable[None]]]


class LoopState(str, Enum):
    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    ERROR = "error"


class RecognitionLoop:
    """Recognition task bound to a camera, a model and a gallery.

    States move ``STOPPED/ERROR -> STARTING -> RUNNING`` on ``start()``, into
    ``ERROR`` when the model or the camera cannot be brought up, and back to
    ``STOPPED`` on ``stop()``. A failed cycle is logged and dropped; it never
    changes the state.

    Attributes:
        state: Current loop state
        error: Failure that put the loop into ``ERROR``
        cycles: Number of cycles that emitted a result
        skipped_ticks: Ticks dropped because a cycle was still in flight
        failed_cycles: Cycles abandoned because of an error
        latest_result: Result of the most recent emitted cycle
    """

    def __init__(
        self,
        model_service: ModelService,
        camera: Camera,
        gallery: Gallery,
        renderer: Optional[OverlayRenderer] = None,
        threshold: Optional[float] = None,
        interval: Optional[float] = None,
        width: Optional[int] = None,
        height: Optional[int] = None,
    ) -> None:
        """Initialize the loop.

        Args:
            model_service: Model used for detection and embedding distance
            camera: Camera providing frames
            gallery: Gallery read on every cycle
            renderer: Overlay renderer; frame listeners get no frames without one
            threshold: Match distance threshold; defaults to the configured one, then the
                model's recommended one, then the matcher default
            interval: Seconds between ticks
            width: Requested camera width
            height: Requested camera height
        """
        self.model_service = model_service
        self.camera = camera
        self.gallery = gallery
        self.renderer = renderer
        self.threshold = self._resolve_threshold(threshold)
        self.interval = settings.recognition_interval if interval is None else interval
        self.width = width or settings.CAMERA_WIDTH
        self.height = height or settings.CAMERA_HEIGHT

        self.state = LoopState.STOPPED
        self.error: Optional[FaceRecognitionError] = None
        self.cycles = 0
        self.skipped_ticks = 0
        self.failed_cycles = 0
        self.latest_result: Optional[FrameResult] = None

        self._stream: Optional[CameraStream] = None
        self._ticker: Optional[asyncio.Task] = None
        self._cycle_task: Optional[asyncio.Task] = None
        # Bumped on every start/stop; stale tasks compare against it before acting
        self._generation = 0
        self._listeners: List[ResultListener] = []
        self._frame_listeners: List[FrameListener] = []

    async def __aenter__(self) -> "RecognitionLoop":
        await self.start()
        return self

    async def __aexit__(self, exc_type: Optional[type], exc_val: Optional[Exception],
                        exc_tb: Optional[Any]) -> None:
        self.stop()

    def _resolve_threshold(self, threshold: Optional[float]) -> float:
        for candidate in (threshold, settings.MATCH_THRESHOLD, self.model_service.recommended_threshold):
            if candidate is not None:
                return candidate
        return DEFAULT_THRESHOLD

    @property
    def is_running(self) -> bool:
        return self.state is LoopState.RUNNING

    def add_listener(self, listener: ResultListener) -> None:
        """Subscribe to the per-cycle recognition results."""
        self._listeners.append(listener)

    def add_frame_listener(self, listener: FrameListener) -> None:
        """Subscribe to annotated frames."""
        self._frame_listeners.append(listener)

    async def start(self) -> None:
        """Load the model, open the camera and begin ticking.

        Does nothing when the loop is already starting or running.

        Raises:
            ModelLoadError: If the model cannot be loaded; the loop enters ERROR
            CameraAccessError: If the camera cannot be opened; the loop enters ERROR
        """
        if self.state in (LoopState.STARTING, LoopState.RUNNING):
            return

        self._generation += 1
        generation = self._generation
        self.state = LoopState.STARTING
        self.error = None
        logger.info("Starting recognition loop", interval=self.interval, threshold=self.threshold)

        try:
            await self._load_models()
            stream = await self._acquire_camera()
        except (ModelLoadError, CameraAccessError) as e:
            if generation != self._generation:
                logger.info("Recognition loop start abandoned after stop", error=str(e))
                return
            self.state = LoopState.ERROR
            self.error = e
            logger.error("Recognition loop failed to start", error=str(e))
            raise

        if generation != self._generation:
            # stop() ran while we were acquiring
            self.camera.release(stream)
            return

        self._stream = stream
        self.state = LoopState.RUNNING
        self._ticker = asyncio.create_task(self._tick(generation))
        logger.info("Recognition loop running")

    def stop(self) -> None:
        """Stop ticking and release the camera.

        Synchronous: once it returns the camera handle is released and no
        further result is emitted. A loop in ERROR stays there until ``start()``.
        """
        if self.state in (LoopState.STOPPED, LoopState.ERROR):
            return

        self._generation += 1
        if self._ticker is not None:
            self._ticker.cancel()
            self._ticker = None
        if self._cycle_task is not None:
            self._cycle_task.cancel()
            self._cycle_task = None
        if self._stream is not None:
            self.camera.release(self._stream)
            self._stream = None
        self.state = LoopState.STOPPED
        logger.info(
            "Recognition loop stopped",
            cycles=self.cycles,
            skipped_ticks=self.skipped_ticks,
            failed_cycles=self.failed_cycles
        )

    async def _load_models(self) -> None:
        try:
            await self.model_service.load_models()
        except ModelLoadError:
            raise
        except Exception as e:
            raise ModelLoadError(f"Failed to load models: {e}") from e

    async def _acquire_camera(self) -> CameraStream:
        try:
            return await self.camera.acquire(self.width, self.height)
        except CameraAccessError:
            raise
        except Exception as e:
            raise CameraAccessError(f"Failed to access camera: {e}") from e

    async def _tick(self, generation: int) -> None:
        loop = asyncio.get_running_loop()
        next_tick = loop.time()
        while generation == self._generation:
            if self._cycle_task is not None and not self._cycle_task.done():
                self.skipped_ticks += 1
                logger.debug("Skipping tick, previous cycle still running")
            else:
                self._cycle_task = asyncio.create_task(self._run_cycle(generation))

            # Late wake-ups realign instead of firing a burst of catch-up ticks
            next_tick = max(next_tick + self.interval, loop.time())
            await asyncio.sleep(next_tick - loop.time())

    async def _run_cycle(self, generation: int) -> None:
        stream = self._stream
        if stream is None:
            return
        try:
            frame = await asyncio.to_thread(stream.read)
            captured_at = datetime.now(timezone.utc)
            detections = await self.model_service.detect(frame)
            entries = self.gallery.entries()
            faces = [self._recognize(detection, entries) for detection in detections]
            result = FrameResult(cycle=self.cycles + 1, captured_at=captured_at, faces=faces)
            annotated = self.renderer.render(frame, faces) if self.renderer is not None else None
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.failed_cycles += 1
            logger.warning("Recognition cycle abandoned", error=str(e), failed_cycles=self.failed_cycles)
            return

        if generation != self._generation or self.state is not LoopState.RUNNING:
            return

        self.cycles += 1
        self.latest_result = result
        # A listener may stop the loop; nothing is delivered once it has
        for listener in list(self._listeners):
            if generation != self._generation:
                return
            await self._notify(listener, result)
        if annotated is not None:
            for frame_listener in list(self._frame_listeners):
                if generation != self._generation:
                    return
                await self._notify(frame_listener, annotated, result)

    def _recognize(self, detection: Detection, entries: List[Tuple[Identity, np.ndarray]]) -> RecognizedFace:
        result = match(detection.embedding, entries, self.threshold, self.model_service.distance)
        if result is None:
            closest = find_closest(
                detection.embedding,
                [embedding for _, embedding in entries],
                self.model_service.distance,
            )
            result = MatchResult.unknown(closest[1] if closest else None)
        return RecognizedFace(detection=detection, result=result)

    async def _notify(self, listener: Callable[..., Any], *args: Any) -> None:
        try:
            outcome = listener(*args)
            if inspect.isawaitable(outcome):
                await outcome
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error("Recognition listener failed", error=str(e), exc_info=True)
