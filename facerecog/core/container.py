"""Service container for dependency injection."""
from typing import Optional

from facerecog.core.config import Settings, settings as default_settings
from facerecog.core.logging import get_logger
from facerecog.domain.interfaces.camera.camera import Camera
from facerecog.domain.interfaces.recognition.model_service import ModelService
from facerecog.domain.interfaces.storage.gallery_store import GalleryStore
from facerecog.domain.value_objects.recognition import SystemStats
from facerecog.infrastructure.camera import OpenCVCamera
from facerecog.infrastructure.storage import JsonFileStore
from facerecog.services.activity import ActivityRecorder, RecognitionLog, compute_stats
from facerecog.services.gallery import Gallery
from facerecog.services.recognition.insight_face import InsightFaceModelService
from facerecog.services.recognition_loop import RecognitionLoop
from facerecog.services.registration import RegistrationService
from facerecog.ui.overlay import OverlayRenderer

logger = get_logger(__name__)


class ServiceContainer:
    """Container for application services.

    This container owns the single gallery shared by the registration flow and
    the recognition loop, and wires every service from settings. Collaborators
    can be injected to replace the model, the camera or the store.

    Example:
        ```python
        container = ServiceContainer()
        await container.initialize()

        identity = await container.registration_service.register(name, email, image)
        await container.recognition_loop.start()
        ```
    """

    def __init__(
        self,
        config: Optional[Settings] = None,
        model_service: Optional[ModelService] = None,
        camera: Optional[Camera] = None,
        store: Optional[GalleryStore] = None,
    ) -> None:
        """Initialize empty container."""
        self.settings = config or default_settings
        self._injected_model_service = model_service
        self._injected_camera = camera
        self._injected_store = store

        # Infrastructure
        self.store: Optional[GalleryStore] = None
        self.model_service: Optional[ModelService] = None
        self.camera: Optional[Camera] = None

        # Domain services
        self.gallery: Optional[Gallery] = None
        self.recognition_log: Optional[RecognitionLog] = None
        self.registration_service: Optional[RegistrationService] = None
        self.recognition_loop: Optional[RecognitionLoop] = None
        self.activity_recorder: Optional[ActivityRecorder] = None

    @property
    def is_initialized(self) -> bool:
        return self.gallery is not None

    async def initialize(self) -> None:
        """Initialize all services in the correct order.

        Models are not loaded here; the recognition loop and the registration
        flow load them on first use.
        """
        cfg = self.settings
        self.store = self._injected_store or JsonFileStore(cfg.data_path)
        self.model_service = self._injected_model_service or InsightFaceModelService(
            model_name=cfg.MODEL_NAME,
            root=cfg.MODEL_CACHE_DIR,
            det_size=cfg.DETECTION_SIZE,
            max_faces=cfg.MAX_FACES_PER_FRAME,
        )
        self.camera = self._injected_camera or OpenCVCamera(cfg.CAMERA_INDEX)

        self.gallery = Gallery(self.store, cfg.USERS_KEY)
        await self.gallery.load()
        self.recognition_log = RecognitionLog(self.store, cfg.RECOGNITIONS_KEY)
        await self.recognition_log.load()
        if cfg.AUTO_DELETE_OLD_RECORDS:
            await self.recognition_log.prune(cfg.RETENTION_DAYS)

        self.registration_service = RegistrationService(
            model_service=self.model_service,
            gallery=self.gallery,
            max_image_pixels=cfg.MAX_IMAGE_PIXELS,
        )
        self.recognition_loop = RecognitionLoop(
            model_service=self.model_service,
            camera=self.camera,
            gallery=self.gallery,
            renderer=OverlayRenderer(show_confidence=cfg.SHOW_CONFIDENCE),
            threshold=self._match_threshold(),
            interval=cfg.recognition_interval,
            width=cfg.CAMERA_WIDTH,
            height=cfg.CAMERA_HEIGHT,
        )
        self.activity_recorder = ActivityRecorder(
            gallery=self.gallery,
            log=self.recognition_log,
            location=cfg.RECOGNITION_LOCATION,
            cooldown_seconds=cfg.RECOGNITION_COOLDOWN_SECONDS,
        )
        self.recognition_loop.add_listener(self.activity_recorder.on_result)
        logger.info("Initialized application services", identities=len(self.gallery))

    def _match_threshold(self) -> Optional[float]:
        if self.settings.MATCH_THRESHOLD is not None:
            return self.settings.MATCH_THRESHOLD
        return self.model_service.recommended_threshold

    def stats(self) -> SystemStats:
        return compute_stats(self.gallery.snapshot(), self.recognition_log.events())

    async def clear_all_data(self) -> None:
        """Delete every registered identity and the recognition history."""
        await self.gallery.clear()
        await self.recognition_log.clear()

    async def cleanup(self) -> None:
        """Cleanup all services in reverse order of initialization."""
        if self.recognition_loop is not None:
            self.recognition_loop.stop()
        self.activity_recorder = None
        self.recognition_loop = None
        self.registration_service = None
        self.recognition_log = None
        self.gallery = None
        self.camera = None
        self.model_service = None
        self.store = None
