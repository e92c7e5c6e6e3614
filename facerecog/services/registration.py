"""Registration of new identities from a still image."""
import uuid
from datetime import datetime, timezone
from typing import Callable, Optional

from facerecog.core.config import settings
from facerecog.core.exceptions import NoFaceDetectedError, ValidationError
from facerecog.core.logging import get_logger
from facerecog.core.utils.image import bytes_to_numpy_array, limit_image_size, to_data_uri
from facerecog.domain.entities.identity import Identity
from facerecog.domain.interfaces.recognition.model_service import ModelService
from facerecog.services.gallery import Gallery

logger = get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RegistrationService:
    """Service for registering a person into the gallery.

    This service:
    1. Validates the submitted name, contact and image
    2. Runs one-shot face detection on the image
    3. Appends an identity built from the first detected face and persists it

    Only the first detection is used when a photo holds several faces; no
    attempt is made to pick the best one.

    Example:
        ```python
        service = RegistrationService(model_service, gallery)
        identity = await service.register("Jane Doe", "jane@example.com", image_bytes)
        ```
    """

    def __init__(
        self,
        model_service: ModelService,
        gallery: Gallery,
        max_image_pixels: Optional[int] = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        """Initialize the registration service.

        Args:
            model_service: Model used for face detection and embedding extraction
            gallery: Gallery receiving the new identity
            max_image_pixels: Larger uploads are downscaled before detection
            clock: Source of the registration timestamp
        """
        self.model_service = model_service
        self.gallery = gallery
        self.max_image_pixels = max_image_pixels or settings.MAX_IMAGE_PIXELS
        self.clock = clock

    async def register(
        self,
        name: str,
        email: str,
        image: bytes,
        image_url: Optional[str] = None,
        content_type: str = "image/jpeg",
    ) -> Identity:
        """Register a new identity.

        Args:
            name: Display name
            email: Contact identifier
            image: Encoded still image (JPEG, PNG, ...)
            image_url: Reference to keep for the image; defaults to an inline data URI
            content_type: MIME type used for the inline data URI

        Returns:
            The registered identity

        Raises:
            ValidationError: If a field is missing; the model is not called
            ModelLoadError: If the model is not loaded and cannot be loaded
            InvalidImageError: If the image cannot be decoded
            NoFaceDetectedError: If the image holds no face
            InvalidEmbeddingError: If the model output does not fit the gallery dimension
            PersistenceError: If the gallery could not be saved; nothing is registered
        """
        name = (name or "").strip()
        email = (email or "").strip()
        missing = [
            field for field, value in (("name", name), ("email", email), ("image", image))
            if not value
        ]
        if missing:
            raise ValidationError("Missing registration fields", details={"missing": missing})

        decoded = limit_image_size(bytes_to_numpy_array(image), self.max_image_pixels)
        await self.model_service.load_models()
        detections = await self.model_service.detect(decoded)
        if not detections:
            logger.warning("No face detected in registration image", name=name)
            raise NoFaceDetectedError("No face detected in registration image")
        if len(detections) > 1:
            logger.warning(
                "Several faces in registration image, using the first",
                faces_found=len(detections)
            )

        identity = Identity(
            id=f"user-{uuid.uuid4().hex}",
            name=name,
            email=email,
            embedding=detections[0].embedding,
            image_url=image_url or to_data_uri(image, content_type),
            registered_at=self.clock(),
            recognition_count=0,
        )
        await self.gallery.add(identity)

        logger.info("Registered identity", identity_id=identity.id, name=name)
        return identity
