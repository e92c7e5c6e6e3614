"""
InsightFace-based implementation of the face model service.

This module provides a concrete implementation of the model service using the
InsightFace library. It handles model loading, face detection and embedding
extraction, and the embedding distance used for matching.

Key Features:
    - Lazy, non-blocking model loading
    - Face detection with a per-frame face limit
    - Unit-normalised face embeddings
    - Euclidean embedding distance

Example:
    ```python
    service = InsightFaceModelService()
    await service.load_models()

    detections = await service.detect(frame)
    ```

Note:
    This implementation uses CPU inference by default. For GPU support,
    pass providers including 'CUDAExecutionProvider'.
"""
import asyncio
from typing import Any, List, Optional, Sequence

import numpy as np
from insightface.app import FaceAnalysis
from insightface.app.common import Face as InsightFace

from facerecog.core.config import settings
from facerecog.core.exceptions import ModelLoadError
from facerecog.core.logging import get_logger
from facerecog.domain.entities.face import BoundingBox, Detection
from facerecog.domain.interfaces.recognition.model_service import ModelService
from facerecog.services.face_matching import euclidean_distance

logger = get_logger(__name__)


class InsightFaceModelService(ModelService):
    """
    InsightFace-based implementation of the model service.

    Attributes:
        model: InsightFace model instance for face analysis, None until loaded

    Performance Characteristics:
        - Detection time: ~50ms per face
        - Memory usage: ~1-2GB
    """

    # Unit-norm ArcFace embeddings: d = sqrt(2 - 2 cos), so 1.05 is cosine similarity 0.45
    RECOMMENDED_THRESHOLD = 1.05

    def __init__(
        self,
        model_name: Optional[str] = None,
        root: Optional[str] = None,
        det_size: Optional[int] = None,
        max_faces: Optional[int] = None,
        providers: Optional[Sequence[str]] = None,
    ) -> None:
        self.model_name = model_name or settings.MODEL_NAME
        self.root = root or settings.MODEL_CACHE_DIR
        self.det_size = det_size or settings.DETECTION_SIZE
        self.max_faces = settings.MAX_FACES_PER_FRAME if max_faces is None else max_faces
        self.providers = list(providers or ['CPUExecutionProvider'])
        self.model: Optional[FaceAnalysis] = None
        self._load_lock = asyncio.Lock()

    @property
    def is_loaded(self) -> bool:
        return self.model is not None

    @property
    def recommended_threshold(self) -> Optional[float]:
        return self.RECOMMENDED_THRESHOLD

    def _build_model(self) -> FaceAnalysis:
        model = FaceAnalysis(
            name=self.model_name,
            root=self.root,
            providers=self.providers
        )
        # Detection size affects accuracy significantly
        model.prepare(ctx_id=0, det_size=(self.det_size, self.det_size))
        return model

    async def load_models(self) -> None:
        async with self._load_lock:
            if self.model is not None:
                return
            logger.info("Loading face models", model=self.model_name, root=self.root)
            try:
                self.model = await asyncio.to_thread(self._build_model)
            except Exception as e:
                logger.error("Model loading failed", model=self.model_name, error=str(e), exc_info=True)
                raise ModelLoadError(f"Failed to load model {self.model_name}: {e}") from e
            logger.info("Face models loaded", model=self.model_name)

    def _convert_to_detection(self, face_data: InsightFace) -> Detection:
        """
        Convert an InsightFace result to our Detection domain model.

        Args:
            face_data: Face detection result from InsightFace

        Returns:
            Detection with a pixel-space bounding box and normalised embedding
        """
        x1, y1, x2, y2 = (float(v) for v in face_data.bbox)
        return Detection(
            bounding_box=BoundingBox(
                x=x1,
                y=y1,
                width=max(0.0, x2 - x1),
                height=max(0.0, y2 - y1),
            ),
            embedding=face_data.normed_embedding,
            score=float(face_data.det_score),
        )

    def _process_image(self, image: np.ndarray) -> List[Any]:
        faces = self.model.get(image)
        if self.max_faces and len(faces) > self.max_faces:
            logger.debug(
                "Filtered faces to max limit",
                original_count=len(faces),
                max_faces=self.max_faces
            )
            faces = faces[:self.max_faces]
        return faces

    async def detect(self, image: np.ndarray) -> List[Detection]:
        if self.model is None:
            logger.warning("Detection requested before models were loaded")
            return []
        try:
            faces = await asyncio.to_thread(self._process_image, image)
            return [
                self._convert_to_detection(face) for face in faces
                if getattr(face, "normed_embedding", None) is not None
            ]
        except Exception as e:
            logger.error(
                "Face processing failed",
                error=str(e),
                image_shape=getattr(image, "shape", None),
                exc_info=True
            )
            return []

    def distance(self, a: np.ndarray, b: np.ndarray) -> float:
        return euclidean_distance(a, b)
