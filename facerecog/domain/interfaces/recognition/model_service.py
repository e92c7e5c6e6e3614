"""Face model service interface."""
from abc import ABC, abstractmethod
from typing import List, Optional

import numpy as np

from ...entities.face import Detection


class ModelService(ABC):
    """Interface for the face detection and embedding model.

    Matching and the recognition loop depend only on this capability, so the
    model backend can be swapped without touching either.
    """

    @property
    @abstractmethod
    def is_loaded(self) -> bool:
        """Whether ``load_models`` has completed successfully."""
        pass

    @abstractmethod
    async def load_models(self) -> None:
        """
        Load model weights. Calling it again after success is a no-op.

        Raises:
            ModelLoadError: If the model cannot be loaded
        """
        pass

    @abstractmethod
    async def detect(self, image: np.ndarray) -> List[Detection]:
        """
        Detect faces and extract their embeddings.

        Args:
            image: BGR image array (a video frame or a decoded still image)

        Returns:
            Detections in the model's order. Internal failures are logged and
            reported as an empty list rather than raised.
        """
        pass

    @abstractmethod
    def distance(self, a: np.ndarray, b: np.ndarray) -> float:
        """Distance between two embeddings; smaller means more similar."""
        pass

    @property
    def recommended_threshold(self) -> Optional[float]:
        """Match threshold calibrated for this model's embeddings, if it has one."""
        return None
