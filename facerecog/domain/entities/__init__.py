"""Domain entities."""
from facerecog.domain.entities.face import BoundingBox, Detection
from facerecog.domain.entities.identity import Identity, RecognitionEvent

__all__ = ["BoundingBox", "Detection", "Identity", "RecognitionEvent"]
