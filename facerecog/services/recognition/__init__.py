"""Face model service implementations."""
from .insight_face import InsightFaceModelService

__all__ = ["InsightFaceModelService"]
