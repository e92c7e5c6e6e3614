"""Domain value objects."""
from facerecog.domain.value_objects.recognition import FrameResult, MatchResult, RecognizedFace, SystemStats

__all__ = ["FrameResult", "MatchResult", "RecognizedFace", "SystemStats"]
