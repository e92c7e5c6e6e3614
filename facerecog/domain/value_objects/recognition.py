"""Face recognition value objects."""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from facerecog.domain.entities.face import Detection
from facerecog.domain.entities.identity import Identity


class MatchResult(BaseModel):
    """Outcome of comparing one embedding against the gallery.

    ``confidence`` is a display heuristic derived from the distance, not a
    calibrated probability.
    """
    identity: Optional[Identity] = Field(None, description="Matched identity, absent for unknown faces")
    confidence: Optional[float] = Field(None, ge=0.0, le=100.0, description="Match confidence (0-100)")
    distance: Optional[float] = Field(None, ge=0.0, description="Distance to the closest gallery entry")

    model_config = ConfigDict(frozen=True)

    @model_validator(mode='after')
    def check_identity_confidence(self) -> "MatchResult":
        if (self.identity is None) != (self.confidence is None):
            raise ValueError("confidence must be present exactly when an identity is matched")
        return self

    @property
    def is_match(self) -> bool:
        return self.identity is not None

    @classmethod
    def unknown(cls, distance: Optional[float] = None) -> "MatchResult":
        return cls(identity=None, confidence=None, distance=distance)


class RecognizedFace(BaseModel):
    """One detection paired with its match outcome."""
    detection: Detection
    result: MatchResult

    model_config = ConfigDict(frozen=True)

    @property
    def label(self) -> str:
        return self.result.identity.name if self.result.identity else "Unknown"


class FrameResult(BaseModel):
    """Output of one recognition cycle, in the model's detection order."""
    cycle: int = Field(..., ge=1, description="Sequence number of the cycle")
    captured_at: datetime = Field(..., description="When the frame was captured")
    faces: List[RecognizedFace] = Field(default_factory=list, description="Recognised faces")

    model_config = ConfigDict(frozen=True)

    @property
    def matches(self) -> List[RecognizedFace]:
        return [face for face in self.faces if face.result.is_match]


class SystemStats(BaseModel):
    """Aggregate activity figures shown on the dashboard."""
    total_users: int = Field(..., ge=0)
    total_recognitions: int = Field(..., ge=0)
    average_confidence: float = Field(..., ge=0.0, le=100.0)
    active_today: int = Field(..., ge=0)
