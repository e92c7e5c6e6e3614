"""Registered identity and recognition event entities."""
from datetime import datetime
from typing import Optional, Union

import numpy as np
from pydantic import BaseModel, ConfigDict, Field, field_validator

from facerecog.domain.entities.face import as_embedding


class Identity(BaseModel):
    """A registered person in the gallery.

    Identities are immutable; bookkeeping updates produce a new copy via
    ``model_copy`` so readers holding a gallery snapshot never see a half-updated entry.
    """
    id: str = Field(..., description="Unique identifier")
    name: str = Field(..., description="Display name")
    email: str = Field(..., description="Contact identifier")
    embedding: np.ndarray = Field(..., description="Face embedding vector")
    image_url: str = Field(..., description="Source image URI or inline data URI")
    registered_at: datetime = Field(..., description="Registration timestamp")
    last_seen: Optional[datetime] = Field(None, description="Last time the identity was recognised")
    recognition_count: int = Field(0, ge=0, description="Number of logged recognitions")

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    @field_validator('embedding', mode='before')
    @classmethod
    def validate_embedding(cls, v: Union[np.ndarray, list]) -> np.ndarray:
        return as_embedding(v)

    @property
    def dimension(self) -> int:
        return int(self.embedding.shape[0])


class RecognitionEvent(BaseModel):
    """A logged recognition of a registered identity."""
    id: str = Field(..., description="Event identifier")
    user_id: str = Field(..., description="Identifier of the recognised identity")
    timestamp: datetime = Field(..., description="When the recognition happened")
    confidence: float = Field(..., ge=0.0, le=100.0, description="Match confidence (0-100)")
    location: str = Field(..., description="Where the recognition happened")

    model_config = ConfigDict(frozen=True)
