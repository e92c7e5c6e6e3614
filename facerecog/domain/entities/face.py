"""Core face domain entities."""
from typing import Optional, Union

import numpy as np
from pydantic import BaseModel, ConfigDict, Field, field_validator


class BoundingBox(BaseModel):
    """Face bounding box in pixel coordinates of the source image."""
    x: float = Field(..., description="Left coordinate of the bounding box")
    y: float = Field(..., description="Top coordinate of the bounding box")
    width: float = Field(..., ge=0, description="Width of the bounding box")
    height: float = Field(..., ge=0, description="Height of the bounding box")


def as_embedding(v: Union[np.ndarray, list, tuple]) -> np.ndarray:
    """Coerce a sequence of numbers into a flat float32 embedding vector."""
    arr = np.asarray(v, dtype=np.float32)
    if arr.ndim != 1 or arr.size == 0:
        raise ValueError("Embedding must be a non-empty one-dimensional vector")
    return arr


class Detection(BaseModel):
    """A single face found in one frame or still image."""
    bounding_box: BoundingBox = Field(..., description="Bounding box coordinates")
    embedding: np.ndarray = Field(..., description="Face embedding vector")
    score: Optional[float] = Field(None, description="Detector confidence (0-1)")

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    @field_validator('embedding', mode='before')
    @classmethod
    def validate_embedding(cls, v: Union[np.ndarray, list]) -> np.ndarray:
        """Validate and convert embedding to numpy array if needed."""
        return as_embedding(v)
