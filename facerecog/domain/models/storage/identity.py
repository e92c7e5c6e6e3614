"""Storage-specific records for identities and recognition events.

Records are persisted as JSON with camelCase keys, embeddings as plain number
arrays and timestamps as ISO-8601 strings.
"""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from facerecog.domain.entities.identity import Identity, RecognitionEvent


class StoredIdentityRecord(BaseModel):
    """Identity record as held in the gallery store."""
    id: str = Field(..., description="Unique identifier")
    name: str = Field(..., description="Display name")
    email: str = Field(..., description="Contact identifier")
    descriptor: List[float] = Field(..., min_length=1, description="Face embedding as a plain array")
    image_url: str = Field(..., alias="imageUrl", description="Source image URI")
    registered_at: datetime = Field(..., alias="registeredAt", description="Registration timestamp")
    last_seen: Optional[datetime] = Field(None, alias="lastSeen", description="Last recognition timestamp")
    recognition_count: int = Field(0, alias="recognitionCount", ge=0, description="Recognition counter")

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @classmethod
    def from_identity(cls, identity: Identity) -> "StoredIdentityRecord":
        """Create a storage record from an identity entity.

        Args:
            identity: Identity entity with embedding

        Returns:
            StoredIdentityRecord instance
        """
        return cls(
            id=identity.id,
            name=identity.name,
            email=identity.email,
            descriptor=identity.embedding.tolist(),
            image_url=identity.image_url,
            registered_at=identity.registered_at,
            last_seen=identity.last_seen,
            recognition_count=identity.recognition_count,
        )

    def to_identity(self) -> Identity:
        return Identity(
            id=self.id,
            name=self.name,
            email=self.email,
            embedding=self.descriptor,
            image_url=self.image_url,
            registered_at=self.registered_at,
            last_seen=self.last_seen,
            recognition_count=self.recognition_count,
        )

    def to_json(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class StoredRecognitionRecord(BaseModel):
    """Recognition event record as held in the gallery store."""
    id: str
    user_id: str = Field(..., alias="userId")
    timestamp: datetime
    confidence: float
    location: str

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @classmethod
    def from_event(cls, event: RecognitionEvent) -> "StoredRecognitionRecord":
        return cls(
            id=event.id,
            user_id=event.user_id,
            timestamp=event.timestamp,
            confidence=event.confidence,
            location=event.location,
        )

    def to_event(self) -> RecognitionEvent:
        return RecognitionEvent(
            id=self.id,
            user_id=self.user_id,
            timestamp=self.timestamp,
            confidence=self.confidence,
            location=self.location,
        )

    def to_json(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)
