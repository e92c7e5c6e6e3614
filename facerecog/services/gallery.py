"""In-memory identity gallery backed by a persistent key-value store."""
import asyncio
from datetime import datetime
from typing import Any, List, Optional, Tuple

import numpy as np

from facerecog.core.exceptions import InvalidEmbeddingError
from facerecog.core.logging import get_logger
from facerecog.domain.entities.identity import Identity
from facerecog.domain.interfaces.storage.gallery_store import GalleryStore
from facerecog.domain.models.storage.identity import StoredIdentityRecord

logger = get_logger(__name__)


class Gallery:
    """The set of registered identities shared by registration and recognition.

    Readers always see a complete, immutable tuple of identities. Writers are
    serialised and only replace that tuple after the store has accepted the new
    contents, so memory never runs ahead of durable state.

    Example:
        ```python
        gallery = Gallery(JsonFileStore("data"), key="facerecog_users")
        await gallery.load()
        await gallery.add(identity)
        ```
    """

    def __init__(self, store: GalleryStore, key: str) -> None:
        """Initialize the gallery.

        Args:
            store: Store holding the serialised gallery
            key: Logical key of the gallery blob
        """
        self._store = store
        self._key = key
        self._identities: Tuple[Identity, ...] = ()
        self._write_lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._identities)

    @property
    def dimension(self) -> Optional[int]:
        """Embedding length shared by all identities, None while empty."""
        return self._identities[0].dimension if self._identities else None

    def snapshot(self) -> Tuple[Identity, ...]:
        return self._identities

    def entries(self) -> List[Tuple[Identity, np.ndarray]]:
        """Ordered ``(identity, embedding)`` pairs for matching."""
        return [(identity, identity.embedding) for identity in self._identities]

    def get(self, identity_id: str) -> Optional[Identity]:
        for identity in self._identities:
            if identity.id == identity_id:
                return identity
        return None

    def search(self, text: str) -> List[Identity]:
        """Identities whose name or email contains ``text``, case-insensitively."""
        needle = text.strip().lower()
        if not needle:
            return list(self._identities)
        return [
            identity for identity in self._identities
            if needle in identity.name.lower() or needle in identity.email.lower()
        ]

    async def load(self) -> None:
        """Replace the in-memory gallery with the stored one.

        Malformed records are skipped with an error log; a missing blob yields an
        empty gallery.

        Raises:
            PersistenceError: If the store cannot be read
        """
        blob = await self._store.get(self._key)
        identities = self._decode(blob)
        async with self._write_lock:
            self._identities = tuple(identities)
        logger.info("Loaded gallery", key=self._key, identities=len(identities))

    async def add(self, identity: Identity) -> None:
        """Append an identity and persist the gallery.

        Raises:
            InvalidEmbeddingError: If the embedding length differs from the gallery's
            PersistenceError: If the store rejects the write; the gallery is unchanged
        """
        async with self._write_lock:
            expected = self.dimension
            if expected is not None and identity.dimension != expected:
                raise InvalidEmbeddingError(
                    "Embedding dimension does not match gallery",
                    details={"expected": expected, "actual": identity.dimension},
                )
            await self._commit(self._identities + (identity,))
        logger.info("Added identity to gallery", identity_id=identity.id, size=len(self))

    async def record_sighting(self, identity_id: str, seen_at: datetime) -> Optional[Identity]:
        """Bump the recognition counter and last-seen time of an identity.

        Returns:
            The updated identity, or None if it is no longer in the gallery

        Raises:
            PersistenceError: If the store rejects the write; the gallery is unchanged
        """
        async with self._write_lock:
            updated: Optional[Identity] = None
            identities = []
            for identity in self._identities:
                if identity.id == identity_id:
                    identity = identity.model_copy(update={
                        "last_seen": seen_at,
                        "recognition_count": identity.recognition_count + 1,
                    })
                    updated = identity
                identities.append(identity)
            if updated is None:
                return None
            await self._commit(tuple(identities))
        return updated

    async def remove(self, identity_id: str) -> bool:
        """Remove an identity. Returns False when it was not registered."""
        async with self._write_lock:
            remaining = tuple(i for i in self._identities if i.id != identity_id)
            if len(remaining) == len(self._identities):
                return False
            await self._commit(remaining)
        logger.info("Removed identity from gallery", identity_id=identity_id)
        return True

    async def clear(self) -> None:
        """Delete every identity from memory and from the store."""
        async with self._write_lock:
            await self._store.delete(self._key)
            self._identities = ()
        logger.info("Cleared gallery", key=self._key)

    async def _commit(self, identities: Tuple[Identity, ...]) -> None:
        # A cancelled caller must not leave the store written but memory stale
        task = asyncio.ensure_future(self._persist_and_swap(identities))
        try:
            await asyncio.shield(task)
        except asyncio.CancelledError:
            await asyncio.wait({task})
            if not task.cancelled() and task.exception() is not None:
                logger.error(
                    "Gallery write failed after its caller was cancelled",
                    key=self._key,
                    error=str(task.exception()),
                )
            raise

    async def _persist_and_swap(self, identities: Tuple[Identity, ...]) -> None:
        blob = [StoredIdentityRecord.from_identity(identity).to_json() for identity in identities]
        await self._store.set(self._key, blob)
        self._identities = identities

    def _decode(self, blob: Any) -> List[Identity]:
        if blob is None:
            return []
        if not isinstance(blob, list):
            logger.error("Stored gallery is not a list, ignoring it", key=self._key)
            return []

        identities: List[Identity] = []
        dimension: Optional[int] = None
        for raw in blob:
            try:
                identity = StoredIdentityRecord.model_validate(raw).to_identity()
            except (ValueError, TypeError) as e:
                logger.error("Skipping malformed identity record", key=self._key, error=str(e))
                continue
            if dimension is None:
                dimension = identity.dimension
            elif identity.dimension != dimension:
                logger.error(
                    "Skipping identity with mismatched embedding dimension",
                    identity_id=identity.id,
                    expected=dimension,
                    actual=identity.dimension,
                )
                continue
            identities.append(identity)
        return identities

