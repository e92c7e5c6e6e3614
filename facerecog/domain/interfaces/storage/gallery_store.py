"""Key-value store interface for persisted JSON blobs."""
from abc import ABC, abstractmethod
from typing import Any, Optional


class GalleryStore(ABC):
    """Interface for durably holding JSON-serialisable blobs under logical keys."""

    @abstractmethod
    async def get(self, key: str) -> Optional[Any]:
        """
        Read the blob stored under ``key``.

        Args:
            key: Logical key

        Returns:
            The decoded JSON value, or None when nothing is stored

        Raises:
            PersistenceError: If the stored blob cannot be read or decoded
        """
        pass

    @abstractmethod
    async def set(self, key: str, value: Any) -> None:
        """
        Durably store ``value`` under ``key``, replacing any previous blob.

        Raises:
            PersistenceError: If the write does not complete
        """
        pass

    @abstractmethod
    async def delete(self, key: str) -> None:
        """
        Remove ``key``. Missing keys are ignored.

        Raises:
            PersistenceError: If the removal fails
        """
        pass
