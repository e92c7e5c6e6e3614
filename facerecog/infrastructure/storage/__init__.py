"""Storage implementations."""
from facerecog.infrastructure.storage.json_store import JsonFileStore

__all__ = ["JsonFileStore"]
