"""JSON file implementation of the gallery store.

Each logical key is kept in its own ``<key>.json`` file under the data
directory. Writes go to a temporary file first and are then renamed over the
target, so a crash mid-write never leaves a truncated blob behind.
"""
import asyncio
import json
import os
import re
import tempfile
from pathlib import Path
from typing import Any, Optional, Union

from facerecog.core.exceptions import PersistenceError
from facerecog.core.logging import get_logger
from facerecog.domain.interfaces.storage.gallery_store import GalleryStore

logger = get_logger(__name__)

_KEY_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+$")


class JsonFileStore(GalleryStore):
    """Durable key-value store of JSON blobs on the local filesystem."""

    def __init__(self, directory: Union[str, Path]) -> None:
        self.directory = Path(directory)

    def _path_for(self, key: str) -> Path:
        if not _KEY_PATTERN.match(key):
            raise PersistenceError("Invalid storage key", details={"key": key})
        return self.directory / f"{key}.json"

    async def get(self, key: str) -> Optional[Any]:
        path = self._path_for(key)
        return await asyncio.to_thread(self._read, path)

    async def set(self, key: str, value: Any) -> None:
        path = self._path_for(key)
        await asyncio.to_thread(self._write, path, value)
        logger.debug("Stored blob", key=key, path=str(path))

    async def delete(self, key: str) -> None:
        path = self._path_for(key)
        try:
            await asyncio.to_thread(path.unlink, missing_ok=True)
        except OSError as e:
            logger.error("Failed to delete blob", key=key, error=str(e))
            raise PersistenceError(f"Failed to delete {key}: {e}") from e

    def _read(self, path: Path) -> Optional[Any]:
        if not path.exists():
            return None
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error("Failed to read blob", path=str(path), error=str(e))
            raise PersistenceError(f"Failed to read {path.name}: {e}") from e

    def _write(self, path: Path, value: Any) -> None:
        tmp_name = None
        try:
            os.makedirs(self.directory, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self.directory, prefix=f".{path.stem}-", suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(value, f)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, path)
        except (OSError, TypeError, ValueError) as e:
            if tmp_name and os.path.exists(tmp_name):
                os.remove(tmp_name)
            logger.error("Failed to write blob", path=str(path), error=str(e))
            raise PersistenceError(f"Failed to write {path.name}: {e}") from e
