"""Shared fixtures and in-memory fakes for the test suite."""
import asyncio
import copy
import json
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Set

import cv2
import numpy as np
import pytest

from facerecog.core.exceptions import CameraAccessError, FrameProcessingError, ModelLoadError, PersistenceError
from facerecog.domain.entities.face import BoundingBox, Detection
from facerecog.domain.entities.identity import Identity
from facerecog.domain.interfaces.camera.camera import Camera, CameraStream
from facerecog.domain.interfaces.recognition.model_service import ModelService
from facerecog.domain.interfaces.storage.gallery_store import GalleryStore
from facerecog.services.face_matching import euclidean_distance
from facerecog.services.gallery import Gallery

USERS_KEY = "facerecog_users"
RECOGNITIONS_KEY = "facerecog_recognitions"


def unit(*components: float) -> np.ndarray:
    v = np.asarray(components, dtype=np.float32)
    return v / np.linalg.norm(v)


class FakeModelService(ModelService):
    """Model returning scripted detections."""

    def __init__(
        self,
        detections: Optional[List[Detection]] = None,
        load_error: Optional[Exception] = None,
        delay: float = 0.0,
        recommended_threshold: Optional[float] = None,
    ) -> None:
        self.detections = detections or []
        self._recommended_threshold = recommended_threshold
        self.load_error = load_error
        self.delay = delay
        self.load_calls = 0
        self.detect_calls = 0
        self.in_flight = 0
        self.max_in_flight = 0
        self.fail_next_detect = False
        self._loaded = False

    @property
    def is_loaded(self) -> bool:
        return self._loaded

    @property
    def recommended_threshold(self) -> Optional[float]:
        return self._recommended_threshold

    async def load_models(self) -> None:
        self.load_calls += 1
        if self.load_error is not None:
            raise self.load_error
        self._loaded = True

    async def detect(self, image: np.ndarray) -> List[Detection]:
        self.detect_calls += 1
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if self.fail_next_detect:
                self.fail_next_detect = False
                raise RuntimeError("inference failed")
            return list(self.detections)
        finally:
            self.in_flight -= 1

    def distance(self, a: np.ndarray, b: np.ndarray) -> float:
        return euclidean_distance(a, b)


class MemoryStore(GalleryStore):
    """Dict-backed store that round-trips values through JSON like the file store."""

    def __init__(self) -> None:
        self.data: Dict[str, str] = {}
        self.fail_writes = False
        self.fail_keys: Set[str] = set()
        self.write_delay = 0.0
        self.set_calls = 0

    async def get(self, key: str) -> Optional[Any]:
        raw = self.data.get(key)
        return None if raw is None else json.loads(raw)

    async def set(self, key: str, value: Any) -> None:
        self.set_calls += 1
        if self.write_delay:
            await asyncio.sleep(self.write_delay)
        if self.fail_writes or key in self.fail_keys:
            raise PersistenceError("disk full")
        self.data[key] = json.dumps(copy.deepcopy(value))

    async def delete(self, key: str) -> None:
        self.data.pop(key, None)


class FakeStream(CameraStream):
    def __init__(self, width: int, height: int) -> None:
        self.frame = np.zeros((height, width, 3), dtype=np.uint8)
        self.reads = 0
        self.released = False
        self.fail_reads = False

    def read(self) -> np.ndarray:
        if self.released:
            raise FrameProcessingError("stream released")
        if self.fail_reads:
            raise FrameProcessingError("failed to read frame")
        self.reads += 1
        return self.frame


class FakeCamera(Camera):
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.streams: List[FakeStream] = []
        self.released: List[FakeStream] = []

    async def acquire(self, width: int, height: int) -> FakeStream:
        if self.fail:
            raise CameraAccessError("permission denied")
        stream = FakeStream(width, height)
        self.streams.append(stream)
        return stream

    def release(self, stream: CameraStream) -> None:
        stream.released = True
        self.released.append(stream)


def make_detection(embedding: np.ndarray, x: float = 10, y: float = 40) -> Detection:
    return Detection(
        bounding_box=BoundingBox(x=x, y=y, width=50, height=60),
        embedding=embedding,
        score=0.99,
    )


def make_identity(name: str, embedding: np.ndarray, identity_id: Optional[str] = None) -> Identity:
    return Identity(
        id=identity_id or f"user-{name.lower()}",
        name=name,
        email=f"{name.lower()}@example.com",
        embedding=embedding,
        image_url="data:image/jpeg;base64,AAAA",
        registered_at=datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc),
    )


@pytest.fixture
def memory_store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def gallery(memory_store) -> Gallery:
    return Gallery(memory_store, USERS_KEY)


@pytest.fixture
def model_service() -> FakeModelService:
    return FakeModelService()


@pytest.fixture
def camera() -> FakeCamera:
    return FakeCamera()


@pytest.fixture
def identity_factory() -> Callable[..., Identity]:
    return make_identity


@pytest.fixture
def detection_factory() -> Callable[..., Detection]:
    return make_detection


@pytest.fixture
def unit_vector() -> Callable[..., np.ndarray]:
    return unit


@pytest.fixture
def jpeg_bytes() -> bytes:
    image = np.full((120, 160, 3), 200, dtype=np.uint8)
    ok, encoded = cv2.imencode(".jpg", image)
    assert ok
    return encoded.tobytes()


@pytest.fixture
def fake_model_class():
    return FakeModelService


@pytest.fixture
def fake_camera_class():
    return FakeCamera


@pytest.fixture
def model_load_error():
    return ModelLoadError("weights unavailable")
