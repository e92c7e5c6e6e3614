"""OpenCV ``VideoCapture`` camera implementation."""
import asyncio
import platform
import threading
from typing import Optional, Union

import cv2
import numpy as np

from facerecog.core.exceptions import CameraAccessError, FrameProcessingError
from facerecog.core.logging import get_logger
from facerecog.domain.interfaces.camera.camera import Camera, CameraStream

logger = get_logger(__name__)


class OpenCVCameraStream(CameraStream):
    """An open ``cv2.VideoCapture``.

    Reads and release share a lock, so releasing while a worker thread is
    blocked in ``read`` waits for that frame instead of tearing the handle down
    underneath it.
    """

    def __init__(self, capture: cv2.VideoCapture) -> None:
        self._capture: Optional[cv2.VideoCapture] = capture
        self._lock = threading.Lock()

    @property
    def is_open(self) -> bool:
        return self._capture is not None

    def read(self) -> np.ndarray:
        with self._lock:
            if self._capture is None:
                raise FrameProcessingError("Camera stream is released")
            ok, frame = self._capture.read()
        if not ok or frame is None:
            raise FrameProcessingError("Failed to read frame")
        return frame

    def close(self) -> None:
        with self._lock:
            if self._capture is not None:
                self._capture.release()
                self._capture = None


class OpenCVCamera(Camera):
    """Local camera device opened through OpenCV."""

    def __init__(self, source: Union[int, str] = 0) -> None:
        self.source = int(source) if isinstance(source, str) and source.isdigit() else source

    def _open(self, width: int, height: int) -> cv2.VideoCapture:
        if platform.system() == "Windows" and isinstance(self.source, int):
            capture = cv2.VideoCapture(self.source, cv2.CAP_DSHOW)
        else:
            capture = cv2.VideoCapture(self.source)
        capture.set(cv2.CAP_PROP_FRAME_WIDTH, width)
        capture.set(cv2.CAP_PROP_FRAME_HEIGHT, height)
        if hasattr(cv2, "CAP_PROP_BUFFERSIZE"):
            # Keep latency low; the loop always wants the newest frame
            capture.set(cv2.CAP_PROP_BUFFERSIZE, 1)
        return capture

    async def acquire(self, width: int, height: int) -> OpenCVCameraStream:
        try:
            capture = await asyncio.to_thread(self._open, width, height)
        except cv2.error as e:
            logger.error("Camera open raised", source=str(self.source), error=str(e))
            raise CameraAccessError(f"Failed to open camera {self.source}: {e}") from e

        if not capture.isOpened():
            capture.release()
            logger.error("Camera could not be opened", source=str(self.source))
            raise CameraAccessError(f"Failed to open camera {self.source}")

        logger.info("Camera acquired", source=str(self.source), width=width, height=height)
        return OpenCVCameraStream(capture)

    def release(self, stream: CameraStream) -> None:
        if isinstance(stream, OpenCVCameraStream):
            stream.close()
            logger.info("Camera released", source=str(self.source))
