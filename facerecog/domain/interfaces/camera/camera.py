"""Camera device interface."""
from abc import ABC, abstractmethod

import numpy as np


class CameraStream(ABC):
    """An acquired video stream."""

    @abstractmethod
    def read(self) -> np.ndarray:
        """
        Capture the current frame.

        Returns:
            BGR frame array

        Raises:
            FrameProcessingError: If no frame could be read
        """
        pass


class Camera(ABC):
    """Interface for acquiring and releasing a camera device."""

    @abstractmethod
    async def acquire(self, width: int, height: int) -> CameraStream:
        """
        Open the device with the requested resolution.

        Raises:
            CameraAccessError: If the device cannot be opened
        """
        pass

    @abstractmethod
    def release(self, stream: CameraStream) -> None:
        """Release the hardware handle. Must not rely on garbage collection."""
        pass
