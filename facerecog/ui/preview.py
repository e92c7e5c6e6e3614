#!/usr/bin/env python
"""
Live recognition preview.

Opens the configured camera, runs the recognition loop and shows annotated
frames in an OpenCV window until ``q`` is pressed.

Usage:
    python -m facerecog.ui.preview
"""
import asyncio
from typing import Optional

import cv2
import numpy as np

from facerecog.core.container import ServiceContainer
from facerecog.core.exceptions import FaceRecognitionError, user_message_for
from facerecog.core.logging import get_logger, setup_logging
from facerecog.domain.value_objects.recognition import FrameResult

WINDOW_NAME = "Face Recognition"

logger = get_logger(__name__)


async def run_preview(container: Optional[ServiceContainer] = None) -> None:
    container = container or ServiceContainer()
    await container.initialize()
    latest: dict = {"frame": None}

    def show(frame: np.ndarray, result: FrameResult) -> None:
        # Mirror like a selfie camera
        latest["frame"] = cv2.flip(frame, 1)

    loop = container.recognition_loop
    loop.add_frame_listener(show)
    try:
        await loop.start()
        while loop.is_running:
            if latest["frame"] is not None:
                cv2.imshow(WINDOW_NAME, latest["frame"])
            if cv2.waitKey(1) & 0xFF == ord("q"):
                break
            await asyncio.sleep(loop.interval / 2)
    except FaceRecognitionError as e:
        print(user_message_for(e))
    finally:
        await container.cleanup()
        cv2.destroyAllWindows()
        logger.info("Preview closed")


def main() -> None:
    setup_logging()
    asyncio.run(run_preview())


if __name__ == "__main__":
    main()
