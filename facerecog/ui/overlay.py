"""Drawing of recognition overlays on video frames."""
import math
from typing import Optional, Sequence, Tuple

import cv2
import numpy as np

from facerecog.core.config import settings
from facerecog.domain.entities.face import BoundingBox
from facerecog.domain.value_objects.recognition import RecognizedFace

# BGR
MATCH_COLOR = (129, 185, 16)
UNKNOWN_COLOR = (68, 68, 239)
TEXT_COLOR = (255, 255, 255)

LABEL_HEIGHT = 25


def _sanitize_bbox(box: BoundingBox, w: int, h: int) -> Optional[Tuple[int, int, int, int]]:
    """Clamp a bounding box to frame bounds; None when nothing is left to draw."""
    coords = (box.x, box.y, box.x + box.width, box.y + box.height)
    if not all(math.isfinite(v) for v in coords):
        return None
    x1, y1, x2, y2 = (int(v) for v in coords)
    x1 = max(0, min(x1, w - 1))
    y1 = max(0, min(y1, h - 1))
    x2 = max(0, min(x2, w - 1))
    y2 = max(0, min(y2, h - 1))
    if x1 >= x2 or y1 >= y2:
        return None
    return x1, y1, x2, y2


def label_for(face: RecognizedFace, show_confidence: bool = True) -> str:
    result = face.result
    if result.identity is None:
        return "Unknown"
    if show_confidence:
        return f"{result.identity.name} ({result.confidence:.1f}%)"
    return result.identity.name


class OverlayRenderer:
    """Draws a box and a label per recognised face.

    Matched faces are drawn in green with the identity name, unknown faces in
    red with an ``Unknown`` label.
    """

    def __init__(self, show_confidence: Optional[bool] = None, thickness: int = 2, font_scale: float = 0.5) -> None:
        self.show_confidence = settings.SHOW_CONFIDENCE if show_confidence is None else show_confidence
        self.thickness = thickness
        self.font_scale = font_scale

    def render(self, frame: np.ndarray, faces: Sequence[RecognizedFace]) -> np.ndarray:
        """Return an annotated copy of ``frame``; the input is left untouched."""
        canvas = frame.copy()
        h, w = canvas.shape[:2]
        for face in faces:
            bbox = _sanitize_bbox(face.detection.bounding_box, w, h)
            if bbox is None:
                continue
            x1, y1, x2, y2 = bbox
            color = MATCH_COLOR if face.result.is_match else UNKNOWN_COLOR
            cv2.rectangle(canvas, (x1, y1), (x2, y2), color, self.thickness)

            # Label bar sits above the box, or inside it at the top edge of the frame
            top = y1 - LABEL_HEIGHT if y1 >= LABEL_HEIGHT else y1
            cv2.rectangle(canvas, (x1, top), (x2, top + LABEL_HEIGHT), color, -1)
            cv2.putText(
                canvas,
                label_for(face, self.show_confidence),
                (x1 + 5, top + LABEL_HEIGHT - 8),
                cv2.FONT_HERSHEY_SIMPLEX,
                self.font_scale,
                TEXT_COLOR,
                1,
                cv2.LINE_AA,
            )
        return canvas
