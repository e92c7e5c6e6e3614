"""Nearest-neighbour matching of a face embedding against the registered gallery.

The confidence reported for a match is ``max(0, (1 - distance) * 100)``. It is a
display heuristic on the raw distance, not a calibrated probability.

Example:
    ```python
    result = match(detection.embedding, gallery.entries(), threshold=0.6)
    if result is not None:
        print(result.identity.name, result.confidence)
    ```
"""
from typing import Callable, Optional, Sequence, Tuple

import numpy as np

from facerecog.domain.entities.identity import Identity
from facerecog.domain.value_objects.recognition import MatchResult

DEFAULT_THRESHOLD = 0.6

DistanceFn = Callable[[np.ndarray, np.ndarray], float]


def euclidean_distance(a: np.ndarray, b: np.ndarray) -> float:
    """Euclidean distance between two embeddings of equal length."""
    return float(np.linalg.norm(np.asarray(a, dtype=np.float32) - np.asarray(b, dtype=np.float32)))


def confidence_from_distance(distance: float) -> float:
    return max(0.0, (1.0 - distance) * 100.0)


def find_closest(
    query: np.ndarray,
    embeddings: Sequence[np.ndarray],
    distance: DistanceFn = euclidean_distance,
) -> Optional[Tuple[int, float]]:
    """Index and distance of the closest embedding.

    Ties resolve to the earliest index. Returns None for an empty sequence.
    """
    best: Optional[Tuple[int, float]] = None
    for index, candidate in enumerate(embeddings):
        d = distance(query, candidate)
        # Strict comparison keeps the first of equally distant entries
        if best is None or d < best[1]:
            best = (index, d)
    return best


def match(
    query: np.ndarray,
    gallery: Sequence[Tuple[Identity, np.ndarray]],
    threshold: float = DEFAULT_THRESHOLD,
    distance: DistanceFn = euclidean_distance,
) -> Optional[MatchResult]:
    """Match ``query`` against the gallery.

    Args:
        query: Embedding of the face to identify
        gallery: Ordered ``(identity, embedding)`` pairs; order decides ties
        threshold: A match requires a distance strictly below this value
        distance: Distance function between two embeddings

    Returns:
        MatchResult for the closest identity, or None when the gallery is empty
        or the closest distance is not below the threshold
    """
    closest = find_closest(query, [embedding for _, embedding in gallery], distance)
    if closest is None:
        return None

    index, min_distance = closest
    if min_distance < threshold:
        return MatchResult(
            identity=gallery[index][0],
            confidence=min(100.0, confidence_from_distance(min_distance)),
            distance=min_distance,
        )
    return None
