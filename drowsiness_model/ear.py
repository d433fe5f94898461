"""
Eye Aspect Ratio (EAR) geometry on MediaPipe Face Mesh landmarks.
"""

import math
from typing import Optional, Sequence, Tuple


class EyeLandmarks:
    """Face Mesh indices, ordered p1..p6: outer corner, upper lid x2, inner corner, lower lid x2"""
    LEFT_EYE_INDICES = (33, 160, 158, 133, 153, 144)
    RIGHT_EYE_INDICES = (362, 385, 387, 263, 373, 380)


def euclidean_distance_2d(p1: Tuple[float, float], p2: Tuple[float, float]) -> float:
    return math.sqrt((p1[0] - p2[0]) ** 2 + (p1[1] - p2[1]) ** 2)


def eye_aspect_ratio(points: Sequence[Tuple[float, float]]) -> Optional[float]:
    """
    EAR for one eye from 6 (x, y) points.
    Returns None for a wrong point count or a zero-width eye.
    """
    if len(points) != 6:
        return None

    vertical_1 = euclidean_distance_2d(points[1], points[5])
    vertical_2 = euclidean_distance_2d(points[2], points[4])
    horizontal = euclidean_distance_2d(points[0], points[3])

    if horizontal == 0:
        return None
    return (vertical_1 + vertical_2) / (2.0 * horizontal)


def _eye_points(landmarks, indices: Sequence[int]) -> Optional[list]:
    if len(landmarks) <= max(indices):
        return None
    return [(landmarks[i].x, landmarks[i].y) for i in indices]


def average_ear(landmarks) -> Optional[float]:
    """
    Mean EAR of both eyes.
    `landmarks` is an indexable sequence of points exposing `.x` and `.y`.
    """
    left = _eye_points(landmarks, EyeLandmarks.LEFT_EYE_INDICES)
    right = _eye_points(landmarks, EyeLandmarks.RIGHT_EYE_INDICES)
    if left is None or right is None:
        return None

    left_ear = eye_aspect_ratio(left)
    right_ear = eye_aspect_ratio(right)
    if left_ear is None or right_ear is None:
        return None
    return (left_ear + right_ear) / 2.0
