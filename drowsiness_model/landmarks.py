"""
Eye Landmark Detector - MediaPipe adapter
Turns a BGR frame into a single EAR value (mean of both eyes),
or None when no face is visible.
"""

import logging
import os
import urllib.request
from typing import Optional

import cv2
import mediapipe as mp
import numpy as np

from .ear import average_ear

logger = logging.getLogger("drowsyvision.landmarks")


# ============================================================================
# MEDIAPIPE COMPATIBILITY LAYER
# mediapipe >= 0.10.30 removed mp.solutions; use mp.tasks API instead.
# ============================================================================

_USE_TASKS_API = not hasattr(mp, 'solutions')

DEFAULT_MODELS_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), '.models')
FACE_MODEL_FILENAME = 'face_landmarker.task'
FACE_MODEL_URL = (
    'https://storage.googleapis.com/mediapipe-models/'
    'face_landmarker/face_landmarker/float16/latest/face_landmarker.task'
)


def ensure_face_model(models_dir: str = DEFAULT_MODELS_DIR) -> str:
    """Download the Face Landmarker .task file if not already cached."""
    os.makedirs(models_dir, exist_ok=True)
    path = os.path.join(models_dir, FACE_MODEL_FILENAME)
    if not os.path.exists(path):
        logger.info("Downloading %s ...", FACE_MODEL_FILENAME)
        urllib.request.urlretrieve(FACE_MODEL_URL, path)
        logger.info("Saved %s", path)
    return path


class EyeLandmarkDetector:
    """
    Single-face landmark detector returning the averaged EAR per frame.
    Not thread safe: serialize calls to measure().
    """

    def __init__(self, models_dir: Optional[str] = None,
                 min_detection_confidence: float = 0.5,
                 min_tracking_confidence: float = 0.5):
        if _USE_TASKS_API:
            model_path = ensure_face_model(models_dir or DEFAULT_MODELS_DIR)
            options = mp.tasks.vision.FaceLandmarkerOptions(
                base_options=mp.tasks.BaseOptions(model_asset_path=model_path),
                running_mode=mp.tasks.vision.RunningMode.IMAGE,
                num_faces=1,
                min_face_detection_confidence=min_detection_confidence,
                min_face_presence_confidence=min_detection_confidence,
            )
            self._face_landmarker = mp.tasks.vision.FaceLandmarker.create_from_options(options)
            self.face_mesh = None
        else:
            self._face_landmarker = None
            self.face_mesh = mp.solutions.face_mesh.FaceMesh(
                static_image_mode=False,
                max_num_faces=1,
                refine_landmarks=True,
                min_detection_confidence=min_detection_confidence,
                min_tracking_confidence=min_tracking_confidence,
            )

    def _detect_landmarks(self, frame_rgb: np.ndarray):
        """Return the landmark list of the first face, or None"""
        if _USE_TASKS_API:
            mp_image = mp.Image(
                image_format=mp.ImageFormat.SRGB,
                data=np.ascontiguousarray(frame_rgb),
            )
            result = self._face_landmarker.detect(mp_image)
            if not result.face_landmarks:
                return None
            return result.face_landmarks[0]

        result = self.face_mesh.process(frame_rgb)
        if not result.multi_face_landmarks:
            return None
        return result.multi_face_landmarks[0].landmark

    def measure(self, frame: np.ndarray) -> Optional[float]:
        """EAR averaged over both eyes for a BGR frame"""
        frame_rgb = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
        landmarks = self._detect_landmarks(frame_rgb)
        if landmarks is None:
            return None
        return average_ear(landmarks)

    def close(self):
        """Release MediaPipe resources"""
        target = self._face_landmarker if _USE_TASKS_API else self.face_mesh
        if target is not None and hasattr(target, 'close'):
            try:
                target.close()
            except Exception as e:
                logger.warning("Failed to close landmark detector: %s", e)
