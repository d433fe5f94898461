"""
DrowsyVision Detection Model Package
Eye-closure drowsiness tracking on top of MediaPipe Face Mesh landmarks.

Usage (pure state machine - feed one EAR value per frame):
    from drowsiness_model import DrowsinessStateTracker
    import time

    tracker = DrowsinessStateTracker()
    result = tracker.process_frame(0.29, time.monotonic())
    print(result.to_dict())

Usage (with camera frames - requires mediapipe + OpenCV):
    from drowsiness_model.landmarks import EyeLandmarkDetector
    import cv2

    detector = EyeLandmarkDetector()
    cap = cv2.VideoCapture(0)
    ret, frame = cap.read()
    result = tracker.process_frame(detector.measure(frame), time.monotonic())
    detector.close()
"""

from .state_tracker import (
    DrowsinessStateTracker,
    DetectionResult,
    EyeState,
    TrackerConfig,
    TrackerPhase,
    TrackerState,
)
from .ear import EyeLandmarks, average_ear, eye_aspect_ratio

__all__ = [
    "DrowsinessStateTracker",
    "DetectionResult",
    "EyeState",
    "TrackerConfig",
    "TrackerPhase",
    "TrackerState",
    "EyeLandmarks",
    "average_ear",
    "eye_aspect_ratio",
]
