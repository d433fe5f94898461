"""
DrowsyVision Drowsiness Service
Wraps drowsiness_model for the WebSocket layer:

- LandmarkService: process-wide singleton owning the MediaPipe detector,
  initialised ONCE and shared by all connections.
- DrowsinessSession: one per connection, owns its own state tracker.
"""

import asyncio
import base64
import binascii
import logging
import threading
from typing import Any, Dict, Mapping, Optional

import cv2
import numpy as np

from drowsiness_model import DetectionResult, DrowsinessStateTracker, TrackerConfig
from app.core.config import settings

logger = logging.getLogger("drowsyvision.service")


class LandmarkService:
    """
    Singleton service that wraps EyeLandmarkDetector.

    - Initialises MediaPipe exactly once.
    - measure() runs the CPU-bound detection in a thread-pool executor so it
      doesn't block the event loop; a lock serializes access to the detector.
    """

    _instance: Optional["LandmarkService"] = None
    _detector = None   # EyeLandmarkDetector instance
    _ready: bool = False

    @classmethod
    def get_instance(cls) -> "LandmarkService":
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    def __init__(self):
        self._lock = threading.Lock()
        if LandmarkService._detector is not None:
            self._ready = True
            return
        self._initialise_detector()

    # ──────────────────────────────────────────────────────
    # Initialisation
    # ──────────────────────────────────────────────────────

    def _initialise_detector(self):
        """
        Lazy-load EyeLandmarkDetector so that import-time errors don't
        crash the rest of the backend.
        """
        try:
            from drowsiness_model.landmarks import EyeLandmarkDetector
            LandmarkService._detector = EyeLandmarkDetector(
                models_dir=settings.MODELS_DIR or None,
                min_detection_confidence=settings.MIN_DETECTION_CONFIDENCE,
            )
            LandmarkService._ready = True
            logger.info("Landmark detector initialised (MediaPipe Face Mesh)")
        except Exception as e:
            logger.error(f"Failed to initialise landmark detector: {e}")
            LandmarkService._ready = False

    def ensure_ready(self) -> bool:
        """Retry a failed initialisation; called when a client connects"""
        if not self.is_ready:
            self._initialise_detector()
        return self.is_ready

    @property
    def is_ready(self) -> bool:
        return LandmarkService._ready and LandmarkService._detector is not None

    # ──────────────────────────────────────────────────────
    # Frame handling
    # ──────────────────────────────────────────────────────

    @staticmethod
    def decode_frame(frame_b64: str) -> Optional[np.ndarray]:
        """Base64 JPEG/PNG (optionally a data: URL) → BGR array, None on failure"""
        if not frame_b64:
            return None
        if frame_b64.startswith("data:") and "," in frame_b64:
            frame_b64 = frame_b64.split(",", 1)[1]
        try:
            img_bytes = base64.b64decode(frame_b64, validate=False)
        except (binascii.Error, ValueError):
            return None
        if not img_bytes:
            return None
        nparr = np.frombuffer(img_bytes, np.uint8)
        return cv2.imdecode(nparr, cv2.IMREAD_COLOR)

    def measure_sync(self, frame: np.ndarray) -> Optional[float]:
        """EAR for one frame, None when no face (or detector not ready)"""
        if not self.is_ready:
            return None
        try:
            with self._lock:
                return LandmarkService._detector.measure(frame)
        except Exception as e:
            logger.error(f"Landmark detection error: {e}")
            return None

    async def measure(self, frame: np.ndarray) -> Optional[float]:
        """Async wrapper; offloads MediaPipe work to a thread."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.measure_sync, frame)

    # ──────────────────────────────────────────────────────
    # Cleanup
    # ──────────────────────────────────────────────────────

    def cleanup(self):
        if LandmarkService._detector is not None:
            LandmarkService._detector.close()
            LandmarkService._detector = None
            LandmarkService._ready = False
            logger.info("Landmark detector cleaned up")


# ── Singleton accessor ───────────────────────────────────

def get_landmark_service() -> LandmarkService:
    return LandmarkService.get_instance()


class DrowsinessSession:
    """Per-connection tracker plus counters for the session summary"""

    def __init__(self, config: Optional[TrackerConfig] = None):
        self.tracker = DrowsinessStateTracker(config or settings.tracker_config())
        self.frame_count = 0
        self.face_frames = 0
        self.alarm_count = 0
        self._was_ready = False

    def process(self, raw_ear: Optional[float], now: float) -> DetectionResult:
        result = self.tracker.process_frame(raw_ear, now)
        self.frame_count += 1
        if result.detected:
            self.face_frames += 1
        if result.alarm:
            self.alarm_count += 1
        return result

    def baseline_just_ready(self) -> bool:
        """True exactly once after each completed calibration"""
        ready = self.tracker.baseline_ready
        just_ready = ready and not self._was_ready
        self._was_ready = ready
        return just_ready

    def begin_baseline(self):
        self.tracker.reset_calibration()
        self._was_ready = False

    def set_params(self, params: Mapping[str, Any]) -> Dict[str, Any]:
        return self.tracker.update_parameters(params)

    def summary(self) -> Dict[str, Any]:
        return {
            "frames": self.frame_count,
            "face_frames": self.face_frames,
            "alarms": self.alarm_count,
            "phase": self.tracker.phase.value,
        }
