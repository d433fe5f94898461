import collections

import pytest

from drowsiness_model import DrowsinessStateTracker, TrackerConfig


def calibrate(tracker, value=0.30, count=None, t=0.0):
    """Feed a constant baseline until the tracker is calibrated"""
    count = count or tracker.config.calibration_sample_count
    result = None
    for _ in range(count):
        result = tracker.process_frame(value, t)
    return result


@pytest.fixture
def tracker():
    return DrowsinessStateTracker()


@pytest.fixture
def raw_tracker():
    """No EMA lag: smoothed == raw, so frame counts line up with timestamps"""
    return DrowsinessStateTracker(TrackerConfig(smoothing_factor=0.0))


class FakeLandmarkService:
    """Stands in for the MediaPipe-backed service; replays scripted EAR values"""

    def __init__(self, ready=True):
        self.ready = ready
        self.init_attempts = 0
        self.ears = collections.deque()

    @property
    def is_ready(self):
        return self.ready

    def ensure_ready(self):
        if not self.ready:
            self.init_attempts += 1
        return self.ready

    @staticmethod
    def decode_frame(frame_b64):
        return frame_b64 or None

    async def measure(self, frame):
        return self.ears.popleft()


class FakeClock:
    def __init__(self, now=0.0):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def fake_service():
    return FakeLandmarkService()


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def client(fake_service, fake_clock):
    from fastapi.testclient import TestClient
    from main import app
    from app.routers.drowsiness import get_clock
    from app.services.drowsiness_service import get_landmark_service

    app.dependency_overrides[get_landmark_service] = lambda: fake_service
    app.dependency_overrides[get_clock] = lambda: fake_clock
    yield TestClient(app)
    app.dependency_overrides.clear()
