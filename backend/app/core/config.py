"""
DrowsyVision Configuration
Central configuration loaded from environment variables.
"""

from pathlib import Path
from pydantic import Field
from pydantic_settings import BaseSettings
from typing import List

from drowsiness_model import TrackerConfig


class Settings(BaseSettings):
    # App
    APP_NAME: str = "DrowsyVision"
    DROWSY_ENV: str = "development"
    DEBUG: bool = True

    # CORS
    CORS_ORIGINS: str = "http://localhost:5173,http://localhost:3000,http://localhost:8080"

    # Tracker defaults (per session, overridable over the WebSocket)
    CLOSED_SECONDS: float = Field(1.2, gt=0)
    REFRACTORY: float = Field(2.5, ge=0)
    SMOOTHING_FACTOR: float = Field(0.7, ge=0, lt=1)
    CALIBRATION_SAMPLES: int = Field(60, ge=1)
    FRAMES_REQUIRED: int = Field(5, ge=1)
    RESET_ALARM_ON_RECALIBRATION: bool = False

    # MediaPipe
    MODELS_DIR: str = ""          # empty = cache next to drowsiness_model
    MIN_DETECTION_CONFIDENCE: float = 0.5

    @property
    def cors_origins_list(self) -> List[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",")]

    @property
    def base_dir(self) -> Path:
        return Path(__file__).resolve().parent.parent.parent

    def tracker_config(self) -> TrackerConfig:
        return TrackerConfig(
            closed_seconds=self.CLOSED_SECONDS,
            refractory_seconds=self.REFRACTORY,
            smoothing_factor=self.SMOOTHING_FACTOR,
            calibration_sample_count=self.CALIBRATION_SAMPLES,
            frames_required_to_confirm=self.FRAMES_REQUIRED,
            reset_alarm_on_recalibration=self.RESET_ALARM_ON_RECALIBRATION,
        )

    class Config:
        env_file = Path(__file__).resolve().parent.parent.parent / ".env"
        extra = "allow"


settings = Settings()
