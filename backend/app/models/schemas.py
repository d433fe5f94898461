"""
Pydantic Schemas for WebSocket message and REST response validation
"""

from pydantic import BaseModel
from typing import Any, Dict, Optional


# ── WebSocket: client → server ───────────────────────────
class ClientMessage(BaseModel):
    """Envelope of every inbound message; unused fields stay None"""
    type: str
    data: Optional[str] = None
    cmd: Optional[str] = None
    params: Optional[Dict[str, Any]] = None

    class Config:
        extra = "ignore"


# Wire names of set_params fields → tracker parameter names
PARAM_ALIASES: Dict[str, str] = {
    "CLOSED_SECONDS": "closed_seconds",
    "REFRACTORY": "refractory_seconds",
    "SMOOTHING_FACTOR": "smoothing_factor",
    "CALIBRATION_SAMPLES": "calibration_sample_count",
    "FRAMES_REQUIRED": "frames_required_to_confirm",
}


def to_tracker_params(params: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Translate wire parameter names; unknown names are dropped"""
    if not params:
        return {}
    return {PARAM_ALIASES[k]: v for k, v in params.items() if k in PARAM_ALIASES}


def to_wire_params(applied: Dict[str, Any]) -> Dict[str, Any]:
    reverse = {v: k for k, v in PARAM_ALIASES.items()}
    return {reverse[k]: v for k, v in applied.items() if k in reverse}


# ── REST ─────────────────────────────────────────────────
class TrackerDefaults(BaseModel):
    CLOSED_SECONDS: float
    REFRACTORY: float
    SMOOTHING_FACTOR: float
    CALIBRATION_SAMPLES: int
    FRAMES_REQUIRED: int
    RESET_ALARM_ON_RECALIBRATION: bool


class DetectorHealth(BaseModel):
    available: bool
    module: str
