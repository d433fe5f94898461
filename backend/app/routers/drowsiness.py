"""
DrowsyVision Drowsiness Router
==============================
WebSocket endpoint for real-time eye-closure monitoring.

Each connection gets its own DrowsinessSession (own tracker, own baseline);
the MediaPipe detector is shared. Messages from one connection are handled
strictly in arrival order, which keeps the EMA and the closed timer valid.
"""

import json
import logging
import time
from typing import Callable

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from app.core.config import settings
from app.models.schemas import (
    ClientMessage,
    DetectorHealth,
    TrackerDefaults,
    to_tracker_params,
    to_wire_params,
)
from app.services.drowsiness_service import (
    DrowsinessSession,
    LandmarkService,
    get_landmark_service,
)
from app.services.websocket_manager import ws_manager

logger = logging.getLogger("drowsyvision.ws")

router = APIRouter(tags=["Drowsiness"])


def get_clock() -> Callable[[], float]:
    """Frame time source (seconds); overridden in tests"""
    return time.monotonic


# ══════════════════════════════════════════════════════════
# REST endpoints
# ══════════════════════════════════════════════════════════

@router.get("/api/drowsiness/health", response_model=DetectorHealth)
def drowsiness_health(service: LandmarkService = Depends(get_landmark_service)):
    """Check if the landmark detector is available"""
    return DetectorHealth(
        available=service.is_ready,
        module="EyeLandmarkDetector (MediaPipe Face Mesh)",
    )


@router.get("/api/drowsiness/defaults", response_model=TrackerDefaults)
def drowsiness_defaults():
    """Tracker parameters every new session starts with"""
    return TrackerDefaults(
        CLOSED_SECONDS=settings.CLOSED_SECONDS,
        REFRACTORY=settings.REFRACTORY,
        SMOOTHING_FACTOR=settings.SMOOTHING_FACTOR,
        CALIBRATION_SAMPLES=settings.CALIBRATION_SAMPLES,
        FRAMES_REQUIRED=settings.FRAMES_REQUIRED,
        RESET_ALARM_ON_RECALIBRATION=settings.RESET_ALARM_ON_RECALIBRATION,
    )


# ══════════════════════════════════════════════════════════
# WebSocket endpoint
# ══════════════════════════════════════════════════════════

@router.websocket("/ws/drowsiness")
async def websocket_drowsiness(
    websocket: WebSocket,
    service: LandmarkService = Depends(get_landmark_service),
    clock: Callable[[], float] = Depends(get_clock),
):
    """
    Real-time drowsiness WebSocket.

    Protocol:
    - Client sends base64-encoded JPEG frames as JSON:
      {"type": "frame", "data": "<base64 jpeg>"}
    - Server responds with:
      {"type": "state", "payload": {state, eye, TH_LOW, TH_HIGH,
       baseline_ready, closed_for, alarm, detected, calibration_progress}}
    - Client can send control messages:
      {"type": "cmd", "cmd": "begin_baseline"}
      {"type": "cmd", "cmd": "set_params", "params": {"CLOSED_SECONDS": 1.5, ...}}
      {"type": "ping"}
    """
    await ws_manager.connect(websocket, "drowsiness")

    if not service.ensure_ready():
        await websocket.send_json({
            "type": "error",
            "message": "Landmark detector not available. "
                       "Ensure mediapipe is installed.",
        })
        ws_manager.disconnect(websocket, "drowsiness")
        await websocket.close()
        return

    session = DrowsinessSession()
    await websocket.send_json({"type": "info", "message": "connected"})

    try:
        while True:
            raw = await websocket.receive_text()
            try:
                msg = ClientMessage.model_validate(json.loads(raw))
            except (json.JSONDecodeError, ValidationError):
                continue

            # ── Frame processing ──
            if msg.type == "frame":
                frame = service.decode_frame(msg.data or "")
                if frame is None:
                    continue

                raw_ear = await service.measure(frame)
                result = session.process(raw_ear, clock())

                await websocket.send_json({
                    "type": "state",
                    "payload": result.to_dict(),
                })
                if session.baseline_just_ready():
                    await websocket.send_json({"type": "info", "message": "baseline_ready"})
                continue

            if msg.type == "ping":
                await websocket.send_json({"type": "pong"})
                continue

            # ── Control messages ──
            if msg.type == "cmd":
                if msg.cmd == "begin_baseline":
                    session.begin_baseline()
                    await websocket.send_json({"type": "info", "message": "baseline_started"})
                elif msg.cmd == "set_params":
                    applied = session.set_params(to_tracker_params(msg.params))
                    await websocket.send_json({
                        "type": "info",
                        "message": "parameters_updated",
                        "applied": to_wire_params(applied),
                    })
                else:
                    await websocket.send_json({
                        "type": "error",
                        "message": f"Unknown command: {msg.cmd}",
                    })

    except WebSocketDisconnect:
        logger.info("Drowsiness client disconnected (%s)", session.summary())
    except Exception as e:
        logger.error("Drowsiness WS error: %s", e, exc_info=True)
    finally:
        ws_manager.disconnect(websocket, "drowsiness")
