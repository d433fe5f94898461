import pytest
from starlette.websockets import WebSocketDisconnect


def _frame(ws, fake_service, ear):
    fake_service.ears.append(ear)
    ws.send_json({"type": "frame", "data": "jpeg"})
    return ws.receive_json()


def _connect(client):
    ws = client.websocket_connect("/ws/drowsiness")
    return ws


def test_health_endpoints(client):
    assert client.get("/health").json()["status"] == "healthy"
    assert client.get("/api/drowsiness/health").json() == {
        "available": True,
        "module": "EyeLandmarkDetector (MediaPipe Face Mesh)",
    }
    assert "/ws/drowsiness" in client.get("/api/info").json()["endpoints"].values()


def test_defaults_endpoint(client):
    body = client.get("/api/drowsiness/defaults").json()
    assert body["CLOSED_SECONDS"] == pytest.approx(1.2)
    assert body["REFRACTORY"] == pytest.approx(2.5)
    assert body["SMOOTHING_FACTOR"] == pytest.approx(0.7)
    assert body["CALIBRATION_SAMPLES"] == 60
    assert body["FRAMES_REQUIRED"] == 5


def test_full_session(client, fake_service, fake_clock):
    with _connect(client) as ws:
        assert ws.receive_json() == {"type": "info", "message": "connected"}

        ws.send_json({
            "type": "cmd",
            "cmd": "set_params",
            "params": {
                "CALIBRATION_SAMPLES": 3,
                "SMOOTHING_FACTOR": 0,
                "FRAMES_REQUIRED": 1,
                "CLOSED_SECONDS": "soon",
                "UNKNOWN": 1,
            },
        })
        msg = ws.receive_json()
        assert msg["type"] == "info"
        assert msg["message"] == "parameters_updated"
        assert msg["applied"] == {
            "CALIBRATION_SAMPLES": 3,
            "SMOOTHING_FACTOR": 0.0,
            "FRAMES_REQUIRED": 1,
        }

        # Baseline
        for _ in range(2):
            state = _frame(ws, fake_service, 0.30)
            assert state["type"] == "state"
            assert state["payload"]["baseline_ready"] is False
        state = _frame(ws, fake_service, 0.30)
        assert state["payload"]["baseline_ready"] is True
        assert state["payload"]["TH_LOW"] == pytest.approx(0.225)
        assert state["payload"]["TH_HIGH"] == pytest.approx(0.255)
        assert ws.receive_json() == {"type": "info", "message": "baseline_ready"}

        # No face
        fake_clock.now = 5.0
        state = _frame(ws, fake_service, None)
        assert state["payload"]["detected"] is False
        assert state["payload"]["state"] == "OPEN"

        # Closure → alarm
        fake_clock.now = 10.0
        assert _frame(ws, fake_service, 0.10)["payload"]["state"] == "CLOSED"
        fake_clock.now = 11.5
        payload = _frame(ws, fake_service, 0.10)["payload"]
        assert payload["alarm"] is True
        assert payload["closed_for"] == pytest.approx(1.5)
        fake_clock.now = 12.0
        assert _frame(ws, fake_service, 0.10)["payload"]["alarm"] is False

        # Recalibrate
        ws.send_json({"type": "cmd", "cmd": "begin_baseline"})
        assert ws.receive_json() == {"type": "info", "message": "baseline_started"}
        payload = _frame(ws, fake_service, 0.30)["payload"]
        assert payload["baseline_ready"] is False
        assert payload["state"] == "OPEN"
        assert payload["TH_LOW"] is None


def test_ignores_malformed_messages(client, fake_service):
    with _connect(client) as ws:
        ws.receive_json()
        ws.send_text("not json")
        ws.send_json({"no_type": True})
        ws.send_json({"type": "frame", "data": ""})
        ws.send_json({"type": "mystery"})
        ws.send_json({"type": "ping"})
        assert ws.receive_json() == {"type": "pong"}


def test_unknown_command(client):
    with _connect(client) as ws:
        ws.receive_json()
        ws.send_json({"type": "cmd", "cmd": "self_destruct"})
        msg = ws.receive_json()
        assert msg["type"] == "error"
        assert "self_destruct" in msg["message"]


def test_sessions_are_independent(client, fake_service):
    with _connect(client) as first, _connect(client) as second:
        first.receive_json()
        second.receive_json()
        first.send_json({"type": "cmd", "cmd": "set_params",
                         "params": {"CALIBRATION_SAMPLES": 1}})
        first.receive_json()

        assert _frame(first, fake_service, 0.3)["payload"]["baseline_ready"] is True
        assert _frame(second, fake_service, 0.3)["payload"]["baseline_ready"] is False


def test_detector_unavailable(client, fake_service):
    fake_service.ready = False
    with _connect(client) as ws:
        msg = ws.receive_json()
        assert msg["type"] == "error"
        with pytest.raises(WebSocketDisconnect):
            ws.receive_json()
        assert fake_service.init_attempts == 1


def test_health_poll_does_not_retry_detector(client, fake_service):
    fake_service.ready = False
    for _ in range(3):
        assert client.get("/api/drowsiness/health").json()["available"] is False
    assert fake_service.init_attempts == 0
