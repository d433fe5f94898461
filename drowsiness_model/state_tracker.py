"""
Drowsiness State Tracker
Turns a per-frame eye aspect ratio (EAR) into a debounced OPEN/CLOSED eye
state and a rate-limited alarm flag.

The tracker is pure: no camera, no clock, no I/O. Callers feed one EAR
value per frame (or None when no face was found) together with the frame
time in seconds, strictly in arrival order.

    tracker = DrowsinessStateTracker()
    result = tracker.process_frame(0.28, time.monotonic())
    if result.alarm:
        ...
"""

import logging
import statistics
from dataclasses import dataclass, field, fields, replace
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

logger = logging.getLogger("drowsyvision.tracker")

# Thresholds are ratios of the calibrated baseline median
TH_LOW_RATIO = 0.75
TH_HIGH_RATIO = 0.85

DEGENERATE_MEDIAN = 1e-3


class EyeState(str, Enum):
    OPEN = "OPEN"
    CLOSED = "CLOSED"


class TrackerPhase(str, Enum):
    """State machine view including the calibration phase"""
    UNCALIBRATED = "UNCALIBRATED"
    OPEN = "OPEN"
    CLOSED = "CLOSED"


@dataclass
class TrackerConfig:
    """Tunable tracker parameters"""
    closed_seconds: float = 1.2
    refractory_seconds: float = 2.5
    smoothing_factor: float = 0.7
    calibration_sample_count: int = 60
    frames_required_to_confirm: int = 5
    reset_alarm_on_recalibration: bool = False


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_count(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, float):
        return value.is_integer() and value >= 1
    return isinstance(value, int) and value >= 1


# field name -> validity check
_VALIDATORS = {
    "closed_seconds": lambda v: _is_number(v) and v > 0,
    "refractory_seconds": lambda v: _is_number(v) and v >= 0,
    "smoothing_factor": lambda v: _is_number(v) and 0 <= v < 1,
    "calibration_sample_count": _is_count,
    "frames_required_to_confirm": _is_count,
    "reset_alarm_on_recalibration": lambda v: isinstance(v, bool),
}

_INT_FIELDS = {"calibration_sample_count", "frames_required_to_confirm"}


@dataclass
class TrackerState:
    """Live mutable record, owned by exactly one tracker"""
    smoothed: Optional[float] = None
    eye_state: EyeState = EyeState.OPEN
    closed_streak: int = 0
    open_streak: int = 0
    closed_since: Optional[float] = None
    last_alarm: Optional[float] = None
    th_low: Optional[float] = None
    th_high: Optional[float] = None
    calibration_buffer: List[float] = field(default_factory=list)

    @property
    def calibrated(self) -> bool:
        return self.th_low is not None and self.th_high is not None


@dataclass
class DetectionResult:
    """Per-frame tracker output"""
    state: EyeState
    smoothed_eye: Optional[float]
    th_low: Optional[float]
    th_high: Optional[float]
    baseline_ready: bool
    closed_for: float = 0.0
    alarm: bool = False
    detected: bool = True
    calibration_progress: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        """Wire payload for the transport layer"""
        return {
            "state": self.state.value,
            "eye": round(self.smoothed_eye, 4) if self.smoothed_eye is not None else None,
            "TH_LOW": round(self.th_low, 4) if self.th_low is not None else None,
            "TH_HIGH": round(self.th_high, 4) if self.th_high is not None else None,
            "baseline_ready": self.baseline_ready,
            "closed_for": round(self.closed_for, 2),
            "alarm": self.alarm,
            "detected": self.detected,
            "calibration_progress": round(self.calibration_progress, 1),
        }


class DrowsinessStateTracker:
    """
    EMA filter + baseline calibration + two-threshold hysteresis with an
    alarm cooldown.

    Phases: UNCALIBRATED -> OPEN <-> CLOSED. A transition is confirmed only
    after `frames_required_to_confirm` consecutive frames on the far side of
    the relevant threshold; frames inside the dead band leave everything as is.
    """

    def __init__(self, config: Optional[TrackerConfig] = None):
        self._config = replace(config) if config else TrackerConfig()
        invalid = {f.name: getattr(self._config, f.name)
                   for f in fields(TrackerConfig)
                   if not _VALIDATORS[f.name](getattr(self._config, f.name))}
        if invalid:
            raise ValueError(f"Invalid tracker configuration: {invalid}")
        self._state = TrackerState()

    # ──────────────────────────────────────────────────────
    # Read-only views
    # ──────────────────────────────────────────────────────

    @property
    def config(self) -> TrackerConfig:
        return replace(self._config)

    @property
    def state(self) -> TrackerState:
        return self._state

    @property
    def baseline_ready(self) -> bool:
        return self._state.calibrated

    @property
    def phase(self) -> TrackerPhase:
        if not self._state.calibrated:
            return TrackerPhase.UNCALIBRATED
        return TrackerPhase(self._state.eye_state.value)

    @property
    def calibration_progress(self) -> float:
        if self._state.calibrated:
            return 100.0
        needed = self._config.calibration_sample_count
        return min(len(self._state.calibration_buffer) / needed * 100.0, 100.0)

    # ──────────────────────────────────────────────────────
    # Operations
    # ──────────────────────────────────────────────────────

    def process_frame(self, raw_ear: Optional[float], now: float) -> DetectionResult:
        """Feed one frame. `raw_ear` is None when no face was detected."""
        st = self._state
        cfg = self._config

        if raw_ear is None:
            return self._result(detected=False)

        if st.smoothed is None:
            st.smoothed = raw_ear
        else:
            a = cfg.smoothing_factor
            st.smoothed = a * st.smoothed + (1.0 - a) * raw_ear

        if not st.calibrated:
            st.calibration_buffer.append(st.smoothed)
            if len(st.calibration_buffer) < cfg.calibration_sample_count:
                return self._result()
            self._finish_calibration()

        # Hysteresis
        if st.smoothed < st.th_low:
            st.closed_streak += 1
            st.open_streak = 0
            if (st.closed_streak >= cfg.frames_required_to_confirm
                    and st.eye_state == EyeState.OPEN):
                st.eye_state = EyeState.CLOSED
                st.closed_since = now
                logger.debug("Eyes CLOSED at %.3f (smoothed=%.4f)", now, st.smoothed)
        elif st.smoothed > st.th_high:
            st.open_streak += 1
            st.closed_streak = 0
            if (st.open_streak >= cfg.frames_required_to_confirm
                    and st.eye_state == EyeState.CLOSED):
                st.eye_state = EyeState.OPEN
                st.closed_since = None
                logger.debug("Eyes OPEN at %.3f (smoothed=%.4f)", now, st.smoothed)

        closed_for = 0.0
        alarm = False
        if st.eye_state == EyeState.CLOSED and st.closed_since is not None:
            closed_for = now - st.closed_since
            cooled_down = (st.last_alarm is None
                           or now - st.last_alarm >= cfg.refractory_seconds)
            if closed_for >= cfg.closed_seconds and cooled_down:
                alarm = True
                st.last_alarm = now
                logger.info("Drowsiness alarm: eyes closed for %.2fs", closed_for)

        return self._result(closed_for=closed_for, alarm=alarm)

    def reset_calibration(self):
        """Start a fresh baseline. The smoothed signal keeps running."""
        st = self._state
        st.calibration_buffer.clear()
        st.th_low = None
        st.th_high = None
        st.eye_state = EyeState.OPEN
        st.closed_since = None
        st.closed_streak = 0
        st.open_streak = 0
        if self._config.reset_alarm_on_recalibration:
            st.last_alarm = None
        logger.info("Calibration reset (%d samples needed)",
                    self._config.calibration_sample_count)

    def update_parameters(self, params: Mapping[str, Any]) -> Dict[str, Any]:
        """
        Apply any subset of TrackerConfig fields.
        Unknown keys and out-of-domain values are skipped one by one.
        Returns the values actually applied.
        """
        known = {f.name for f in fields(TrackerConfig)}
        applied: Dict[str, Any] = {}
        for key, value in params.items():
            if key not in known:
                logger.warning("Ignoring unknown tracker parameter %r", key)
                continue
            if not _VALIDATORS[key](value):
                logger.warning("Ignoring invalid value for %s: %r", key, value)
                continue
            if key in _INT_FIELDS:
                value = int(value)
            elif key != "reset_alarm_on_recalibration":
                value = float(value)
            setattr(self._config, key, value)
            applied[key] = value
        if applied:
            logger.info("Tracker parameters updated: %s", applied)
        return applied

    # Internals
    # ──────────────────────────────────────────────────────

    def _finish_calibration(self):
        st = self._state
        median = statistics.median(st.calibration_buffer)
        st.th_low = median * TH_LOW_RATIO
        st.th_high = median * TH_HIGH_RATIO
        st.calibration_buffer.clear()
        if median < DEGENERATE_MEDIAN:
            logger.warning(
                "Baseline median %.5f is near zero; CLOSED state will be "
                "effectively unreachable. Check the landmark feed.", median
            )
        logger.info("Baseline ready: median=%.4f TH_LOW=%.4f TH_HIGH=%.4f",
                    median, st.th_low, st.th_high)

    def _result(self, closed_for: float = 0.0, alarm: bool = False,
                detected: bool = True) -> DetectionResult:
        st = self._state
        return DetectionResult(
            state=st.eye_state,
            smoothed_eye=st.smoothed,
            th_low=st.th_low,
            th_high=st.th_high,
            baseline_ready=st.calibrated,
            closed_for=closed_for,
            alarm=alarm,
            detected=detected,
            calibration_progress=self.calibration_progress,
        )
