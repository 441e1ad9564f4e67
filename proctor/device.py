from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence

from .config import DeviceConfig
from .events import Event
from .observations import ObjectObservation
from .snapshot import MonitorResult, Signal, SignalSnapshot


class DeviceStatus(str, Enum):
    MOBILE_DETECTED = "mobile_detected"
    NO_MOBILE = "no_mobile"


@dataclass
class DeviceState:
    detection_count: int = 0
    last_violation: Optional[float] = None


class DeviceMonitor:
    """
    Counts device sightings with a leaky counter.

    A hit adds one, a miss takes one away (never below zero), so a single
    dropped frame does not erase a streak.
    """

    signal = Signal.DEVICE

    def __init__(self, config: Optional[DeviceConfig] = None):
        self.config = config or DeviceConfig()
        self.state = DeviceState()

    def reset(self) -> None:
        self.state = DeviceState()

    def _cooled_down(self, now: float) -> bool:
        last = self.state.last_violation
        return last is None or now - last > self.config.cooldown_seconds

    def evaluate(self, detections: Sequence[ObjectObservation], now: float) -> MonitorResult:
        if not detections:
            self.state.detection_count = max(0, self.state.detection_count - 1)
            snapshot = SignalSnapshot(self.signal, DeviceStatus.NO_MOBILE, now, {"count": self.state.detection_count})
            return MonitorResult(snapshot)

        self.state.detection_count += 1
        best = max(detections, key=lambda det: det.score)
        events = []
        if self.state.detection_count >= self.config.alert_threshold and self._cooled_down(now):
            events.append(
                Event.violation(
                    "MOBILE_DETECTED",
                    "Mobile phone detected in frame",
                    label=best.label,
                    score=round(best.score, 3),
                    detections=len(detections),
                )
            )
            self.state.last_violation = now

        snapshot = SignalSnapshot(
            self.signal,
            DeviceStatus.MOBILE_DETECTED,
            now,
            {"count": self.state.detection_count, "detections": len(detections), "label": best.label, "score": best.score},
        )
        return MonitorResult(snapshot, events)
