from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence

from .config import FaceCountConfig
from .events import Event
from .observations import FaceObservation
from .snapshot import MonitorResult, Signal, SignalSnapshot


class FaceCountStatus(str, Enum):
    NO_FACES = "no_faces"
    SINGLE_FACE = "single_face"
    MULTIPLE_FACES = "multiple_faces"


@dataclass
class FaceCountState:
    multiple_count: int = 0
    last_violation: Optional[float] = None


class FaceCountMonitor:
    signal = Signal.FACE_COUNT

    def __init__(self, config: Optional[FaceCountConfig] = None):
        self.config = config or FaceCountConfig()
        self.state = FaceCountState()

    def reset(self) -> None:
        self.state = FaceCountState()

    def _cooled_down(self, now: float) -> bool:
        last = self.state.last_violation
        return last is None or now - last > self.config.cooldown_seconds

    def evaluate(self, faces: Sequence[FaceObservation], now: float) -> MonitorResult:
        count = len(faces)
        if count <= 1:
            self.state.multiple_count = 0
            status = FaceCountStatus.NO_FACES if count == 0 else FaceCountStatus.SINGLE_FACE
            return MonitorResult(SignalSnapshot(self.signal, status, now, {"count": count}))

        self.state.multiple_count += 1
        events = []
        if self.state.multiple_count >= self.config.alert_threshold and self._cooled_down(now):
            events.append(Event.violation("MULTIPLE_FACES", f"{count} faces detected in frame", count=count))
            self.state.last_violation = now

        snapshot = SignalSnapshot(
            self.signal,
            FaceCountStatus.MULTIPLE_FACES,
            now,
            {"count": count, "consecutive": self.state.multiple_count},
        )
        return MonitorResult(snapshot, events)
