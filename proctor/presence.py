from __future__ import annotations

import threading
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence

from .config import PresenceConfig
from .events import Event
from .observations import FaceObservation
from .snapshot import MonitorResult, Signal, SignalSnapshot


class PresenceStatus(str, Enum):
    PRESENT = "person_present"
    ABSENT = "no_person"


@dataclass
class PresenceState:
    last_seen: Optional[float] = None
    present: bool = False


class PresenceMonitor:
    """
    Tracks when a face was last seen.

    Ticks only update the last-seen time; the absence violation comes from
    ``check_absence``, which the service calls on its own timer so it keeps
    firing even when ticks stall. Every check past the threshold raises again.
    """

    signal = Signal.PRESENCE

    def __init__(self, config: Optional[PresenceConfig] = None):
        self.config = config or PresenceConfig()
        self.state = PresenceState()
        self.lock = threading.Lock()

    def start(self, now: float) -> None:
        with self.lock:
            self.state.last_seen = now

    def reset(self) -> None:
        with self.lock:
            self.state = PresenceState()

    def evaluate(self, faces: Sequence[FaceObservation], now: float) -> MonitorResult:
        count = len(faces)
        with self.lock:
            if count > 0:
                self.state.last_seen = now
                self.state.present = True
                status = PresenceStatus.PRESENT
            else:
                self.state.present = False
                status = PresenceStatus.ABSENT
        return MonitorResult(SignalSnapshot(self.signal, status, now, {"count": count}))

    def check_absence(self, now: float) -> Optional[Event]:
        with self.lock:
            if self.state.last_seen is None:
                return None
            elapsed = now - self.state.last_seen

        if elapsed <= self.config.absence_threshold_seconds:
            return None
        return Event.violation(
            "NO_PERSON",
            f"No person detected for {int(elapsed)} seconds",
            elapsed_seconds=round(elapsed, 3),
        )
