from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List

from .events import Event

ERROR_STATUS = "error"


class Signal(str, Enum):
    PRESENCE = "presence"
    IDENTITY = "identity"
    FACE_COUNT = "face_count"
    ATTENTION = "attention"
    DEVICE = "device"


@dataclass(frozen=True)
class SignalSnapshot:
    signal: Signal
    status: str
    timestamp: float
    data: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def inconclusive(cls, signal: Signal, timestamp: float, reason: str) -> "SignalSnapshot":
        return cls(signal=signal, status=ERROR_STATUS, timestamp=timestamp, data={"reason": reason})

    def to_dict(self) -> Dict[str, Any]:
        return {"status": str(getattr(self.status, "value", self.status)), "timestamp": self.timestamp, **self.data}


@dataclass(frozen=True)
class MonitorResult:
    snapshot: SignalSnapshot
    events: List[Event] = field(default_factory=list)
