"""
Combines the five per-signal snapshots into one report.

Each signal has exactly one clear status. Identity is clear only on ``match``:
without a captured reference the candidate has not been verified, so
``no_reference`` keeps the session out of the all-clear state.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, Mapping

from .attention import AttentionStatus
from .device import DeviceStatus
from .face_count import FaceCountStatus
from .identity import IdentityStatus
from .presence import PresenceStatus
from .snapshot import Signal, SignalSnapshot

CLEAR_STATUSES: Mapping[Signal, str] = {
    Signal.PRESENCE: PresenceStatus.PRESENT,
    Signal.IDENTITY: IdentityStatus.MATCH,
    Signal.FACE_COUNT: FaceCountStatus.SINGLE_FACE,
    Signal.ATTENTION: AttentionStatus.ATTENTIVE,
    Signal.DEVICE: DeviceStatus.NO_MOBILE,
}


def is_clear(snapshot: SignalSnapshot) -> bool:
    return snapshot.status == CLEAR_STATUSES[snapshot.signal]


@dataclass(frozen=True)
class AggregateSnapshot:
    timestamp: float
    signals: Mapping[Signal, SignalSnapshot]
    all_clear: bool

    def status(self, signal: Signal) -> str:
        return self.signals[signal].status

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "all_clear": self.all_clear,
            "signals": {signal.value: snap.to_dict() for signal, snap in self.signals.items()},
        }


def aggregate(snapshots: Iterable[SignalSnapshot], timestamp: float) -> AggregateSnapshot:
    signals = {snapshot.signal: snapshot for snapshot in snapshots}
    all_clear = all(signal in signals and is_clear(signals[signal]) for signal in Signal)
    return AggregateSnapshot(timestamp=timestamp, signals=signals, all_clear=all_clear)
