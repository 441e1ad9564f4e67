from __future__ import annotations

import threading
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence

import numpy as np

from .config import IdentityConfig
from .errors import InvalidCapture
from .events import Event
from .observations import FaceObservation
from .snapshot import MonitorResult, Signal, SignalSnapshot


class IdentityStatus(str, Enum):
    NO_REFERENCE = "no_reference"
    NO_FACE = "no_face"
    MULTIPLE_FACES = "multiple_faces"
    NO_DESCRIPTOR = "no_descriptor"
    MATCH = "match"
    MISMATCH = "mismatch"


@dataclass
class IdentityState:
    mismatch_count: int = 0
    reported: bool = False


def similarity(reference: np.ndarray, descriptor: np.ndarray) -> float:
    distance = float(np.linalg.norm(np.asarray(reference, dtype=np.float64) - np.asarray(descriptor, dtype=np.float64)))
    return 1.0 - distance


class IdentityMonitor:
    """
    Compares the single visible face against a captured reference descriptor.

    A mismatch streak raises one WRONG_PERSON violation when it reaches the
    threshold; the streak is only re-armed by a match or a new capture.
    """

    signal = Signal.IDENTITY

    def __init__(self, config: Optional[IdentityConfig] = None):
        self.config = config or IdentityConfig()
        self.state = IdentityState()
        self.lock = threading.Lock()
        self._reference: Optional[np.ndarray] = None

    @property
    def reference(self) -> Optional[np.ndarray]:
        return self._reference

    def set_reference(self, faces: Sequence[FaceObservation], now: float) -> Event:
        if len(faces) != 1:
            raise InvalidCapture(f"expected exactly one face, found {len(faces)}")
        descriptor = faces[0].descriptor
        if descriptor is None:
            raise InvalidCapture("the detected face has no identity descriptor")

        reference = np.array(descriptor, dtype=np.float64, copy=True)
        reference.setflags(write=False)
        with self.lock:
            self._reference = reference
            self.state = IdentityState()
        return Event.info("REFERENCE_SET", "Reference person successfully set", descriptor_size=int(reference.size))

    def reset(self) -> None:
        with self.lock:
            self.state = IdentityState()

    def evaluate(self, faces: Sequence[FaceObservation], now: float) -> MonitorResult:
        reference = self._reference
        if reference is None:
            return self._result(IdentityStatus.NO_REFERENCE, now)
        if not faces:
            return self._result(IdentityStatus.NO_FACE, now)
        if len(faces) > 1:
            return self._result(IdentityStatus.MULTIPLE_FACES, now, count=len(faces))

        descriptor = faces[0].descriptor
        if descriptor is None:
            return self._result(IdentityStatus.NO_DESCRIPTOR, now)

        score = similarity(reference, descriptor)
        events = []
        with self.lock:
            if score >= self.config.similarity_threshold:
                self.state.mismatch_count = 0
                self.state.reported = False
                status = IdentityStatus.MATCH
            else:
                self.state.mismatch_count += 1
                status = IdentityStatus.MISMATCH
                if self.state.mismatch_count >= self.config.mismatch_threshold and not self.state.reported:
                    self.state.reported = True
                    events.append(
                        Event.violation(
                            "WRONG_PERSON",
                            f"Wrong person detected (similarity: {score * 100:.1f}%)",
                            similarity=round(score, 4),
                            mismatches=self.state.mismatch_count,
                        )
                    )
            mismatches = self.state.mismatch_count

        snapshot = SignalSnapshot(self.signal, status, now, {"similarity": score, "mismatches": mismatches})
        return MonitorResult(snapshot, events)

    def _result(self, status: IdentityStatus, now: float, **data) -> MonitorResult:
        return MonitorResult(SignalSnapshot(self.signal, status, now, data))
