from __future__ import annotations

import logging
import time
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence

import numpy as np

from .aggregator import AggregateSnapshot, aggregate
from .attention import AttentionMonitor
from .config import ProctorSettings
from .device import DeviceMonitor
from .errors import ProviderUnavailable
from .events import Event, EventSink, LoggingSink
from .face_count import FaceCountMonitor
from .faces import FaceDetector
from .identity import IdentityMonitor
from .objects import ObjectDetector
from .observations import FaceObservation, ObjectObservation
from .presence import PresenceMonitor
from .snapshot import MonitorResult, Signal, SignalSnapshot

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TickResult:
    timestamp: float
    report: AggregateSnapshot
    faces: List[FaceObservation] = field(default_factory=list)
    objects: List[ObjectObservation] = field(default_factory=list)
    events: List[Event] = field(default_factory=list)

    @property
    def violations(self) -> List[Event]:
        return [event for event in self.events if event.is_violation]


class DetectionLoop:
    """
    Runs one frame through both providers and all five monitors.

    Providers run side by side, then every monitor is submitted to the same
    pool and the tick waits for all of them before aggregating. Failures are
    reported as ERROR events and turn the affected signals inconclusive. A
    provider that never loaded was already reported once and only turns its
    signals inconclusive.
    """

    def __init__(
        self,
        face_detector: FaceDetector,
        object_detector: ObjectDetector,
        sink: Optional[EventSink] = None,
        settings: Optional[ProctorSettings] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        settings = settings or ProctorSettings()
        self.face_detector = face_detector
        self.object_detector = object_detector
        self.sink = sink or LoggingSink()
        self.clock = clock

        self.presence = PresenceMonitor(settings.presence)
        self.identity = IdentityMonitor(settings.identity)
        self.face_count = FaceCountMonitor(settings.face_count)
        self.attention = AttentionMonitor(settings.attention)
        self.device = DeviceMonitor(settings.device)
        self.monitors = [self.presence, self.identity, self.face_count, self.attention, self.device]

        self.executor = ThreadPoolExecutor(max_workers=settings.loop.max_workers, thread_name_prefix="proctor-tick")

    def apply_settings(self, settings: ProctorSettings) -> None:
        self.presence.config = settings.presence
        self.identity.config = settings.identity
        self.face_count.config = settings.face_count
        self.attention.config = settings.attention
        self.device.config = settings.device

    def start(self) -> None:
        self.presence.start(self.clock())

    def reset(self) -> None:
        for monitor in self.monitors:
            monitor.reset()

    def close(self) -> None:
        self.executor.shutdown(wait=True)

    def _emit(self, events: Sequence[Event]) -> None:
        for event in events:
            self.sink.emit(event)

    def _collect_detections(self, future: Future, provider: str, events: List[Event]) -> Optional[list]:
        try:
            return list(future.result())
        except ProviderUnavailable:
            return None
        except Exception as exc:
            logger.warning("%s detector failed: %s", provider, exc)
            events.append(Event.error("DETECTION", f"{provider} detection failed", exc, provider=provider))
            return None

    def tick(self, frame: np.ndarray) -> TickResult:
        now = self.clock()
        events: List[Event] = []

        face_future = self.executor.submit(self.face_detector.detect, frame)
        object_future = self.executor.submit(self.object_detector.detect, frame)
        faces = self._collect_detections(face_future, "face", events)
        objects = self._collect_detections(object_future, "object", events)

        inputs = {
            Signal.PRESENCE: faces,
            Signal.IDENTITY: faces,
            Signal.FACE_COUNT: faces,
            Signal.ATTENTION: faces,
            Signal.DEVICE: objects,
        }
        snapshots: Dict[Signal, SignalSnapshot] = {}
        pending: Dict[Signal, Future] = {}
        for monitor in self.monitors:
            observed = inputs[monitor.signal]
            if observed is None:
                snapshots[monitor.signal] = SignalSnapshot.inconclusive(monitor.signal, now, "provider error")
            else:
                pending[monitor.signal] = self.executor.submit(monitor.evaluate, observed, now)

        for signal, future in pending.items():
            try:
                result: MonitorResult = future.result()
            except Exception as exc:
                logger.exception("%s monitor failed", signal.value)
                snapshots[signal] = SignalSnapshot.inconclusive(signal, now, str(exc))
                events.append(Event.error("DETECTION", f"{signal.value} monitor failed", exc, signal=signal.value))
                continue
            snapshots[signal] = result.snapshot
            events.extend(result.events)

        report = aggregate((snapshots[monitor.signal] for monitor in self.monitors), now)
        self._emit(events)
        return TickResult(timestamp=now, report=report, faces=faces or [], objects=objects or [], events=events)

    def check_absence(self) -> Optional[Event]:
        event = self.presence.check_absence(self.clock())
        if event is not None:
            self.sink.emit(event)
        return event

    def capture_reference(self, frame: np.ndarray) -> Event:
        faces = self.face_detector.detect(frame)
        event = self.identity.set_reference(faces, self.clock())
        self.sink.emit(event)
        return event
