from __future__ import annotations

import asyncio
import json
import logging
import threading
import time
from typing import Any, Callable, Dict, Iterable, List, Optional, Protocol

import cv2
import numpy as np

from .aggregator import AggregateSnapshot
from .config import CameraConfig, ProctorSettings
from .errors import ConfigurationError, InvalidCapture
from .events import Event, EventLog, EventSink, LoggingSink, SinkGroup
from .faces import DisabledFaceDetector, FaceDetector, load_face_detector
from .loop import DetectionLoop, TickResult
from .objects import ObjectDetector, load_object_detector
from .overlay import draw_overlay

logger = logging.getLogger(__name__)


class FrameSource(Protocol):
    def open(self) -> None:
        ...

    def read(self) -> Optional[np.ndarray]:
        ...

    def release(self) -> None:
        ...


class Camera:
    def __init__(self, config: CameraConfig):
        self.config = config
        self.capture: Optional[cv2.VideoCapture] = None

    def open(self) -> None:
        if self.capture is not None and self.capture.isOpened():
            return
        self.capture = cv2.VideoCapture(self.config.index)
        self.capture.set(cv2.CAP_PROP_FRAME_WIDTH, self.config.width)
        self.capture.set(cv2.CAP_PROP_FRAME_HEIGHT, self.config.height)
        if self.config.fps:
            self.capture.set(cv2.CAP_PROP_FPS, self.config.fps)
        if not self.capture.isOpened():
            logger.error("Could not open camera %s", self.config.index)

    def read(self) -> Optional[np.ndarray]:
        if self.capture is None:
            return None
        ok, frame = self.capture.read()
        if not ok or frame is None:
            return None
        return frame

    def release(self) -> None:
        if self.capture is not None:
            self.capture.release()
            self.capture = None


class ProctorService:
    def __init__(
        self,
        settings: ProctorSettings,
        sinks: Iterable[EventSink] = (),
        db=None,
        loop: Optional[asyncio.AbstractEventLoop] = None,
        frame_source: Optional[FrameSource] = None,
        face_detector: Optional[FaceDetector] = None,
        object_detector: Optional[ObjectDetector] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.settings = settings
        self.db = db
        self.loop = loop
        self.clock = clock
        self.event_log = EventLog()
        self.sink = SinkGroup([self.event_log, LoggingSink(), *sinks])
        if db is not None:
            self.sink.add(db)
        self.frame_source: FrameSource = frame_source or Camera(settings.camera)
        self.face_detector = face_detector
        self.object_detector = object_detector
        self.owned_detectors: List[Any] = []
        self.detection: Optional[DetectionLoop] = None

        self.running = False
        self.stop_event = threading.Event()
        self.thread: Optional[threading.Thread] = None
        self.absence_thread: Optional[threading.Thread] = None

        self.listeners: List[asyncio.Queue] = []
        self.last_frame_jpeg: Optional[bytes] = None
        self.last_raw_frame: Optional[np.ndarray] = None
        self.last_result: Optional[TickResult] = None

        self.lock = threading.Lock()

    def _ensure_detection(self) -> DetectionLoop:
        if self.detection is not None:
            return self.detection
        if self.face_detector is None:
            self.face_detector = load_face_detector(self.settings.providers)
            self.owned_detectors.append(self.face_detector)
        if self.object_detector is None:
            self.object_detector = load_object_detector(self.settings.providers)
            self.owned_detectors.append(self.object_detector)
        self.sink.emit(
            Event.info(
                "MODEL_LOADING",
                f"Using {self.face_detector.name} faces and {self.object_detector.name} devices",
                face_detector=self.face_detector.name,
                object_detector=self.object_detector.name,
            )
        )
        if isinstance(self.face_detector, DisabledFaceDetector):
            self.sink.emit(Event.warning("MODEL_LOADING", f"Face detection disabled: {self.face_detector.reason}"))
        self.detection = DetectionLoop(
            self.face_detector,
            self.object_detector,
            sink=self.sink,
            settings=self.settings,
            clock=self.clock,
        )
        return self.detection

    def start(self) -> None:
        if self.running:
            return
        if self.thread is not None and self.thread.is_alive():
            raise RuntimeError("previous detection thread is still running")
        detection = self._ensure_detection()
        self.frame_source.open()
        detection.reset()
        detection.start()

        self.stop_event = threading.Event()
        self.running = True
        self.thread = threading.Thread(target=self._run, args=(self.stop_event,), daemon=True, name="proctor-loop")
        self.absence_thread = threading.Thread(
            target=self._watch_absence, args=(self.stop_event,), daemon=True, name="proctor-absence"
        )
        self.thread.start()
        self.absence_thread.start()
        self.sink.emit(Event.info("MONITORING", "Starting monitoring session"))

    def stop(self) -> None:
        if not self.running:
            return
        self.sink.emit(Event.info("MONITORING", "Stopping monitoring session"))
        self.running = False
        self.stop_event.set()
        # an in-flight tick is not interrupted; wait for it before resetting state
        for thread in (self.thread, self.absence_thread):
            if thread and thread is not threading.current_thread():
                thread.join()
        self.frame_source.release()
        if self.detection:
            self.detection.reset()
        self.sink.emit(Event.info("SESSION_END", "Monitoring session ended", **self.event_log.stats()))

    def close(self) -> None:
        self.stop()
        if self.detection:
            self.detection.close()
        for detector in (self.face_detector, self.object_detector):
            if detector:
                detector.close()

    def configure(self, overrides: Dict[str, Any]) -> ProctorSettings:
        """
        Apply threshold overrides immediately.

        Camera, provider and worker-pool settings are only read when a session
        starts, so they are rejected while monitoring and otherwise take effect
        on the next ``start()``. A rebuilt detection loop needs a new reference.
        """
        updated = self.settings.merged(overrides)
        restart = self._restart_scoped(updated)
        if restart and self.running:
            raise ConfigurationError(f"{', '.join(restart)} cannot change while monitoring, stop first")
        with self.lock:
            self.settings = updated
        if self.detection:
            self.detection.apply_settings(updated)
        if restart:
            self._rebuild(restart)
        self.sink.emit(Event.info("CONFIGURATION", "Settings updated", sections=sorted(overrides)))
        return updated

    def _restart_scoped(self, updated: ProctorSettings) -> List[str]:
        changed = []
        if updated.camera != self.settings.camera:
            changed.append("camera")
        if updated.providers != self.settings.providers:
            changed.append("providers")
        if updated.loop.max_workers != self.settings.loop.max_workers:
            changed.append("loop.max_workers")
        return changed

    def _rebuild(self, changed: List[str]) -> None:
        if "camera" in changed and isinstance(self.frame_source, Camera):
            self.frame_source.release()
            self.frame_source = Camera(self.settings.camera)
        if "providers" in changed:
            for detector in self.owned_detectors:
                detector.close()
                if detector is self.face_detector:
                    self.face_detector = None
                if detector is self.object_detector:
                    self.object_detector = None
            self.owned_detectors = []
        if self.detection and ("providers" in changed or "loop.max_workers" in changed):
            self.detection.close()
            self.detection = None

    def set_reference(self, frame: Optional[np.ndarray] = None) -> Event:
        if frame is None:
            frame = self.latest_raw_frame()
        if frame is None:
            raise InvalidCapture("no frame available, start monitoring first")
        detection = self._ensure_detection()
        try:
            return detection.capture_reference(frame)
        except InvalidCapture as exc:
            self.sink.emit(Event.warning("REFERENCE_SETTING", f"Failed to set reference person: {exc}"))
            raise

    def stats(self) -> Dict[str, Any]:
        return self.event_log.stats()

    def subscribe(self) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue()
        self.listeners.append(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue) -> None:
        if queue in self.listeners:
            self.listeners.remove(queue)

    def _broadcast(self, payload: Dict[str, Any]) -> None:
        if self.loop is None:
            return
        message = json.dumps(payload)
        for queue in list(self.listeners):
            self.loop.call_soon_threadsafe(self._push_queue, queue, message)

    @staticmethod
    def _push_queue(queue: asyncio.Queue, payload: str) -> None:
        try:
            if queue.qsize() > 2:
                queue.get_nowait()
            queue.put_nowait(payload)
        except (asyncio.QueueFull, asyncio.QueueEmpty):
            return

    def latest_frame(self) -> Optional[bytes]:
        with self.lock:
            return self.last_frame_jpeg

    def latest_raw_frame(self) -> Optional[np.ndarray]:
        with self.lock:
            return self.last_raw_frame

    def latest_report(self) -> Optional[AggregateSnapshot]:
        with self.lock:
            return self.last_result.report if self.last_result else None

    def _publish(self, frame: np.ndarray, result: TickResult) -> None:
        overlay = draw_overlay(frame, result)
        ok, buf = cv2.imencode(".jpg", overlay)
        with self.lock:
            self.last_raw_frame = frame
            self.last_result = result
            if ok:
                self.last_frame_jpeg = buf.tobytes()
        if self.db:
            self.db.log_snapshot(time.time(), result.report)
        payload = result.report.to_dict()
        payload["events"] = [event.to_dict() for event in result.events]
        self._broadcast({"type": "tick", **payload})

    def _run(self, stop_event: threading.Event) -> None:
        while not stop_event.is_set():
            started = time.monotonic()
            frame = self.frame_source.read()
            if frame is None:
                stop_event.wait(0.05)
                continue
            try:
                result = self.detection.tick(frame)
                self._publish(frame, result)
            except Exception as exc:
                logger.exception("Detection tick failed")
                self.sink.emit(Event.error("DETECTION", "Error during detection", exc))
            elapsed = time.monotonic() - started
            stop_event.wait(max(self.settings.loop.interval_seconds - elapsed, 0.0))

    def _watch_absence(self, stop_event: threading.Event) -> None:
        while not stop_event.wait(self.settings.presence.check_interval_seconds):
            event = self.detection.check_absence()
            if event is not None:
                self._broadcast({"type": "event", **event.to_dict()})
