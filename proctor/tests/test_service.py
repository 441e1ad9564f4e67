import threading
import time

import numpy as np
import pytest

from proctor import faces as faces_module
from proctor.config import PresenceConfig, ProctorSettings
from proctor.errors import ConfigurationError, InvalidCapture, ProviderUnavailable
from proctor.events import EventLevel
from proctor.observations import BoundingBox, FaceObservation, ObjectObservation
from proctor.service import ProctorService
from proctor.snapshot import ERROR_STATUS, Signal

FRAME = np.zeros((48, 64, 3), dtype=np.uint8)


class FakeDetector:
    name = "fake"

    def __init__(self, result):
        self.result = result

    def detect(self, frame):
        return list(self.result)

    def close(self):
        pass


class SlowDetector(FakeDetector):
    def __init__(self, result, delay):
        super().__init__(result)
        self.delay = delay
        self.calls = 0
        self.active = 0
        self.max_active = 0
        self.lock = threading.Lock()

    def detect(self, frame):
        with self.lock:
            self.calls += 1
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        try:
            time.sleep(self.delay)
            return list(self.result)
        finally:
            with self.lock:
                self.active -= 1


class StaticSource:
    def __init__(self):
        self.opened = 0
        self.released = 0

    def open(self):
        self.opened += 1

    def read(self):
        return FRAME

    def release(self):
        self.released += 1


def face():
    return FaceObservation(bbox=BoundingBox(0, 0, 10, 10), descriptor=np.zeros(128))


@pytest.fixture
def service():
    service = ProctorService(
        ProctorSettings(),
        frame_source=StaticSource(),
        face_detector=FakeDetector([face(), face()]),
        object_detector=FakeDetector([ObjectObservation(BoundingBox(0, 0, 5, 9), 0.9, "cell phone")]),
    )
    yield service
    service.close()


def wait_for(predicate, timeout=3.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.02)
    return False


def test_invalid_configuration_keeps_previous(service):
    before = service.settings
    with pytest.raises(ConfigurationError):
        service.configure({"device": {"cooldown_seconds": -2}})
    assert service.settings is before


def test_configuration_reaches_monitors(service):
    service.start()
    service.configure({"device": {"alert_threshold": 2}})
    assert service.detection.device.config.alert_threshold == 2
    service.stop()


def test_reference_needs_a_frame(service):
    with pytest.raises(InvalidCapture):
        service.set_reference()


def test_reference_with_two_faces_fails_without_state_change(service):
    with pytest.raises(InvalidCapture):
        service.set_reference(FRAME)
    assert service.detection.identity.reference is None
    assert service.event_log.snapshot()[-1].category == "REFERENCE_SETTING"

    service.face_detector.result = [face()]
    assert service.set_reference(FRAME).category == "REFERENCE_SET"
    assert service.detection.identity.reference is not None


def test_start_stop_session(service):
    service.start()
    assert wait_for(lambda: service.latest_report() is not None)
    assert wait_for(lambda: service.detection.face_count.state.multiple_count > 0)
    assert service.latest_frame() is not None

    service.stop()
    assert not service.running
    assert not service.thread.is_alive()
    assert service.frame_source.released == 1
    assert service.detection.face_count.state.multiple_count == 0
    assert service.detection.device.state.detection_count == 0
    last = service.event_log.snapshot()[-1]
    assert last.category == "SESSION_END"
    assert last.data["total"] >= 2


def test_restart_begins_clean(service):
    service.start()
    assert wait_for(lambda: service.detection.device.state.detection_count > 0)
    service.stop()
    first_thread = service.thread
    service.start()
    assert service.thread is not first_thread
    service.stop()
    assert service.detection.device.state.detection_count == 0


def make_service(settings=None, faces=None, objects=None):
    return ProctorService(
        settings or ProctorSettings(),
        frame_source=StaticSource(),
        face_detector=faces,
        object_detector=objects or FakeDetector([]),
    )


def test_stop_waits_for_in_flight_tick_before_restart():
    faces = SlowDetector([face()], delay=0.5)
    service = make_service(faces=faces)
    try:
        service.start()
        assert wait_for(lambda: faces.active == 1)
        first = service.thread
        service.stop()
        assert not first.is_alive()
        assert service.detection.presence.state.last_seen is None

        service.start()
        assert wait_for(lambda: faces.calls >= 2)
        service.stop()
    finally:
        service.close()
    assert faces.max_active == 1


def test_ticks_never_overlap_and_stop_at_tick_boundary():
    settings = ProctorSettings()
    settings.loop.interval_seconds = 0.01
    faces = SlowDetector([face()], delay=0.05)
    service = make_service(settings, faces=faces)
    try:
        service.start()
        assert wait_for(lambda: faces.calls >= 4)
        service.stop()
        calls = faces.calls
        time.sleep(0.15)
        assert faces.calls == calls
    finally:
        service.close()
    assert faces.max_active == 1


def test_absence_timer_raises_every_check_until_stopped():
    settings = ProctorSettings()
    settings.presence = PresenceConfig(absence_threshold_seconds=0.05, check_interval_seconds=0.02)
    service = make_service(settings, faces=FakeDetector([]))

    def absences():
        return [event for event in service.event_log.snapshot() if event.category == "NO_PERSON"]

    try:
        service.start()
        assert wait_for(lambda: len(absences()) >= 3)
        service.stop()
        seen = len(absences())
        time.sleep(0.1)
        assert len(absences()) == seen
    finally:
        service.close()
    assert all(event.is_violation for event in absences())


def test_session_runs_without_any_face_backend(monkeypatch):
    def unavailable(*args, **kwargs):
        raise ProviderUnavailable("mediapipe missing")

    monkeypatch.setattr(faces_module.FaceRecognitionDetector, "__init__", unavailable)
    monkeypatch.setattr(faces_module, "MediaPipeFaceDetector", unavailable)
    phone = ObjectObservation(BoundingBox(0, 0, 5, 9), 0.9, "cell phone")
    service = make_service(objects=FakeDetector([phone]))
    try:
        service.start()
        assert service.running
        assert wait_for(lambda: service.latest_report() is not None)
        report = service.latest_report()
        for signal in (Signal.PRESENCE, Signal.IDENTITY, Signal.FACE_COUNT, Signal.ATTENTION):
            assert report.status(signal) == ERROR_STATUS
        assert report.status(Signal.DEVICE) == "mobile_detected"
    finally:
        service.close()
    log = service.event_log.snapshot()
    disabled = [e for e in log if e.category == "MODEL_LOADING" and e.level == EventLevel.WARNING]
    assert len(disabled) == 1
    assert not [e for e in log if e.category == "DETECTION"]


def test_restart_scoped_settings_rejected_while_monitoring(service):
    service.start()
    before = service.settings
    with pytest.raises(ConfigurationError):
        service.configure({"loop": {"max_workers": 2}})
    with pytest.raises(ConfigurationError):
        service.configure({"providers": {"face_backend": "mediapipe"}})
    assert service.settings is before
    service.stop()


def test_restart_scoped_settings_apply_on_next_start(service):
    service.start()
    service.stop()
    old = service.detection
    service.configure({"loop": {"max_workers": 2}})
    assert service.detection is None
    service.start()
    assert service.detection is not old
    assert service.settings.loop.max_workers == 2
    service.stop()
