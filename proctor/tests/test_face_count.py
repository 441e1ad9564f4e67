from proctor.config import FaceCountConfig
from proctor.face_count import FaceCountMonitor, FaceCountState, FaceCountStatus
from proctor.observations import BoundingBox, FaceObservation

FACE = FaceObservation(bbox=BoundingBox(0, 0, 10, 10))
TWO = [FACE, FACE]


def make_monitor():
    return FaceCountMonitor(FaceCountConfig(alert_threshold=3, cooldown_seconds=5.0))


def test_statuses():
    monitor = make_monitor()
    assert monitor.evaluate([], 0.0).snapshot.status == FaceCountStatus.NO_FACES
    assert monitor.evaluate([FACE], 0.1).snapshot.status == FaceCountStatus.SINGLE_FACE
    snapshot = monitor.evaluate([FACE, FACE, FACE], 0.2).snapshot
    assert snapshot.status == FaceCountStatus.MULTIPLE_FACES
    assert snapshot.data["count"] == 3


def test_violation_on_third_consecutive_tick():
    monitor = make_monitor()
    fired = [len(monitor.evaluate(TWO, i * 0.1).events) for i in range(3)]
    assert fired == [0, 0, 1]
    assert monitor.state.last_violation == 0.2


def test_cooldown_blocks_repeat_within_window():
    monitor = make_monitor()
    fired = sum(len(monitor.evaluate(TWO, i * 0.1).events) for i in range(50))
    assert fired == 1
    assert len(monitor.evaluate(TWO, 6.0).events) == 1


def test_single_face_resets_streak():
    monitor = make_monitor()
    ticks = [TWO, TWO, [FACE], TWO, TWO, [], TWO, TWO]
    fired = sum(len(monitor.evaluate(faces, i * 0.1).events) for i, faces in enumerate(ticks))
    assert fired == 0


def test_threshold_still_required_after_cooldown():
    monitor = make_monitor()
    for i in range(3):
        monitor.evaluate(TWO, i * 0.1)
    monitor.evaluate([FACE], 10.0)
    fired = [len(monitor.evaluate(TWO, 10.1 + i * 0.1).events) for i in range(3)]
    assert fired == [0, 0, 1]


def test_reset():
    monitor = make_monitor()
    for i in range(3):
        monitor.evaluate(TWO, i * 0.1)
    monitor.reset()
    assert monitor.state == FaceCountState()
