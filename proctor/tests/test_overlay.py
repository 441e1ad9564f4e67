import numpy as np

from proctor.aggregator import CLEAR_STATUSES, aggregate
from proctor.loop import TickResult
from proctor.observations import BoundingBox, FaceObservation, ObjectObservation
from proctor.overlay import draw_overlay
from proctor.snapshot import Signal, SignalSnapshot


def test_overlay_draws_on_a_copy():
    frame = np.zeros((480, 640, 3), dtype=np.uint8)
    snapshots = [SignalSnapshot(signal, CLEAR_STATUSES[signal], 0.0, {"count": 1}) for signal in Signal]
    result = TickResult(
        timestamp=0.0,
        report=aggregate(snapshots, 0.0),
        faces=[FaceObservation(BoundingBox(100, 100, 80, 80)), FaceObservation(BoundingBox(300, 100, 80, 80))],
        objects=[ObjectObservation(BoundingBox(400, 300, 60, 110), 0.7, "cell phone")],
    )
    overlay = draw_overlay(frame, result)
    assert overlay.shape == frame.shape
    assert overlay.any()
    assert not frame.any()
