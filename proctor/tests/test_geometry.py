import pytest

from proctor.geometry import GazeDirection, estimate_gaze
from proctor.observations import FaceLandmarks, Point


def landmarks(nose_x=60.0, nose_y=52.0, right_eye_x=80.0):
    return FaceLandmarks(
        left_eye=[Point(38, 50), Point(42, 50)],
        right_eye=[Point(right_eye_x - 2, 50), Point(right_eye_x + 2, 50)],
        nose=Point(nose_x, nose_y),
        mouth=[Point(50, 90), Point(70, 90)],
    )


def test_frontal_face_is_attentive():
    gaze = estimate_gaze(landmarks(), threshold=0.15)
    assert gaze is not None
    assert not gaze.looking_away
    assert gaze.direction == GazeDirection.CENTER
    assert gaze.horizontal_deviation == pytest.approx(0.0)
    assert gaze.vertical_deviation == pytest.approx(0.05)


@pytest.mark.parametrize(
    "nose, direction",
    [
        ((70, 52), GazeDirection.RIGHT),
        ((50, 52), GazeDirection.LEFT),
        ((60, 60), GazeDirection.DOWN),
        ((60, 42), GazeDirection.UP),
    ],
)
def test_direction_follows_nose_offset(nose, direction):
    gaze = estimate_gaze(landmarks(*nose), threshold=0.15)
    assert gaze.looking_away
    assert gaze.direction == direction


def test_horizontal_deviation_takes_precedence():
    gaze = estimate_gaze(landmarks(70, 60), threshold=0.15)
    assert gaze.horizontal_deviation == pytest.approx(0.25)
    assert gaze.vertical_deviation == pytest.approx(0.25)
    assert gaze.direction == GazeDirection.RIGHT


def test_threshold_is_exclusive():
    gaze = estimate_gaze(landmarks(66, 50), threshold=0.15)
    assert gaze.horizontal_deviation == pytest.approx(0.15)
    assert not gaze.looking_away


def test_degenerate_landmarks_are_inconclusive():
    assert estimate_gaze(landmarks(right_eye_x=40.0), threshold=0.15) is None
    empty = FaceLandmarks(left_eye=[], right_eye=[Point(1, 1)], nose=Point(0, 0), mouth=[Point(2, 2)])
    assert estimate_gaze(empty, threshold=0.15) is None
