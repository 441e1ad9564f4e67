from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence

import numpy as np

from .observations import FaceLandmarks, Point

MIN_SPAN = 1e-6


class GazeDirection(str, Enum):
    CENTER = "center"
    LEFT = "left"
    RIGHT = "right"
    UP = "up"
    DOWN = "down"


@dataclass(frozen=True)
class GazeEstimate:
    looking_away: bool
    direction: GazeDirection
    horizontal_deviation: float
    vertical_deviation: float


def _center(points: Sequence[Point]) -> Point:
    coords = np.array([(p.x, p.y) for p in points], dtype=np.float64)
    cx, cy = coords.mean(axis=0)
    return Point(float(cx), float(cy))


def estimate_gaze(landmarks: FaceLandmarks, threshold: float) -> Optional[GazeEstimate]:
    """
    Classify head direction from the nose offset relative to the eye line.

    Returns None when the landmarks are empty or degenerate (eyes stacked on
    the same column, or mouth on the eye line), which callers treat as an
    inconclusive frame.
    """
    if not landmarks.left_eye or not landmarks.right_eye or not landmarks.mouth:
        return None

    left_eye = _center(landmarks.left_eye)
    right_eye = _center(landmarks.right_eye)
    mouth = _center(landmarks.mouth)
    nose = landmarks.nose
    eye_center = Point((left_eye.x + right_eye.x) / 2.0, (left_eye.y + right_eye.y) / 2.0)

    eye_span = abs(right_eye.x - left_eye.x)
    face_height = abs(mouth.y - eye_center.y)
    if eye_span < MIN_SPAN or face_height < MIN_SPAN:
        return None

    horizontal = abs(nose.x - eye_center.x) / eye_span
    vertical = abs(nose.y - eye_center.y) / face_height
    looking_away = horizontal > threshold or vertical > threshold

    if not looking_away:
        direction = GazeDirection.CENTER
    elif horizontal > threshold:
        direction = GazeDirection.RIGHT if nose.x > eye_center.x else GazeDirection.LEFT
    else:
        direction = GazeDirection.UP if nose.y < eye_center.y else GazeDirection.DOWN

    return GazeEstimate(
        looking_away=looking_away,
        direction=direction,
        horizontal_deviation=horizontal,
        vertical_deviation=vertical,
    )
