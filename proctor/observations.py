from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np


@dataclass(frozen=True)
class Point:
    x: float
    y: float


@dataclass(frozen=True)
class BoundingBox:
    x: float
    y: float
    width: float
    height: float

    @classmethod
    def from_corners(cls, x1: float, y1: float, x2: float, y2: float) -> "BoundingBox":
        return cls(x=x1, y=y1, width=x2 - x1, height=y2 - y1)

    def as_ints(self) -> tuple[int, int, int, int]:
        return int(self.x), int(self.y), int(self.width), int(self.height)


@dataclass(frozen=True)
class FaceLandmarks:
    left_eye: Sequence[Point]
    right_eye: Sequence[Point]
    nose: Point
    mouth: Sequence[Point]


@dataclass(frozen=True)
class FaceObservation:
    bbox: BoundingBox
    landmarks: Optional[FaceLandmarks] = None
    descriptor: Optional[np.ndarray] = None


@dataclass(frozen=True)
class ObjectObservation:
    bbox: BoundingBox
    score: float
    label: str
