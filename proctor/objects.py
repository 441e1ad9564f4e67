from __future__ import annotations

import logging
from typing import Iterable, List, Protocol

import cv2
import numpy as np

from .config import ProviderConfig
from .errors import ProviderError, ProviderUnavailable
from .observations import BoundingBox, ObjectObservation

logger = logging.getLogger(__name__)


class ObjectDetector(Protocol):
    name: str

    def detect(self, frame: np.ndarray) -> List[ObjectObservation]:
        ...

    def close(self) -> None:
        ...


class YoloDeviceDetector:
    name = "yolo"

    def __init__(self, model_path: str, labels: Iterable[str], confidence: float = 0.5):
        try:
            from ultralytics import YOLO

            self.model = YOLO(model_path)
        except Exception as exc:
            raise ProviderUnavailable(f"YOLO model {model_path} failed to load: {exc}") from exc
        self.labels = {label.lower() for label in labels}
        self.confidence = confidence

    def close(self) -> None:
        return None

    def detect(self, frame: np.ndarray) -> List[ObjectObservation]:
        try:
            results = self.model(frame, conf=self.confidence, verbose=False)
        except Exception as exc:
            raise ProviderError(f"YOLO inference failed: {exc}") from exc

        detections = []
        for result in results:
            names = getattr(result, "names", {}) or {}
            boxes = getattr(result, "boxes", None)
            if boxes is None or boxes.data is None:
                continue
            for row in boxes.data.tolist():
                x1, y1, x2, y2, score, class_id = row[:6]
                label = str(names.get(int(class_id), int(class_id))).lower()
                if label not in self.labels or score < self.confidence:
                    continue
                detections.append(
                    ObjectObservation(bbox=BoundingBox.from_corners(x1, y1, x2, y2), score=float(score), label=label)
                )
        return detections


class EdgeDeviceDetector:
    """
    Heuristic fallback: phone-sized, phone-shaped quadrilaterals with dense edges.

    Sizes are given for a 640x480 frame and scaled with the frame width.
    """

    name = "edges"

    REFERENCE_WIDTH = 640
    MIN_SIZE = (60, 100)
    MAX_SIZE = (200, 350)
    ASPECT_RANGE = (1.4, 2.5)
    GRADIENT_THRESHOLD = 30.0

    def __init__(self, min_edge_density: float = 0.3):
        self.min_edge_density = min_edge_density

    def close(self) -> None:
        return None

    def detect(self, frame: np.ndarray) -> List[ObjectObservation]:
        try:
            gray = cv2.cvtColor(frame, cv2.COLOR_BGR2GRAY)
            gray = cv2.GaussianBlur(gray, (5, 5), 0)
            grad_x = cv2.Sobel(gray, cv2.CV_32F, 1, 0, ksize=3)
            grad_y = cv2.Sobel(gray, cv2.CV_32F, 0, 1, ksize=3)
            strong = cv2.magnitude(grad_x, grad_y) > self.GRADIENT_THRESHOLD
            edges = cv2.Canny(gray, 50, 150)
            contours, _ = cv2.findContours(edges, cv2.RETR_EXTERNAL, cv2.CHAIN_APPROX_SIMPLE)
        except cv2.error as exc:
            raise ProviderError(f"edge detection failed: {exc}") from exc

        scale = frame.shape[1] / float(self.REFERENCE_WIDTH)
        min_w, min_h = (v * scale for v in self.MIN_SIZE)
        max_w, max_h = (v * scale for v in self.MAX_SIZE)

        detections = []
        for contour in contours:
            x, y, w, h = cv2.boundingRect(contour)
            if not (min_w <= w <= max_w and min_h <= h <= max_h):
                continue
            if not self.ASPECT_RANGE[0] < h / float(w) < self.ASPECT_RANGE[1]:
                continue
            approx = cv2.approxPolyDP(contour, 0.04 * cv2.arcLength(contour, True), True)
            if len(approx) != 4:
                continue
            density = float(np.count_nonzero(strong[y : y + h, x : x + w])) / float(w * h)
            if density > self.min_edge_density:
                detections.append(
                    ObjectObservation(bbox=BoundingBox(x, y, w, h), score=density, label="rectangular_object")
                )
        return detections


def load_object_detector(config: ProviderConfig) -> ObjectDetector:
    try:
        return YoloDeviceDetector(config.object_model, config.device_labels, config.object_confidence)
    except ProviderUnavailable as exc:
        logger.warning("Using edge-based device fallback: %s", exc)
        return EdgeDeviceDetector(min_edge_density=config.fallback_edge_density)
