from __future__ import annotations

import logging
import urllib.request
from pathlib import Path
from typing import Any, Iterable, List, Protocol

import cv2
import numpy as np

from .config import ProviderConfig
from .errors import ProviderError, ProviderUnavailable
from .observations import BoundingBox, FaceLandmarks, FaceObservation, Point

logger = logging.getLogger(__name__)

LEFT_EYE = [33, 133, 159, 145, 153, 173]
RIGHT_EYE = [362, 263, 386, 374, 380, 390]
NOSE_ROOT = 168
MOUTH = [61, 291, 13, 14, 0, 17]

MODEL_URL = "https://storage.googleapis.com/mediapipe-models/face_landmarker/face_landmarker/float16/latest/face_landmarker.task"
MODEL_PATH = Path(__file__).resolve().parent.parent / "artifacts" / "face_landmarker.task"


class FaceDetector(Protocol):
    name: str

    def detect(self, frame: np.ndarray) -> List[FaceObservation]:
        ...

    def close(self) -> None:
        ...


def _points(raw: Iterable[tuple[float, float]]) -> List[Point]:
    return [Point(float(x), float(y)) for x, y in raw]


class FaceRecognitionDetector:
    """dlib HOG/CNN detector with 68-point landmarks and 128-d encodings."""

    name = "face_recognition"

    def __init__(self, model: str = "hog"):
        try:
            import face_recognition
        except ImportError as exc:
            raise ProviderUnavailable(f"face_recognition is not installed: {exc}") from exc
        self.api = face_recognition
        self.model = model

    def close(self) -> None:
        return None

    def detect(self, frame: np.ndarray) -> List[FaceObservation]:
        try:
            rgb = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
            locations = self.api.face_locations(rgb, model=self.model)
            landmark_sets = self.api.face_landmarks(rgb, locations)
            encodings = self.api.face_encodings(rgb, locations)
        except Exception as exc:
            raise ProviderError(f"face_recognition failed: {exc}") from exc

        faces = []
        for (top, right, bottom, left), marks, encoding in zip(locations, landmark_sets, encodings):
            faces.append(
                FaceObservation(
                    bbox=BoundingBox.from_corners(left, top, right, bottom),
                    landmarks=self._landmarks(marks),
                    descriptor=np.asarray(encoding, dtype=np.float64),
                )
            )
        return faces

    @staticmethod
    def _landmarks(marks: dict) -> FaceLandmarks | None:
        try:
            return FaceLandmarks(
                left_eye=_points(marks["left_eye"]),
                right_eye=_points(marks["right_eye"]),
                nose=_points(marks["nose_bridge"][:1])[0],
                mouth=_points(list(marks["top_lip"]) + list(marks["bottom_lip"])),
            )
        except (KeyError, IndexError):
            return None


def _iter_landmarks(face_landmarks: Any):
    return getattr(face_landmarks, "landmark", face_landmarks)


def _landmark_points(face_landmarks: Any, width: int, height: int, indices: Iterable[int]) -> List[Point]:
    marks = _iter_landmarks(face_landmarks)
    return [Point(marks[i].x * width, marks[i].y * height) for i in indices]


def _bbox_from_landmarks(face_landmarks: Any, width: int, height: int) -> BoundingBox:
    xs = [lmk.x * width for lmk in _iter_landmarks(face_landmarks)]
    ys = [lmk.y * height for lmk in _iter_landmarks(face_landmarks)]
    return BoundingBox.from_corners(int(min(xs)), int(min(ys)), int(max(xs)), int(max(ys)))


def _ensure_model(model_path: Path) -> None:
    if model_path.exists():
        return
    model_path.parent.mkdir(parents=True, exist_ok=True)
    urllib.request.urlretrieve(MODEL_URL, model_path)


class MediaPipeFaceDetector:
    """Face Mesh landmarks without identity descriptors."""

    name = "mediapipe"

    def __init__(self, max_faces: int = 4, min_detection_confidence: float = 0.5):
        try:
            import mediapipe as mp
        except ImportError as exc:
            raise ProviderUnavailable(f"mediapipe is not installed: {exc}") from exc
        self.mp = mp
        self.mode = "solutions" if getattr(mp, "solutions", None) else "tasks"
        try:
            if self.mode == "solutions":
                from mediapipe import solutions as mp_solutions  # type: ignore

                self.face_mesh = mp_solutions.face_mesh.FaceMesh(
                    max_num_faces=max_faces,
                    refine_landmarks=False,
                    min_detection_confidence=min_detection_confidence,
                )
                self.landmarker = None
            else:
                from mediapipe.tasks import python as mp_python
                from mediapipe.tasks.python import vision as mp_vision

                _ensure_model(MODEL_PATH)
                options = mp_vision.FaceLandmarkerOptions(
                    base_options=mp_python.BaseOptions(model_asset_path=str(MODEL_PATH)),
                    output_face_blendshapes=False,
                    output_facial_transformation_matrixes=False,
                    num_faces=max_faces,
                    min_face_detection_confidence=min_detection_confidence,
                    running_mode=mp_vision.RunningMode.IMAGE,
                )
                self.landmarker = mp_vision.FaceLandmarker.create_from_options(options)
                self.face_mesh = None
        except Exception as exc:
            raise ProviderUnavailable(f"mediapipe face landmarker failed to load: {exc}") from exc

    def close(self) -> None:
        if self.face_mesh:
            self.face_mesh.close()
        if self.landmarker:
            self.landmarker.close()

    def detect(self, frame: np.ndarray) -> List[FaceObservation]:
        height, width = frame.shape[:2]
        try:
            rgb = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
            if self.mode == "solutions":
                result = self.face_mesh.process(rgb)
                meshes = result.multi_face_landmarks if result else None
            else:
                result = self.landmarker.detect(self.mp.Image(image_format=self.mp.ImageFormat.SRGB, data=rgb))
                meshes = result.face_landmarks if result else None
        except Exception as exc:
            raise ProviderError(f"mediapipe inference failed: {exc}") from exc

        faces = []
        for mesh in meshes or []:
            landmarks = FaceLandmarks(
                left_eye=_landmark_points(mesh, width, height, LEFT_EYE),
                right_eye=_landmark_points(mesh, width, height, RIGHT_EYE),
                nose=_landmark_points(mesh, width, height, [NOSE_ROOT])[0],
                mouth=_landmark_points(mesh, width, height, MOUTH),
            )
            faces.append(FaceObservation(bbox=_bbox_from_landmarks(mesh, width, height), landmarks=landmarks))
        return faces


class DisabledFaceDetector:
    """Stands in when no face backend could be loaded; every call is unavailable."""

    name = "disabled"

    def __init__(self, reason: str):
        self.reason = reason

    def close(self) -> None:
        return None

    def detect(self, frame: np.ndarray) -> List[FaceObservation]:
        raise ProviderUnavailable(self.reason)


def load_face_detector(config: ProviderConfig) -> FaceDetector:
    if config.face_backend == "face_recognition":
        try:
            return FaceRecognitionDetector(model=config.face_model)
        except ProviderUnavailable as exc:
            logger.warning("Falling back to MediaPipe face landmarks, identity checks disabled: %s", exc)
    try:
        return MediaPipeFaceDetector()
    except ProviderUnavailable as exc:
        logger.error("No face backend available, face-driven monitors disabled: %s", exc)
        return DisabledFaceDetector(str(exc))
