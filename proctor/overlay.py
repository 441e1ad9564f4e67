from __future__ import annotations

import cv2
import numpy as np

from .aggregator import is_clear
from .loop import TickResult
from .snapshot import Signal

GREEN = (0, 200, 0)
RED = (0, 0, 255)

LABELS = {
    Signal.PRESENCE: "Person",
    Signal.IDENTITY: "Identity",
    Signal.FACE_COUNT: "Faces",
    Signal.ATTENTION: "Attention",
    Signal.DEVICE: "Mobile",
}


def draw_overlay(frame: np.ndarray, result: TickResult) -> np.ndarray:
    overlay = frame.copy()
    several = len(result.faces) > 1

    for index, face in enumerate(result.faces):
        x, y, w, h = face.bbox.as_ints()
        color = RED if several else GREEN
        cv2.rectangle(overlay, (x, y), (x + w, y + h), color, 2)
        if several:
            cv2.putText(overlay, f"Face {index + 1}", (x, y - 5), cv2.FONT_HERSHEY_SIMPLEX, 0.5, RED, 1, cv2.LINE_AA)

    for det in result.objects:
        x, y, w, h = det.bbox.as_ints()
        cv2.rectangle(overlay, (x, y), (x + w, y + h), RED, 3)
        cv2.putText(
            overlay,
            f"MOBILE {det.score * 100:.0f}%",
            (x, y - 5),
            cv2.FONT_HERSHEY_SIMPLEX,
            0.5,
            RED,
            2,
            cv2.LINE_AA,
        )

    panel = overlay.copy()
    cv2.rectangle(panel, (10, 10), (280, 130), (0, 0, 0), -1)
    overlay = cv2.addWeighted(panel, 0.7, overlay, 0.3, 0)

    y = 30
    for signal, snapshot in result.report.signals.items():
        status = getattr(snapshot.status, "value", snapshot.status)
        text = f"{LABELS[signal]}: {status}"
        if signal == Signal.FACE_COUNT:
            text = f"{LABELS[signal]}: {snapshot.data.get('count', 0)}"
        color = GREEN if is_clear(snapshot) else RED
        cv2.putText(overlay, text, (20, y), cv2.FONT_HERSHEY_SIMPLEX, 0.5, color, 1, cv2.LINE_AA)
        y += 20
    return overlay
