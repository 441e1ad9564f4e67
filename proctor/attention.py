from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence

from .config import AttentionConfig
from .events import Event
from .geometry import estimate_gaze
from .observations import FaceObservation
from .snapshot import MonitorResult, Signal, SignalSnapshot


class AttentionStatus(str, Enum):
    ATTENTIVE = "attentive"
    LOOKING_AWAY = "looking_away"
    NO_FACE = "no_face"
    NO_LANDMARKS = "no_landmarks"


@dataclass
class AttentionState:
    away_since: Optional[float] = None
    away_frames: int = 0

    @property
    def away(self) -> bool:
        return self.away_since is not None


class AttentionMonitor:
    """
    Edge-triggered away tracking for the first visible face.

    The away timer starts on the first away frame and is only cleared by an
    attentive frame. Frames without a usable face leave it running. Once the
    away duration passes ``max_away_seconds`` every further away frame raises
    LOOKING_AWAY.
    """

    signal = Signal.ATTENTION

    def __init__(self, config: Optional[AttentionConfig] = None):
        self.config = config or AttentionConfig()
        self.state = AttentionState()

    def reset(self) -> None:
        self.state = AttentionState()

    def evaluate(self, faces: Sequence[FaceObservation], now: float) -> MonitorResult:
        if not faces:
            return MonitorResult(SignalSnapshot(self.signal, AttentionStatus.NO_FACE, now))

        landmarks = faces[0].landmarks
        gaze = estimate_gaze(landmarks, self.config.head_pose_threshold) if landmarks is not None else None
        if gaze is None:
            return MonitorResult(SignalSnapshot(self.signal, AttentionStatus.NO_LANDMARKS, now))

        deviations = {
            "horizontal_deviation": gaze.horizontal_deviation,
            "vertical_deviation": gaze.vertical_deviation,
        }

        if gaze.looking_away:
            if not self.state.away:
                self.state.away_since = now
            self.state.away_frames += 1
            duration = now - self.state.away_since

            events = []
            if duration > self.config.max_away_seconds:
                events.append(
                    Event.violation(
                        "LOOKING_AWAY",
                        f"Looking away for {int(duration)} seconds",
                        duration=round(duration, 3),
                        direction=gaze.direction.value,
                    )
                )
            snapshot = SignalSnapshot(
                self.signal,
                AttentionStatus.LOOKING_AWAY,
                now,
                {
                    "duration": duration,
                    "direction": gaze.direction.value,
                    "frames": self.state.away_frames,
                    **deviations,
                },
            )
            return MonitorResult(snapshot, events)

        events = []
        if self.state.away:
            total = now - self.state.away_since
            events.append(
                Event.info(
                    "ATTENTION_RESTORED",
                    f"Attention restored after {int(total)} seconds",
                    duration=round(total, 3),
                    frames=self.state.away_frames,
                )
            )
        self.state = AttentionState()
        snapshot = SignalSnapshot(self.signal, AttentionStatus.ATTENTIVE, now, {"direction": gaze.direction.value, **deviations})
        return MonitorResult(snapshot, events)
