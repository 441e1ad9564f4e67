from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List

from .errors import ConfigurationError


@dataclass
class CameraConfig:
    index: int = 0
    width: int = 640
    height: int = 480
    fps: int = 30


@dataclass
class LoopConfig:
    interval_seconds: float = 0.1
    max_workers: int = 5


@dataclass
class PresenceConfig:
    absence_threshold_seconds: float = 3.0
    check_interval_seconds: float = 1.0


@dataclass
class IdentityConfig:
    similarity_threshold: float = 0.6
    mismatch_threshold: int = 5


@dataclass
class FaceCountConfig:
    alert_threshold: int = 3
    cooldown_seconds: float = 5.0


@dataclass
class AttentionConfig:
    head_pose_threshold: float = 0.15
    max_away_seconds: float = 5.0


@dataclass
class DeviceConfig:
    alert_threshold: int = 5
    cooldown_seconds: float = 3.0


@dataclass
class ProviderConfig:
    face_backend: str = "face_recognition"
    face_model: str = "hog"
    object_model: str = "yolov8n.pt"
    object_confidence: float = 0.5
    device_labels: List[str] = field(default_factory=lambda: ["cell phone"])
    fallback_edge_density: float = 0.3


FACE_BACKENDS = ("face_recognition", "mediapipe")


@dataclass
class ProctorSettings:
    camera: CameraConfig = field(default_factory=CameraConfig)
    loop: LoopConfig = field(default_factory=LoopConfig)
    presence: PresenceConfig = field(default_factory=PresenceConfig)
    identity: IdentityConfig = field(default_factory=IdentityConfig)
    face_count: FaceCountConfig = field(default_factory=FaceCountConfig)
    attention: AttentionConfig = field(default_factory=AttentionConfig)
    device: DeviceConfig = field(default_factory=DeviceConfig)
    providers: ProviderConfig = field(default_factory=ProviderConfig)

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "ProctorSettings":
        try:
            settings = cls._build(payload or {})
        except (TypeError, ValueError, AttributeError) as exc:
            raise ConfigurationError(f"malformed settings: {exc}") from exc
        settings.validate()
        return settings

    @classmethod
    def _build(cls, payload: Dict[str, Any]) -> "ProctorSettings":
        camera_data = payload.get("camera", {})
        loop_data = payload.get("loop", {})
        presence_data = payload.get("presence", {})
        identity_data = payload.get("identity", {})
        face_count_data = payload.get("face_count", {})
        attention_data = payload.get("attention", {})
        device_data = payload.get("device", {})
        provider_data = payload.get("providers", {})

        camera = CameraConfig(
            index=int(camera_data.get("index", 0)),
            width=int(camera_data.get("width", 640)),
            height=int(camera_data.get("height", 480)),
            fps=int(camera_data.get("fps", 30)),
        )
        loop = LoopConfig(
            interval_seconds=float(loop_data.get("interval_seconds", 0.1)),
            max_workers=int(loop_data.get("max_workers", 5)),
        )
        presence = PresenceConfig(
            absence_threshold_seconds=float(presence_data.get("absence_threshold_seconds", 3.0)),
            check_interval_seconds=float(presence_data.get("check_interval_seconds", 1.0)),
        )
        identity = IdentityConfig(
            similarity_threshold=float(identity_data.get("similarity_threshold", 0.6)),
            mismatch_threshold=int(identity_data.get("mismatch_threshold", 5)),
        )
        face_count = FaceCountConfig(
            alert_threshold=int(face_count_data.get("alert_threshold", 3)),
            cooldown_seconds=float(face_count_data.get("cooldown_seconds", 5.0)),
        )
        attention = AttentionConfig(
            head_pose_threshold=float(attention_data.get("head_pose_threshold", 0.15)),
            max_away_seconds=float(attention_data.get("max_away_seconds", 5.0)),
        )
        device = DeviceConfig(
            alert_threshold=int(device_data.get("alert_threshold", 5)),
            cooldown_seconds=float(device_data.get("cooldown_seconds", 3.0)),
        )
        providers = ProviderConfig(
            face_backend=str(provider_data.get("face_backend", "face_recognition")),
            face_model=str(provider_data.get("face_model", "hog")),
            object_model=str(provider_data.get("object_model", "yolov8n.pt")),
            object_confidence=float(provider_data.get("object_confidence", 0.5)),
            device_labels=[str(label) for label in provider_data.get("device_labels", ["cell phone"])],
            fallback_edge_density=float(provider_data.get("fallback_edge_density", 0.3)),
        )
        return cls(
            camera=camera,
            loop=loop,
            presence=presence,
            identity=identity,
            face_count=face_count,
            attention=attention,
            device=device,
            providers=providers,
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def merged(self, overrides: Dict[str, Any]) -> "ProctorSettings":
        """Return new validated settings with ``overrides`` applied section by section."""
        payload = self.to_dict()
        for section, values in (overrides or {}).items():
            if section not in payload:
                raise ConfigurationError(f"unknown settings section: {section}")
            if not isinstance(values, dict):
                raise ConfigurationError(f"settings section {section} must be a mapping")
            unknown = set(values) - set(payload[section])
            if unknown:
                raise ConfigurationError(f"unknown {section} options: {', '.join(sorted(unknown))}")
            payload[section].update(values)
        return self.from_dict(payload)

    def validate(self) -> None:
        positive = {
            "loop.interval_seconds": self.loop.interval_seconds,
            "loop.max_workers": self.loop.max_workers,
            "presence.absence_threshold_seconds": self.presence.absence_threshold_seconds,
            "presence.check_interval_seconds": self.presence.check_interval_seconds,
            "identity.mismatch_threshold": self.identity.mismatch_threshold,
            "face_count.alert_threshold": self.face_count.alert_threshold,
            "attention.head_pose_threshold": self.attention.head_pose_threshold,
            "attention.max_away_seconds": self.attention.max_away_seconds,
            "device.alert_threshold": self.device.alert_threshold,
        }
        for name, value in positive.items():
            if value <= 0:
                raise ConfigurationError(f"{name} must be positive, got {value}")

        for name, value in {
            "face_count.cooldown_seconds": self.face_count.cooldown_seconds,
            "device.cooldown_seconds": self.device.cooldown_seconds,
            "camera.index": self.camera.index,
        }.items():
            if value < 0:
                raise ConfigurationError(f"{name} must not be negative, got {value}")

        for name, value in {
            "identity.similarity_threshold": self.identity.similarity_threshold,
            "providers.object_confidence": self.providers.object_confidence,
            "providers.fallback_edge_density": self.providers.fallback_edge_density,
        }.items():
            if not 0.0 <= value <= 1.0:
                raise ConfigurationError(f"{name} must be within [0, 1], got {value}")

        if self.providers.face_backend not in FACE_BACKENDS:
            raise ConfigurationError(f"unknown face backend: {self.providers.face_backend}")
