from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel


class CameraSchema(BaseModel):
    index: int = 0
    width: int = 640
    height: int = 480
    fps: int = 30


class LoopSchema(BaseModel):
    interval_seconds: float = 0.1
    max_workers: int = 5


class PresenceSchema(BaseModel):
    absence_threshold_seconds: float = 3.0
    check_interval_seconds: float = 1.0


class IdentitySchema(BaseModel):
    similarity_threshold: float = 0.6
    mismatch_threshold: int = 5


class FaceCountSchema(BaseModel):
    alert_threshold: int = 3
    cooldown_seconds: float = 5.0


class AttentionSchema(BaseModel):
    head_pose_threshold: float = 0.15
    max_away_seconds: float = 5.0


class DeviceSchema(BaseModel):
    alert_threshold: int = 5
    cooldown_seconds: float = 3.0


class ProviderSchema(BaseModel):
    face_backend: str = "face_recognition"
    face_model: str = "hog"
    object_model: str = "yolov8n.pt"
    object_confidence: float = 0.5
    device_labels: List[str] = ["cell phone"]
    fallback_edge_density: float = 0.3


class SettingsSchema(BaseModel):
    camera: CameraSchema = CameraSchema()
    loop: LoopSchema = LoopSchema()
    presence: PresenceSchema = PresenceSchema()
    identity: IdentitySchema = IdentitySchema()
    face_count: FaceCountSchema = FaceCountSchema()
    attention: AttentionSchema = AttentionSchema()
    device: DeviceSchema = DeviceSchema()
    providers: ProviderSchema = ProviderSchema()


class EventSchema(BaseModel):
    timestamp: float
    level: str
    category: str
    message: str
    severity: str
    details: Dict[str, Any] = {}


class HistoryResponse(BaseModel):
    events: List[EventSchema]
    snapshots: List[dict]


class StatusResponse(BaseModel):
    running: bool
    has_reference: bool
    report: Optional[dict] = None
