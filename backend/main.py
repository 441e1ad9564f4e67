from __future__ import annotations

import asyncio
import logging
import time
from pathlib import Path
from typing import Any, Dict, Optional

import uvicorn
from fastapi import FastAPI, HTTPException, Query, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse, StreamingResponse

from proctor import ProctorService
from proctor.errors import ConfigurationError, InvalidCapture, ProviderError, ProviderUnavailable

from .config_loader import load_raw, load_settings, persist_settings
from .db import Database
from .schemas import HistoryResponse, SettingsSchema, StatusResponse

ROOT = Path(__file__).resolve().parent.parent
CONFIG_PATH = ROOT / "configs" / "default.yaml"

raw_cfg: Dict[str, Any] = load_raw(str(CONFIG_PATH))
logging.basicConfig(
    level=raw_cfg.get("logging", {}).get("level", "INFO"),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

db_path = raw_cfg.get("storage", {}).get("database_path", "artifacts/integrity_guard.db")
DB_PATH = ROOT / db_path
DB_PATH.parent.mkdir(parents=True, exist_ok=True)
database = Database(str(DB_PATH))

app = FastAPI(title="integrity-guard", version="0.1.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

proctor_service = ProctorService(load_settings(str(CONFIG_PATH)), db=database)


@app.on_event("startup")
async def startup() -> None:
    proctor_service.loop = asyncio.get_running_loop()


@app.on_event("shutdown")
async def shutdown() -> None:
    proctor_service.close()


@app.get("/api/health")
async def health() -> Dict[str, Any]:
    return {"status": "ok", "monitoring": proctor_service.running}


@app.get("/api/settings", response_model=SettingsSchema)
async def get_settings() -> SettingsSchema:
    return SettingsSchema(**proctor_service.settings.to_dict())


@app.post("/api/settings", response_model=SettingsSchema)
async def update_settings(payload: SettingsSchema) -> SettingsSchema:
    try:
        settings = proctor_service.configure(payload.model_dump())
    except ConfigurationError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    persist_settings(str(CONFIG_PATH), settings.to_dict())
    return SettingsSchema(**settings.to_dict())


@app.post("/api/start")
async def start() -> Dict[str, Any]:
    try:
        await asyncio.to_thread(proctor_service.start)
    except (ProviderError, ProviderUnavailable) as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    return {"status": "MONITORING_STARTED"}


@app.post("/api/stop")
async def stop() -> Dict[str, Any]:
    await asyncio.to_thread(proctor_service.stop)
    return {"status": "MONITORING_STOPPED", "stats": proctor_service.stats()}


@app.post("/api/reference")
async def set_reference() -> Dict[str, Any]:
    try:
        event = await asyncio.to_thread(proctor_service.set_reference)
    except InvalidCapture as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except (ProviderError, ProviderUnavailable) as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    return {"status": "REFERENCE_SET", "event": event.to_dict()}


@app.get("/api/status", response_model=StatusResponse)
async def status() -> StatusResponse:
    report = proctor_service.latest_report()
    detection = proctor_service.detection
    return StatusResponse(
        running=proctor_service.running,
        has_reference=bool(detection and detection.identity.reference is not None),
        report=report.to_dict() if report else None,
    )


@app.get("/api/stats")
async def stats() -> Dict[str, Any]:
    return proctor_service.stats()


@app.get("/api/logs", response_class=PlainTextResponse)
async def logs() -> str:
    return proctor_service.event_log.export_json()


@app.websocket("/api/stream")
async def websocket_stream(ws: WebSocket) -> None:
    await ws.accept()
    queue = proctor_service.subscribe()
    try:
        while True:
            payload = await queue.get()
            await ws.send_text(payload)
    except WebSocketDisconnect:
        pass
    finally:
        proctor_service.unsubscribe(queue)


@app.get("/api/history", response_model=HistoryResponse)
async def history(
    start: Optional[float] = Query(None),
    end: Optional[float] = Query(None),
) -> HistoryResponse:
    now = time.time()
    start_ts = start or (now - 60 * 10)
    end_ts = end or now
    return HistoryResponse(
        events=database.events(start_ts, end_ts),
        snapshots=database.snapshots(start_ts, end_ts),
    )


@app.get("/api/export")
async def export(
    start: Optional[float] = Query(None),
    end: Optional[float] = Query(None),
) -> StreamingResponse:
    now = time.time()
    start_ts = start or (now - 60 * 10)
    end_ts = end or now
    filename = f"proctoring_{int(start_ts)}_{int(end_ts)}.csv"
    generator = database.export_csv(start_ts, end_ts)
    return StreamingResponse(generator, media_type="text/csv", headers={"Content-Disposition": f'attachment; filename="{filename}"'})


@app.get("/api/video")
async def video_feed() -> StreamingResponse:
    boundary = "frame"

    async def frame_generator():
        while True:
            frame = proctor_service.latest_frame()
            if frame:
                yield b"--" + boundary.encode() + b"\r\n"
                yield b"Content-Type: image/jpeg\r\n\r\n" + frame + b"\r\n"
            await asyncio.sleep(0.08)

    media_type = f"multipart/x-mixed-replace; boundary={boundary}"
    return StreamingResponse(frame_generator(), media_type=media_type)


if __name__ == "__main__":
    uvicorn.run("backend.main:app", host="0.0.0.0", port=8000, reload=True)
