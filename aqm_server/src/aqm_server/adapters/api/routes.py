# aqm_server/adapters/api/routes.py

import asyncio
import json
import logging
import math
from datetime import datetime, timezone
from typing import Any, List, Optional

from aqm_core.application.telemetry_service import TelemetryService
from aqm_core.domain.normalize import Rejected, normalize_timestamp
from fastapi import APIRouter, Body, Depends, HTTPException, Query, WebSocket, WebSocketDisconnect
from fastapi.requests import HTTPConnection

from aqm_server.adapters.api.schemas import (
    AlertOut,
    DeviceIn,
    DeviceOut,
    DeviceRename,
    HistoryOut,
    ReadingOut,
    SettingsIn,
    SettingsOut,
    SettingsSaved,
)
from aqm_server.adapters.ws.connection import WebSocketConnection

log = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


def get_service(conn: HTTPConnection) -> TelemetryService:
    return conn.app.state.service


def parse_time(value: Optional[str], name: str) -> Optional[float]:
    """Accept unix seconds (or millis) and ISO-8601; naive datetimes are UTC."""
    if value is None or not value.strip():
        return None
    value = value.strip()
    try:
        number = float(value)
    except ValueError:
        number = None
    if number is not None:
        if not math.isfinite(number):
            raise HTTPException(status_code=400, detail=f"{name} must be finite")
        return normalize_timestamp(number)
    try:
        dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        raise HTTPException(status_code=400, detail=f"{name} must be an ISO datetime or unix seconds")
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.timestamp()


def require_device_id(device_id: str) -> str:
    device_id = device_id.strip()
    if not device_id:
        raise HTTPException(status_code=400, detail="device_id is required")
    return device_id


@router.get("/health")
def health():
    return {"ok": True}


# ───────── devices ─────────
@router.get("/devices", response_model=list[DeviceOut])
def list_devices(service: TelemetryService = Depends(get_service)):
    return [DeviceOut.from_domain(d) for d in service.get_devices()]


@router.post("/devices", response_model=DeviceOut)
def register_device(req: DeviceIn, service: TelemetryService = Depends(get_service)):
    view = service.register_device(require_device_id(req.device_id), req.name)
    return DeviceOut.from_domain(view)


@router.patch("/devices/{device_id}", response_model=DeviceOut)
def rename_device(
    device_id: str,
    req: DeviceRename,
    service: TelemetryService = Depends(get_service),
):
    view = service.rename_device(require_device_id(device_id), req.name)
    if view is None:
        raise HTTPException(status_code=404, detail="Device not found")
    return DeviceOut.from_domain(view)


@router.delete("/devices/{device_id}")
def delete_device(device_id: str, service: TelemetryService = Depends(get_service)):
    existed = service.remove_device(require_device_id(device_id))
    return {"ok": True, "removed": existed}


# ───────── telemetry ─────────
@router.post("/ingest", response_model=ReadingOut)
def ingest(payload: Any = Body(...), service: TelemetryService = Depends(get_service)):
    result = service.ingest(payload)
    if isinstance(result, Rejected):
        raise HTTPException(status_code=400, detail=result.reason)
    return ReadingOut.from_domain(result.reading)


@router.get("/latest", response_model=ReadingOut)
def latest(device_id: str, service: TelemetryService = Depends(get_service)):
    return ReadingOut.from_domain(service.get_latest(require_device_id(device_id)))


@router.get("/history", response_model=HistoryOut)
def history(
    device_id: str,
    from_: str = Query(..., alias="from"),
    to: str = Query(...),
    interval: Optional[str] = None,
    service: TelemetryService = Depends(get_service),
):
    device_id = require_device_id(device_id)
    from_ts = parse_time(from_, "from")
    to_ts = parse_time(to, "to")
    if from_ts is None or to_ts is None:
        raise HTTPException(status_code=400, detail="from/to are required")
    return HistoryOut.from_domain(service.get_history(device_id, from_ts, to_ts, interval))


@router.get("/alerts", response_model=List[AlertOut])
def alerts(
    device_id: str,
    from_: Optional[str] = Query(None, alias="from"),
    to: Optional[str] = None,
    service: TelemetryService = Depends(get_service),
):
    items = service.get_alerts(
        require_device_id(device_id), parse_time(from_, "from"), parse_time(to, "to")
    )
    return [AlertOut.from_domain(a) for a in items]


# ───────── threshold settings ─────────
@router.get("/settings", response_model=SettingsOut)
def get_settings(device_id: str, service: TelemetryService = Depends(get_service)):
    return SettingsOut.from_domain(service.get_settings(require_device_id(device_id)))


@router.post("/settings", response_model=SettingsSaved)
def update_settings(req: SettingsIn, service: TelemetryService = Depends(get_service)):
    patch = req.model_dump(exclude={"device_id"}, exclude_none=True)
    updated = service.update_settings(require_device_id(req.device_id), patch)
    return SettingsSaved(settings=SettingsOut.from_domain(updated))


# ───────── live fan-out ─────────
@router.websocket("/ws")
async def telemetry_socket(websocket: WebSocket, service: TelemetryService = Depends(get_service)):
    await websocket.accept()
    connection = WebSocketConnection(websocket, asyncio.get_running_loop())
    await websocket.send_json({"type": "hello", "msg": "connected"})
    try:
        while True:
            frame = await websocket.receive()
            if frame["type"] == "websocket.disconnect":
                break
            text = frame.get("text")
            if text is None:
                log.debug("Ignoring binary WebSocket frame")
                continue
            try:
                message = json.loads(text)
            except json.JSONDecodeError:
                log.debug("Ignoring non-JSON WebSocket frame")
                continue
            if not isinstance(message, dict) or message.get("type") != "sub":
                continue
            device_id = message.get("deviceId")
            if not isinstance(device_id, str):
                continue
            service.fanout.subscribe(connection, device_id)
            await websocket.send_json({"type": "sub_ok", "deviceId": device_id})
    except WebSocketDisconnect:
        log.debug("WebSocket client disconnected")
    finally:
        service.fanout.unsubscribe(connection)
