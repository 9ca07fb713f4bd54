# aqm_server/adapters/api/schemas.py

from typing import List, Optional

from pydantic import BaseModel, Field


class DeviceIn(BaseModel):
    device_id: str = Field(..., description="Device id to register or rename")
    name: Optional[str] = None


class DeviceRename(BaseModel):
    name: str


class DeviceOut(BaseModel):
    device_id: str
    name: str
    last_seen: Optional[float] = None
    status: str

    @classmethod
    def from_domain(cls, view) -> "DeviceOut":
        return cls(
            device_id=view.device_id,
            name=view.name,
            last_seen=view.last_seen,
            status=view.status.value,
        )


class ReadingOut(BaseModel):
    device_id: str = Field(..., serialization_alias="deviceId")
    ts: float
    temp: Optional[float] = None
    hum: Optional[float] = None
    gas: Optional[float] = None
    dust: Optional[float] = None
    iaq: Optional[int] = Field(None, serialization_alias="IAQ")
    level: Optional[str] = None

    @classmethod
    def from_domain(cls, reading) -> "ReadingOut":
        # also accepts the empty placeholder, whose level is None
        return cls(
            device_id=reading.device_id,
            ts=reading.ts,
            temp=reading.temp,
            hum=reading.hum,
            gas=reading.gas,
            dust=reading.dust,
            iaq=reading.iaq,
            level=reading.level.value if reading.level is not None else None,
        )


class HistoryOut(BaseModel):
    device_id: str = Field(..., serialization_alias="deviceId")
    ts: float = Field(..., description="Generation time of the response")
    points: List[ReadingOut]

    @classmethod
    def from_domain(cls, result) -> "HistoryOut":
        return cls(
            device_id=result.device_id,
            ts=result.ts,
            points=[ReadingOut.from_domain(p) for p in result.points],
        )


class AlertOut(BaseModel):
    id: str
    device_id: str
    ts: float
    type: str
    value: int
    level: str
    message: str

    @classmethod
    def from_domain(cls, alert) -> "AlertOut":
        return cls(
            id=alert.id,
            device_id=alert.device_id,
            ts=alert.ts,
            type=alert.type,
            value=alert.value,
            level=alert.level.value,
            message=alert.message,
        )


class SettingsOut(BaseModel):
    device_id: str
    gas_warn: float
    gas_danger: float
    dust_warn: float
    dust_danger: float
    temp_low: float
    temp_high: float
    hum_low: float
    hum_high: float

    @classmethod
    def from_domain(cls, settings) -> "SettingsOut":
        return cls(**vars(settings))


class SettingsIn(BaseModel):
    device_id: str
    gas_warn: Optional[float] = None
    gas_danger: Optional[float] = None
    dust_warn: Optional[float] = None
    dust_danger: Optional[float] = None
    temp_low: Optional[float] = None
    temp_high: Optional[float] = None
    hum_low: Optional[float] = None
    hum_high: Optional[float] = None


class SettingsSaved(BaseModel):
    ok: bool = True
    settings: SettingsOut
