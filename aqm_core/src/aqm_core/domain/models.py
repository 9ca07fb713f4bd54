import json
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Dict, Optional


class Level(str, Enum):
    SAFE = "SAFE"
    WARN = "WARN"
    DANGER = "DANGER"


class DeviceStatus(str, Enum):
    ONLINE = "online"
    OFFLINE = "offline"


@dataclass(frozen=True)
class Reading:
    """A validated inbound reading. Timestamps are unix seconds."""

    device_id: str
    ts: float
    temp: Optional[float] = None
    hum: Optional[float] = None
    gas: Optional[float] = None
    dust: Optional[float] = None


@dataclass(frozen=True)
class ProcessedReading:
    device_id: str
    ts: float
    temp: Optional[float]
    hum: Optional[float]
    gas: Optional[float]
    dust: Optional[float]
    iaq: int
    level: Level

    def to_payload(self) -> Dict[str, Any]:
        return {
            "deviceId": self.device_id,
            "ts": self.ts,
            "temp": self.temp,
            "hum": self.hum,
            "gas": self.gas,
            "dust": self.dust,
            "IAQ": self.iaq,
            "level": self.level.value,
        }

    def to_string(self) -> str:
        return json.dumps(self.to_payload())


@dataclass(frozen=True)
class EmptyReading:
    """Stand-in for the latest reading of a device that has not reported yet."""

    device_id: str
    ts: float
    temp: None = None
    hum: None = None
    gas: None = None
    dust: None = None
    iaq: None = None
    level: None = None


@dataclass
class Device:
    device_id: str
    name: str = ""
    last_seen: Optional[float] = None  # None means never reported


@dataclass(frozen=True)
class DeviceView:
    device_id: str
    name: str
    last_seen: Optional[float]
    status: DeviceStatus


@dataclass(frozen=True)
class AlertItem:
    id: str
    device_id: str
    ts: float
    value: int
    level: Level
    message: str
    type: str = "iaq"

    def to_payload(self) -> Dict[str, Any]:
        d = asdict(self)
        d["level"] = self.level.value
        return d


@dataclass
class ThresholdSettings:
    device_id: str
    gas_warn: float = 800
    gas_danger: float = 1200
    dust_warn: float = 0.08
    dust_danger: float = 0.15
    temp_low: float = 18
    temp_high: float = 32
    hum_low: float = 35
    hum_high: float = 75


THRESHOLD_FIELDS = (
    "gas_warn",
    "gas_danger",
    "dust_warn",
    "dust_danger",
    "temp_low",
    "temp_high",
    "hum_low",
    "hum_high",
)
