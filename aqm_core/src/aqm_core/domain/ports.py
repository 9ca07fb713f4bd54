from typing import List, Optional, Protocol

from aqm_core.domain.models import AlertItem, Device, ProcessedReading, ThresholdSettings


class DeviceRepository(Protocol):
    def upsert(self, device_id: str, last_seen: Optional[float], name: Optional[str] = None) -> None: ...

    def list_devices(self) -> List[Device]: ...

    def delete(self, device_id: str) -> None: ...


class ReadingRepository(Protocol):
    def insert(self, reading: ProcessedReading) -> None: ...

    def get_readings_in_range(
        self, device_id: str, start_ts: float, end_ts: float
    ) -> List[ProcessedReading]: ...

    def get_latest(self, device_id: str) -> Optional[ProcessedReading]: ...

    def delete_for_device(self, device_id: str) -> None: ...


class AlertRepository(Protocol):
    def insert(self, alert: AlertItem) -> None: ...

    def get_alerts(
        self, device_id: str, start_ts: Optional[float], end_ts: Optional[float]
    ) -> List[AlertItem]: ...

    def delete_for_device(self, device_id: str) -> None: ...


class SettingsRepository(Protocol):
    def get(self, device_id: str) -> Optional[ThresholdSettings]: ...

    def upsert(self, settings: ThresholdSettings) -> None: ...

    def delete_for_device(self, device_id: str) -> None: ...


class UnitOfWork(Protocol):
    def device_repo(self) -> DeviceRepository: ...

    def reading_repo(self) -> ReadingRepository: ...

    def alert_repo(self) -> AlertRepository: ...

    def settings_repo(self) -> SettingsRepository: ...

    def __enter__(self) -> "UnitOfWork": ...

    def __exit__(self, exc_type, exc_val, exc_tb) -> None: ...
