import time
from typing import List, Optional

from aqm_core.domain.models import AlertItem, Device, Level, ProcessedReading, ThresholdSettings
from aqm_core.domain.ports import (
    AlertRepository,
    DeviceRepository,
    ReadingRepository,
    SettingsRepository,
)
from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from aqm_server.adapters.db.sqlalchemy_models import (
    AlertORM,
    DeviceORM,
    SettingsORM,
    TelemetryORM,
)

ALERT_QUERY_LIMIT = 2000


class SqlDeviceRepository(DeviceRepository):
    def __init__(self, session: Session):
        self.session = session

    def upsert(self, device_id: str, last_seen: Optional[float], name: Optional[str] = None) -> None:
        row = self.session.get(DeviceORM, device_id)
        if row is None:
            row = DeviceORM()
            row.device_id = device_id
            row.created_ts = last_seen if last_seen is not None else time.time()
            self.session.add(row)
        if last_seen is not None:
            row.last_seen_ts = last_seen
        if name is not None:
            row.name = name

    def list_devices(self) -> List[Device]:
        stmt = select(DeviceORM).order_by(DeviceORM.created_ts.asc(), DeviceORM.device_id.asc())
        return [
            Device(device_id=r.device_id, name=r.name or "", last_seen=r.last_seen_ts)
            for r in self.session.scalars(stmt).all()
        ]

    def delete(self, device_id: str) -> None:
        self.session.execute(delete(DeviceORM).where(DeviceORM.device_id == device_id))


class SqlReadingRepository(ReadingRepository):
    def __init__(self, session: Session):
        self.session = session

    # READ side
    def get_readings_in_range(
        self, device_id: str, start_ts: float, end_ts: float
    ) -> List[ProcessedReading]:
        stmt = (
            select(TelemetryORM)
            .where(TelemetryORM.device_id == device_id)
            .where(TelemetryORM.ts >= start_ts)
            .where(TelemetryORM.ts <= end_ts)
            .order_by(TelemetryORM.ts.asc(), TelemetryORM.id.asc())
        )
        return [self._to_domain(r) for r in self.session.scalars(stmt).all()]

    def get_latest(self, device_id: str) -> Optional[ProcessedReading]:
        stmt = (
            select(TelemetryORM)
            .where(TelemetryORM.device_id == device_id)
            .order_by(TelemetryORM.ts.desc(), TelemetryORM.id.desc())
            .limit(1)
        )
        row = self.session.scalars(stmt).first()
        return self._to_domain(row) if row is not None else None

    # WRITE side
    def insert(self, reading: ProcessedReading) -> None:
        row = TelemetryORM()
        row.device_id = reading.device_id
        row.ts = reading.ts
        row.temp = reading.temp
        row.hum = reading.hum
        row.gas = reading.gas
        row.dust = reading.dust
        row.iaq = reading.iaq
        row.level = reading.level.value
        self.session.add(row)

    def delete_for_device(self, device_id: str) -> None:
        self.session.execute(delete(TelemetryORM).where(TelemetryORM.device_id == device_id))

    # helper
    @staticmethod
    def _to_domain(row: TelemetryORM) -> ProcessedReading:
        return ProcessedReading(
            device_id=row.device_id,
            ts=row.ts,
            temp=row.temp,
            hum=row.hum,
            gas=row.gas,
            dust=row.dust,
            iaq=row.iaq,
            level=Level(row.level),
        )


class SqlAlertRepository(AlertRepository):
    def __init__(self, session: Session):
        self.session = session

    def get_alerts(
        self, device_id: str, start_ts: Optional[float], end_ts: Optional[float]
    ) -> List[AlertItem]:
        stmt = select(AlertORM).where(AlertORM.device_id == device_id)
        if start_ts is not None:
            stmt = stmt.where(AlertORM.ts >= start_ts)
        if end_ts is not None:
            stmt = stmt.where(AlertORM.ts <= end_ts)
        stmt = stmt.order_by(AlertORM.ts.desc()).limit(ALERT_QUERY_LIMIT)
        return [self._to_domain(r) for r in self.session.scalars(stmt).all()]

    def insert(self, alert: AlertItem) -> None:
        row = AlertORM()
        row.id = alert.id
        row.device_id = alert.device_id
        row.ts = alert.ts
        row.type = alert.type
        row.value = alert.value
        row.level = alert.level.value
        row.message = alert.message
        self.session.merge(row)

    def delete_for_device(self, device_id: str) -> None:
        self.session.execute(delete(AlertORM).where(AlertORM.device_id == device_id))

    @staticmethod
    def _to_domain(row: AlertORM) -> AlertItem:
        return AlertItem(
            id=row.id,
            device_id=row.device_id,
            ts=row.ts,
            value=row.value,
            level=Level(row.level),
            message=row.message,
            type=row.type,
        )


class SqlSettingsRepository(SettingsRepository):
    def __init__(self, session: Session):
        self.session = session

    def get(self, device_id: str) -> Optional[ThresholdSettings]:
        row = self.session.get(SettingsORM, device_id)
        if row is None:
            return None
        return ThresholdSettings(
            device_id=row.device_id,
            gas_warn=row.gas_warn,
            gas_danger=row.gas_danger,
            dust_warn=row.dust_warn,
            dust_danger=row.dust_danger,
            temp_low=row.temp_low,
            temp_high=row.temp_high,
            hum_low=row.hum_low,
            hum_high=row.hum_high,
        )

    def upsert(self, settings: ThresholdSettings) -> None:
        row = self.session.get(SettingsORM, settings.device_id)
        if row is None:
            row = SettingsORM()
            row.device_id = settings.device_id
            self.session.add(row)
        row.gas_warn = settings.gas_warn
        row.gas_danger = settings.gas_danger
        row.dust_warn = settings.dust_warn
        row.dust_danger = settings.dust_danger
        row.temp_low = settings.temp_low
        row.temp_high = settings.temp_high
        row.hum_low = settings.hum_low
        row.hum_high = settings.hum_high
        row.updated_ts = time.time()

    def delete_for_device(self, device_id: str) -> None:
        self.session.execute(delete(SettingsORM).where(SettingsORM.device_id == device_id))
