__all__ = ["Base", "DeviceORM", "TelemetryORM", "AlertORM", "SettingsORM"]

from sqlalchemy import Float, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from aqm_server.adapters.db.session import Base


class DeviceORM(Base):
    __tablename__ = "devices"

    device_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str | None] = mapped_column(String(128), nullable=True)
    created_ts: Mapped[float] = mapped_column(Float, nullable=False)
    last_seen_ts: Mapped[float | None] = mapped_column(Float, index=True, nullable=True)


class TelemetryORM(Base):
    __tablename__ = "telemetry"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    device_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    ts: Mapped[float] = mapped_column(Float, index=True, nullable=False)
    temp: Mapped[float | None] = mapped_column(Float, nullable=True)
    hum: Mapped[float | None] = mapped_column(Float, nullable=True)
    gas: Mapped[float | None] = mapped_column(Float, nullable=True)
    dust: Mapped[float | None] = mapped_column(Float, nullable=True)
    iaq: Mapped[int] = mapped_column(Integer, nullable=False)
    level: Mapped[str] = mapped_column(String(8), nullable=False)


class AlertORM(Base):
    __tablename__ = "alerts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    device_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    ts: Mapped[float] = mapped_column(Float, index=True, nullable=False)
    type: Mapped[str] = mapped_column(String(16), nullable=False)
    value: Mapped[int] = mapped_column(Integer, nullable=False)
    level: Mapped[str] = mapped_column(String(8), nullable=False)
    message: Mapped[str] = mapped_column(String(255), nullable=False)


class SettingsORM(Base):
    __tablename__ = "settings"

    device_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    gas_warn: Mapped[float] = mapped_column(Float, nullable=False)
    gas_danger: Mapped[float] = mapped_column(Float, nullable=False)
    dust_warn: Mapped[float] = mapped_column(Float, nullable=False)
    dust_danger: Mapped[float] = mapped_column(Float, nullable=False)
    temp_low: Mapped[float] = mapped_column(Float, nullable=False)
    temp_high: Mapped[float] = mapped_column(Float, nullable=False)
    hum_low: Mapped[float] = mapped_column(Float, nullable=False)
    hum_high: Mapped[float] = mapped_column(Float, nullable=False)
    updated_ts: Mapped[float] = mapped_column(Float, nullable=False)
