# aqm_core/application/query_history.py

from typing import List, Optional

from aqm_core.domain.models import AlertItem, Device, ProcessedReading, ThresholdSettings
from aqm_core.domain.ports import UnitOfWork


def get_stored_readings(
    device_id: str,
    start_ts: float,
    end_ts: float,
    uow: UnitOfWork,
) -> List[ProcessedReading]:
    with uow:
        return uow.reading_repo().get_readings_in_range(
            device_id=device_id, start_ts=start_ts, end_ts=end_ts
        )


def get_stored_alerts(
    device_id: str,
    start_ts: Optional[float],
    end_ts: Optional[float],
    uow: UnitOfWork,
) -> List[AlertItem]:
    with uow:
        return uow.alert_repo().get_alerts(
            device_id=device_id, start_ts=start_ts, end_ts=end_ts
        )


def get_stored_latest(device_id: str, uow: UnitOfWork) -> Optional[ProcessedReading]:
    with uow:
        return uow.reading_repo().get_latest(device_id)


def get_stored_devices(uow: UnitOfWork) -> List[Device]:
    with uow:
        return uow.device_repo().list_devices()


def get_stored_settings(device_id: str, uow: UnitOfWork) -> Optional[ThresholdSettings]:
    with uow:
        return uow.settings_repo().get(device_id)
