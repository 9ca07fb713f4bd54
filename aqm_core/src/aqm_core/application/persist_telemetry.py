from typing import Optional

from aqm_core.domain.models import AlertItem, ProcessedReading
from aqm_core.domain.ports import UnitOfWork


def persist_processed(
    reading: ProcessedReading, alert: Optional[AlertItem], uow: UnitOfWork
) -> None:
    with uow:
        uow.device_repo().upsert(reading.device_id, last_seen=reading.ts)
        uow.reading_repo().insert(reading)
        if alert is not None:
            uow.alert_repo().insert(alert)
