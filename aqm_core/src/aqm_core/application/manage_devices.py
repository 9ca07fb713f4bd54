from typing import Optional

from aqm_core.domain.models import ThresholdSettings
from aqm_core.domain.ports import UnitOfWork


def save_device(device_id: str, name: Optional[str], uow: UnitOfWork) -> None:
    with uow:
        uow.device_repo().upsert(device_id, last_seen=None, name=name)


def save_settings(settings: ThresholdSettings, uow: UnitOfWork) -> None:
    with uow:
        uow.settings_repo().upsert(settings)
