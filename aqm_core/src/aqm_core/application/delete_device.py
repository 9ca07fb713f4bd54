from aqm_core.domain.ports import UnitOfWork


def delete_device_records(device_id: str, uow: UnitOfWork) -> None:
    with uow:
        uow.alert_repo().delete_for_device(device_id)
        uow.reading_repo().delete_for_device(device_id)
        uow.settings_repo().delete_for_device(device_id)
        uow.device_repo().delete(device_id)
