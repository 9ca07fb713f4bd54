from .delete_device import delete_device_records
from .manage_devices import save_device, save_settings
from .persist_telemetry import persist_processed
from .query_history import (
    get_stored_alerts,
    get_stored_devices,
    get_stored_latest,
    get_stored_readings,
    get_stored_settings,
)
from .telemetry_service import HistoryResult, Ingested, TelemetryService

__all__ = [
    "delete_device_records",
    "save_device",
    "save_settings",
    "persist_processed",
    "get_stored_alerts",
    "get_stored_readings",
    "get_stored_latest",
    "get_stored_devices",
    "get_stored_settings",
    "HistoryResult",
    "Ingested",
    "TelemetryService",
]
