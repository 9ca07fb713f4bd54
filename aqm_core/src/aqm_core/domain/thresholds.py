import dataclasses
import threading
from typing import Any, Dict, Mapping

from aqm_core.domain.models import THRESHOLD_FIELDS, ThresholdSettings


class ThresholdSettingsStore:
    """
    Per-device alerting thresholds, owned by the configuration UI.

    The scorer does not read these.
    """

    def __init__(self) -> None:
        self._settings: Dict[str, ThresholdSettings] = {}
        self._lock = threading.Lock()

    def get(self, device_id: str) -> ThresholdSettings:
        """Current settings; defaults are created and kept on first read."""
        with self._lock:
            current = self._settings.get(device_id)
            if current is None:
                current = ThresholdSettings(device_id=device_id)
                self._settings[device_id] = current
            return dataclasses.replace(current)

    def known(self, device_id: str) -> bool:
        with self._lock:
            return device_id in self._settings

    def seed(self, settings: ThresholdSettings) -> None:
        """Adopt stored settings unless the device already has settings in memory."""
        with self._lock:
            self._settings.setdefault(settings.device_id, dataclasses.replace(settings))

    def update(self, device_id: str, patch: Mapping[str, Any]) -> ThresholdSettings:
        """Merge the known threshold fields of *patch* onto the current settings."""
        changes = {k: float(v) for k, v in patch.items() if k in THRESHOLD_FIELDS and v is not None}
        with self._lock:
            current = self._settings.get(device_id) or ThresholdSettings(device_id=device_id)
            updated = dataclasses.replace(current, **changes)
            self._settings[device_id] = updated
            return dataclasses.replace(updated)

    def forget(self, device_id: str) -> None:
        with self._lock:
            self._settings.pop(device_id, None)
