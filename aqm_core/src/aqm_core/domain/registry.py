import logging
import threading
import time
from typing import Callable, Dict, List, Optional

from aqm_core.domain.models import Device, DeviceStatus, DeviceView

logger = logging.getLogger(__name__)

Clock = Callable[[], float]
RemoveListener = Callable[[str], None]


def compute_status(
    last_seen: Optional[float], now: float, threshold_s: float
) -> DeviceStatus:
    if last_seen is None:
        return DeviceStatus.OFFLINE
    return DeviceStatus.ONLINE if now - last_seen < threshold_s else DeviceStatus.OFFLINE


class DeviceRegistry:
    """Known devices and their last-seen instant. Status is derived on read."""

    def __init__(self, online_threshold_s: float = 30, clock: Clock = time.time):
        self.online_threshold_s = online_threshold_s
        self._clock = clock
        self._devices: Dict[str, Device] = {}
        self._on_remove: List[RemoveListener] = []
        self._lock = threading.Lock()

    def add_remove_listener(self, listener: RemoveListener) -> None:
        """*listener* is called with the device id after every ``remove``."""
        self._on_remove.append(listener)

    def touch(self, device_id: str, last_seen: float) -> None:
        with self._lock:
            device = self._devices.get(device_id)
            if device is None:
                self._devices[device_id] = Device(device_id=device_id, last_seen=last_seen)
                logger.info("New device %s", device_id)
            else:
                device.last_seen = last_seen

    def register(self, device_id: str, name: Optional[str] = None) -> DeviceView:
        with self._lock:
            device = self._devices.get(device_id)
            if device is None:
                device = Device(device_id=device_id, name=name or "")
                self._devices[device_id] = device
            elif name is not None:
                device.name = name
            return self._view(device)

    def restore(self, device: Device) -> DeviceView:
        """Adopt a stored device unless it is already known in memory."""
        with self._lock:
            current = self._devices.setdefault(device.device_id, device)
            return self._view(current)

    def rename(self, device_id: str, name: str) -> Optional[DeviceView]:
        with self._lock:
            device = self._devices.get(device_id)
            if device is None:
                return None
            device.name = name
            return self._view(device)

    def get(self, device_id: str) -> Optional[DeviceView]:
        with self._lock:
            device = self._devices.get(device_id)
            return self._view(device) if device else None

    def status(self, device_id: str) -> DeviceStatus:
        with self._lock:
            device = self._devices.get(device_id)
            last_seen = device.last_seen if device else None
        return compute_status(last_seen, self._clock(), self.online_threshold_s)

    def list(self) -> List[DeviceView]:
        with self._lock:
            return [self._view(d) for d in self._devices.values()]

    def remove(self, device_id: str) -> bool:
        with self._lock:
            existed = self._devices.pop(device_id, None) is not None
        for listener in self._on_remove:
            listener(device_id)
        logger.info("Removed device %s (known=%s)", device_id, existed)
        return existed

    def _view(self, device: Device) -> DeviceView:
        return DeviceView(
            device_id=device.device_id,
            name=device.name,
            last_seen=device.last_seen,
            status=compute_status(device.last_seen, self._clock(), self.online_threshold_s),
        )
