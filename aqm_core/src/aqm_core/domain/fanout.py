import logging
import threading
from typing import Dict, List, Optional, Protocol, Set, runtime_checkable

logger = logging.getLogger(__name__)


@runtime_checkable
class Connection(Protocol):
    """Observer handle supplied by the transport."""

    @property
    def is_open(self) -> bool: ...

    def send(self, payload: str) -> None: ...


class FanoutRouter:
    """
    Subscription table keyed by device id.

    Connections that are not open are skipped, never dropped; the transport
    calls ``unsubscribe`` when a connection goes away.
    """

    def __init__(self) -> None:
        self._by_device: Dict[str, Set[Connection]] = {}
        self._device_of: Dict[Connection, str] = {}
        self._lock = threading.Lock()

    def subscribe(self, connection: Connection, device_id: str) -> None:
        with self._lock:
            self._detach(connection)
            self._by_device.setdefault(device_id, set()).add(connection)
            self._device_of[connection] = device_id
        logger.debug("Connection subscribed to %s", device_id)

    def unsubscribe(self, connection: Connection) -> None:
        with self._lock:
            self._detach(connection)

    def subscription(self, connection: Connection) -> Optional[str]:
        with self._lock:
            return self._device_of.get(connection)

    def subscribers(self, device_id: str) -> List[Connection]:
        with self._lock:
            return list(self._by_device.get(device_id, ()))

    def broadcast(self, device_id: str, payload: str) -> int:
        """Send *payload* to every open subscriber of *device_id*; returns the count."""
        delivered = 0
        for connection in self.subscribers(device_id):
            if not connection.is_open:
                continue
            try:
                connection.send(payload)
            except Exception as exc:
                logger.warning("Delivery to a %s subscriber failed: %s", device_id, exc)
                continue
            delivered += 1
        return delivered

    def _detach(self, connection: Connection) -> None:
        previous = self._device_of.pop(connection, None)
        if previous is None:
            return
        members = self._by_device.get(previous)
        if members is not None:
            members.discard(connection)
            if not members:
                del self._by_device[previous]
