"""
Alert throttling.

Each device keeps only the last emitted alert. A WARN or DANGER reading
emits when there is no prior alert, when its level differs from the prior
alert's level, when a SAFE reading was seen since the prior alert, or when
the prior alert is older than the staleness window. Repeats of the same
level inside the window are suppressed.
"""

import dataclasses
import logging
import threading
import uuid
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from aqm_core.domain.models import AlertItem, Level, ProcessedReading

logger = logging.getLogger(__name__)

DEFAULT_ALERT_CAP = 500
DEFAULT_STALE_AFTER_S = 60

MESSAGES = {
    Level.WARN: "Air quality is at warning level",
    Level.DANGER: "Air quality is dangerous!",
}


@dataclass(frozen=True)
class ThrottleState:
    alert_id: str
    ts: float
    level: Level
    recovered: bool = False


def should_emit(
    prior: Optional[ThrottleState],
    level: Level,
    ts: float,
    stale_after_s: float = DEFAULT_STALE_AFTER_S,
) -> bool:
    if level is Level.SAFE:
        return False
    if prior is None:
        return True
    if prior.recovered or prior.level is not level:
        return True
    return ts - prior.ts > stale_after_s


def alert_value(iaq: Optional[int]) -> int:
    return iaq if iaq is not None else -1


def _new_id() -> str:
    return str(uuid.uuid4())


class AlertThrottler:
    def __init__(
        self,
        cap: int = DEFAULT_ALERT_CAP,
        stale_after_s: float = DEFAULT_STALE_AFTER_S,
        id_factory: Callable[[], str] = _new_id,
    ):
        self.cap = cap
        self.stale_after_s = stale_after_s
        self._id_factory = id_factory
        self._state: Dict[str, ThrottleState] = {}
        self._alerts: Dict[str, List[AlertItem]] = {}
        self._lock = threading.Lock()

    def observe(self, reading: ProcessedReading) -> Optional[AlertItem]:
        """Feed one processed reading; returns the alert if one was emitted."""
        with self._lock:
            prior = self._state.get(reading.device_id)

            if reading.level is Level.SAFE:
                if prior is not None and not prior.recovered:
                    self._state[reading.device_id] = dataclasses.replace(prior, recovered=True)
                return None

            if not should_emit(prior, reading.level, reading.ts, self.stale_after_s):
                logger.debug("Suppressed %s alert for %s", reading.level.value, reading.device_id)
                return None

            item = AlertItem(
                id=self._id_factory(),
                device_id=reading.device_id,
                ts=reading.ts,
                value=alert_value(reading.iaq),
                level=reading.level,
                message=MESSAGES[reading.level],
            )
            alerts = self._alerts.setdefault(reading.device_id, [])
            alerts.insert(0, item)
            del alerts[self.cap :]
            self._state[reading.device_id] = ThrottleState(item.id, item.ts, item.level)

        logger.info(
            "Alert %s for %s: %s (IAQ=%s)",
            item.level.value,
            item.device_id,
            item.message,
            item.value,
        )
        return item

    def state(self, device_id: str) -> Optional[ThrottleState]:
        with self._lock:
            return self._state.get(device_id)

    def alerts(
        self,
        device_id: str,
        from_ts: Optional[float] = None,
        to_ts: Optional[float] = None,
    ) -> List[AlertItem]:
        """Newest first, optionally limited to ``[from_ts, to_ts]``."""
        with self._lock:
            items = list(self._alerts.get(device_id, ()))
        return [
            a
            for a in items
            if (from_ts is None or a.ts >= from_ts) and (to_ts is None or a.ts <= to_ts)
        ]

    def forget(self, device_id: str) -> None:
        with self._lock:
            self._state.pop(device_id, None)
            self._alerts.pop(device_id, None)
