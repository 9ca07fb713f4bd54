import re
import threading
from typing import Dict, Iterable, List, Optional

from aqm_core.domain.models import ProcessedReading

DEFAULT_HISTORY_CAP = 5000
DEFAULT_BUCKET_S = 60

_INTERVAL_RE = re.compile(r"^(\d+)(ms|s|m|h)$", re.IGNORECASE)


def parse_interval(interval: Optional[str]) -> int:
    """
    ``"<int><unit>"`` with unit in ms/s/m/h -> whole seconds.

    Unparseable or missing intervals give 60. Millisecond intervals round
    down but never below one second.
    """
    if not interval:
        return DEFAULT_BUCKET_S
    m = _INTERVAL_RE.match(interval.strip())
    if not m:
        return DEFAULT_BUCKET_S
    value = int(m.group(1))
    unit = m.group(2).lower()
    if unit == "ms":
        return max(1, value // 1000)
    if unit == "s":
        return value
    if unit == "m":
        return value * 60
    return value * 3600


def downsample(points: Iterable[ProcessedReading], bucket_s: float) -> List[ProcessedReading]:
    """Keep the first point of each window, measured from the last kept point."""
    out: List[ProcessedReading] = []
    last_kept = float("-inf")
    for p in points:
        if p.ts - last_kept >= bucket_s:
            out.append(p)
            last_kept = p.ts
    return out


class TimeSeriesStore:
    """
    Latest reading plus a capped history per device.

    History keeps arrival order. Out-of-order timestamps are stored as
    received and never re-sorted.
    """

    def __init__(self, cap: int = DEFAULT_HISTORY_CAP):
        self.cap = cap
        self._latest: Dict[str, ProcessedReading] = {}
        self._history: Dict[str, List[ProcessedReading]] = {}
        self._lock = threading.Lock()

    def append(self, reading: ProcessedReading) -> None:
        with self._lock:
            self._latest[reading.device_id] = reading
            history = self._history.setdefault(reading.device_id, [])
            history.append(reading)
            surplus = len(history) - self.cap
            if surplus > 0:
                del history[:surplus]

    def latest(self, device_id: str) -> Optional[ProcessedReading]:
        with self._lock:
            return self._latest.get(device_id)

    def history(self, device_id: str) -> List[ProcessedReading]:
        with self._lock:
            return list(self._history.get(device_id, ()))

    def range(
        self,
        device_id: str,
        from_ts: float,
        to_ts: float,
        interval: Optional[str] = None,
    ) -> List[ProcessedReading]:
        with self._lock:
            in_range = [
                p for p in self._history.get(device_id, ()) if from_ts <= p.ts <= to_ts
            ]
        return downsample(in_range, parse_interval(interval))

    def forget(self, device_id: str) -> None:
        with self._lock:
            self._latest.pop(device_id, None)
            self._history.pop(device_id, None)
