"""
Telemetry pipeline and query surface.

raw message -> normalize -> score -> {registry touch, history append,
alert throttle} -> fan-out, then optional persistence.

The three in-memory mutations of one ingest happen under a single lock that
the read operations also take, so a reader never sees a reading in history
whose alert decision has not been made yet. Fan-out and persistence run after
the lock is released. Storing a reading and deleting a device share a second
lock, so a reading that races a removal is not written back afterwards.

Queries answer from memory and consult storage when memory has nothing, which
is what a restarted process sees.
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, List, Mapping, Optional, Union

from aqm_core.application.delete_device import delete_device_records
from aqm_core.application.manage_devices import save_device, save_settings
from aqm_core.application.persist_telemetry import persist_processed
from aqm_core.application.query_history import (
    get_stored_alerts,
    get_stored_devices,
    get_stored_latest,
    get_stored_readings,
    get_stored_settings,
)
from aqm_core.config.environments import Settings
from aqm_core.domain.alerts import AlertThrottler
from aqm_core.domain.fanout import FanoutRouter
from aqm_core.domain.models import (
    AlertItem,
    DeviceView,
    EmptyReading,
    ProcessedReading,
    ThresholdSettings,
)
from aqm_core.domain.normalize import Rejected, normalize
from aqm_core.domain.ports import UnitOfWork
from aqm_core.domain.registry import DeviceRegistry, compute_status
from aqm_core.domain.scoring import DustUnit, score
from aqm_core.domain.thresholds import ThresholdSettingsStore
from aqm_core.domain.timeseries import TimeSeriesStore, downsample, parse_interval

logger = logging.getLogger(__name__)

UoWFactory = Callable[[], UnitOfWork]


@dataclass(frozen=True)
class Ingested:
    reading: ProcessedReading
    alert: Optional[AlertItem]
    delivered: int


IngestResult = Union[Ingested, Rejected]


@dataclass(frozen=True)
class HistoryResult:
    device_id: str
    ts: float
    points: List[ProcessedReading]


class TelemetryService:
    def __init__(
        self,
        *,
        registry: Optional[DeviceRegistry] = None,
        store: Optional[TimeSeriesStore] = None,
        throttler: Optional[AlertThrottler] = None,
        fanout: Optional[FanoutRouter] = None,
        thresholds: Optional[ThresholdSettingsStore] = None,
        uow_factory: Optional[UoWFactory] = None,
        dust_mixed_units: bool = False,
        clock: Callable[[], float] = time.time,
    ):
        self._clock = clock
        self.registry = registry or DeviceRegistry(clock=clock)
        self.store = store or TimeSeriesStore()
        self.throttler = throttler or AlertThrottler()
        self.fanout = fanout or FanoutRouter()
        self.thresholds = thresholds or ThresholdSettingsStore()
        self._uow_factory = uow_factory
        self._dust_mixed_units = dust_mixed_units
        self._dust_unit = DustUnit.UG_M3 if dust_mixed_units else DustUnit.MG_M3
        self._lock = threading.RLock()
        self._persist_lock = threading.Lock()

        self.registry.add_remove_listener(self.store.forget)
        self.registry.add_remove_listener(self.throttler.forget)
        self.registry.add_remove_listener(self.thresholds.forget)

    @classmethod
    def from_settings(
        cls, config: Settings, uow_factory: Optional[UoWFactory] = None
    ) -> "TelemetryService":
        return cls(
            registry=DeviceRegistry(online_threshold_s=config.ONLINE_THRESHOLD_SEC),
            store=TimeSeriesStore(cap=config.HISTORY_CAP),
            throttler=AlertThrottler(cap=config.ALERT_CAP, stale_after_s=config.ALERT_STALE_SEC),
            uow_factory=uow_factory,
            dust_mixed_units=config.DUST_MIXED_UNITS,
        )

    def now(self) -> int:
        return int(self._clock())

    # ingest
    def ingest(self, raw: Any) -> IngestResult:
        result = normalize(raw, dust_mixed_units=self._dust_mixed_units)
        if isinstance(result, Rejected):
            logger.warning("Dropped telemetry: %s", result.reason)
            return result
        reading = result.reading

        iaq, level = score(reading, self._dust_unit)
        processed = ProcessedReading(
            device_id=reading.device_id,
            ts=reading.ts,
            temp=reading.temp,
            hum=reading.hum,
            gas=reading.gas,
            dust=reading.dust,
            iaq=iaq,
            level=level,
        )

        with self._lock:
            self.registry.touch(processed.device_id, processed.ts)
            self.store.append(processed)
            alert = self.throttler.observe(processed)

        delivered = self.fanout.broadcast(processed.device_id, processed.to_string())
        logger.debug(
            "Ingested %s ts=%s IAQ=%s %s -> %d observers",
            processed.device_id,
            processed.ts,
            processed.iaq,
            processed.level.value,
            delivered,
        )
        self._persist_reading(processed, alert)
        return Ingested(reading=processed, alert=alert, delivered=delivered)

    # devices
    def get_devices(self) -> List[DeviceView]:
        with self._lock:
            views = self.registry.list()
        if self._uow_factory is None:
            return views
        known = {v.device_id for v in views}
        now = self._clock()
        for device in self._query(get_stored_devices) or []:
            if device.device_id in known:
                continue
            views.append(
                DeviceView(
                    device_id=device.device_id,
                    name=device.name,
                    last_seen=device.last_seen,
                    status=compute_status(device.last_seen, now, self.registry.online_threshold_s),
                )
            )
        return views

    def register_device(self, device_id: str, name: Optional[str] = None) -> DeviceView:
        with self._lock:
            view = self.registry.register(device_id, name)
        self._persist(save_device, device_id, name)
        return view

    def rename_device(self, device_id: str, name: str) -> Optional[DeviceView]:
        with self._lock:
            view = self.registry.rename(device_id, name)
        if view is None and self._restore_device(device_id):
            with self._lock:
                view = self.registry.rename(device_id, name)
        if view is not None:
            self._persist(save_device, device_id, name)
        return view

    def remove_device(self, device_id: str) -> bool:
        # holding the persistence lock keeps an in-flight ingest from
        # re-creating rows between the in-memory removal and the delete
        with self._persist_lock:
            with self._lock:
                existed = self.registry.remove(device_id)
            self._persist(delete_device_records, device_id)
        return existed

    # queries
    def get_latest(self, device_id: str) -> Union[ProcessedReading, EmptyReading]:
        with self._lock:
            latest = self.store.latest(device_id)
        if latest is None and self._uow_factory is not None:
            latest = self._query(get_stored_latest, device_id)
        return latest if latest is not None else EmptyReading(device_id=device_id, ts=self.now())

    def get_history(
        self,
        device_id: str,
        from_ts: float,
        to_ts: float,
        interval: Optional[str] = None,
    ) -> HistoryResult:
        with self._lock:
            points = self.store.range(device_id, from_ts, to_ts, interval)
        if not points and self._uow_factory is not None:
            stored = self._query(get_stored_readings, device_id, from_ts, to_ts) or []
            points = downsample(stored, parse_interval(interval))
        return HistoryResult(device_id=device_id, ts=self.now(), points=points)

    def get_alerts(
        self,
        device_id: str,
        from_ts: Optional[float] = None,
        to_ts: Optional[float] = None,
    ) -> List[AlertItem]:
        with self._lock:
            alerts = self.throttler.alerts(device_id, from_ts, to_ts)
        if not alerts and self._uow_factory is not None:
            alerts = self._query(get_stored_alerts, device_id, from_ts, to_ts) or []
        return alerts

    # threshold settings
    def get_settings(self, device_id: str) -> ThresholdSettings:
        self._load_settings(device_id)
        return self.thresholds.get(device_id)

    def update_settings(self, device_id: str, patch: Mapping[str, Any]) -> ThresholdSettings:
        self._load_settings(device_id)
        updated = self.thresholds.update(device_id, patch)
        self._persist(save_settings, updated)
        return updated

    def _load_settings(self, device_id: str) -> None:
        """Seed memory from storage so a partial update merges onto stored values."""
        if self._uow_factory is None or self.thresholds.known(device_id):
            return
        stored = self._query(get_stored_settings, device_id)
        if stored is not None:
            self.thresholds.seed(stored)

    def _restore_device(self, device_id: str) -> bool:
        if self._uow_factory is None:
            return False
        for device in self._query(get_stored_devices) or []:
            if device.device_id == device_id:
                with self._lock:
                    self.registry.restore(device)
                return True
        return False

    # persistence collaborator
    def _persist_reading(self, processed: ProcessedReading, alert: Optional[AlertItem]) -> None:
        if self._uow_factory is None:
            return
        with self._persist_lock:
            if self.registry.get(processed.device_id) is None:
                logger.debug("Device %s removed before its reading was stored", processed.device_id)
                return
            self._persist(persist_processed, processed, alert)

    def _persist(self, fn: Callable[..., None], *args: Any) -> None:
        if self._uow_factory is None:
            return
        try:
            fn(*args, self._uow_factory())
        except Exception:
            logger.exception("Persistence call %s failed; in-memory state kept", fn.__name__)

    def _query(self, fn: Callable[..., Any], *args: Any) -> Any:
        try:
            return fn(*args, self._uow_factory())
        except Exception:
            logger.exception("Persistence query %s failed", fn.__name__)
            return None
