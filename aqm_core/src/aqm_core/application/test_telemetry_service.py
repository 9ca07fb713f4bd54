import json
import threading

import pytest

from aqm_core.application.telemetry_service import HistoryResult, Ingested, TelemetryService
from aqm_core.config.environments import Settings
from aqm_core.domain.models import (
    Device,
    DeviceStatus,
    EmptyReading,
    Level,
    ProcessedReading,
    ThresholdSettings,
)
from aqm_core.domain.normalize import Rejected

NOW = 1700000100


class FakeClock:
    def __init__(self, now: float = NOW):
        self.now = now

    def __call__(self) -> float:
        return self.now


class FakeConnection:
    def __init__(self):
        self.is_open = True
        self.sent: list[str] = []

    def send(self, payload: str) -> None:
        self.sent.append(payload)


# ───────────── persistence fakes ─────────────
class FakeDb:
    def __init__(self):
        self.devices = {}
        self.readings = []
        self.alerts = []
        self.settings = {}


class FakeDeviceRepo:
    def __init__(self, db):
        self.db = db

    def upsert(self, device_id, last_seen, name=None):
        self.db.devices[device_id] = (last_seen, name)

    def list_devices(self):
        return [
            Device(device_id=k, name=name or "", last_seen=last_seen)
            for k, (last_seen, name) in self.db.devices.items()
        ]

    def delete(self, device_id):
        self.db.devices.pop(device_id, None)


class FakeReadingRepo:
    def __init__(self, db):
        self.db = db

    def insert(self, reading):
        self.db.readings.append(reading)

    def get_readings_in_range(self, device_id, start_ts, end_ts):
        return [r for r in self.db.readings if r.device_id == device_id and start_ts <= r.ts <= end_ts]

    def get_latest(self, device_id):
        own = [r for r in self.db.readings if r.device_id == device_id]
        return max(own, key=lambda r: r.ts) if own else None

    def delete_for_device(self, device_id):
        self.db.readings = [r for r in self.db.readings if r.device_id != device_id]


class FakeAlertRepo:
    def __init__(self, db):
        self.db = db

    def insert(self, alert):
        self.db.alerts.append(alert)

    def get_alerts(self, device_id, start_ts, end_ts):
        return [a for a in self.db.alerts if a.device_id == device_id]

    def delete_for_device(self, device_id):
        self.db.alerts = [a for a in self.db.alerts if a.device_id != device_id]


class FakeSettingsRepo:
    def __init__(self, db):
        self.db = db

    def get(self, device_id):
        return self.db.settings.get(device_id)

    def upsert(self, settings):
        self.db.settings[settings.device_id] = settings

    def delete_for_device(self, device_id):
        self.db.settings.pop(device_id, None)


class FakeUoW:
    def __init__(self, db):
        self.db = db

    def device_repo(self):
        return FakeDeviceRepo(self.db)

    def reading_repo(self):
        return FakeReadingRepo(self.db)

    def alert_repo(self):
        return FakeAlertRepo(self.db)

    def settings_repo(self):
        return FakeSettingsRepo(self.db)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        pass


class BrokenUoW(FakeUoW):
    def __enter__(self):
        raise ConnectionError("database is down")


# ───────────── fixtures ─────────────
@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def service(clock):
    return TelemetryService(clock=clock)


def raw(device_id="d1", ts=1700000000, **fields):
    return {"deviceId": device_id, "ts": ts, **fields}


# ───────────── ingest ─────────────
def test_reference_reading_is_scored_and_stored(service):
    result = service.ingest(raw(temp=24, hum=50, dust=0.05, gas=300))

    assert isinstance(result, Ingested)
    assert result.reading.iaq == 83
    assert result.reading.level is Level.SAFE
    assert result.alert is None
    assert service.get_latest("d1") == result.reading


def test_ingest_touches_registry(service, clock):
    service.ingest(raw(ts=clock.now - 5))
    [device] = service.get_devices()
    assert device.device_id == "d1"
    assert device.status is DeviceStatus.ONLINE


def test_millisecond_timestamps_are_stored_in_seconds(service):
    result = service.ingest(raw(ts=1700000000000))
    assert result.reading.ts == 1700000000


def test_rejected_reading_leaves_no_trace(service):
    result = service.ingest({"ts": 1700000000, "temp": 20})
    assert isinstance(result, Rejected)
    assert service.get_devices() == []


def test_warn_reading_raises_alert(service):
    result = service.ingest(raw(gas=400))
    assert result.reading.level is Level.WARN
    assert result.alert is not None
    assert service.get_alerts("d1") == [result.alert]


def test_processed_reading_is_broadcast_to_subscribers(service):
    watcher, other = FakeConnection(), FakeConnection()
    service.fanout.subscribe(watcher, "d1")
    service.fanout.subscribe(other, "d2")

    result = service.ingest(raw(temp=24, hum=50, dust=0.05, gas=300))

    assert result.delivered == 1
    assert other.sent == []
    payload = json.loads(watcher.sent[0])
    assert payload["deviceId"] == "d1"
    assert payload["IAQ"] == 83
    assert payload["level"] == "SAFE"
    assert payload["dust"] == 0.05


def test_mixed_dust_units_score_the_same(clock):
    service = TelemetryService(clock=clock, dust_mixed_units=True)
    result = service.ingest(raw(temp=24, hum=50, dust=0.05, gas=300))
    assert result.reading.dust == pytest.approx(50)
    assert result.reading.iaq == 83


# ───────────── queries ─────────────
def test_latest_placeholder_carries_device_and_time(service):
    latest = service.get_latest("nobody")
    assert latest == EmptyReading(device_id="nobody", ts=NOW)
    assert latest.iaq is None


def test_history_downsamples(service):
    for ts in range(1700000000, 1700000300, 10):
        service.ingest(raw(ts=ts))
    result = service.get_history("d1", 1700000000, 1700000300, "1m")
    assert isinstance(result, HistoryResult)
    assert result.device_id == "d1"
    assert result.ts == NOW
    assert [p.ts for p in result.points] == [1700000000 + 60 * i for i in range(5)]


def test_history_for_unknown_device_is_empty_result(service):
    result = service.get_history("nobody", 0, NOW, "1m")
    assert result.points == []
    assert result.device_id == "nobody"


def test_remove_device_cascades(service, clock):
    service.ingest(raw(gas=600))
    service.update_settings("d1", {"gas_warn": 500})

    assert service.remove_device("d1") is True

    assert isinstance(service.get_latest("d1"), EmptyReading)
    assert service.get_history("d1", 0, clock.now, "1m").points == []
    assert service.get_alerts("d1") == []
    assert service.get_settings("d1").gas_warn == 800
    assert service.get_devices() == []


def test_register_and_rename(service):
    view = service.register_device("d9", "attic")
    assert view.status is DeviceStatus.OFFLINE
    assert service.rename_device("d9", "garage").name == "garage"
    assert service.rename_device("ghost", "x") is None


def test_from_settings_applies_limits():
    config = Settings(HISTORY_CAP=3, ALERT_CAP=2, ALERT_STALE_SEC=5, ONLINE_THRESHOLD_SEC=10)
    service = TelemetryService.from_settings(config)
    assert service.store.cap == 3
    assert service.throttler.cap == 2
    assert service.throttler.stale_after_s == 5
    assert service.registry.online_threshold_s == 10


# ───────────── persistence collaborator ─────────────
def test_ingest_is_persisted(clock):
    db = FakeDb()
    service = TelemetryService(clock=clock, uow_factory=lambda: FakeUoW(db))

    result = service.ingest(raw(gas=400))

    assert db.readings == [result.reading]
    assert db.alerts == [result.alert]
    assert db.devices["d1"] == (1700000000, None)


def test_remove_deletes_persisted_records(clock):
    db = FakeDb()
    service = TelemetryService(clock=clock, uow_factory=lambda: FakeUoW(db))
    service.ingest(raw(gas=400))
    service.update_settings("d1", {"gas_warn": 100})

    service.remove_device("d1")

    assert db.readings == []
    assert db.alerts == []
    assert db.settings == {}
    assert db.devices == {}


def test_history_falls_back_to_repository(clock):
    db = FakeDb()
    for ts in (100, 130, 170, 200):
        db.readings.append(
            ProcessedReading("d1", ts, None, None, None, None, 100, Level.SAFE)
        )
    service = TelemetryService(clock=clock, uow_factory=lambda: FakeUoW(db))

    result = service.get_history("d1", 0, 1000, "1m")
    assert [p.ts for p in result.points] == [100, 170]


def test_persistence_failure_does_not_block_ingest(clock, caplog):
    service = TelemetryService(clock=clock, uow_factory=lambda: BrokenUoW(FakeDb()))

    result = service.ingest(raw(gas=400))

    assert isinstance(result, Ingested)
    assert service.get_latest("d1") == result.reading
    assert service.get_alerts("d1") == [result.alert]
    assert service.get_history("d1", 0, NOW, "1s").points == [result.reading]
    assert "Persistence call persist_processed failed" in caplog.text


def test_latest_falls_back_to_repository(clock):
    db = FakeDb()
    stored = ProcessedReading("d1", 150, 24, 50, 300, 0.05, 83, Level.SAFE)
    db.readings.extend([ProcessedReading("d1", 100, None, None, None, None, 100, Level.SAFE), stored])
    service = TelemetryService(clock=clock, uow_factory=lambda: FakeUoW(db))

    assert service.get_latest("d1") == stored
    assert isinstance(service.get_latest("d2"), EmptyReading)


def test_devices_include_stored_ones(clock):
    db = FakeDb()
    db.devices["old"] = (clock.now - 3600, "cellar")
    service = TelemetryService(clock=clock, uow_factory=lambda: FakeUoW(db))
    service.ingest(raw(device_id="new", ts=clock.now))

    views = {v.device_id: v for v in service.get_devices()}
    assert views["new"].status is DeviceStatus.ONLINE
    assert views["old"].name == "cellar"
    assert views["old"].status is DeviceStatus.OFFLINE


def test_stored_device_can_be_renamed(clock):
    db = FakeDb()
    db.devices["old"] = (100, "cellar")
    service = TelemetryService(clock=clock, uow_factory=lambda: FakeUoW(db))

    view = service.rename_device("old", "basement")

    assert view.name == "basement"
    assert view.last_seen == 100
    assert db.devices["old"] == (None, "basement")


def test_partial_settings_update_merges_onto_stored_values(clock):
    db = FakeDb()
    db.settings["d1"] = ThresholdSettings(device_id="d1", temp_low=10, gas_warn=500)
    service = TelemetryService(clock=clock, uow_factory=lambda: FakeUoW(db))

    assert service.get_settings("d1").temp_low == 10
    updated = service.update_settings("d1", {"gas_danger": 1300})

    assert (updated.temp_low, updated.gas_warn, updated.gas_danger) == (10, 500, 1300)
    assert db.settings["d1"].temp_low == 10


def test_reading_racing_a_removal_is_not_written_back(clock):
    db = FakeDb()
    service = TelemetryService(clock=clock, uow_factory=lambda: FakeUoW(db))
    result = service.ingest(raw(gas=400))

    service.remove_device("d1")
    # the in-flight write of the same reading lands after the delete
    service._persist_reading(result.reading, result.alert)

    assert db.readings == []
    assert db.alerts == []
    assert db.devices == {}


# ───────────── concurrency ─────────────
def test_concurrent_ingest_from_many_devices(clock):
    service = TelemetryService(clock=clock)
    per_device = 200

    def produce(device_id):
        for i in range(per_device):
            service.ingest(raw(device_id=device_id, ts=1700000000 + i))

    threads = [threading.Thread(target=produce, args=(f"dev-{n}",)) for n in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(service.get_devices()) == 8
    for n in range(8):
        history = service.store.history(f"dev-{n}")
        assert [p.ts for p in history] == [1700000000 + i for i in range(per_device)]
