from aqm_core.domain.models import Device, DeviceStatus
from aqm_core.domain.registry import DeviceRegistry, compute_status


class FakeClock:
    def __init__(self, now: float = 1700000000):
        self.now = now

    def __call__(self) -> float:
        return self.now


def test_touch_creates_unknown_device_with_empty_name():
    reg = DeviceRegistry(clock=FakeClock())
    reg.touch("d1", 1700000000)
    [device] = reg.list()
    assert device.device_id == "d1"
    assert device.name == ""
    assert device.last_seen == 1700000000


def test_touch_updates_last_seen_and_keeps_name():
    reg = DeviceRegistry(clock=FakeClock())
    reg.register("d1", "kitchen")
    reg.touch("d1", 1699999990)
    reg.touch("d1", 1699999995)
    device = reg.get("d1")
    assert device.name == "kitchen"
    assert device.last_seen == 1699999995


def test_status_is_derived_from_threshold():
    clock = FakeClock()
    reg = DeviceRegistry(online_threshold_s=30, clock=clock)
    reg.touch("d1", clock.now - 29)
    assert reg.status("d1") is DeviceStatus.ONLINE

    clock.now += 1
    assert reg.status("d1") is DeviceStatus.OFFLINE
    assert reg.list()[0].status is DeviceStatus.OFFLINE


def test_device_without_readings_is_offline():
    reg = DeviceRegistry(clock=FakeClock())
    reg.register("d1", "lab")
    assert reg.status("d1") is DeviceStatus.OFFLINE
    assert reg.status("unknown") is DeviceStatus.OFFLINE
    assert compute_status(None, 100, 30) is DeviceStatus.OFFLINE


def test_rename_unknown_device_returns_none():
    reg = DeviceRegistry(clock=FakeClock())
    assert reg.rename("ghost", "x") is None
    reg.register("d1")
    assert reg.rename("d1", "office").name == "office"


def test_register_without_name_keeps_existing_name():
    reg = DeviceRegistry(clock=FakeClock())
    reg.register("d1", "office")
    assert reg.register("d1").name == "office"


def test_remove_notifies_listeners():
    reg = DeviceRegistry(clock=FakeClock())
    forgotten = []
    reg.add_remove_listener(forgotten.append)
    reg.touch("d1", 1)

    assert reg.remove("d1") is True
    assert reg.get("d1") is None
    assert forgotten == ["d1"]

    assert reg.remove("d1") is False
    assert forgotten == ["d1", "d1"]


def test_restore_adopts_stored_device_once():
    reg = DeviceRegistry(clock=FakeClock())
    view = reg.restore(Device(device_id="d1", name="cellar", last_seen=1699999000))
    assert view.name == "cellar"
    assert view.status is DeviceStatus.OFFLINE

    reg.touch("d1", 1699999999)
    reg.restore(Device(device_id="d1", name="stale", last_seen=1))
    assert reg.get("d1").name == "cellar"
    assert reg.get("d1").last_seen == 1699999999
