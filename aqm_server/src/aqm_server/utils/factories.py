import uuid
from datetime import datetime, timezone

import factory
from aqm_core.domain.models import AlertItem, Level, ProcessedReading


class UTCSecondsTimestamp(factory.Factory):
    class Meta:
        model = int

    @classmethod
    def _create(cls, *_, **__):
        return int(datetime.now(tz=timezone.utc).timestamp())


class RawTelemetryFactory(factory.DictFactory):
    """Inbound JSON message as a device publishes it."""

    deviceId = factory.Sequence(lambda n: f"sensor-{n}")
    ts = UTCSecondsTimestamp()
    temp = 24.0
    hum = 50.0
    gas = 300.0
    dust = 0.05


class ProcessedReadingFactory(factory.Factory):
    class Meta:
        model = ProcessedReading

    device_id = factory.Sequence(lambda n: f"sensor-{n}")
    ts = UTCSecondsTimestamp()
    temp = 24.0
    hum = 50.0
    gas = 300.0
    dust = 0.05
    iaq = 83
    level = Level.SAFE


class AlertItemFactory(factory.Factory):
    class Meta:
        model = AlertItem

    id = factory.LazyFunction(lambda: str(uuid.uuid4()))
    device_id = factory.Sequence(lambda n: f"sensor-{n}")
    ts = UTCSecondsTimestamp()
    value = 70
    level = Level.WARN
    message = "Air quality is at warning level"
