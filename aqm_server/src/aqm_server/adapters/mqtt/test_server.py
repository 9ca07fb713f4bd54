import json
import logging
from types import SimpleNamespace

import pytest
from aqm_core.application.telemetry_service import Ingested, TelemetryService
from aqm_core.config.environments import Settings
from aqm_core.domain.models import Level
from aqm_core.domain.normalize import Rejected

from aqm_server.adapters.mqtt.server import MqttIngestClient
from aqm_server.utils.factories import RawTelemetryFactory


class FakeReasonCode:
    def __init__(self, failure: bool):
        self.is_failure = failure

    def __str__(self):
        return "Not authorized" if self.is_failure else "Success"


class FakeClient:
    def __init__(self):
        self.subscriptions = []

    def subscribe(self, topic, qos=0):
        self.subscriptions.append((topic, qos))


@pytest.fixture()
def ingest_client():
    settings = Settings(MQTT_TOPIC="aqm/+/telemetry", MQTT_CLIENT_ID="test-client")
    return MqttIngestClient(TelemetryService(), settings)


def test_message_is_ingested(ingest_client):
    payload = json.dumps(RawTelemetryFactory(deviceId="d1", ts=1700000000)).encode()

    result = ingest_client.handle_message(payload, "aqm/d1/telemetry")

    assert isinstance(result, Ingested)
    assert result.reading.iaq == 83
    assert result.reading.level is Level.SAFE
    assert ingest_client.service.get_latest("d1") == result.reading


def test_undecodable_payload_is_dropped(ingest_client, caplog):
    with caplog.at_level(logging.WARNING):
        assert ingest_client.handle_message(b"{not json", "aqm/d1/telemetry") is None
        assert ingest_client.handle_message(b"\xff\xfe", "aqm/d1/telemetry") is None
    assert ingest_client.service.get_devices() == []
    assert "Dropped undecodable message" in caplog.text


def test_message_without_device_id_is_rejected(ingest_client):
    result = ingest_client.handle_message(b'{"ts": 1700000000}', "aqm/x/telemetry")
    assert isinstance(result, Rejected)


def test_on_connect_subscribes_to_topic(ingest_client):
    client = FakeClient()
    ingest_client._on_connect(client, None, None, FakeReasonCode(False), None)
    assert client.subscriptions == [("aqm/+/telemetry", 1)]


def test_failed_connect_does_not_subscribe(ingest_client):
    client = FakeClient()
    ingest_client._on_connect(client, None, None, FakeReasonCode(True), None)
    assert client.subscriptions == []


def test_on_message_never_raises(ingest_client, caplog):
    def explode(raw):
        raise RuntimeError("boom")

    ingest_client.service.ingest = explode
    msg = SimpleNamespace(payload=b'{"deviceId": "d1", "ts": 1}', topic="aqm/d1/telemetry")

    ingest_client._on_message(None, None, msg)

    assert "Failed to process message on topic aqm/d1/telemetry" in caplog.text
