import json
import logging
from typing import Optional

import paho.mqtt.client as mqtt
from aqm_core.application.telemetry_service import IngestResult, TelemetryService
from aqm_core.config.environments import Settings

log = logging.getLogger(__name__)


class MqttIngestClient:
    """Feeds every JSON message on the telemetry topic into the service."""

    def __init__(self, service: TelemetryService, settings: Settings):
        self.service = service
        self.settings = settings
        self.client = mqtt.Client(
            mqtt.CallbackAPIVersion.VERSION2,
            client_id=settings.MQTT_CLIENT_ID,
            clean_session=True,
        )
        self.client.on_connect = self._on_connect
        self.client.on_disconnect = self._on_disconnect
        self.client.on_message = self._on_message

    def start(self) -> None:
        log.info("Connecting to MQTT broker at %s:%s", self.settings.MQTT_BROKER, self.settings.MQTT_PORT)
        log.info("Using topic: %s", self.settings.MQTT_TOPIC)
        log.info("Client ID: %s", self.settings.MQTT_CLIENT_ID)
        # connect_async lets the network loop retry while the broker is down
        self.client.connect_async(self.settings.MQTT_BROKER, self.settings.MQTT_PORT, keepalive=60)
        self.client.loop_start()

    def stop(self) -> None:
        self.client.disconnect()
        self.client.loop_stop()
        log.info("MQTT client stopped")

    def handle_message(self, payload: bytes, topic: str) -> Optional[IngestResult]:
        try:
            raw = json.loads(payload.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            log.warning("Dropped undecodable message on %s: %s", topic, exc)
            return None
        return self.service.ingest(raw)

    def _on_connect(self, client, _userdata, _flags, reason_code, _properties):
        if reason_code.is_failure:
            log.error("MQTT connect failed, reason=%s", reason_code)
            return
        log.info("Connected to broker %s:%s", self.settings.MQTT_BROKER, self.settings.MQTT_PORT)
        client.subscribe(self.settings.MQTT_TOPIC, qos=1)
        log.info("Subscribed to %s", self.settings.MQTT_TOPIC)

    def _on_disconnect(self, _client, _userdata, _flags, reason_code, _properties):
        if reason_code.is_failure:
            log.warning("MQTT connection lost (%s), reconnecting", reason_code)

    def _on_message(self, _client, _userdata, msg):
        try:
            self.handle_message(msg.payload, msg.topic)
        except Exception as exc:
            log.exception("Failed to process message on topic %s: %s", msg.topic, exc)
