"""Real-time store over MQTT, using aiomqtt.

The installation publishes its whole state as a retained JSON object on
``{prefix}/snapshot`` and the reference bill on ``{prefix}/prev_month``.
Control writes go to ``{prefix}/set/<field>``, one field per message.
"""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator

import aiomqtt

from energy_monitor.config.schema import MQTTConfig
from energy_monitor.mqtt.topics import build_topics, field_command_topic
from energy_monitor.transport.base import (
    PreviousBillReceived,
    SnapshotReceived,
    TransportEvent,
    TransportUnavailable,
    validate_write,
)

logger = logging.getLogger(__name__)


class MQTTTransport:
    """Store adapter on top of an MQTT broker.

    Each ``events()`` call opens its own broker connection, so a new
    subscription after a failure reconnects from scratch.
    """

    def __init__(self, config: MQTTConfig) -> None:
        self._config = config
        self._topics = build_topics(config.topic_prefix)

    @property
    def topics(self) -> dict[str, str]:
        return dict(self._topics)

    def _client(self) -> aiomqtt.Client:
        return aiomqtt.Client(
            hostname=self._config.broker_host,
            port=self._config.broker_port,
            username=self._config.username or None,
            password=self._config.password or None,
            identifier=self._config.client_id or None,
        )

    async def events(self) -> AsyncIterator[TransportEvent]:
        try:
            async with self._client() as client:
                logger.info(
                    "MQTT subscribed to %s:%d (%s)",
                    self._config.broker_host, self._config.broker_port, self._config.topic_prefix,
                )
                await client.subscribe(self._topics["snapshot"])
                await client.subscribe(self._topics["prev_month"])

                async for message in client.messages:
                    event = self.decode(str(message.topic), message.payload)
                    if event is not None:
                        yield event
        except aiomqtt.MqttError as e:
            logger.error("MQTT subscription failed: %s", e)
            yield TransportUnavailable(str(e))

    def decode(self, topic: str, payload: bytes | bytearray | str | None) -> TransportEvent | None:
        """Turn one broker message into a transport event."""
        if isinstance(payload, (bytes, bytearray)):
            text = payload.decode(errors="replace")
        else:
            text = "" if payload is None else str(payload)

        if topic == self._topics["snapshot"]:
            try:
                data = json.loads(text) if text else {}
            except json.JSONDecodeError:
                logger.warning("Snapshot payload is not JSON: %.80s", text)
                data = {}
            return SnapshotReceived(data)

        if topic == self._topics["prev_month"]:
            return PreviousBillReceived(text.strip() or None)

        logger.debug("Unhandled MQTT message: %s", topic)
        return None

    async def write_field(self, field_name: str, value: str) -> None:
        validate_write(field_name, value)
        topic = field_command_topic(self._config.topic_prefix, field_name)
        async with self._client() as client:
            await client.publish(topic, value, retain=True)
        logger.info("MQTT write %s=%s via %s", field_name, value, topic)

    async def publish(self, topic: str, payload: str, retain: bool = False) -> None:
        """Publish an arbitrary message (derived view, status)."""
        try:
            async with self._client() as client:
                await client.publish(topic, payload, retain=retain)
        except aiomqtt.MqttError as e:
            logger.error("MQTT publish failed for %s: %s", topic, e)

    async def close(self) -> None:
        # Connections are scoped to each subscription/write
        return None
