"""Tests for MQTT topics, message decoding and the view publisher."""

from __future__ import annotations

import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import aiomqtt
import pytest

from energy_monitor.config.schema import MQTTConfig
from energy_monitor.control.state import ControlState
from energy_monitor.mqtt.publisher import ViewPublisher
from energy_monitor.mqtt.topics import build_topics, field_command_topic
from energy_monitor.mqtt.transport import MQTTTransport
from energy_monitor.pipeline.view import DerivedView, TransportStatus
from energy_monitor.transport.base import (
    PreviousBillReceived,
    SnapshotReceived,
    TransportUnavailable,
)


# ── Topics Tests ──────────────────────────────────────────────


class TestTopics:
    def test_default_prefix(self) -> None:
        topics = build_topics()
        assert topics["snapshot"] == "energy_monitor/snapshot"
        assert topics["prev_month"] == "energy_monitor/prev_month"
        assert topics["derived"] == "energy_monitor/derived"
        assert topics["status"] == "energy_monitor/status"

    def test_custom_prefix(self) -> None:
        assert build_topics("lab")["snapshot"] == "lab/snapshot"

    def test_field_command_topic(self) -> None:
        assert field_command_topic("energy_monitor", "fan_manual") == "energy_monitor/set/fan_manual"


# ── Decoding Tests ────────────────────────────────────────────


class TestDecode:
    @pytest.fixture
    def transport(self) -> MQTTTransport:
        return MQTTTransport(MQTTConfig(topic_prefix="home"))

    def test_snapshot(self, transport: MQTTTransport) -> None:
        event = transport.decode("home/snapshot", b'{"current": 0.25, "mode": "ai"}')
        assert isinstance(event, SnapshotReceived)
        assert event.data == {"current": 0.25, "mode": "ai"}

    def test_invalid_json_snapshot_is_empty(self, transport: MQTTTransport) -> None:
        event = transport.decode("home/snapshot", b"not json")
        assert isinstance(event, SnapshotReceived)
        assert event.data == {}

    def test_previous_bill(self, transport: MQTTTransport) -> None:
        assert transport.decode("home/prev_month", b" 123.4 ") == PreviousBillReceived("123.4")

    def test_empty_previous_bill(self, transport: MQTTTransport) -> None:
        assert transport.decode("home/prev_month", b"") == PreviousBillReceived(None)

    def test_unknown_topic(self, transport: MQTTTransport) -> None:
        assert transport.decode("home/other", b"1") is None

    @pytest.mark.asyncio
    async def test_invalid_write_fails_before_connecting(self, transport: MQTTTransport) -> None:
        with pytest.raises(ValueError):
            await transport.write_field("mode", "turbo")


# ── Subscription Tests ────────────────────────────────────────


def _mock_client(*messages: SimpleNamespace) -> MagicMock:
    async def _messages():
        for message in messages:
            yield message

    client = MagicMock()
    client.__aenter__.return_value = client
    client.__aexit__.return_value = False
    client.subscribe = AsyncMock()
    client.publish = AsyncMock()
    client.messages = _messages()
    return client


class TestSubscription:
    @pytest.mark.asyncio
    async def test_events_subscribe_and_decode(self) -> None:
        client = _mock_client(
            SimpleNamespace(topic="home/prev_month", payload=b"95.5"),
            SimpleNamespace(topic="home/other", payload=b"ignored"),
            SimpleNamespace(topic="home/snapshot", payload=b'{"current": "0.25"}'),
        )
        transport = MQTTTransport(MQTTConfig(topic_prefix="home"))

        with patch("energy_monitor.mqtt.transport.aiomqtt.Client", return_value=client):
            events = [event async for event in transport.events()]

        assert [c.args[0] for c in client.subscribe.await_args_list] == [
            "home/snapshot", "home/prev_month",
        ]
        assert events[0] == PreviousBillReceived("95.5")
        assert isinstance(events[1], SnapshotReceived)
        assert events[1].data == {"current": "0.25"}
        assert len(events) == 2

    @pytest.mark.asyncio
    async def test_broker_error_yields_unavailable(self) -> None:
        client = _mock_client()
        client.subscribe.side_effect = aiomqtt.MqttError("connection refused")
        transport = MQTTTransport(MQTTConfig())

        with patch("energy_monitor.mqtt.transport.aiomqtt.Client", return_value=client):
            events = [event async for event in transport.events()]

        assert len(events) == 1
        assert isinstance(events[0], TransportUnavailable)
        assert "connection refused" in events[0].reason

    @pytest.mark.asyncio
    async def test_write_field_publishes_retained(self) -> None:
        client = _mock_client()
        transport = MQTTTransport(MQTTConfig(topic_prefix="home"))

        with patch("energy_monitor.mqtt.transport.aiomqtt.Client", return_value=client):
            await transport.write_field("fan_manual", "ON")

        client.publish.assert_awaited_once_with("home/set/fan_manual", "ON", retain=True)

    @pytest.mark.asyncio
    async def test_publish_error_is_logged_not_raised(self) -> None:
        client = _mock_client()
        client.publish.side_effect = aiomqtt.MqttError("not connected")
        transport = MQTTTransport(MQTTConfig())

        with patch("energy_monitor.mqtt.transport.aiomqtt.Client", return_value=client):
            await transport.publish("energy_monitor/status", "online", retain=True)

        client.publish.assert_awaited_once()


# ── Publisher Tests ────────────────────────────────────────────


def _view(sequence: int) -> DerivedView:
    return DerivedView(sequence=sequence, status=TransportStatus.UNAVAILABLE, control=ControlState())


class TestViewPublisher:
    @pytest.mark.asyncio
    async def test_publish_view(self) -> None:
        publish_fn = AsyncMock()
        publisher = ViewPublisher(publish_fn, "home")
        await publisher.publish_view(_view(1))

        topic, payload, retain = publish_fn.await_args.args
        assert topic == "home/derived"
        assert retain is True
        data = json.loads(payload)
        assert data["sequence"] == 1
        assert data["status"] == "unavailable"
        assert data["metrics"] is None

    @pytest.mark.asyncio
    async def test_stale_view_skipped(self) -> None:
        publish_fn = AsyncMock()
        publisher = ViewPublisher(publish_fn)
        await publisher.publish_view(_view(2))
        await publisher.publish_view(_view(1))
        await publisher.publish_view(_view(2))
        assert publish_fn.await_count == 1
        assert publisher.last_sequence == 2

    @pytest.mark.asyncio
    async def test_publish_status(self) -> None:
        publish_fn = AsyncMock()
        publisher = ViewPublisher(publish_fn)
        await publisher.publish_status(online=False)
        publish_fn.assert_awaited_once_with("energy_monitor/status", "offline", True)
