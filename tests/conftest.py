from __future__ import annotations

from dataclasses import dataclass
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from paho.mqtt.enums import MQTTErrorCode

from thermodash.models import SessionConfig
from thermodash.registry import DeviceRegistry
from thermodash.session import SessionManager


@dataclass(frozen=True)
class FakeReason:
    """Stand-in for paho's ReasonCode."""

    is_failure: bool
    text: str = "Success"

    def __str__(self) -> str:
        return self.text


OK = FakeReason(is_failure=False)


class FakeClients:
    """Client factory recording every paho client the manager creates.

    With `auto_connack` set, loop_start() immediately delivers that CONNACK.
    """

    def __init__(self) -> None:
        self.created: list[MagicMock] = []
        self.auto_connack: FakeReason | None = None

    def __call__(self, config: SessionConfig) -> MagicMock:
        client = MagicMock(name=f"client-{len(self.created)}")
        client.config = config
        client.disconnect.return_value = MQTTErrorCode.MQTT_ERR_SUCCESS
        client.subscribe.return_value = (MQTTErrorCode.MQTT_ERR_SUCCESS, 1)

        def loop_start() -> MQTTErrorCode:
            if self.auto_connack is not None:
                client.on_connect(client, None, MagicMock(), self.auto_connack)
            return MQTTErrorCode.MQTT_ERR_SUCCESS

        client.loop_start.side_effect = loop_start
        self.created.append(client)
        return client

    @property
    def last(self) -> MagicMock:
        return self.created[-1]


@pytest.fixture
def registry() -> DeviceRegistry:
    return DeviceRegistry()


@pytest.fixture
def clients() -> FakeClients:
    return FakeClients()


@pytest.fixture
def manager(registry: DeviceRegistry, clients: FakeClients) -> SessionManager:
    return SessionManager(registry, client_factory=clients)


@pytest.fixture
def config() -> SessionConfig:
    return SessionConfig(host="broker.test", port=8884, client_id="test-client", username="u", password="p")


@pytest.fixture
def message():
    """Build a paho-like message."""

    def _message(topic: str, payload: bytes | str) -> SimpleNamespace:
        data = payload.encode() if isinstance(payload, str) else payload
        return SimpleNamespace(topic=topic, payload=data)

    return _message
