from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any

import pytest

from mqtt2influxdb._mqtt import MqttRuntime, MqttSettings
from mqtt2influxdb.exceptions import BridgeTransportError


@dataclass
class _ReasonCode:
    value: int

    def __str__(self) -> str:
        return "Success" if self.value == 0 else "Not authorized"


@dataclass
class _Message:
    topic: str
    payload: bytes


class FakeClient:
    instances: list[FakeClient] = []
    connect_error: Exception | None = None
    reason: int = 0

    def __init__(self, **kwargs: Any) -> None:
        self.kwargs = kwargs
        self.credentials: tuple[str, str | None] | None = None
        self.subscribed: list[str] = []
        self.disconnected = False
        self.loop_stopped = False
        self.on_connect: Any = None
        self.on_message: Any = None
        self.on_disconnect: Any = None
        FakeClient.instances.append(self)

    def enable_logger(self, _logger: Any) -> None:
        return None

    def username_pw_set(self, username: str, password: str | None) -> None:
        self.credentials = (username, password)

    def reconnect_delay_set(self, **_kwargs: Any) -> None:
        return None

    def connect(self, host: str, port: int, keepalive: int) -> None:
        if FakeClient.connect_error is not None:
            raise FakeClient.connect_error

    def loop_start(self) -> None:
        self.on_connect(self, None, {}, _ReasonCode(FakeClient.reason), None)

    def subscribe(self, topic: str, qos: int = 0) -> None:
        self.subscribed.append(topic)

    def disconnect(self) -> None:
        self.disconnected = True

    def loop_stop(self) -> None:
        self.loop_stopped = True


@pytest.fixture
def fake_client(monkeypatch: pytest.MonkeyPatch) -> type[FakeClient]:
    FakeClient.instances = []
    FakeClient.connect_error = None
    FakeClient.reason = 0
    monkeypatch.setattr("mqtt2influxdb._mqtt.mqtt.Client", FakeClient)
    return FakeClient


def _settings(**overrides: Any) -> MqttSettings:
    base: dict[str, Any] = {
        "host": "broker",
        "port": 1883,
        "client_id": "mqtt2influxdb",
        "subscriptions": ("tele/#", "stat/#"),
        "connect_timeout": 0.5,
    }
    base.update(overrides)
    return MqttSettings(**base)


@pytest.mark.asyncio
async def test_start_subscribes_after_connack_and_forwards_messages(fake_client: type[FakeClient]) -> None:
    loop = asyncio.get_running_loop()
    received: list[tuple[str, bytes]] = []
    runtime = MqttRuntime(loop=loop, on_message=lambda topic, payload: received.append((topic, payload)))

    runtime.start(_settings(username="user", password="pw"))

    client = fake_client.instances[0]
    assert client.subscribed == ["tele/#", "stat/#"]
    assert client.credentials == ("user", "pw")
    assert runtime.is_running and runtime.is_connected

    client.on_message(client, None, _Message(topic="tele/a", payload=b"1"))
    await asyncio.sleep(0)
    assert received == [("tele/a", b"1")]

    runtime.stop()
    assert client.disconnected and client.loop_stopped
    assert runtime.is_running is False


@pytest.mark.asyncio
async def test_connect_error_is_fatal(fake_client: type[FakeClient]) -> None:
    fake_client.connect_error = ConnectionRefusedError("refused")
    runtime = MqttRuntime(loop=asyncio.get_running_loop(), on_message=lambda *_: None)

    with pytest.raises(BridgeTransportError) as excinfo:
        runtime.start(_settings())

    assert excinfo.value.host == "broker"
    assert runtime.is_running is False


@pytest.mark.asyncio
async def test_refused_connack_is_fatal(fake_client: type[FakeClient]) -> None:
    fake_client.reason = 5
    runtime = MqttRuntime(loop=asyncio.get_running_loop(), on_message=lambda *_: None)

    with pytest.raises(BridgeTransportError, match="Not authorized"):
        runtime.start(_settings())

    assert fake_client.instances[0].subscribed == []
    assert fake_client.instances[0].loop_stopped is True
