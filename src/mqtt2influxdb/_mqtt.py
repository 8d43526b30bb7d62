"""MQTT transport runtime."""

from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any, cast

import paho.mqtt.client as mqtt

from mqtt2influxdb.config import BridgeConfig
from mqtt2influxdb.exceptions import BridgeTransportError


@dataclass(frozen=True)
class MqttSettings:
    """Broker connection details."""

    host: str
    port: int
    client_id: str
    subscriptions: tuple[str, ...]
    username: str | None = None
    password: str | None = None
    keepalive: int = 15
    connect_timeout: float = 10.0

    @classmethod
    def from_config(cls, config: BridgeConfig) -> MqttSettings:
        return cls(
            host=config.mqtt_server,
            port=config.mqtt_port,
            client_id=config.mqtt_client_id,
            subscriptions=tuple(config.mqtt_subscriptions),
            username=config.mqtt_user,
            password=config.mqtt_password,
            keepalive=config.mqtt_keepalive,
            connect_timeout=config.mqtt_connect_timeout,
        )


class MqttRuntime:
    """Threaded paho-mqtt runtime that delivers messages onto an asyncio loop.

    ``start`` blocks until the broker acknowledges the connection, so it is
    meant to be run in an executor. Subscriptions are issued from
    ``on_connect`` and therefore repeated after every automatic reconnect.
    """

    def __init__(
        self,
        *,
        loop: asyncio.AbstractEventLoop,
        on_message: Callable[[str, bytes], None],
        logger: logging.Logger | None = None,
    ) -> None:
        self._loop = loop
        self._on_message = on_message
        self._logger = logger or logging.getLogger(__name__)
        self._client: mqtt.Client | None = None
        self._running = False
        self._connected = threading.Event()
        self._connect_error: str | None = None
        self._subscriptions: Sequence[str] = ()

    @property
    def is_running(self) -> bool:
        """Whether the MQTT runtime is actively running."""
        return self._running

    @property
    def is_connected(self) -> bool:
        return self._connected.is_set()

    def start(self, settings: MqttSettings) -> None:
        """Connect, wait for CONNACK and subscribe.

        Raises
        ------
        BridgeTransportError
            The broker is unreachable, refused the connection, or did not
            answer within ``settings.connect_timeout``.
        """
        self.stop()
        self._logger.info("Connecting to MQTT server %s:%s ...", settings.host, settings.port)

        client = mqtt.Client(
            callback_api_version=cast(Any, mqtt).CallbackAPIVersion.VERSION2,
            client_id=settings.client_id,
            protocol=mqtt.MQTTv311,
        )
        client.enable_logger(self._logger)
        if settings.username:
            client.username_pw_set(settings.username, settings.password)
        client.reconnect_delay_set(min_delay=1, max_delay=30)

        self._subscriptions = settings.subscriptions
        self._connected.clear()
        self._connect_error = None

        def on_connect(
            c: mqtt.Client,
            _userdata: Any,
            _flags: Any,
            reason_code: Any,
            _properties: Any,
        ) -> None:
            if reason_code.value != 0:
                self._connect_error = str(reason_code)
                self._logger.warning("MQTT connect failed: %s", reason_code)
                self._connected.set()
                return
            self._logger.info("MQTT server connected")
            for topic_filter in self._subscriptions:
                self._logger.info("Subscribing to %s", topic_filter)
                c.subscribe(topic_filter, qos=0)
            self._connected.set()

        def on_message(_c: mqtt.Client, _userdata: Any, msg: mqtt.MQTTMessage) -> None:
            self._loop.call_soon_threadsafe(self._on_message, msg.topic, bytes(msg.payload))

        def on_disconnect(
            _client: mqtt.Client,
            _userdata: Any,
            _disconnect_flags: Any,
            reason_code: Any,
            _properties: Any,
        ) -> None:
            if self._running:
                self._logger.warning("MQTT disconnected: %s, reconnecting", reason_code)

        client.on_connect = on_connect
        client.on_message = on_message
        client.on_disconnect = on_disconnect

        try:
            client.connect(settings.host, settings.port, keepalive=settings.keepalive)
        except OSError as exc:
            raise BridgeTransportError(
                f"Cannot connect to MQTT server {settings.host}:{settings.port}: {exc}",
                host=settings.host,
                port=settings.port,
            ) from exc
        client.loop_start()
        self._client = client
        self._running = True

        if not self._connected.wait(settings.connect_timeout) or self._connect_error is not None:
            reason = self._connect_error or f"no CONNACK within {settings.connect_timeout}s"
            self.stop()
            raise BridgeTransportError(
                f"MQTT server {settings.host}:{settings.port} refused connection: {reason}",
                host=settings.host,
                port=settings.port,
            )
        self._logger.debug("MQTT network loop started")

    def stop(self) -> None:
        """Stop and disconnect current MQTT client if running."""
        client = self._client
        self._client = None
        was_running = self._running
        self._running = False
        self._connected.clear()

        if client is None:
            return
        try:
            if was_running:
                self._logger.debug("MQTT disconnect requested")
                client.disconnect()
        finally:
            client.loop_stop()
            self._logger.debug("MQTT network loop stopped")
