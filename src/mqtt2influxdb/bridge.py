"""MQTT to InfluxDB bridge service.

One service covers both matching modes; the mode only changes how the
resolver matches and whether value substitution applies.

Startup order:

1. validate configuration (no connection is attempted if it fails)
2. load local mapping files
3. fetch remote mappings, bounded by ``mapping_fetch_timeout``
4. mark mappings ready
5. open the InfluxDB sink
6. connect to MQTT, wait for CONNACK, subscribe
7. serve HTTP
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any

import aiohttp
from aiohttp import web

from mqtt2influxdb._http import build_app, start_http_server
from mqtt2influxdb._mqtt import MqttRuntime, MqttSettings
from mqtt2influxdb._redact import redact_for_log
from mqtt2influxdb._sink import InfluxSink, Sink
from mqtt2influxdb.config import BridgeConfig
from mqtt2influxdb.exceptions import CoercionError
from mqtt2influxdb.ingestion import coerce_value, flatten_payload
from mqtt2influxdb.models import Point
from mqtt2influxdb.resolver import MappingResolver
from mqtt2influxdb.state import MappingStore, ValueCache

_logger = logging.getLogger(__name__)

RuntimeFactory = Callable[[asyncio.AbstractEventLoop, Callable[[str, bytes], None]], MqttRuntime]


def _default_runtime_factory(
    loop: asyncio.AbstractEventLoop,
    on_message: Callable[[str, bytes], None],
) -> MqttRuntime:
    return MqttRuntime(loop=loop, on_message=on_message)


class Bridge:
    """Ingest MQTT messages, keep the latest values and write mapped points.

    Usage::

        async with Bridge(BridgeConfig.from_env()) as bridge:
            await stop_event.wait()
    """

    def __init__(
        self,
        config: BridgeConfig,
        *,
        sink: Sink | None = None,
        store: MappingStore | None = None,
        cache: ValueCache | None = None,
        runtime_factory: RuntimeFactory | None = None,
    ) -> None:
        self._config = config
        self._sink = sink
        self._store = store or MappingStore(
            field_map_path=config.field_map_path,
            values_map_path=config.values_map_path,
        )
        self._cache = cache or ValueCache()
        self._resolver = MappingResolver(config.match_mode)
        self._runtime_factory = runtime_factory or _default_runtime_factory
        self._runtime: MqttRuntime | None = None
        self._http_runner: web.AppRunner | None = None

    @property
    def config(self) -> BridgeConfig:
        return self._config

    @property
    def store(self) -> MappingStore:
        return self._store

    @property
    def cache(self) -> ValueCache:
        return self._cache

    @property
    def resolver(self) -> MappingResolver:
        return self._resolver

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------

    def handle_message(self, topic: str, payload: bytes | str) -> list[Point]:
        """Run one message through the pipeline and return the points written."""
        mapping = self._store.current
        mode = self._resolver.mode
        written: list[Point] = []

        for flat in flatten_payload(topic, payload):
            self._cache.update(flat.path, flat.value)

            resolution = self._resolver.resolve(flat.path, mapping)
            if resolution is None:
                continue

            try:
                value = coerce_value(
                    flat.value,
                    path=flat.path,
                    matched_key=resolution.matched_key,
                    config=mapping,
                    mode=mode,
                )
            except CoercionError as exc:
                _logger.warning("Dropped point for %s: %s", resolution.measurement, exc)
                continue

            point = Point.for_path(resolution.measurement, flat.path, value)
            self._write(point)
            written.append(point)
        return written

    def _write(self, point: Point) -> None:
        if self._sink is None:
            _logger.debug("No sink configured, dropping %s", point)
            return
        try:
            self._sink.write(point)
        except Exception:
            _logger.error("Sink rejected point %s", point, exc_info=True)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def load_mappings(self, session: aiohttp.ClientSession | None = None) -> None:
        """Local files, then the remote fetch, then mark the store ready."""
        config = self._config
        self._store.load_files(
            field_map_paths=config.field_map_candidates(),
            values_map_paths=config.values_map_candidates(),
        )

        if config.field_map_url or config.values_map_url:
            if session is not None:
                await self._fetch_remote(session)
            else:
                async with aiohttp.ClientSession() as own_session:
                    await self._fetch_remote(own_session)

        self._store.mark_ready()

    async def _fetch_remote(self, session: aiohttp.ClientSession) -> None:
        await self._store.fetch_remote(
            session,
            field_map_url=self._config.field_map_url,
            values_map_url=self._config.values_map_url,
            timeout=self._config.mapping_fetch_timeout,
        )

    async def start(self, *, serve_http: bool = True) -> None:
        config = self._config
        config.validate()
        _logger.debug("Configuration: %s", redact_for_log(config))
        _logger.info("Matching mode: %s", config.match_mode)

        await self.load_mappings()

        if self._sink is None:
            _logger.info("Connecting to %s ...", config.influxdb_url)
            self._sink = InfluxSink.from_config(config)

        loop = asyncio.get_running_loop()
        try:
            runtime = self._runtime_factory(loop, self.handle_message)
            await loop.run_in_executor(None, runtime.start, MqttSettings.from_config(config))
            self._runtime = runtime

            if serve_http:
                app = build_app(cache=self._cache, store=self._store, mode=config.match_mode)
                self._http_runner = await start_http_server(app, host=config.webui_host, port=config.webui_port)
        except BaseException:
            await self.stop()
            raise
        _logger.info("Bridge started")

    async def stop(self) -> None:
        loop = asyncio.get_running_loop()

        runner = self._http_runner
        self._http_runner = None
        if runner is not None:
            await runner.cleanup()

        runtime = self._runtime
        self._runtime = None
        if runtime is not None:
            await loop.run_in_executor(None, runtime.stop)

        sink = self._sink
        self._sink = None
        if sink is not None:
            await loop.run_in_executor(None, sink.close)
        _logger.info("Bridge stopped")

    async def __aenter__(self) -> Bridge:
        await self.start()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.stop()
