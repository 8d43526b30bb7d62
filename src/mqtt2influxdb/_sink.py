"""InfluxDB sink.

Points are handed to the influxdb-client batching write API, which queues
them and flushes from its own background thread. ``write`` therefore never
blocks ingestion on the network; failures surface only through the write
callbacks and are logged.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol

from influxdb_client import InfluxDBClient
from influxdb_client import Point as InfluxPoint
from influxdb_client.client.write_api import PointSettings, WriteOptions

from mqtt2influxdb.config import BridgeConfig
from mqtt2influxdb.models import Point

_logger = logging.getLogger(__name__)


class Sink(Protocol):
    """Structural sink interface used by the bridge.

    Tests pass a recording double; production uses :class:`InfluxSink`.
    """

    def write(self, point: Point) -> None: ...

    def close(self) -> None: ...


def to_influx_point(point: Point) -> InfluxPoint:
    record = InfluxPoint(point.measurement)
    for key, value in point.tags.items():
        record = record.tag(key, value)
    return record.field("value", float(point.value))


class InfluxSink:
    """Fire-and-forget writer for one InfluxDB bucket."""

    def __init__(
        self,
        *,
        url: str,
        token: str,
        org: str,
        bucket: str,
        default_tags: dict[str, str] | None = None,
        batch_size: int = 500,
        flush_interval_ms: int = 1000,
        client: InfluxDBClient | None = None,
    ) -> None:
        self._bucket = bucket
        self._org = org
        self._client = client or InfluxDBClient(url=url, token=token, org=org)
        self._write_api = self._client.write_api(
            write_options=WriteOptions(batch_size=batch_size, flush_interval=flush_interval_ms),
            point_settings=PointSettings(**(default_tags or {})),
            success_callback=self._on_success,
            error_callback=self._on_error,
            retry_callback=self._on_retry,
        )
        _logger.info("InfluxDB writer ready url=%s org=%s bucket=%s", url, org, bucket)

    @classmethod
    def from_config(cls, config: BridgeConfig) -> InfluxSink:
        return cls(
            url=config.influxdb_url,
            token=config.influxdb_token or "",
            org=config.influxdb_org or "",
            bucket=config.influxdb_bucket or "",
            default_tags=config.default_tags,
            batch_size=config.influxdb_batch_size,
            flush_interval_ms=config.influxdb_flush_interval_ms,
        )

    def write(self, point: Point) -> None:
        self._write_api.write(bucket=self._bucket, org=self._org, record=to_influx_point(point))

    def close(self) -> None:
        """Flush pending batches and release the HTTP client."""
        try:
            self._write_api.close()
        finally:
            self._client.close()

    @staticmethod
    def _on_success(conf: tuple[str, str, str], data: Any) -> None:
        _logger.debug("InfluxDB batch written bucket=%s", conf[0])

    @staticmethod
    def _on_error(conf: tuple[str, str, str], data: Any, exception: Exception) -> None:
        _logger.error("InfluxDB write failed bucket=%s: %s", conf[0], exception)

    @staticmethod
    def _on_retry(conf: tuple[str, str, str], data: Any, exception: Exception) -> None:
        _logger.warning("InfluxDB write retry bucket=%s: %s", conf[0], exception)
