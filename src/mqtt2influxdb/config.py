"""Service configuration for mqtt2influxdb."""

from __future__ import annotations

import dataclasses
import os
from pathlib import Path
from typing import Any

from mqtt2influxdb.exceptions import BridgeConfigError
from mqtt2influxdb.models import MatchMode


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


def parse_default_tags(value: str | None) -> dict[str, str]:
    """Parse ``key:value|key:value`` into a tag dict.

    Empty segments are skipped. A segment without ``:`` is rejected.
    """
    tags: dict[str, str] = {}
    if not value:
        return tags
    for segment in value.split("|"):
        segment = segment.strip()
        if not segment:
            continue
        key, sep, tag_value = segment.partition(":")
        if not sep or not key.strip():
            raise BridgeConfigError(f"Malformed default tag {segment!r}, expected key:value")
        tags[key.strip()] = tag_value.strip()
    return tags


def parse_subscriptions(value: str | None) -> tuple[str, ...]:
    if not value:
        return ()
    return tuple(sub.strip() for sub in value.split("|") if sub.strip())


@dataclasses.dataclass(frozen=True)
class BridgeConfig:
    """Bridge configuration.

    Parameters
    ----------
    influxdb_token : str or None
        InfluxDB API token. Required.
    influxdb_org : str or None
        InfluxDB organization. Required.
    influxdb_bucket : str or None
        InfluxDB bucket points are written to. Required.
    influxdb_url : str
        InfluxDB base URL.
    default_tags : dict
        Tags added to every point on top of ``topic``.
    influxdb_batch_size : int
        Points per batch handed to the InfluxDB write API.
    influxdb_flush_interval_ms : int
        Maximum time a partial batch is held before it is flushed.
    mqtt_server, mqtt_port : str, int
        Broker address.
    mqtt_client_id : str
        MQTT client identifier.
    mqtt_user, mqtt_password : str or None
        Broker credentials, only sent when set.
    mqtt_subscriptions : tuple of str
        Topic filters subscribed to once connected.
    mqtt_keepalive : int
        MQTT keepalive in seconds.
    mqtt_connect_timeout : float
        Seconds to wait for the broker CONNACK before giving up.
    match_mode : MatchMode
        ``exact`` looks topics up verbatim, ``suffix`` matches the first
        field-map key the topic ends with and enables value substitution.
    field_map_file, values_map_file : str
        File names of the persisted mappings.
    data_dir : Path
        Directory the mappings are persisted to. It is also the last
        local file candidate read at startup.
    field_map_url, values_map_url : str or None
        Optional remote mappings fetched once at startup.
    mapping_fetch_timeout : float
        Upper bound for the remote fetch before ingestion starts.
    webui_host, webui_port : str, int
        Bind address of the snapshot/config HTTP server.
    debug : bool
        Verbose logging.
    """

    influxdb_token: str | None = None
    influxdb_org: str | None = None
    influxdb_bucket: str | None = None
    influxdb_url: str = "http://localhost:8086"
    default_tags: dict[str, str] = dataclasses.field(
        default_factory=lambda: {"clientId": "mqtt2influxdb"},
    )
    influxdb_batch_size: int = 500
    influxdb_flush_interval_ms: int = 1000
    mqtt_server: str = "127.0.0.1"
    mqtt_port: int = 1883
    mqtt_client_id: str = "mqtt2influxdb"
    mqtt_user: str | None = None
    mqtt_password: str | None = None
    mqtt_subscriptions: tuple[str, ...] = ("mqtt2redis/#",)
    mqtt_keepalive: int = 15
    mqtt_connect_timeout: float = 10.0
    match_mode: MatchMode = MatchMode.EXACT
    field_map_file: str = "fieldMap.json"
    values_map_file: str = "valuesMap.json"
    data_dir: Path = Path("/mqtt2influxdb")
    field_map_url: str | None = None
    values_map_url: str | None = None
    mapping_fetch_timeout: float = 10.0
    webui_host: str = "0.0.0.0"
    webui_port: int = 38901
    debug: bool = False

    @property
    def field_map_path(self) -> Path:
        """Persisted field map location."""
        return self.data_dir / self.field_map_file

    @property
    def values_map_path(self) -> Path:
        """Persisted values map location."""
        return self.data_dir / self.values_map_file

    def field_map_candidates(self) -> list[Path]:
        """Local field map files in load order; later files override earlier ones."""
        return [Path.cwd() / self.field_map_file, self.field_map_path]

    def values_map_candidates(self) -> list[Path]:
        """Local values map files in load order; later files override earlier ones."""
        return [Path.cwd() / self.values_map_file, self.values_map_path]

    def validate(self) -> None:
        """Check the settings required before any connection is attempted.

        Raises
        ------
        BridgeConfigError
            Listing every missing InfluxDB credential at once.
        """
        missing = [
            env_name
            for env_name, value in (
                ("INFLUXDB_API_TOKEN", self.influxdb_token),
                ("INFLUXDB_ORG", self.influxdb_org),
                ("INFLUXDB_BUCKET", self.influxdb_bucket),
            )
            if not value
        ]
        if missing:
            raise BridgeConfigError(f"Missing required settings: {', '.join(missing)}")
        if not self.mqtt_subscriptions:
            raise BridgeConfigError("MQTT_SUB must name at least one topic filter")

    @classmethod
    def from_env(cls, **overrides: Any) -> BridgeConfig:
        """Create configuration from environment variables.

        Explicit keyword arguments override environment values.

        Raises
        ------
        BridgeConfigError
            When a numeric setting or the default tag list is malformed.
        """
        env = os.environ

        _ENV_STR_MAP = {
            "INFLUXDB_API_TOKEN": "influxdb_token",
            "INFLUXDB_ORG": "influxdb_org",
            "INFLUXDB_BUCKET": "influxdb_bucket",
            "INFLUXDB_URL": "influxdb_url",
            "MQTT_SERVER": "mqtt_server",
            "MQTT_CLIENT_ID": "mqtt_client_id",
            "MQTT_USER": "mqtt_user",
            "MQTT_PASS": "mqtt_password",
            "FIELD_MAP_FILE": "field_map_file",
            "VALUES_MAP_FILE": "values_map_file",
            "MQTT_INFLUXDB_FIELD_MAP_FILE_URL": "field_map_url",
            "MQTT_INFLUXDB_VALUES_MAP_FILE_URL": "values_map_url",
            "WEBUI_HOST": "webui_host",
        }
        _ENV_NUMERIC_MAP: dict[str, tuple[str, type]] = {
            "MQTT_PORT": ("mqtt_port", int),
            "MQTT_KEEPALIVE": ("mqtt_keepalive", int),
            "MQTT_CONNECT_TIMEOUT": ("mqtt_connect_timeout", float),
            "INFLUXDB_BATCH_SIZE": ("influxdb_batch_size", int),
            "INFLUXDB_FLUSH_INTERVAL_MS": ("influxdb_flush_interval_ms", int),
            "MAPPING_FETCH_TIMEOUT": ("mapping_fetch_timeout", float),
            "WEBUI_PORT": ("webui_port", int),
        }

        config_kwargs: dict[str, Any] = {}
        for env_key, field_name in _ENV_STR_MAP.items():
            val = env.get(env_key)
            if val:
                config_kwargs[field_name] = val

        for env_key, (field_name, kind) in _ENV_NUMERIC_MAP.items():
            val = env.get(env_key)
            if val is None or field_name in overrides:
                continue
            try:
                config_kwargs[field_name] = kind(val)
            except ValueError as exc:
                raise BridgeConfigError(f"{env_key} must be a number, got {val!r}") from exc

        if "default_tags" not in overrides:
            config_kwargs["default_tags"] = parse_default_tags(
                env.get("INFLUXDB_DEFAULT_TAGS", "clientId:mqtt2influxdb"),
            )

        sub_env = env.get("MQTT_SUB")
        if sub_env is not None and "mqtt_subscriptions" not in overrides:
            config_kwargs["mqtt_subscriptions"] = parse_subscriptions(sub_env)

        data_dir_env = env.get("DATA_DIR")
        if data_dir_env and "data_dir" not in overrides:
            config_kwargs["data_dir"] = Path(data_dir_env)

        if "match_mode" not in overrides:
            suffix = _env_bool(env.get("ONLY_MATCH_SUFFIXES"), False)
            config_kwargs["match_mode"] = MatchMode.SUFFIX if suffix else MatchMode.EXACT

        if "debug" not in overrides:
            config_kwargs["debug"] = _env_bool(env.get("DEBUG"), False)

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
