"""mqtt2influxdb - Bridge MQTT telemetry topics into InfluxDB."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("mqtt2influxdb")
except PackageNotFoundError:
    __version__ = "0+local"

from mqtt2influxdb.bridge import Bridge
from mqtt2influxdb.config import BridgeConfig
from mqtt2influxdb.exceptions import (
    BridgeConfigError,
    BridgeError,
    BridgeTransportError,
    CoercionError,
    MappingError,
    MappingFetchError,
    MappingLoadError,
    MappingPersistError,
)
from mqtt2influxdb.ingestion import coerce_value, flatten_payload
from mqtt2influxdb.models import FlattenedPoint, MappingConfig, MatchMode, Point, Resolution
from mqtt2influxdb.resolver import MappingResolver
from mqtt2influxdb.state import MappingStore, ValueCache

__all__ = [
    "__version__",
    "Bridge",
    "BridgeConfig",
    "BridgeConfigError",
    "BridgeError",
    "BridgeTransportError",
    "CoercionError",
    "FlattenedPoint",
    "MappingConfig",
    "MappingError",
    "MappingFetchError",
    "MappingLoadError",
    "MappingPersistError",
    "MappingResolver",
    "MappingStore",
    "MatchMode",
    "Point",
    "Resolution",
    "ValueCache",
    "coerce_value",
    "flatten_payload",
]
