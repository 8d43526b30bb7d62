"""Ingestion layer.

Turns raw MQTT payloads into flattened points and coerces their values
into numeric fields. Nothing in here touches shared state.
"""

from mqtt2influxdb.ingestion.coerce import coerce_value, parse_numeric
from mqtt2influxdb.ingestion.normalize import flatten_object, flatten_payload

__all__ = [
    "coerce_value",
    "flatten_object",
    "flatten_payload",
    "parse_numeric",
]
