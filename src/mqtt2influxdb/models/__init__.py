"""Domain models shared by the ingestion, state and sink layers."""

from mqtt2influxdb.models.mapping import MappingConfig, MatchMode
from mqtt2influxdb.models.point import FlattenedPoint, Point, Resolution

__all__ = [
    "FlattenedPoint",
    "MappingConfig",
    "MatchMode",
    "Point",
    "Resolution",
]
