"""Custom exception hierarchy for mqtt2influxdb."""

from __future__ import annotations

from typing import Any


class BridgeError(Exception):
    """Base exception for all mqtt2influxdb errors."""


class BridgeConfigError(BridgeError):
    """Invalid or missing configuration."""


class BridgeTransportError(BridgeError):
    """MQTT broker connection failed or timed out."""

    def __init__(
        self,
        message: str,
        *,
        host: str = "",
        port: int | None = None,
    ) -> None:
        self.host = host
        self.port = port
        super().__init__(message)


class MappingError(BridgeError):
    """Base for mapping load/fetch/persist failures."""

    def __init__(self, message: str, *, source: str = "") -> None:
        self.source = source
        super().__init__(message)


class MappingLoadError(MappingError):
    """Mapping content is unreadable or not a flat JSON object.

    Raised for local files at startup and for replacement bodies received
    over HTTP.
    """


class MappingFetchError(MappingError):
    """Remote mapping fetch failed (network, non-200, invalid JSON)."""


class MappingPersistError(MappingError):
    """Replacement mapping could not be written to disk.

    The in-memory mapping is left untouched when this is raised.
    """


class CoercionError(BridgeError):
    """Raw value is not numeric and has no substitution entry."""

    def __init__(self, path: str, raw: Any) -> None:
        self.path = path
        self.raw = raw
        super().__init__(f"Value {raw!r} on {path} is not numeric and has no substitution")
