"""Topic to measurement resolution."""

from __future__ import annotations

import logging
import threading
from collections.abc import Mapping

from mqtt2influxdb.models import MappingConfig, MatchMode, Resolution

_logger = logging.getLogger(__name__)


def match_exact(path: str, field_map: Mapping[str, str]) -> Resolution | None:
    measurement = field_map.get(path)
    if measurement is None:
        return None
    return Resolution(measurement=measurement, matched_key=path)


def match_suffix(path: str, field_map: Mapping[str, str]) -> Resolution | None:
    """First key, in declaration order, that *path* ends with."""
    for key, measurement in field_map.items():
        if path.endswith(key):
            return Resolution(measurement=measurement, matched_key=key)
    return None


class MappingResolver:
    """Resolve flattened paths against a mapping config.

    Paths that do not resolve are remembered and logged the first time
    they are seen; declining is the normal outcome for topics nobody
    mapped.
    """

    def __init__(self, mode: MatchMode = MatchMode.EXACT) -> None:
        self._mode = mode
        self._match = match_suffix if mode is MatchMode.SUFFIX else match_exact
        self._reported: set[str] = set()
        self._lock = threading.Lock()

    @property
    def mode(self) -> MatchMode:
        return self._mode

    @property
    def reported(self) -> frozenset[str]:
        with self._lock:
            return frozenset(self._reported)

    def resolve(self, path: str, config: MappingConfig) -> Resolution | None:
        resolution = self._match(path, config.field_map)
        if resolution is None:
            self._report(path)
        return resolution

    def _report(self, path: str) -> None:
        with self._lock:
            if path in self._reported:
                return
            self._reported.add(path)
        _logger.info("Ignored topic %s", path)
