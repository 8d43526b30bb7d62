"""Hierarchical latest-value cache."""

from __future__ import annotations

import copy
import logging
import threading
from typing import Any

_logger = logging.getLogger(__name__)


def _split(path: str) -> list[str]:
    return path.split("/")


class ValueCache:
    """Tree of the most recent value per topic path.

    Interior nodes are dicts keyed by path segment, leaves hold the value.
    Shape changes are last-write-wins: a scalar standing where a subtree is
    needed is replaced by an empty node, and a scalar written over a
    subtree replaces it.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._tree: dict[str, Any] = {}

    def update(self, path: str, value: Any) -> None:
        segments = _split(path)
        with self._lock:
            node = self._tree
            for segment in segments[:-1]:
                child = node.get(segment)
                if not isinstance(child, dict):
                    if child is not None:
                        _logger.debug("Cache leaf at segment %r of %s replaced by a subtree", segment, path)
                    child = {}
                    node[segment] = child
                node = child
            leaf = segments[-1]
            if isinstance(node.get(leaf), dict) and not isinstance(value, dict):
                _logger.debug("Cache subtree at %s replaced by a value", path)
            node[leaf] = copy.deepcopy(value)

    def get(self, path: str) -> Any:
        """Value stored at *path*, or ``None`` when the path is unknown."""
        with self._lock:
            node: Any = self._tree
            for segment in _split(path):
                if not isinstance(node, dict) or segment not in node:
                    return None
                node = node[segment]
            return copy.deepcopy(node)

    def snapshot(self) -> dict[str, Any]:
        """Point-in-time deep copy of the whole tree."""
        with self._lock:
            return copy.deepcopy(self._tree)

    def __len__(self) -> int:
        def count(node: Any) -> int:
            if not isinstance(node, dict):
                return 1
            return sum(count(child) for child in node.values())

        with self._lock:
            return count(self._tree)
