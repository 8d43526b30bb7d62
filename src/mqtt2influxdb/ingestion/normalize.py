"""Payload normalization.

MQTT devices publish either a bare scalar (``23.5``, ``ON``) or a JSON
object (Tasmota-style ``{"ENERGY": {"Power": 12}}``). Both are turned into
a flat list of :class:`FlattenedPoint` addressed by topic path.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator, Mapping
from typing import Any

from mqtt2influxdb.models import FlattenedPoint

_logger = logging.getLogger(__name__)

# Documents nested deeper than this are kept as text.
MAX_DEPTH = 32


def _decode(payload: bytes | str) -> str:
    if isinstance(payload, bytes):
        return payload.decode("utf-8", errors="replace")
    return payload


def _looks_like_object(text: str) -> bool:
    stripped = text.strip()
    return stripped.startswith("{") and stripped.endswith("}")


def _exceeds_depth(value: Any, limit: int) -> bool:
    """Whether objects and arrays in *value* nest more than *limit* levels."""
    stack: list[tuple[Any, int]] = [(value, 1)]
    while stack:
        node, depth = stack.pop()
        if isinstance(node, Mapping):
            children: Any = node.values()
        elif isinstance(node, list):
            children = node
        else:
            continue
        if depth > limit:
            return True
        stack.extend((child, depth + 1) for child in children)
    return False


def flatten_object(data: Mapping[str, Any], path: str) -> list[FlattenedPoint]:
    """Flatten a parsed JSON object below *path*.

    Nested objects are descended into; lists are leaves and are never
    recursed into, even when they hold objects. Empty objects yield nothing.
    Points come out in document order.
    """
    points: list[FlattenedPoint] = []
    stack: list[tuple[Iterator[tuple[Any, Any]], str]] = [(iter(data.items()), path)]
    while stack:
        items, prefix = stack[-1]
        for key, value in items:
            child = f"{prefix}/{key}" if prefix else str(key)
            if isinstance(value, Mapping):
                stack.append((iter(value.items()), child))
                break
            points.append(FlattenedPoint(path=child, value=value))
        else:
            stack.pop()
    return points


def flatten_payload(topic: str, payload: bytes | str) -> list[FlattenedPoint]:
    """Normalize one message into flat ``(path, value)`` points.

    A payload that is a JSON object is flattened under *topic*; anything
    else (including text that only looks like an object, or an object
    nested deeper than :data:`MAX_DEPTH`) is a single point carrying the
    raw string.
    """
    text = _decode(payload)
    if _looks_like_object(text):
        try:
            parsed = json.loads(text)
        except ValueError:
            _logger.debug("Payload on %s is not valid JSON, keeping it as text", topic)
        except RecursionError:
            _logger.debug("Payload on %s is nested too deeply to parse, keeping it as text", topic)
        else:
            if isinstance(parsed, Mapping):
                if not _exceeds_depth(parsed, MAX_DEPTH):
                    return flatten_object(parsed, topic)
                _logger.debug("Payload on %s nests deeper than %d levels, keeping it as text", topic, MAX_DEPTH)
    return [FlattenedPoint(path=topic, value=text)]
