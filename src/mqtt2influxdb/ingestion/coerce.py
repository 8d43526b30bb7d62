"""Value coercion.

Every point written to InfluxDB carries a single float ``value`` field.
This module decides that float, or refuses with :class:`CoercionError`.
"""

from __future__ import annotations

import math
import re
from collections.abc import Mapping
from typing import Any

from mqtt2influxdb.exceptions import CoercionError
from mqtt2influxdb.models import MappingConfig, MatchMode

_DECIMAL = re.compile(r"[+-]?(?:[0-9]+\.?[0-9]*|\.[0-9]+)(?:[eE][+-]?[0-9]+)?")


def parse_numeric(value: Any) -> float | None:
    """Return *value* as a finite float, or ``None``.

    Numbers pass through. Strings must be a plain ASCII decimal, optionally
    with an exponent and surrounding whitespace; digit separators and
    non-ASCII digits are rejected. Booleans are not numbers here.
    """
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        try:
            result = float(value)
        except OverflowError:
            return None
    elif isinstance(value, str):
        text = value.strip()
        if not _DECIMAL.fullmatch(text):
            return None
        result = float(text)
    else:
        return None
    if math.isnan(result) or math.isinf(result):
        return None
    return result


def _number_text(value: float) -> str:
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    if value.is_integer() and abs(value) < 1e21:
        return str(int(value))
    return repr(value)


def raw_text(value: Any) -> str:
    """Text form of a raw value as used in values-map keys.

    Matches how the values map is keyed by existing deployments: ``true``,
    ``null``, ``1`` for ``1.0``, and array items joined by commas with `null`
    items left empty.
    """
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return _number_text(value)
    if isinstance(value, list):
        return ",".join("" if item is None else raw_text(item) for item in value)
    if isinstance(value, Mapping):
        return "[object Object]"
    return str(value)


def substitution_key(matched_key: str, value: Any) -> str:
    return f"{matched_key}:{raw_text(value)}"


def coerce_value(
    raw: Any,
    *,
    path: str,
    matched_key: str,
    config: MappingConfig,
    mode: MatchMode,
) -> float:
    """Turn a raw point value into the float written to the sink.

    In suffix mode a ``"<matched_key>:<raw>"`` entry in the values map wins
    over numeric parsing. Raises :class:`CoercionError` when neither the
    substituted nor the raw value is numeric.
    """
    value = raw
    if mode is MatchMode.SUFFIX:
        key = substitution_key(matched_key, raw)
        if key in config.values_map:
            value = config.values_map[key]

    result = parse_numeric(value)
    if result is None:
        raise CoercionError(path, value)
    return result
