"""Value objects flowing through the ingestion pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class FlattenedPoint:
    """One leaf of a normalized payload.

    ``path`` is the message topic with any nested object keys appended as
    extra ``/`` segments. ``value`` is a scalar, ``None`` or an opaque list.
    """

    path: str
    value: Any


@dataclass(frozen=True)
class Resolution:
    """Outcome of a successful topic lookup."""

    measurement: str
    matched_key: str


@dataclass(frozen=True)
class Point:
    """A finished measurement ready for the time-series sink."""

    measurement: str
    value: float
    tags: dict[str, str] = field(default_factory=dict)

    @classmethod
    def for_path(cls, measurement: str, path: str, value: float) -> Point:
        return cls(measurement=measurement, value=value, tags={"topic": path})
