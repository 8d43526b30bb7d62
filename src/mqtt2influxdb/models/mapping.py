"""Mapping configuration model.

A :class:`MappingConfig` is the unit the mapping store swaps. Both maps
travel together so a reader can never combine the field map of one
generation with the values map of another.
"""

from __future__ import annotations

from collections.abc import Mapping
from enum import StrEnum
from types import MappingProxyType
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class MatchMode(StrEnum):
    EXACT = "exact"
    SUFFIX = "suffix"


class MappingConfig(BaseModel):
    """Immutable (field map, values map) pair.

    Both maps are read-only views over private copies, so a config handed
    out by the store cannot be changed in place.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    field_map: Mapping[str, str] = Field(
        default_factory=dict,
        description="Topic (exact mode) or topic suffix (suffix mode) -> measurement name.",
    )
    values_map: Mapping[str, Any] = Field(
        default_factory=dict,
        description="'<matchKey>:<rawValue>' -> substituted field value.",
    )

    @field_validator("field_map", "values_map", mode="after")
    @classmethod
    def _read_only(cls, value: Mapping[str, Any]) -> Mapping[str, Any]:
        return MappingProxyType(dict(value))

    def with_field_map(self, field_map: Mapping[str, str]) -> MappingConfig:
        return MappingConfig(field_map=field_map, values_map=self.values_map)

    def with_values_map(self, values_map: Mapping[str, Any]) -> MappingConfig:
        return MappingConfig(field_map=self.field_map, values_map=values_map)
