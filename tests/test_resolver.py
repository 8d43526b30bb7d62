from __future__ import annotations

import logging

import pytest

from mqtt2influxdb.models import MappingConfig, MatchMode, Resolution
from mqtt2influxdb.resolver import MappingResolver


def test_exact_mode_matches_full_path_only() -> None:
    resolver = MappingResolver(MatchMode.EXACT)
    config = MappingConfig(field_map={"home/kitchen/temp": "kitchen_temp"})

    assert resolver.resolve("home/kitchen/temp", config) == Resolution("kitchen_temp", "home/kitchen/temp")
    assert resolver.resolve("other/home/kitchen/temp", config) is None


def test_suffix_mode_first_declared_match_wins() -> None:
    resolver = MappingResolver(MatchMode.SUFFIX)
    config = MappingConfig(field_map={"temp": "M1", "room/temp": "M2"})

    assert resolver.resolve("kitchen/room/temp", config) == Resolution("M1", "temp")


def test_suffix_mode_declaration_order_is_respected() -> None:
    resolver = MappingResolver(MatchMode.SUFFIX)
    config = MappingConfig(field_map={"room/temp": "M2", "temp": "M1"})

    assert resolver.resolve("kitchen/room/temp", config) == Resolution("M2", "room/temp")


def test_suffix_mode_miss_declines() -> None:
    resolver = MappingResolver(MatchMode.SUFFIX)
    config = MappingConfig(field_map={"temp": "M1"})

    assert resolver.resolve("kitchen/humidity", config) is None
    assert resolver.reported == frozenset({"kitchen/humidity"})


def test_unmapped_topic_reported_once(caplog: pytest.LogCaptureFixture) -> None:
    resolver = MappingResolver(MatchMode.EXACT)
    config = MappingConfig()

    with caplog.at_level(logging.INFO, logger="mqtt2influxdb.resolver"):
        for _ in range(5):
            assert resolver.resolve("nobody/cares", config) is None

    messages = [r.getMessage() for r in caplog.records if "nobody/cares" in r.getMessage()]
    assert messages == ["Ignored topic nobody/cares"]
    assert resolver.reported == frozenset({"nobody/cares"})
