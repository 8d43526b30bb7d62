from __future__ import annotations

import itertools
import json

import pytest

from mqtt2influxdb.ingestion import normalize
from mqtt2influxdb.ingestion.normalize import MAX_DEPTH, flatten_object, flatten_payload
from mqtt2influxdb.models import FlattenedPoint


def test_scalar_payload_is_single_point_on_topic() -> None:
    points = flatten_payload("home/kitchen/temp", b"23.5")

    assert points == [FlattenedPoint(path="home/kitchen/temp", value="23.5")]


def test_nested_object_paths_keep_every_ancestor() -> None:
    payload = b'{"ENERGY": {"Power": 12, "Today": {"Total": 1.5}}, "Time": "2024-01-01"}'

    points = flatten_payload("tele/plug", payload)

    assert {p.path: p.value for p in points} == {
        "tele/plug/ENERGY/Power": 12,
        "tele/plug/ENERGY/Today/Total": 1.5,
        "tele/plug/Time": "2024-01-01",
    }


def test_emitted_paths_equal_leaf_key_paths_without_duplicates() -> None:
    data = {"a": {"b": 1, "c": {"d": 2, "e": 3}}, "f": 4}

    points = flatten_object(data, "t")
    paths = [p.path for p in points]

    assert sorted(paths) == ["t/a/b", "t/a/c/d", "t/a/c/e", "t/f"]
    assert len(paths) == len(set(paths))


def test_flattening_is_injective_across_payloads() -> None:
    payloads = [{"x": 1}, {"x": {"y": 1}}, {"y": 1}]
    seen = [frozenset(p.path for p in flatten_object(data, "t")) for data in payloads]

    for left, right in itertools.combinations(seen, 2):
        assert left.isdisjoint(right)


def test_arrays_are_opaque_leaves() -> None:
    points = flatten_payload("t", '{"a": [1, 2, {"b": 3}]}')

    assert points == [FlattenedPoint(path="t/a", value=[1, 2, {"b": 3}])]
    assert all(not p.path.endswith("/b") for p in points)


def test_empty_nested_object_emits_nothing() -> None:
    assert flatten_payload("t", '{"a": {}, "b": null}') == [FlattenedPoint(path="t/b", value=None)]


def test_invalid_json_object_falls_back_to_text() -> None:
    points = flatten_payload("t", b"{not json}")

    assert points == [FlattenedPoint(path="t", value="{not json}")]


def test_json_array_payload_is_not_flattened() -> None:
    assert flatten_payload("t", "[1,2]") == [FlattenedPoint(path="t", value="[1,2]")]


def test_surrounding_whitespace_still_detected_as_object() -> None:
    assert flatten_payload("t", ' {"v": 1}\n') == [FlattenedPoint(path="t/v", value=1)]


def _nested(depth: int) -> str:
    return '{"a":' * depth + "1" + "}" * depth


def test_very_deep_payload_is_kept_as_text() -> None:
    text = _nested(1500)

    assert flatten_payload("t", text.encode()) == [FlattenedPoint(path="t", value=text)]


def test_depth_limit_is_inclusive() -> None:
    at_limit = flatten_payload("t", _nested(MAX_DEPTH))
    over_limit = _nested(MAX_DEPTH + 1)

    assert at_limit == [FlattenedPoint(path="t" + "/a" * MAX_DEPTH, value=1)]
    assert flatten_payload("t", over_limit) == [FlattenedPoint(path="t", value=over_limit)]


def test_deep_arrays_count_towards_depth_limit() -> None:
    text = '{"a": ' + "[" * MAX_DEPTH + "]" * MAX_DEPTH + "}"

    assert flatten_payload("t", text) == [FlattenedPoint(path="t", value=text)]


def test_parser_recursion_error_falls_back_to_text(monkeypatch: pytest.MonkeyPatch) -> None:
    def loads(_text: str) -> object:
        raise RecursionError("maximum recursion depth exceeded")

    monkeypatch.setattr(normalize.json, "loads", loads)

    assert flatten_payload("t", '{"a": 1}') == [FlattenedPoint(path="t", value='{"a": 1}')]


def test_flatten_object_handles_nesting_beyond_recursion_limit() -> None:
    data: object = 1
    for _ in range(5000):
        data = {"a": data}

    points = flatten_object(data, "t")  # type: ignore[arg-type]

    assert points == [FlattenedPoint(path="t" + "/a" * 5000, value=1)]


def test_flatten_object_keeps_document_order() -> None:
    data = json.loads('{"z": 1, "m": {"y": 2, "b": 3}, "a": 4}')

    assert [p.path for p in flatten_object(data, "t")] == ["t/z", "t/m/y", "t/m/b", "t/a"]


def test_oversized_integer_falls_back_to_text() -> None:
    text = '{"a": ' + "1" * 5000 + "}"

    assert flatten_payload("t", text) == [FlattenedPoint(path="t", value=text)]
