from __future__ import annotations

import json
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT / "src") not in sys.path:
    sys.path.insert(0, str(ROOT / "src"))

from tolerant_map import TolerantMap, UInt64
from tolerant_map.serialize import dumps_json, packb, to_builtins


def test_json_encoding_matches_the_bare_mapping() -> None:
    inner = {"number": 1, "other_number": 2}
    wrapped = TolerantMap(inner)

    assert dumps_json(wrapped) == json.dumps(inner)
    assert dumps_json(wrapped, sort_keys=True, indent=2) == json.dumps(inner, sort_keys=True, indent=2)
    assert wrapped.to_json() == json.dumps(inner)


def test_nested_wrappers_leave_no_trace_in_json() -> None:
    payload = {"outer": TolerantMap({"inner": TolerantMap({"x": 1})}), "items": [TolerantMap()]}

    assert json.loads(dumps_json(payload)) == {"outer": {"inner": {"x": 1}}, "items": [{}]}


def test_decode_then_encode_round_trips_filtered_entries() -> None:
    decoded = TolerantMap.from_json('{"a": 1, "b": "x", "c": 3}', str, UInt64)

    assert json.loads(decoded.to_json()) == {"a": 1, "c": 3}


def test_unknown_objects_still_fail_to_encode() -> None:
    with pytest.raises(TypeError, match="not serializable"):
        dumps_json({"value": object()})


def test_msgpack_encoding_matches_the_bare_mapping() -> None:
    msgpack = pytest.importorskip("msgpack")
    inner = {"blob": b"\x00", "n": 1}

    assert packb(TolerantMap(inner)) == msgpack.packb(inner, use_bin_type=True)
    assert TolerantMap(inner).to_msgpack() == msgpack.packb(inner, use_bin_type=True)


def test_encoding_does_not_detach_the_wrapper() -> None:
    wrapped = TolerantMap({"a": 1})

    wrapped.to_json()

    assert wrapped == {"a": 1}


def test_to_builtins_unwraps_recursively() -> None:
    payload = (TolerantMap({"a": [TolerantMap({"b": 2})]}),)

    converted = to_builtins(payload)

    assert converted == ({"a": [{"b": 2}]},)
    assert type(converted[0]) is dict
    assert type(converted[0]["a"][0]) is dict
