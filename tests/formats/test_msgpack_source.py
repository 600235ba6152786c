from __future__ import annotations

import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[2]
if str(ROOT / "src") not in sys.path:
    sys.path.insert(0, str(ROOT / "src"))

msgpack = pytest.importorskip("msgpack")

from tolerant_map import SourceError, TolerantMap, TypeMismatchError, UInt8, UInt64, expecting
from tolerant_map.formats import load_path, loads_msgpack
from tolerant_map.formats.msgpack_source import MsgpackMapSource

MIXED = {"string": "b", "number": 1, "other_number": 2, "negative_number": -44}


def test_only_unsigned_numbers_survive() -> None:
    decoded = loads_msgpack(msgpack.packb(MIXED), str, UInt64)

    assert decoded.unwrap_inner() == {"number": 1, "other_number": 2}


def test_native_integer_keys_need_no_text_parsing() -> None:
    data = msgpack.packb({1: "one", "2": "two", 3: "three"})

    assert loads_msgpack(data, int, str) == {1: "one", 3: "three"}


def test_binary_values_decode_as_bytes() -> None:
    data = msgpack.packb({"blob": b"\x00\x01", "text": "x"}, use_bin_type=True)

    assert loads_msgpack(data, str, bytes) == {"blob": b"\x00\x01"}


def test_size_hint_is_the_map_length() -> None:
    source = MsgpackMapSource(msgpack.packb({"a": 1, "b": 2, "c": 3}))
    source.open_map(expecting(str, int))

    assert source.size_hint() == 3


def test_empty_map_yields_empty_result() -> None:
    assert len(loads_msgpack(b"\x80", str, int)) == 0


@pytest.mark.parametrize(
    "value, found",
    [
        ([1, 2], "sequence"),
        (None, "null"),
        (7, "integer `7`"),
    ],
)
def test_non_map_documents_are_type_mismatches(value: object, found: str) -> None:
    with pytest.raises(TypeMismatchError) as excinfo:
        loads_msgpack(msgpack.packb(value), str, UInt8)

    assert excinfo.value.found == found
    assert expecting(str, UInt8) in str(excinfo.value)


def test_truncation_after_a_valid_entry_is_fatal() -> None:
    data = msgpack.packb({"number": 1, "other_number": 2})

    with pytest.raises(SourceError, match="truncated"):
        loads_msgpack(data[:-1], str, int)


def test_missing_entries_are_fatal() -> None:
    # Header promises two entries, only one follows.
    data = b"\x82" + msgpack.packb("a") + msgpack.packb(1)

    with pytest.raises(SourceError):
        loads_msgpack(data, str, int)


def test_empty_input_is_fatal() -> None:
    with pytest.raises(SourceError):
        loads_msgpack(b"", str, int)


def test_corrupt_value_is_fatal() -> None:
    # 0xc1 is never used by the msgpack format.
    with pytest.raises(SourceError):
        loads_msgpack(b"\x81\xa1a\xc1", str, int)


def test_trailing_data_is_fatal() -> None:
    data = msgpack.packb({"a": 1}) + msgpack.packb(2)

    with pytest.raises(SourceError, match="trailing"):
        loads_msgpack(data, str, int)


def test_unhashable_keys_are_skipped() -> None:
    # {[1]: 1, "b": 2} cannot be built as a dict, so assemble it by hand.
    data = b"\x82" + msgpack.packb([1]) + msgpack.packb(1) + msgpack.packb("b") + msgpack.packb(2)

    assert loads_msgpack(data) == {"b": 2}


def test_duplicate_keys_keep_the_last_value() -> None:
    data = b"\x83" + b"".join(msgpack.packb(part) for part in ("a", 1, "b", 2, "a", 3))

    assert loads_msgpack(data, str, int) == {"a": 3, "b": 2}


def test_nested_tolerant_maps_filter_their_own_members() -> None:
    data = msgpack.packb({"ports": {"http": 80, "bad": -1}, "name": "svc"})

    decoded = loads_msgpack(data, str, TolerantMap[str, UInt64])

    assert decoded == {"ports": {"http": 80}}


def test_buffer_limit_is_a_stream_error() -> None:
    data = msgpack.packb({"key": "x" * 64})

    with pytest.raises(SourceError, match="exceeds"):
        MsgpackMapSource(data, max_buffer_size=16)


def test_buffer_limit_is_read_from_the_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    from tolerant_map.config import reset_settings

    monkeypatch.setenv("TOLERANT_MAP_MSGPACK_MAX_BUFFER", "16")
    reset_settings()
    try:
        with pytest.raises(SourceError):
            loads_msgpack(msgpack.packb({"key": "x" * 64}), str, str)
    finally:
        monkeypatch.delenv("TOLERANT_MAP_MSGPACK_MAX_BUFFER")
        reset_settings()


def test_load_path_selects_msgpack_by_suffix(tmp_path: Path) -> None:
    path = tmp_path / "numbers.msgpack"
    path.write_bytes(msgpack.packb(MIXED))

    assert load_path(path, str, UInt64) == {"number": 1, "other_number": 2}


def test_invalid_utf8_value_skips_only_that_entry() -> None:
    # {"a": <str with bytes ff fe>, "b": 1}
    data = b"\x82\xa1a\xa2\xff\xfe\xa1b\x01"

    assert loads_msgpack(data, str, int) == {"b": 1}
    assert loads_msgpack(data, str, str) == {}


def test_invalid_utf8_key_skips_its_value_too() -> None:
    # {<str with byte ff>: "x", "b": 1}
    data = b"\x82\xa1\xff\xa1x\xa1b\x01"

    assert loads_msgpack(data) == {"b": 1}


def test_invalid_utf8_inside_nested_values_is_rejected() -> None:
    # {"a": ["ok", <str with byte ff>], "b": ["fine"]}
    data = b"\x82\xa1a\x92\xa2ok\xa1\xff\xa1b\x91\xa4fine"

    assert loads_msgpack(data, str, list[str]) == {"b": ["fine"]}


def test_zero_buffer_limit_keeps_the_msgpack_default(monkeypatch: pytest.MonkeyPatch) -> None:
    from tolerant_map.config import reset_settings

    calls = []
    real_unpacker = msgpack.Unpacker

    def recording_unpacker(*args, **kwargs):
        calls.append(kwargs)
        return real_unpacker(*args, **kwargs)

    monkeypatch.setattr(msgpack, "Unpacker", recording_unpacker)
    monkeypatch.setenv("TOLERANT_MAP_MSGPACK_MAX_BUFFER", "0")
    reset_settings()
    try:
        assert loads_msgpack(msgpack.packb({"a": 1}), str, int) == {"a": 1}
    finally:
        monkeypatch.delenv("TOLERANT_MAP_MSGPACK_MAX_BUFFER")
        reset_settings()

    assert "max_buffer_size" not in calls[0]
