"""Forgiving map decoding: keep the entries that fit, drop the ones that do not."""

from __future__ import annotations

import importlib
from typing import TYPE_CHECKING, Any

from .core import TolerantMap, decode, expecting
from .decoders import Int8, Int16, Int32, Int64, IntRange, UInt8, UInt16, UInt32, UInt64
from .errors import DecodeError, EntryShapeError, SourceError, TolerantMapError, TypeMismatchError
from .sources import END_OF_DATA, Entry, EntrySource, MappingSource, PairsSource, Rejected

_LAZY_ATTRIBUTES = {
    "JsonObjectSource": "tolerant_map.formats.json_source",
    "MsgpackMapSource": "tolerant_map.formats.msgpack_source",
    "load_path": "tolerant_map.formats",
    "loads_json": "tolerant_map.formats",
    "loads_msgpack": "tolerant_map.formats",
    "dumps_json": "tolerant_map.serialize",
    "packb": "tolerant_map.serialize",
    "to_builtins": "tolerant_map.serialize",
}

__all__ = [
    "END_OF_DATA",
    "DecodeError",
    "Entry",
    "EntryShapeError",
    "EntrySource",
    "Int16",
    "Int32",
    "Int64",
    "Int8",
    "IntRange",
    "MappingSource",
    "PairsSource",
    "Rejected",
    "SourceError",
    "TolerantMap",
    "TolerantMapError",
    "TypeMismatchError",
    "UInt16",
    "UInt32",
    "UInt64",
    "UInt8",
    "decode",
    "expecting",
    *sorted(_LAZY_ATTRIBUTES),
]


def __getattr__(name: str) -> Any:
    """Import format sources and encoders on first use."""

    if name in _LAZY_ATTRIBUTES:
        value = getattr(importlib.import_module(_LAZY_ATTRIBUTES[name]), name)
        globals()[name] = value
        return value
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


def __dir__() -> list[str]:
    return sorted(set(__all__) | set(globals().keys()))


if TYPE_CHECKING:  # pragma: no cover - imported for static analyzers
    from .formats import load_path, loads_json, loads_msgpack  # noqa: F401
    from .formats.json_source import JsonObjectSource  # noqa: F401
    from .formats.msgpack_source import MsgpackMapSource  # noqa: F401
    from .serialize import dumps_json, packb, to_builtins  # noqa: F401
