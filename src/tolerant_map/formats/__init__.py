"""Wire-format entry sources and suffix based loading helpers."""

from __future__ import annotations

import importlib
import logging
from pathlib import Path
from types import ModuleType
from typing import Any, Dict, Tuple

from ..core import TolerantMap, decode

__all__ = ["json_source", "load_path", "loads_json", "loads_msgpack", "msgpack_source"]

logger = logging.getLogger(__name__)

_SUFFIXES: Dict[str, Tuple[str, str]] = {
    ".json": ("json_source", "JsonObjectSource"),
    ".msgpack": ("msgpack_source", "MsgpackMapSource"),
    ".mpk": ("msgpack_source", "MsgpackMapSource"),
}


def __getattr__(name: str) -> ModuleType:
    if name in ("json_source", "msgpack_source"):
        module = importlib.import_module(f"{__name__}.{name}")
        globals()[name] = module
        return module
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


def loads_json(
    document: str | bytes, key_type: object = Any, value_type: object = Any
) -> TolerantMap[Any, Any]:
    return TolerantMap.from_json(document, key_type, value_type)


def loads_msgpack(data: bytes, key_type: object = Any, value_type: object = Any) -> TolerantMap[Any, Any]:
    return TolerantMap.from_msgpack(data, key_type, value_type)


def load_path(path: str | Path, key_type: object = Any, value_type: object = Any) -> TolerantMap[Any, Any]:
    """Decode the map stored in ``path``, choosing the format from its suffix."""

    path = Path(path)
    suffix = path.suffix.lower()
    if suffix not in _SUFFIXES:
        raise RuntimeError(f"Unsupported map format: {path}")
    module_name, class_name = _SUFFIXES[suffix]
    source_cls = getattr(importlib.import_module(f"{__name__}.{module_name}"), class_name)
    logger.debug("Loading %s with %s", path, class_name)
    return decode(source_cls(path.read_bytes()), key_type, value_type)
