"""Outbound encoding helpers: a :class:`TolerantMap` encodes as its plain mapping."""

from __future__ import annotations

import importlib.util
import json
from typing import Any

from .core import TolerantMap


def to_builtins(value: object) -> object:
    """Replace every :class:`TolerantMap` inside ``value`` with a plain ``dict``."""

    if isinstance(value, TolerantMap):
        return {key: to_builtins(item) for key, item in value.as_mapping().items()}
    if isinstance(value, dict):
        return {key: to_builtins(item) for key, item in value.items()}
    if isinstance(value, list):
        return [to_builtins(item) for item in value]
    if isinstance(value, tuple):
        return tuple(to_builtins(item) for item in value)
    return value


def _transparent_default(value: object) -> object:
    if isinstance(value, TolerantMap):
        return dict(value.as_mapping())
    raise TypeError(f"Object of type {type(value).__name__} is not serializable")


def dumps_json(value: object, **kwargs: Any) -> str:
    """``json.dumps`` that writes a :class:`TolerantMap` exactly like its mapping."""

    kwargs.setdefault("default", _transparent_default)
    return json.dumps(value, **kwargs)


def packb(value: object, **kwargs: Any) -> bytes:
    """``msgpack.packb`` that writes a :class:`TolerantMap` exactly like its mapping."""

    if importlib.util.find_spec("msgpack") is None:  # pragma: no cover - deterministic import guard
        raise RuntimeError("Support for msgpack output requires the 'msgpack' package")
    import msgpack  # type: ignore

    kwargs.setdefault("default", _transparent_default)
    kwargs.setdefault("use_bin_type", True)
    return msgpack.packb(value, **kwargs)


__all__ = ["dumps_json", "packb", "to_builtins"]
