"""The tolerant map wrapper and the decode loop that fills it.

A :class:`TolerantMap` keeps every entry whose key and value decode into the
requested types and silently drops the rest::

    >>> from tolerant_map import TolerantMap, UInt64
    >>> doc = '{"string": "b", "number": 1, "other_number": 2, "negative_number": -44}'
    >>> TolerantMap.from_json(doc, str, UInt64).unwrap_inner()
    {'number': 1, 'other_number': 2}

Only stream-level problems (truncated or corrupt input) and inputs that are not
maps at all are reported as errors.
"""

from __future__ import annotations

import logging
from types import MappingProxyType
from typing import Any, Dict, Iterable, Iterator, Mapping, Optional, TypeVar

from .config import get_settings
from .decoders import Decoder, decoder_for, type_name
from .sources import END_OF_DATA, Entry, EntrySource, MappingSource, PairsSource

K = TypeVar("K")
V = TypeVar("V")

logger = logging.getLogger(__name__)


def expecting(key_type: object = Any, value_type: object = Any) -> str:
    """Describe what a map decoder for ``key_type`` → ``value_type`` accepts."""

    return (
        "a data structure which contains some mappings from "
        f"{type_name(key_type)} to {type_name(value_type)}"
    )


class TolerantMap(Mapping[K, V]):
    """Read-only wrapper around a ``dict`` filled by a forgiving decode.

    Construct it empty, from an already typed mapping (no filtering is applied
    on that path), or with :meth:`decode` and the ``from_*`` helpers.
    """

    __slots__ = ("_inner",)

    def __init__(self, mapping: Optional[Mapping[K, V]] = None) -> None:
        self._inner: Dict[K, V] = dict(mapping) if mapping is not None else {}

    @classmethod
    def _adopt(cls, inner: Dict[K, V]) -> "TolerantMap[K, V]":
        instance = cls.__new__(cls)
        instance._inner = inner
        return instance

    def __getitem__(self, key: K) -> V:
        return self._inner[key]

    def __iter__(self) -> Iterator[K]:
        return iter(self._inner)

    def __len__(self) -> int:
        return len(self._inner)

    def __contains__(self, key: object) -> bool:
        return key in self._inner

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._inner!r})"

    def __copy__(self) -> "TolerantMap[K, V]":
        return type(self)(self._inner)

    def as_mapping(self) -> Mapping[K, V]:
        """Borrow the underlying mapping read-only without detaching it."""

        return MappingProxyType(self._inner)

    def unwrap_inner(self) -> Dict[K, V]:
        """Hand over the underlying ``dict``; the wrapper is left empty."""

        inner, self._inner = self._inner, {}
        return inner

    inner = unwrap_inner

    def to_dict(self) -> Dict[K, V]:
        return self.unwrap_inner()

    def to_json(self, **kwargs: Any) -> str:
        from .serialize import dumps_json

        return dumps_json(self, **kwargs)

    def to_msgpack(self, **kwargs: Any) -> bytes:
        from .serialize import packb

        return packb(self, **kwargs)

    @classmethod
    def decode(
        cls, source: EntrySource, key_type: object = Any, value_type: object = Any
    ) -> "TolerantMap[Any, Any]":
        return decode(source, key_type, value_type)

    @classmethod
    def from_mapping(
        cls, mapping: object, key_type: object = Any, value_type: object = Any
    ) -> "TolerantMap[Any, Any]":
        """Filter an already parsed mapping down to the entries that fit."""

        return decode(MappingSource(mapping), key_type, value_type)

    @classmethod
    def from_pairs(
        cls, pairs: Iterable[object], key_type: object = Any, value_type: object = Any
    ) -> "TolerantMap[Any, Any]":
        return decode(PairsSource(pairs), key_type, value_type)

    @classmethod
    def from_json(
        cls, document: str | bytes, key_type: object = Any, value_type: object = Any
    ) -> "TolerantMap[Any, Any]":
        from .formats.json_source import JsonObjectSource

        return decode(JsonObjectSource(document), key_type, value_type)

    @classmethod
    def from_msgpack(
        cls, data: bytes, key_type: object = Any, value_type: object = Any
    ) -> "TolerantMap[Any, Any]":
        from .formats.msgpack_source import MsgpackMapSource

        return decode(MsgpackMapSource(data), key_type, value_type)


def decode(
    source: EntrySource, key_type: object = Any, value_type: object = Any
) -> TolerantMap[Any, Any]:
    """Decode every usable entry of ``source`` into a :class:`TolerantMap`.

    Entries whose key or value fail to decode are dropped and decoding carries
    on with the next entry.  Later duplicates of a key overwrite earlier ones.

    Raises
    ------
    TypeMismatchError
        If ``source`` does not hold a map.
    SourceError
        If the stream is truncated or corrupt; no partial map is returned.
    TypeError
        If a type annotation cannot be decoded; raised before ``source`` is read.
    """

    get_settings()  # applies TOLERANT_MAP_VERBOSE on first use
    decode_key = decoder_for(key_type, string_keys=source.string_keys, key=True)
    decode_value = decoder_for(value_type, string_keys=source.string_keys)
    return _decode_entries(source, key_type, value_type, decode_key, decode_value)


def _decode_entries(
    source: EntrySource,
    key_type: object,
    value_type: object,
    decode_key: Decoder,
    decode_value: Decoder,
) -> TolerantMap[Any, Any]:
    source.open_map(expecting(key_type, value_type))

    hint = source.size_hint()
    accumulated: Dict[Any, Any] = {}
    accepted = skipped = 0
    while True:
        outcome = source.next_entry(decode_key, decode_value)
        if outcome is END_OF_DATA:
            break
        if isinstance(outcome, Entry):
            accumulated[outcome.key] = outcome.value
            accepted += 1
        else:
            skipped += 1

    logger.debug(
        "Decoded %d entries into %d keys (%d skipped, size hint %s) as %s -> %s",
        accepted,
        len(accumulated),
        skipped,
        hint,
        type_name(key_type),
        type_name(value_type),
    )
    return TolerantMap._adopt(accumulated)


__all__ = ["TolerantMap", "decode", "expecting"]
