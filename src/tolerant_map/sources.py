"""Entry sources: the sequential key/value stream a tolerant map decodes from.

A concrete wire format plugs into the decoder by subclassing
:class:`EntrySource`.  Subclasses only implement :meth:`EntrySource._next_raw`
(and optionally :meth:`EntrySource._open` / :meth:`EntrySource.size_hint`);
the base class turns each raw pair into a tagged outcome:

* :class:`Entry` when both key and value decoded,
* :class:`Rejected` when the entry was present but unusable,
* :data:`END_OF_DATA` once the map is exhausted.

Stream-level failures never become outcomes.  They are raised as
:class:`~tolerant_map.errors.SourceError` so that the decoder can tell "skip
this entry" apart from "the stream is broken".
"""

from __future__ import annotations

import abc
import logging
from collections.abc import Mapping as _Mapping
from dataclasses import dataclass
from typing import Any, Iterable, Iterator, Optional, Tuple, Union

from .decoders import Decoder, describe_value
from .errors import DecodeError, EntryShapeError, SourceError, TypeMismatchError

logger = logging.getLogger(__name__)


class _EndOfData:
    _instance: Optional["_EndOfData"] = None

    def __new__(cls) -> "_EndOfData":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "END_OF_DATA"

    def __bool__(self) -> bool:
        return False


END_OF_DATA = _EndOfData()


@dataclass(frozen=True)
class Entry:
    """A key/value pair whose parts both decoded successfully."""

    key: Any
    value: Any


@dataclass(frozen=True)
class Rejected:
    """An entry that was present in the stream but could not be decoded."""

    reason: str


EntryOutcome = Union[Entry, Rejected, _EndOfData]
RawEntry = Union[Tuple[object, object], _EndOfData]


class EntrySource(abc.ABC):
    """Single-use stream of key/value entries presented by a wire format."""

    #: ``True`` when the format can only carry text keys (JSON objects).
    string_keys: bool = False

    def __init__(self) -> None:
        self._opened = False
        self._exhausted = False

    def open_map(self, expected: str) -> None:
        """Position the source on the first entry of its map.

        Raises :class:`TypeMismatchError` mentioning ``expected`` when the
        input is not map-shaped, and :class:`SourceError` when the input cannot
        be read at all.
        """

        if self._opened:
            return
        found = self._open()
        if found is not None:
            raise TypeMismatchError(found, expected)
        self._opened = True

    def size_hint(self) -> Optional[int]:
        return None

    def next_entry(self, decode_key: Decoder, decode_value: Decoder) -> EntryOutcome:
        """Attempt to read and decode the next entry as a single unit."""

        if not self._opened:
            self.open_map("a map")
        if self._exhausted:
            return END_OF_DATA
        try:
            raw = self._next_raw()
        except DecodeError as exc:
            return self._reject(str(exc))
        if raw is END_OF_DATA:
            self._exhausted = True
            return END_OF_DATA

        raw_key, raw_value = raw
        try:
            key = decode_key(raw_key)
            value = decode_value(raw_value)
        except SourceError:
            raise
        except DecodeError as exc:
            return self._reject(str(exc))
        except Exception as exc:  # a decoder failing in any other way only costs this entry
            return self._reject(f"{type(exc).__name__}: {exc}")
        try:
            hash(key)
        except TypeError:
            return self._reject(f"unhashable map key of type {type(key).__name__}")
        return Entry(key, value)

    def _reject(self, reason: str) -> Rejected:
        logger.debug("Skipping map entry: %s", reason)
        return Rejected(reason)

    def _open(self) -> Optional[str]:
        """Return a description of the input when it is not map-shaped."""

        return None

    @abc.abstractmethod
    def _next_raw(self) -> RawEntry:
        """Return the next raw ``(key, value)`` pair or :data:`END_OF_DATA`."""


class MappingSource(EntrySource):
    """Entries of an already parsed mapping, e.g. a ``json.load`` result."""

    def __init__(self, mapping: object, *, string_keys: bool = False) -> None:
        super().__init__()
        self._mapping = mapping
        self._items: Optional[Iterator[Tuple[object, object]]] = None
        self.string_keys = string_keys

    def _open(self) -> Optional[str]:
        if not isinstance(self._mapping, _Mapping):
            return describe_value(self._mapping)
        self._items = iter(self._mapping.items())
        return None

    def size_hint(self) -> Optional[int]:
        if isinstance(self._mapping, _Mapping):
            return len(self._mapping)
        return None

    def _next_raw(self) -> RawEntry:
        assert self._items is not None
        try:
            return next(self._items)
        except StopIteration:
            return END_OF_DATA
        except RuntimeError as exc:
            raise SourceError(f"mapping changed while it was being decoded: {exc}") from exc


class PairsSource(EntrySource):
    """Entries produced by an iterable of ``(key, value)`` pairs.

    Items that are not two-element pairs are rejected one by one.  An
    exception raised by the iterable itself ends the decode as a stream error.
    """

    def __init__(self, pairs: Iterable[object], *, string_keys: bool = False) -> None:
        super().__init__()
        self._pairs = pairs
        self._iterator: Optional[Iterator[object]] = None
        self.string_keys = string_keys

    def _open(self) -> Optional[str]:
        pairs = self._pairs
        if isinstance(pairs, _Mapping):
            self._iterator = iter(pairs.items())
            return None
        if pairs is None or isinstance(pairs, (str, bytes, bytearray, memoryview)):
            return describe_value(pairs)
        try:
            self._iterator = iter(pairs)
        except TypeError:
            return describe_value(pairs)
        return None

    def size_hint(self) -> Optional[int]:
        try:
            return len(self._pairs)  # type: ignore[arg-type]
        except TypeError:
            return None

    def _next_raw(self) -> RawEntry:
        assert self._iterator is not None
        try:
            item = next(self._iterator)
        except StopIteration:
            return END_OF_DATA
        except Exception as exc:
            raise SourceError(f"entry stream failed: {exc}") from exc
        if not isinstance(item, (tuple, list)) or len(item) != 2:
            raise EntryShapeError(f"invalid entry: {describe_value(item)}, expected a key/value pair")
        return item[0], item[1]


__all__ = [
    "END_OF_DATA",
    "Entry",
    "EntryOutcome",
    "EntrySource",
    "MappingSource",
    "PairsSource",
    "RawEntry",
    "Rejected",
]
