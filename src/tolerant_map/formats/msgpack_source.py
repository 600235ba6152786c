"""Streaming entry source over a msgpack encoded map."""

from __future__ import annotations

import importlib.util
import re
from types import ModuleType
from typing import Any, Dict, Optional

from ..config import get_settings
from ..decoders import describe_value
from ..errors import DecodeError, SourceError
from ..sources import END_OF_DATA, EntrySource, RawEntry

# surrogateescape maps every byte of invalid UTF-8 into this range
_ESCAPED_BYTE = re.compile("[\udc80-\udcff]")


def _require_msgpack() -> ModuleType:
    if importlib.util.find_spec("msgpack") is None:  # pragma: no cover - deterministic import guard
        raise RuntimeError("Support for msgpack input requires the 'msgpack' package")
    import msgpack  # type: ignore

    return msgpack


class MsgpackMapSource(EntrySource):
    """Read a msgpack map header, then unpack keys and values one by one."""

    def __init__(self, data: bytes, *, max_buffer_size: Optional[int] = None) -> None:
        super().__init__()
        self._msgpack = _require_msgpack()
        if max_buffer_size is None:
            max_buffer_size = get_settings().msgpack_max_buffer_size
        self._data = bytes(data)
        self._remaining: Optional[int] = None
        options: Dict[str, Any] = {}
        if max_buffer_size:
            options["max_buffer_size"] = max_buffer_size
        self._unpacker = self._msgpack.Unpacker(
            raw=False,
            strict_map_key=False,
            unicode_errors="surrogateescape",
            **options,
        )
        try:
            self._unpacker.feed(self._data)
        except self._msgpack.BufferFull as exc:
            raise SourceError(
                f"msgpack input of {len(self._data)} bytes exceeds the unpacker buffer"
            ) from exc

    def size_hint(self) -> Optional[int]:
        return self._remaining

    def _open(self) -> Optional[str]:
        msgpack = self._msgpack
        try:
            self._remaining = self._unpacker.read_map_header()
        except msgpack.OutOfData as exc:
            raise SourceError("msgpack input ended before a map header", position=0) from exc
        except ValueError:
            return self._describe_document()
        return None

    def _describe_document(self) -> str:
        msgpack = self._msgpack
        try:
            value = msgpack.unpackb(
                self._data, raw=False, strict_map_key=False, unicode_errors="surrogateescape"
            )
        except msgpack.ExtraData as exc:
            value = exc.unpacked
        except (ValueError, TypeError, msgpack.UnpackException) as exc:
            raise SourceError(f"malformed msgpack document: {exc}", position=0) from exc
        return describe_value(value)

    def _unpack(self, what: str) -> object:
        msgpack = self._msgpack
        try:
            return self._unpacker.unpack()
        except msgpack.OutOfData as exc:
            raise SourceError(
                f"msgpack input truncated while reading a map {what}",
                position=self._unpacker.tell(),
            ) from exc
        except (ValueError, TypeError, msgpack.UnpackException) as exc:
            raise SourceError(
                f"malformed msgpack map {what}: {exc}", position=self._unpacker.tell()
            ) from exc

    def _next_raw(self) -> RawEntry:
        assert self._remaining is not None
        if self._remaining == 0:
            self._check_trailing()
            return END_OF_DATA
        self._remaining -= 1
        key = self._unpack("key")
        value = self._unpack("value")
        # Both parts are consumed first so the next entry starts in the right place.
        if _has_invalid_text(key):
            raise DecodeError("invalid UTF-8 in a msgpack map key")
        if _has_invalid_text(value):
            raise DecodeError("invalid UTF-8 in a msgpack map value")
        return key, value

    def _check_trailing(self) -> None:
        try:
            self._unpacker.skip()
        except self._msgpack.OutOfData:
            return
        except (ValueError, TypeError, self._msgpack.UnpackException) as exc:
            raise SourceError(f"malformed trailing msgpack data: {exc}") from exc
        raise SourceError("trailing data after the msgpack map", position=self._unpacker.tell())


def _has_invalid_text(value: object) -> bool:
    if isinstance(value, str):
        return _ESCAPED_BYTE.search(value) is not None
    if isinstance(value, (list, tuple)):
        return any(_has_invalid_text(item) for item in value)
    if isinstance(value, dict):
        return any(_has_invalid_text(k) or _has_invalid_text(v) for k, v in value.items())
    return False


__all__ = ["MsgpackMapSource"]
