"""Incremental entry source over a single JSON object."""

from __future__ import annotations

import json
import re
from json.decoder import scanstring
from typing import Optional

from ..config import get_settings
from ..decoders import describe_value
from ..errors import SourceError
from ..sources import END_OF_DATA, EntrySource, RawEntry

_WHITESPACE = re.compile(r"[ \t\n\r]*")


class JsonObjectSource(EntrySource):
    """Walk the members of a top-level JSON object one at a time.

    Each member value is parsed independently, so a value that parses but has
    the wrong type only costs that member.  Broken syntax, truncation and
    trailing data after the closing brace are stream errors.
    """

    def __init__(self, document: str | bytes, *, coerce_string_keys: Optional[bool] = None) -> None:
        super().__init__()
        if isinstance(document, (bytes, bytearray, memoryview)):
            try:
                document = bytes(document).decode("utf-8-sig")
            except UnicodeDecodeError as exc:
                raise SourceError("JSON input is not valid UTF-8", position=exc.start) from exc
        self._text = document
        self._pos = 0
        self._first = True
        self._decoder = json.JSONDecoder()
        if coerce_string_keys is None:
            coerce_string_keys = get_settings().coerce_string_keys
        self.string_keys = coerce_string_keys

    def _skip_whitespace(self) -> None:
        self._pos = _WHITESPACE.match(self._text, self._pos).end()

    def _error(self, expected: str) -> SourceError:
        if self._pos >= len(self._text):
            return SourceError("EOF while parsing an object", position=self._pos)
        return SourceError(f"expected {expected}", position=self._pos)

    def _malformed(self, what: str, exc: Exception) -> SourceError:
        if isinstance(exc, json.JSONDecodeError):
            return SourceError(f"malformed {what}: {exc.msg}", position=exc.pos)
        # integer digit limit or nesting depth, raised without a position
        return SourceError(f"malformed {what}: {exc}", position=self._pos)

    def _open(self) -> Optional[str]:
        self._skip_whitespace()
        if self._text.startswith("{", self._pos):
            self._pos += 1
            return None
        try:
            value, _ = self._decoder.raw_decode(self._text, self._pos)
        except (ValueError, RecursionError) as exc:
            raise self._malformed("JSON document", exc) from exc
        return describe_value(value)

    def _finish(self) -> RawEntry:
        self._pos += 1
        self._skip_whitespace()
        if self._pos != len(self._text):
            raise SourceError("trailing characters after the JSON object", position=self._pos)
        return END_OF_DATA

    def _next_raw(self) -> RawEntry:
        text = self._text
        self._skip_whitespace()
        if text.startswith("}", self._pos):
            return self._finish()
        if self._first:
            self._first = False
        else:
            if not text.startswith(",", self._pos):
                raise self._error("',' or '}' after an object member")
            self._pos += 1
            self._skip_whitespace()

        if not text.startswith('"', self._pos):
            raise self._error("a string key")
        try:
            key, self._pos = scanstring(text, self._pos + 1)
        except ValueError as exc:
            raise self._malformed("object key", exc) from exc

        self._skip_whitespace()
        if not text.startswith(":", self._pos):
            raise self._error("':' after an object key")
        self._pos += 1
        self._skip_whitespace()
        try:
            value, self._pos = self._decoder.raw_decode(text, self._pos)
        except (ValueError, RecursionError) as exc:
            raise self._malformed("object value", exc) from exc
        return key, value


__all__ = ["JsonObjectSource"]
