"""Error taxonomy shared by the tolerant map decoder and its entry sources."""

from __future__ import annotations

from typing import Optional


class TolerantMapError(Exception):
    """Base class for every error raised by :mod:`tolerant_map`."""


class DecodeError(TolerantMapError, ValueError):
    """Raised when a single key or value cannot be decoded into its target type."""


class EntryShapeError(DecodeError):
    """Raised when an entry presented by a source is not a key/value pair."""


class TypeMismatchError(DecodeError, TypeError):
    """Raised when the input handed to a map decoder is not map-shaped at all."""

    def __init__(self, found: str, expected: str) -> None:
        super().__init__(f"invalid type: {found}, expected {expected}")
        self.found = found
        self.expected = expected


class SourceError(TolerantMapError, RuntimeError):
    """Raised when an entry source cannot continue because the stream is malformed."""

    def __init__(self, message: str, *, position: Optional[int] = None) -> None:
        if position is not None:
            message = f"{message} at position {position}"
        super().__init__(message)
        self.position = position


__all__ = [
    "DecodeError",
    "EntryShapeError",
    "SourceError",
    "TolerantMapError",
    "TypeMismatchError",
]
