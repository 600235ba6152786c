"""Decode-by-type helpers that turn raw entry parts into typed Python values.

Every decoder built by :func:`decoder_for` is a plain callable taking one raw
value (as produced by a wire format such as JSON or msgpack) and returning the
typed value, raising :class:`~tolerant_map.errors.DecodeError` when the raw
value does not fit.

Validation runs on :class:`pydantic.TypeAdapter`.  Annotations are rewritten
before they reach pydantic: scalar leaves become strict (``"1"`` is not an
``int``) while containers keep accepting the shapes a wire format produces,
such as a list for a ``tuple`` or a value for an :class:`~enum.Enum`.  Unions,
literals, dataclasses and nested tolerant maps are decoded here and plugged in
as plain validators.  An annotation that cannot be validated raises
:class:`TypeError` when the decoder is built, since that is a programming error
rather than bad input.
"""

from __future__ import annotations

import dataclasses
import re
import types
import typing
from collections.abc import Mapping as _Mapping, MutableMapping as _MutableMapping
from dataclasses import dataclass
from typing import Annotated, Any, Callable, Dict, List, Literal, Optional, Tuple, Union

from pydantic import BeforeValidator, Field, PlainValidator, Strict, TypeAdapter, ValidationError
from pydantic.errors import PydanticUserError

from .errors import DecodeError

Decoder = Callable[[object], Any]

_INTEGER_TEXT = re.compile(r"-?(?:0|[1-9][0-9]*)")
_SCALARS = (bool, int, float, str, bytes)
_MAPPING_ORIGINS = (dict, _Mapping, _MutableMapping)


@dataclass(frozen=True)
class IntRange:
    """Inclusive integer bounds attached through :data:`typing.Annotated`.

    ``name`` is what messages and :func:`type_name` show; the bounds become
    pydantic ``ge``/``le`` constraints.
    """

    lo: Optional[int]
    hi: Optional[int]
    name: str

    def constraint(self) -> Any:
        bounds = {"ge": self.lo, "le": self.hi}
        return Field(**{name: bound for name, bound in bounds.items() if bound is not None})


UInt8 = Annotated[int, IntRange(0, 2**8 - 1, "u8")]
UInt16 = Annotated[int, IntRange(0, 2**16 - 1, "u16")]
UInt32 = Annotated[int, IntRange(0, 2**32 - 1, "u32")]
UInt64 = Annotated[int, IntRange(0, 2**64 - 1, "u64")]
Int8 = Annotated[int, IntRange(-(2**7), 2**7 - 1, "i8")]
Int16 = Annotated[int, IntRange(-(2**15), 2**15 - 1, "i16")]
Int32 = Annotated[int, IntRange(-(2**31), 2**31 - 1, "i32")]
Int64 = Annotated[int, IntRange(-(2**63), 2**63 - 1, "i64")]


def describe_value(value: object) -> str:
    """Return the wire-level kind of ``value`` for use in error messages."""

    if value is None:
        return "null"
    if isinstance(value, bool):
        return f"boolean `{'true' if value else 'false'}`"
    if isinstance(value, int):
        return f"integer `{value}`"
    if isinstance(value, float):
        return f"floating point `{value}`"
    if isinstance(value, str):
        return f"string {value!r}"
    if isinstance(value, (bytes, bytearray, memoryview)):
        return "byte array"
    if isinstance(value, _Mapping):
        return "map"
    if isinstance(value, (list, tuple, set, frozenset)):
        return "sequence"
    return type(value).__name__


def type_name(tp: object) -> str:
    """Return a readable name for a type annotation."""

    if tp is Any or tp is object:
        return "any"
    if tp is None or tp is type(None):
        return "None"
    origin = typing.get_origin(tp)
    args = typing.get_args(tp)
    if origin is Annotated:
        for extra in args[1:]:
            if isinstance(extra, IntRange):
                return extra.name
        return type_name(args[0])
    if origin is Union or origin is types.UnionType:
        return " | ".join(type_name(arg) for arg in args)
    if origin is Literal:
        return "one of " + ", ".join(repr(arg) for arg in args)
    if origin is not None:
        base = getattr(origin, "__name__", repr(origin))
        if not args:
            return base
        rendered = ", ".join("..." if arg is Ellipsis else type_name(arg) for arg in args)
        return f"{base}[{rendered}]"
    if isinstance(tp, type):
        return tp.__qualname__
    return repr(tp)


def decoder_for(tp: object, *, string_keys: bool = False, key: bool = False) -> Decoder:
    """Build a decoder for ``tp``.

    Parameters
    ----------
    tp:
        The target annotation.
    string_keys:
        ``True`` when the wire format can only carry text map keys.  Numeric
        and boolean key types are then parsed from their text form, at every
        nesting level.
    key:
        ``True`` when the decoder is used for map keys rather than values.

    Raises
    ------
    TypeError
        If ``tp`` (or any type nested in it) cannot be decoded.
    """

    return _DecoderBuilder(string_keys).build(tp, key=key)


def _identity(raw: object) -> object:
    return raw


def _mismatch(raw: object, expected: str) -> DecodeError:
    return DecodeError(f"invalid type: {describe_value(raw)}, expected {expected}")


def _summarize(exc: ValidationError) -> str:
    error = exc.errors(include_url=False)[0]
    location = ".".join(str(part) for part in error["loc"])
    if location:
        return f"{error['msg']} at `{location}`"
    return error["msg"]


def _bytes_like(raw: object) -> object:
    if isinstance(raw, memoryview):
        return raw.tobytes()
    if isinstance(raw, bytearray):
        return bytes(raw)
    return raw


def _bool_from_text(raw: object) -> object:
    if raw == "true":
        return True
    if raw == "false":
        return False
    return raw


def _int_from_text(raw: object) -> object:
    if not isinstance(raw, str):
        return raw
    if _INTEGER_TEXT.fullmatch(raw) is None:
        raise ValueError(f"invalid type: {describe_value(raw)}, expected an integer")
    # int() refuses text past the interpreter's digit limit with ValueError too
    return int(raw)


def _float_from_text(raw: object) -> object:
    if not isinstance(raw, str):
        return raw
    return float(raw)


_TEXT_PARSERS = {bool: _bool_from_text, int: _int_from_text, float: _float_from_text}


def _literal_decoder(args: Tuple[Any, ...]) -> Decoder:
    expected = "one of " + ", ".join(repr(arg) for arg in args)

    def decode_literal(raw: object) -> Any:
        for allowed in args:
            if type(raw) is type(allowed) and raw == allowed:
                return allowed
        raise _mismatch(raw, expected)

    return decode_literal


class _DecoderBuilder:
    """Builds the decoders of one wire format, nested types included."""

    def __init__(self, string_keys: bool) -> None:
        self.string_keys = string_keys
        self._pending: Dict[type, List[Decoder]] = {}

    def build(self, tp: object, *, key: bool = False) -> Decoder:
        if tp is Any or tp is object:
            return _identity
        custom = self._custom(tp, key=key)
        if custom is not None:
            return custom
        return self._validator(tp, self.annotation(tp, key=key))

    def annotation(self, tp: object, *, key: bool = False) -> Any:
        """Rewrite ``tp`` into the annotation handed to pydantic."""

        if tp is Any or tp is object:
            return Any
        if tp is None or tp is type(None):
            return None
        custom = self._custom(tp, key=key)
        if custom is not None:
            return Annotated[Any, PlainValidator(custom)]
        if tp in _SCALARS:
            return self._scalar(tp, [], key=key)

        origin = typing.get_origin(tp)
        args = typing.get_args(tp)
        if origin is Annotated:
            base, *extras = args
            metadata = [extra.constraint() if isinstance(extra, IntRange) else extra for extra in extras]
            if base in _SCALARS:
                return self._scalar(base, metadata, key=key)
            return Annotated[(self.annotation(base, key=key), *metadata)]
        if origin in _MAPPING_ORIGINS and len(args) == 2:
            key_tp, value_tp = args
            return origin[self.annotation(key_tp, key=True), self.annotation(value_tp)]
        if origin is not None and args:
            rewritten = tuple(arg if arg is Ellipsis else self.annotation(arg) for arg in args)
            try:
                return origin[rewritten]
            except TypeError as exc:
                raise TypeError(f"unsupported type annotation: {tp!r}") from exc
        return tp

    def _scalar(self, base: type, metadata: List[Any], *, key: bool) -> Any:
        extras: List[Any] = [Strict(), *metadata]
        if base is bytes:
            extras.append(BeforeValidator(_bytes_like))
        if key and self.string_keys and base in _TEXT_PARSERS:
            extras.append(BeforeValidator(_TEXT_PARSERS[base]))
        return Annotated[(base, *extras)]

    def _validator(self, tp: object, annotation: Any) -> Decoder:
        try:
            adapter = TypeAdapter(annotation)
        except PydanticUserError as exc:
            raise TypeError(f"unsupported type annotation: {tp!r}") from exc
        validate = adapter.validate_python

        def decode_value(raw: object) -> Any:
            try:
                return validate(raw)
            except ValidationError as exc:
                raise DecodeError(_summarize(exc)) from exc

        return decode_value

    def _custom(self, tp: object, *, key: bool) -> Optional[Decoder]:
        from .core import TolerantMap

        origin = typing.get_origin(tp)
        if origin is Union or origin is types.UnionType:
            return self._union(tp, typing.get_args(tp), key=key)
        if origin is Literal:
            return _literal_decoder(typing.get_args(tp))
        if tp is TolerantMap or origin is TolerantMap:
            return self._tolerant_map(typing.get_args(tp))
        if isinstance(tp, type) and dataclasses.is_dataclass(tp):
            return self._dataclass(tp)
        return None

    def _union(self, tp: object, args: Tuple[Any, ...], *, key: bool) -> Decoder:
        alternatives = [self.build(arg, key=key) for arg in args]
        expected = type_name(tp)

        def decode_union(raw: object) -> Any:
            for alternative in alternatives:
                try:
                    return alternative(raw)
                except DecodeError:
                    continue
            raise _mismatch(raw, expected)

        return decode_union

    def _tolerant_map(self, args: Tuple[Any, ...]) -> Decoder:
        from .core import _decode_entries
        from .sources import MappingSource

        key_tp, value_tp = args if args else (Any, Any)
        decode_key = self.build(key_tp, key=True)
        decode_value = self.build(value_tp)
        string_keys = self.string_keys

        def decode_nested(raw: object) -> Any:
            source = MappingSource(raw, string_keys=string_keys)
            return _decode_entries(source, key_tp, value_tp, decode_key, decode_value)

        return decode_nested

    def _dataclass(self, tp: type) -> Decoder:
        pending = self._pending.get(tp)
        if pending is not None:
            # Self-referential field: resolved once the outer build finishes.
            def decode_recursive(raw: object) -> Any:
                return pending[0](raw)

            return decode_recursive

        cell: List[Decoder] = []
        self._pending[tp] = cell
        try:
            try:
                hints = typing.get_type_hints(tp, include_extras=True)
            except NameError as exc:
                raise TypeError(f"unsupported type annotation: {tp!r} ({exc})") from exc
            fields = [
                (field, self.build(hints.get(field.name, Any)))
                for field in dataclasses.fields(tp)
                if field.init
            ]
        finally:
            del self._pending[tp]
        expected = f"a map describing {tp.__name__}"

        def decode_dataclass(raw: object) -> Any:
            if not isinstance(raw, _Mapping):
                raise _mismatch(raw, expected)
            kwargs: Dict[str, Any] = {}
            for field, decode_field in fields:
                if field.name in raw:
                    kwargs[field.name] = decode_field(raw[field.name])
                elif field.default is dataclasses.MISSING and field.default_factory is dataclasses.MISSING:
                    raise DecodeError(f"missing field `{field.name}` for {tp.__name__}")
            try:
                return tp(**kwargs)
            except Exception as exc:
                raise DecodeError(f"invalid {tp.__name__}: {exc}") from exc

        cell.append(decode_dataclass)
        return decode_dataclass


__all__ = [
    "Decoder",
    "Int16",
    "Int32",
    "Int64",
    "Int8",
    "IntRange",
    "UInt16",
    "UInt32",
    "UInt64",
    "UInt8",
    "decoder_for",
    "describe_value",
    "type_name",
]
