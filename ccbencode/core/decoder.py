"""Type-directed bencode decoder.

Decoding is recursive descent over a :class:`ByteCursor`. Each shape gets one
:class:`ShapeDecoder`, built on first use and cached for the life of the
process. A decoder reads the lead byte of the next value and hands the value
to the handler for its wire kind; a handler that does not apply to the shape
raises :class:`BencodeTypeMismatch`.

A lead byte of ``e`` is not a value: it ends the enclosing list or dict and is
reported upward as :data:`END_OF_CONTAINER`.
"""

from __future__ import annotations

import collections.abc
import copy
import dataclasses
import logging
from contextlib import contextmanager
from typing import Any, Iterator

from ccbencode.core.cache import StrategyCache
from ccbencode.core.fields import field_for_decoding
from ccbencode.core.hooks import call_unmarshaler, decode_big_int, implements_unmarshaler
from ccbencode.core.shapes import Shape, ShapeKind, describe, new_record, zero_value
from ccbencode.core.values import (
    COLON,
    END,
    Kind,
    bytes_as_text,
    is_digit,
    parse_decimal,
    parse_length,
)
from ccbencode.utils.exceptions import (
    BencodeDecodeError,
    BencodeError,
    BencodeMissingValue,
    BencodeSyntaxError,
    BencodeTypeMismatch,
    BencodeUnknownKey,
    BencodeUnknownValueType,
    BencodeUnmarshalerError,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 256


class _EndOfContainer:
    __slots__ = ()

    def __repr__(self) -> str:
        return "END_OF_CONTAINER"


class _Skipped:
    __slots__ = ()

    def __repr__(self) -> str:
        return "SKIPPED"


END_OF_CONTAINER = _EndOfContainer()
_SKIPPED = _Skipped()


class ByteCursor:
    """Read position over one input buffer.

    ``offset`` counts from the start of the original document, even for
    cursors over a captured sub-value, and is only used in error messages.
    """

    __slots__ = ("_base", "_data", "_pos")

    def __init__(self, data: bytes | bytearray | memoryview, base_offset: int = 0):
        self._data = bytes(data)
        self._pos = 0
        self._base = base_offset

    @property
    def offset(self) -> int:
        return self._base + self._pos

    @property
    def at_end(self) -> bool:
        return self._pos >= len(self._data)

    @property
    def remaining(self) -> int:
        return max(len(self._data) - self._pos, 0)

    def read_byte(self) -> int:
        if self._pos >= len(self._data):
            raise BencodeSyntaxError(self.offset, "unexpected end of data")
        byte = self._data[self._pos]
        self._pos += 1
        return byte

    def unread_byte(self) -> None:
        if self._pos == 0:
            raise BencodeSyntaxError(self.offset, "nothing to unread")
        self._pos -= 1

    def read_until(self, sep: int) -> bytes:
        """Read up to ``sep``, consuming but not returning it."""
        end = self._data.find(sep, self._pos)
        if end < 0:
            self._pos = len(self._data)
            msg = f"unexpected end of data, expected {chr(sep)!r}"
            raise BencodeSyntaxError(self.offset, msg)
        chunk = self._data[self._pos : end]
        self._pos = end + 1
        return chunk

    def read_exact(self, length: int) -> bytes:
        end = self._pos + length
        if end > len(self._data):
            missing = end - len(self._data)
            self._pos = len(self._data)
            msg = f"unexpected end of data, {missing} more byte(s) expected"
            raise BencodeSyntaxError(self.offset, msg)
        chunk = self._data[self._pos : end]
        self._pos = end
        return chunk

    def span(self, start: int, end: int) -> bytes:
        """Return the bytes between two absolute offsets already read."""
        return self._data[start - self._base : end - self._base]


class DecodeState:
    """Cursor and nesting counter owned by a single decode call."""

    def __init__(self, cursor: ByteCursor, max_depth: int = DEFAULT_MAX_DEPTH):
        self.cursor = cursor
        self.max_depth = max_depth
        self.depth = 0

    @contextmanager
    def nested(self) -> Iterator[None]:
        """Account for one level of list/dict nesting."""
        if self.depth >= self.max_depth:
            msg = f"exceeded maximum nesting depth of {self.max_depth}"
            raise BencodeSyntaxError(self.cursor.offset - 1, msg)
        self.depth += 1
        try:
            yield
        finally:
            self.depth -= 1

    def read_byte_string(self) -> bytes:
        """Read ``<length>:<bytes>`` starting at the length prefix."""
        start = self.cursor.offset
        prefix = self.cursor.read_until(COLON)
        try:
            length = parse_length(prefix)
        except ValueError as e:
            raise BencodeSyntaxError(start, str(e)) from e
        return self.cursor.read_exact(length)

    def read_key(self) -> bytes | None:
        """Read the next dict key, or ``None`` when the dict ends."""
        lead = self.cursor.read_byte()
        if lead == END:
            return None
        if not is_digit(lead):
            msg = f"dict key must be a byte string, found {bytes([lead])!r}"
            raise BencodeSyntaxError(self.cursor.offset - 1, msg)
        self.cursor.unread_byte()
        return self.read_byte_string()

    def read_raw_value(self) -> bytes | None:
        """Capture the next well-formed value verbatim without interpreting it.

        Returns ``None``, leaving the ``e`` unread, when the next byte ends
        the enclosing container.
        """
        start = self.cursor.offset
        if not self._skip_value():
            return None
        return self.cursor.span(start, self.cursor.offset)

    def _skip_value(self) -> bool:
        cursor = self.cursor
        lead = cursor.read_byte()
        if lead == END:
            cursor.unread_byte()
            return False
        kind = Kind.from_lead_byte(lead)
        if kind in (Kind.DICT, Kind.LIST):
            with self.nested():
                while self._skip_value():
                    pass
                cursor.read_byte()
        elif kind is Kind.INTEGER:
            cursor.read_until(END)
        elif kind is Kind.BYTE_STRING:
            cursor.unread_byte()
            self.read_byte_string()
        else:
            raise BencodeUnknownValueType(cursor.offset - 1, lead)
        return True


class ShapeDecoder:
    """Builds values of one shape; every wire kind is rejected by default.

    Calling the decoder reads one value (or the end of the enclosing
    container) and returns the decoded value. ``current`` is the value the
    slot holds already; records and mappings are filled in place when it has
    the right type.
    """

    def __init__(self, shape: Shape):
        self.shape = shape

    def __call__(self, state: DecodeState, current: Any = None) -> Any:
        cursor = state.cursor
        lead = cursor.read_byte()
        if lead == END:
            return END_OF_CONTAINER
        kind = Kind.from_lead_byte(lead)
        if kind is Kind.DICT:
            with state.nested():
                return self.decode_dict(state, current)
        if kind is Kind.LIST:
            with state.nested():
                return self.decode_list(state, current)
        if kind is Kind.INTEGER:
            start = cursor.offset - 1
            return self.decode_int(state, cursor.read_until(END), start)
        if kind is Kind.BYTE_STRING:
            cursor.unread_byte()
            start = cursor.offset
            return self.decode_bytes(state, state.read_byte_string(), start)
        raise BencodeUnknownValueType(cursor.offset - 1, lead)

    def decode_int(self, state: DecodeState, payload: bytes, offset: int) -> Any:
        raise self.mismatch(Kind.INTEGER, offset)

    def decode_bytes(self, state: DecodeState, data: bytes, offset: int) -> Any:
        raise self.mismatch(Kind.BYTE_STRING, offset)

    def decode_list(self, state: DecodeState, current: Any) -> Any:
        raise self.mismatch(Kind.LIST, state.cursor.offset - 1)

    def decode_dict(self, state: DecodeState, current: Any) -> Any:
        raise self.mismatch(Kind.DICT, state.cursor.offset - 1)

    def mismatch(self, kind: Kind, offset: int) -> BencodeTypeMismatch:
        return BencodeTypeMismatch(f"bencode {kind.value}", self.shape.annotation, offset)


class BigIntDecoder(ShapeDecoder):
    def decode_int(self, state: DecodeState, payload: bytes, offset: int) -> Any:
        value = decode_big_int(payload, offset)
        origin = self.shape.origin
        if origin is int:
            return value
        try:
            return origin(value)
        except ValueError:
            raise BencodeTypeMismatch(value, self.shape.annotation, offset) from None


class IntDecoder(ShapeDecoder):
    def decode_int(self, state: DecodeState, payload: bytes, offset: int) -> Any:
        try:
            value = parse_decimal(payload)
        except ValueError:
            raise BencodeTypeMismatch(repr(payload), self.shape.annotation, offset) from None
        if value not in self.shape.width:
            raise BencodeTypeMismatch(value, self.shape.annotation, offset)
        return value


class BoolDecoder(ShapeDecoder):
    def decode_int(self, state: DecodeState, payload: bytes, offset: int) -> Any:
        return payload != b"0"


class TextDecoder(ShapeDecoder):
    def decode_bytes(self, state: DecodeState, data: bytes, offset: int) -> Any:
        text = bytes_as_text(data)
        origin = self.shape.origin
        if origin is str:
            return text
        try:
            return origin(text)
        except ValueError:
            raise BencodeTypeMismatch(repr(text), self.shape.annotation, offset) from None


class BytesDecoder(ShapeDecoder):
    def decode_bytes(self, state: DecodeState, data: bytes, offset: int) -> Any:
        if self.shape.origin is bytes:
            return data
        return self.shape.origin(data)


class ByteArrayDecoder(ShapeDecoder):
    def decode_bytes(self, state: DecodeState, data: bytes, offset: int) -> Any:
        if len(data) != self.shape.size:
            value = f"byte string of length {len(data)}"
            raise BencodeTypeMismatch(value, self.shape.annotation, offset)
        return data


class DynamicDecoder(ShapeDecoder):
    """Decodes schema-less data into ``int``, ``str``, ``list`` and ``dict``."""

    def decode_int(self, state: DecodeState, payload: bytes, offset: int) -> Any:
        return decode_big_int(payload, offset)

    def decode_bytes(self, state: DecodeState, data: bytes, offset: int) -> Any:
        return bytes_as_text(data)

    def decode_list(self, state: DecodeState, current: Any) -> Any:
        items: list[Any] = []
        while True:
            try:
                item = self(state)
            except BencodeError as e:
                e.add_path(len(items))
                raise
            if item is END_OF_CONTAINER:
                return items
            items.append(item)

    def decode_dict(self, state: DecodeState, current: Any) -> Any:
        mapping: dict[str, Any] = {}
        while True:
            raw_key = state.read_key()
            if raw_key is None:
                return mapping
            key = bytes_as_text(raw_key)
            try:
                value = self(state)
            except BencodeError as e:
                e.add_path(key)
                raise
            if value is END_OF_CONTAINER:
                raise BencodeMissingValue(key)
            mapping[key] = value


class SequenceDecoder(ShapeDecoder):
    def decode_list(self, state: DecodeState, current: Any) -> Any:
        decode_item = type_decoder(self.shape.args[0])
        items: list[Any] = []
        while True:
            try:
                item = decode_item(state)
            except BencodeError as e:
                e.add_path(len(items))
                raise
            if item is END_OF_CONTAINER:
                break
            items.append(item)
        origin = self.shape.origin
        return items if origin is list else origin(items)


class ArrayDecoder(ShapeDecoder):
    """Fills a fixed-size tuple; short input is zero-filled, surplus dropped."""

    def decode_list(self, state: DecodeState, current: Any) -> Any:
        slots = self.shape.args
        values: list[Any] = []
        for index, annotation in enumerate(slots):
            try:
                item = type_decoder(annotation)(state)
            except BencodeError as e:
                e.add_path(index)
                raise
            if item is END_OF_CONTAINER:
                values.extend(zero_value(rest) for rest in slots[index:])
                return tuple(values)
            values.append(item)

        surplus = 0
        while state.read_raw_value() is not None:
            surplus += 1
        state.cursor.read_byte()
        if surplus:
            logger.debug(
                "Discarding surplus %d list element(s) for %r",
                surplus,
                self.shape.annotation,
            )
        return tuple(values)


class MappingDecoder(ShapeDecoder):
    def __init__(self, shape: Shape):
        super().__init__(shape)
        self._key_shape = describe(shape.args[0])

    def _key(self, raw_key: bytes, offset: int) -> Any:
        key_shape = self._key_shape
        if key_shape.kind is ShapeKind.BYTES:
            return raw_key if key_shape.origin is bytes else key_shape.origin(raw_key)
        text = bytes_as_text(raw_key)
        if key_shape.kind is ShapeKind.TEXT and key_shape.origin is not str:
            try:
                return key_shape.origin(text)
            except ValueError:
                raise BencodeTypeMismatch(repr(text), key_shape.annotation, offset) from None
        return text

    def decode_dict(self, state: DecodeState, current: Any) -> Any:
        if self._key_shape.kind not in (ShapeKind.TEXT, ShapeKind.BYTES, ShapeKind.DYNAMIC):
            raise self.mismatch(Kind.DICT, state.cursor.offset - 1)
        decode_value = type_decoder(self.shape.args[1])
        if isinstance(current, collections.abc.MutableMapping):
            target = current
        else:
            target = self.shape.origin()
        while True:
            offset = state.cursor.offset
            raw_key = state.read_key()
            if raw_key is None:
                return target
            key = self._key(raw_key, offset)
            try:
                value = decode_value(state)
            except BencodeError as e:
                e.add_path(bytes_as_text(raw_key))
                raise
            if value is END_OF_CONTAINER:
                raise BencodeMissingValue(bytes_as_text(raw_key))
            target[key] = value


class RecordDecoder(ShapeDecoder):
    """Fills a dataclass from a dict; keys without a visible field are fatal."""

    def __init__(self, shape: Shape):
        super().__init__(shape)
        cls = shape.origin
        params = getattr(cls, "__dataclass_params__", None)
        self._assign = object.__setattr__ if params and params.frozen else setattr

    def decode_dict(self, state: DecodeState, current: Any) -> Any:
        cls = self.shape.origin
        target = current if isinstance(current, cls) else new_record(cls)
        while True:
            raw_key = state.read_key()
            if raw_key is None:
                return target
            key = bytes_as_text(raw_key)
            fd = field_for_decoding(cls, key)
            if fd is None or not fd.visible:
                raise BencodeUnknownKey(key, cls)
            decode_field = type_decoder(fd.annotation)
            existing = getattr(target, fd.name, None)
            try:
                if fd.ignore_type_error:
                    value = self._decode_lenient(state, decode_field, existing, key)
                else:
                    value = decode_field(state, existing)
            except BencodeError as e:
                e.add_path(key)
                raise
            if value is END_OF_CONTAINER:
                raise BencodeMissingValue(key)
            if value is not _SKIPPED:
                self._assign(target, fd.name, value)

    def _decode_lenient(
        self,
        state: DecodeState,
        decode_field: ShapeDecoder,
        existing: Any,
        key: str,
    ) -> Any:
        start = state.cursor.offset
        raw = state.read_raw_value()
        if raw is None:
            state.cursor.read_byte()
            return END_OF_CONTAINER
        scoped = DecodeState(ByteCursor(raw, start), state.max_depth - state.depth)
        # Decode into a copy; the field stays unchanged on a mismatch
        try:
            return decode_field(scoped, copy.deepcopy(existing))
        except BencodeTypeMismatch as e:
            logger.debug("Ignoring type mismatch for field %r: %s", key, e)
            return _SKIPPED


class OptionalDecoder(ShapeDecoder):
    def __call__(self, state: DecodeState, current: Any = None) -> Any:
        return type_decoder(self.shape.args[0])(state, current)


class UnmarshalerDecoder(ShapeDecoder):
    """Hands the raw bytes of one value to the class's ``unmarshal_bencode``."""

    def __call__(self, state: DecodeState, current: Any = None) -> Any:
        raw = state.read_raw_value()
        if raw is None:
            state.cursor.read_byte()
            return END_OF_CONTAINER
        cls = self.shape.annotation
        target = current if isinstance(current, cls) else self._new_target(cls)
        call_unmarshaler(target, raw)
        return target

    @staticmethod
    def _new_target(cls: type) -> Any:
        if dataclasses.is_dataclass(cls):
            return new_record(cls)
        try:
            return cls()
        except TypeError as e:
            msg = f"bencode: cannot create a {cls.__name__} to unmarshal into: {e}"
            raise BencodeUnmarshalerError(msg) from e


_DECODERS: dict[ShapeKind, type[ShapeDecoder]] = {
    ShapeKind.BIG_INT: BigIntDecoder,
    ShapeKind.BOOL: BoolDecoder,
    ShapeKind.INT: IntDecoder,
    ShapeKind.TEXT: TextDecoder,
    ShapeKind.BYTES: BytesDecoder,
    ShapeKind.BYTE_ARRAY: ByteArrayDecoder,
    ShapeKind.DYNAMIC: DynamicDecoder,
    ShapeKind.RECORD: RecordDecoder,
    ShapeKind.MAPPING: MappingDecoder,
    ShapeKind.SEQUENCE: SequenceDecoder,
    ShapeKind.ARRAY: ArrayDecoder,
    ShapeKind.OPTIONAL: OptionalDecoder,
}


def new_type_decoder(annotation: Any) -> ShapeDecoder:
    """Construct the decoder for a shape; unmarshal hooks take precedence."""
    if implements_unmarshaler(annotation):
        logger.debug("Built unmarshaler decoder for %r", annotation)
        return UnmarshalerDecoder(describe(annotation))

    shape = describe(annotation)
    decoder = _DECODERS.get(shape.kind, ShapeDecoder)(shape)
    logger.debug("Built %s decoder for %r", shape.kind.value, annotation)
    return decoder


_decoders: StrategyCache[Any] = StrategyCache(new_type_decoder, "decoder")


def type_decoder(annotation: Any) -> ShapeDecoder:
    """Return the cached decoder for ``annotation``."""
    try:
        return _decoders.get(annotation)
    except TypeError:
        # Unhashable annotation; build without caching
        return new_type_decoder(annotation)


def decode_document(
    data: bytes | bytearray | memoryview,
    annotation: Any = Any,
    current: Any = None,
    *,
    max_depth: int = DEFAULT_MAX_DEPTH,
    reject_trailing_data: bool = False,
) -> Any:
    """Decode one complete document into a value of ``annotation``."""
    if not isinstance(data, (bytes, bytearray, memoryview)):
        msg = f"bencode: can only decode bytes-like data, not {type(data).__name__}"
        raise BencodeDecodeError(msg)
    cursor = ByteCursor(data)
    state = DecodeState(cursor, max_depth)
    value = type_decoder(annotation)(state, current)
    if value is END_OF_CONTAINER:
        raise BencodeSyntaxError(cursor.offset - 1, "unexpected 'e'")
    if reject_trailing_data and not cursor.at_end:
        msg = f"{cursor.remaining} trailing byte(s) after value"
        raise BencodeSyntaxError(cursor.offset, msg)
    return value
