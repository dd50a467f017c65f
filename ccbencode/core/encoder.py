"""Type-directed bencode encoder.

Every shape gets one encoder function, built on first use by
:func:`new_type_encoder` and cached for the life of the process. An encoder
function takes the per-call :class:`EncodeState` and the value to write.
"""

from __future__ import annotations

import collections.abc
import logging
import operator
from contextlib import contextmanager
from operator import itemgetter
from typing import Any, Callable, Iterator

from ccbencode.core.cache import StrategyCache
from ccbencode.core.fields import fields_for_encoding
from ccbencode.core.hooks import call_marshaler, encode_big_int, implements_marshaler
from ccbencode.core.shapes import Shape, ShapeKind, describe, zero_value
from ccbencode.core.values import (
    bytes_as_text,
    format_bytes,
    format_int,
    is_empty,
    text_to_bytes,
)
from ccbencode.utils.exceptions import (
    BencodeDuplicateKey,
    BencodeEncodeError,
    BencodeError,
    BencodeTypeMismatch,
    BencodeUnsupportedShape,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 256

EncoderFunc = Callable[["EncodeState", Any], None]

_BYTES_TYPES = (bytes, bytearray, memoryview)


class EncodeState:
    """Output buffer and nesting counter owned by a single encode call."""

    def __init__(self, max_depth: int = DEFAULT_MAX_DEPTH):
        self.buffer = bytearray()
        self.max_depth = max_depth
        self.depth = 0

    def write(self, data: bytes) -> None:
        self.buffer += data

    def encode(self, value: Any, annotation: Any = Any) -> None:
        type_encoder(annotation)(self, value)

    @contextmanager
    def nested(self) -> Iterator[None]:
        """Account for one level of list/dict nesting."""
        if self.depth >= self.max_depth:
            msg = f"bencode: exceeded maximum nesting depth of {self.max_depth}"
            raise BencodeEncodeError(msg)
        self.depth += 1
        try:
            yield
        finally:
            self.depth -= 1

    def getvalue(self) -> bytes:
        return bytes(self.buffer)


def _as_index(value: Any, annotation: Any) -> int:
    try:
        return operator.index(value)
    except TypeError:
        raise BencodeTypeMismatch(type(value).__name__, annotation) from None


def marshaler_encoder(state: EncodeState, value: Any) -> None:
    state.write(call_marshaler(value))


def big_int_encoder(state: EncodeState, value: Any) -> None:
    state.write(encode_big_int(_as_index(value, int)))


def bool_encoder(state: EncodeState, value: Any) -> None:
    if not isinstance(value, int):
        raise BencodeTypeMismatch(type(value).__name__, bool)
    state.write(b"i1e" if value else b"i0e")


def text_encoder(state: EncodeState, value: Any) -> None:
    if not isinstance(value, str):
        raise BencodeTypeMismatch(type(value).__name__, str)
    state.write(format_bytes(_text_bytes(value)))


def _text_bytes(value: str) -> bytes:
    try:
        return text_to_bytes(value)
    except UnicodeEncodeError:
        raise BencodeTypeMismatch(repr(value), str) from None


def bytes_encoder(state: EncodeState, value: Any) -> None:
    if not isinstance(value, _BYTES_TYPES):
        raise BencodeTypeMismatch(type(value).__name__, bytes)
    state.write(format_bytes(value))


def dynamic_encoder(state: EncodeState, value: Any) -> None:
    if value is None:
        raise BencodeUnsupportedShape(None, "no concrete value to encode")
    type_encoder(type(value))(state, value)


def _int_encoder(shape: Shape) -> EncoderFunc:
    width = shape.width
    annotation = shape.annotation

    def encode_int(state: EncodeState, value: Any) -> None:
        n = _as_index(value, annotation)
        if n not in width:
            raise BencodeTypeMismatch(n, annotation)
        state.write(format_int(n))

    return encode_int


def _byte_array_encoder(shape: Shape) -> EncoderFunc:
    size = shape.size
    annotation = shape.annotation

    def encode_byte_array(state: EncodeState, value: Any) -> None:
        if not isinstance(value, _BYTES_TYPES) or len(value) != size:
            raise BencodeTypeMismatch(repr(value), annotation)
        state.write(format_bytes(value))

    return encode_byte_array


def _record_encoder(shape: Shape) -> EncoderFunc:
    cls = shape.origin
    annotation = shape.annotation
    plan = [
        (fd.name, fd.key, fd.omit_empty, format_bytes(fd.key_bytes), type_encoder(fd.annotation))
        for fd in fields_for_encoding(cls)
    ]

    def encode_record(state: EncodeState, value: Any) -> None:
        if not isinstance(value, cls):
            raise BencodeTypeMismatch(type(value).__name__, annotation)
        with state.nested():
            state.write(b"d")
            for name, key, omit_empty, encoded_key, encode in plan:
                item = getattr(value, name)
                if omit_empty and is_empty(item):
                    continue
                state.write(encoded_key)
                try:
                    encode(state, item)
                except BencodeError as e:
                    e.add_path(key)
                    raise
            state.write(b"e")

    return encode_record


def _mapping_key(key: Any) -> bytes:
    if isinstance(key, str):
        return _text_bytes(key)
    if isinstance(key, _BYTES_TYPES):
        return bytes(key)
    raise BencodeUnsupportedShape(type(key), "mapping keys must be str or bytes")


def _mapping_encoder(shape: Shape) -> EncoderFunc:
    key_annotation, value_annotation = shape.args
    annotation = shape.annotation
    if describe(key_annotation).kind not in (
        ShapeKind.TEXT,
        ShapeKind.BYTES,
        ShapeKind.DYNAMIC,
    ):
        return _unsupported_encoder(annotation, "mapping keys must be str or bytes")
    encode_value = type_encoder(value_annotation)

    def encode_mapping(state: EncodeState, value: Any) -> None:
        if value is None:
            state.write(b"de")
            return
        if not isinstance(value, collections.abc.Mapping):
            raise BencodeTypeMismatch(type(value).__name__, annotation)
        entries = sorted(
            ((_mapping_key(key), item) for key, item in value.items()),
            key=itemgetter(0),
        )
        with state.nested():
            state.write(b"d")
            previous = None
            for raw_key, item in entries:
                if raw_key == previous:
                    raise BencodeDuplicateKey(raw_key)
                previous = raw_key
                state.write(format_bytes(raw_key))
                try:
                    encode_value(state, item)
                except BencodeError as e:
                    e.add_path(bytes_as_text(raw_key))
                    raise
            state.write(b"e")

    return encode_mapping


def _is_sequence(value: Any) -> bool:
    return isinstance(value, collections.abc.Sequence) and not isinstance(
        value, (str, *_BYTES_TYPES)
    )


def _sequence_encoder(shape: Shape) -> EncoderFunc:
    annotation = shape.annotation
    encode_item = type_encoder(shape.args[0])

    def encode_sequence(state: EncodeState, value: Any) -> None:
        if value is None:
            state.write(b"le")
            return
        if not _is_sequence(value):
            raise BencodeTypeMismatch(type(value).__name__, annotation)
        with state.nested():
            state.write(b"l")
            for index, item in enumerate(value):
                try:
                    encode_item(state, item)
                except BencodeError as e:
                    e.add_path(index)
                    raise
            state.write(b"e")

    return encode_sequence


def _array_encoder(shape: Shape) -> EncoderFunc:
    annotation = shape.annotation
    slots = [type_encoder(arg) for arg in shape.args]

    def encode_array(state: EncodeState, value: Any) -> None:
        if not _is_sequence(value) or len(value) != len(slots):
            raise BencodeTypeMismatch(repr(value), annotation)
        with state.nested():
            state.write(b"l")
            for index, (encode_item, item) in enumerate(zip(slots, value)):
                try:
                    encode_item(state, item)
                except BencodeError as e:
                    e.add_path(index)
                    raise
            state.write(b"e")

    return encode_array


def _optional_encoder(shape: Shape) -> EncoderFunc:
    inner = shape.args[0]
    encode_inner = type_encoder(inner)

    def encode_optional(state: EncodeState, value: Any) -> None:
        if value is None:
            value = zero_value(inner)
        encode_inner(state, value)

    return encode_optional


def _unsupported_encoder(annotation: Any, reason: str | None = None) -> EncoderFunc:
    def encode_unsupported(state: EncodeState, value: Any) -> None:
        raise BencodeUnsupportedShape(annotation, reason)

    return encode_unsupported


_SIMPLE_ENCODERS: dict[ShapeKind, EncoderFunc] = {
    ShapeKind.BIG_INT: big_int_encoder,
    ShapeKind.BOOL: bool_encoder,
    ShapeKind.TEXT: text_encoder,
    ShapeKind.BYTES: bytes_encoder,
    ShapeKind.DYNAMIC: dynamic_encoder,
}

_ENCODER_BUILDERS: dict[ShapeKind, Callable[[Shape], EncoderFunc]] = {
    ShapeKind.INT: _int_encoder,
    ShapeKind.BYTE_ARRAY: _byte_array_encoder,
    ShapeKind.RECORD: _record_encoder,
    ShapeKind.MAPPING: _mapping_encoder,
    ShapeKind.SEQUENCE: _sequence_encoder,
    ShapeKind.ARRAY: _array_encoder,
    ShapeKind.OPTIONAL: _optional_encoder,
}


def new_type_encoder(annotation: Any) -> EncoderFunc:
    """Construct the encoder function for a shape.

    Self-marshaling classes win over every structural rule, so a dataclass
    with ``marshal_bencode`` is written by its hook, not field by field.
    """
    if implements_marshaler(annotation):
        logger.debug("Built marshaler encoder for %r", annotation)
        return marshaler_encoder

    shape = describe(annotation)
    encoder = _SIMPLE_ENCODERS.get(shape.kind)
    if encoder is None:
        builder = _ENCODER_BUILDERS.get(shape.kind)
        encoder = builder(shape) if builder else _unsupported_encoder(annotation)
    logger.debug("Built %s encoder for %r", shape.kind.value, annotation)
    return encoder


_encoders: StrategyCache[Any] = StrategyCache(new_type_encoder, "encoder")


def type_encoder(annotation: Any) -> EncoderFunc:
    """Return the cached encoder function for ``annotation``."""
    try:
        return _encoders.get(annotation)
    except TypeError:
        # Unhashable annotation; build without caching
        return new_type_encoder(annotation)
