"""Extension hooks: self-describing classes and arbitrary-precision integers.

A class opts out of the generic engine by implementing ``marshal_bencode``
and/or ``unmarshal_bencode``::

    class Timestamp:
        def marshal_bencode(self) -> bytes:
            return b"i%de" % int(self.when.timestamp())

        def unmarshal_bencode(self, data: bytes) -> None:
            self.when = datetime.fromtimestamp(decode(data, int))

Marshal output is written to the stream verbatim, so it must itself be one
well-formed bencode value. Unmarshal receives the raw bytes of exactly one
value.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from ccbencode.core.values import format_int, parse_decimal
from ccbencode.utils.exceptions import (
    BencodeError,
    BencodeMalformedInteger,
    BencodeMarshalerError,
    BencodeTypeMismatch,
    BencodeUnmarshalerError,
)


@runtime_checkable
class Marshaler(Protocol):
    """Implemented by classes that encode themselves."""

    def marshal_bencode(self) -> bytes: ...


@runtime_checkable
class Unmarshaler(Protocol):
    """Implemented by classes that decode themselves."""

    def unmarshal_bencode(self, data: bytes) -> None: ...


def implements_marshaler(annotation: Any) -> bool:
    return isinstance(annotation, type) and callable(
        getattr(annotation, "marshal_bencode", None)
    )


def implements_unmarshaler(annotation: Any) -> bool:
    return isinstance(annotation, type) and callable(
        getattr(annotation, "unmarshal_bencode", None)
    )


def call_marshaler(value: Any) -> bytes:
    """Run ``value.marshal_bencode()`` and check it produced bytes."""
    if value is None:
        msg = "bencode: cannot marshal None through marshal_bencode"
        raise BencodeMarshalerError(msg)
    try:
        data = value.marshal_bencode()
    except BencodeError:
        raise
    except Exception as e:
        msg = f"bencode: {type(value).__name__}.marshal_bencode failed: {e}"
        raise BencodeMarshalerError(msg) from e
    if not isinstance(data, (bytes, bytearray, memoryview)):
        raise BencodeTypeMismatch(type(data).__name__, bytes)
    return bytes(data)


def call_unmarshaler(target: Any, data: bytes) -> None:
    """Hand one raw value to ``target.unmarshal_bencode``."""
    try:
        target.unmarshal_bencode(data)
    except BencodeError:
        raise
    except Exception as e:
        msg = f"bencode: {type(target).__name__}.unmarshal_bencode failed: {e}"
        raise BencodeUnmarshalerError(msg) from e


def encode_big_int(value: int) -> bytes:
    return format_int(value)


def decode_big_int(payload: bytes, offset: int | None = None) -> int:
    """Parse an integer payload into an arbitrary-precision ``int``.

    Raises:
        BencodeMalformedInteger: If the payload is empty or not decimal

    """
    if not payload:
        raise BencodeMalformedInteger(payload, offset)
    try:
        return parse_decimal(payload)
    except ValueError as e:
        raise BencodeMalformedInteger(payload, offset) from e
