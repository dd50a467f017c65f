"""Bencode value model and its mapping onto Python primitives.

Bencode knows four kinds of value: byte strings, integers, lists and dicts.
This module holds the wire-level constants for them, the annotation markers
used to narrow Python's ``int`` and ``bytes`` to the fixed-width integers and
fixed-size byte arrays other bencode producers use, and the small conversions
shared by the encoder and decoder.
"""

from __future__ import annotations

import dataclasses
import re
from dataclasses import dataclass
from enum import Enum
from typing import Annotated, Any

# Lead and terminator bytes
DICT_START = ord("d")
LIST_START = ord("l")
INT_START = ord("i")
END = ord("e")
COLON = ord(":")

TEXT_ENCODING = "utf-8"
# Bencode strings are raw bytes; surrogateescape lets any of them survive a
# trip through ``str``.
TEXT_ERRORS = "surrogateescape"

_DECIMAL = re.compile(rb"[+-]?[0-9]+")
_LENGTH = re.compile(rb"[0-9]+")

# Decimal conversions are split into chunks no longer than this, which is
# under the smallest limit ``sys.set_int_max_str_digits`` accepts.
_CHUNK_DIGITS = 600
_CHUNK_LIMIT = 10**_CHUNK_DIGITS
_LOG10_2 = 0.30102999566398120


class Kind(Enum):
    """The four bencode value kinds."""

    BYTE_STRING = "byte string"
    INTEGER = "integer"
    LIST = "list"
    DICT = "dict"

    @classmethod
    def from_lead_byte(cls, byte: int) -> Kind | None:
        """Return the kind a value starting with ``byte`` has, if any."""
        if byte == DICT_START:
            return cls.DICT
        if byte == LIST_START:
            return cls.LIST
        if byte == INT_START:
            return cls.INTEGER
        if is_digit(byte):
            return cls.BYTE_STRING
        return None


@dataclass(frozen=True)
class IntWidth:
    """Restricts an ``int`` annotation to a machine integer range."""

    bits: int
    signed: bool = True

    @property
    def min(self) -> int:
        return -(1 << (self.bits - 1)) if self.signed else 0

    @property
    def max(self) -> int:
        return (1 << (self.bits - 1)) - 1 if self.signed else (1 << self.bits) - 1

    def __contains__(self, value: int) -> bool:
        return self.min <= value <= self.max

    def __str__(self) -> str:
        return f"{'int' if self.signed else 'uint'}{self.bits}"


@dataclass(frozen=True)
class FixedSize:
    """Restricts a ``bytes`` annotation to exactly ``size`` bytes."""

    size: int


Int8 = Annotated[int, IntWidth(8)]
Int16 = Annotated[int, IntWidth(16)]
Int32 = Annotated[int, IntWidth(32)]
Int64 = Annotated[int, IntWidth(64)]
UInt8 = Annotated[int, IntWidth(8, signed=False)]
UInt16 = Annotated[int, IntWidth(16, signed=False)]
UInt32 = Annotated[int, IntWidth(32, signed=False)]
UInt64 = Annotated[int, IntWidth(64, signed=False)]
Int = Int64
UInt = UInt64


def ByteArray(size: int) -> Any:  # noqa: N802 - reads as a type in annotations
    """Annotation for a byte string of exactly ``size`` bytes.

    Example::

        @dataclass
        class Peer:
            id: ByteArray(20)
    """
    if size < 0:
        msg = f"ByteArray size must be non-negative, got {size}"
        raise ValueError(msg)
    return Annotated[bytes, FixedSize(size)]


def is_digit(byte: int) -> bool:
    return 0x30 <= byte <= 0x39


def text_to_bytes(text: str) -> bytes:
    """Encode text the way it goes on the wire."""
    return text.encode(TEXT_ENCODING, TEXT_ERRORS)


def bytes_as_text(data: bytes) -> str:
    """View raw wire bytes as text; ``text_to_bytes`` restores them exactly."""
    if not data:
        return ""
    return bytes(data).decode(TEXT_ENCODING, TEXT_ERRORS)


def parse_decimal(raw: bytes) -> int:
    """Parse a decimal integer payload.

    Accepts an optional sign followed by digits; ``int()`` alone would also
    take surrounding whitespace and underscores.

    Raises:
        ValueError: If ``raw`` is not a decimal number

    """
    if not _DECIMAL.fullmatch(raw):
        msg = f"invalid decimal {raw!r}"
        raise ValueError(msg)
    if raw[:1] == b"-":
        return -_digits_to_int(raw[1:])
    if raw[:1] == b"+":
        return _digits_to_int(raw[1:])
    return _digits_to_int(raw)


def parse_length(raw: bytes) -> int:
    """Parse a byte string length prefix.

    Raises:
        ValueError: If ``raw`` is not a run of digits

    """
    if not _LENGTH.fullmatch(raw):
        msg = f"invalid string length {raw!r}"
        raise ValueError(msg)
    return _digits_to_int(raw)


def _digits_to_int(digits: bytes) -> int:
    """Convert ASCII digits of any length, halving the run until ``int()`` takes it."""
    if len(digits) <= _CHUNK_DIGITS:
        return int(digits)
    split = len(digits) // 2
    return _digits_to_int(digits[:-split]) * 10**split + _digits_to_int(digits[-split:])


def _int_to_digits(value: int) -> bytes:
    """Render a non-negative ``int`` in decimal, however many digits it has."""
    if value < _CHUNK_LIMIT:
        return b"%d" % value
    # ``split`` stays under the digit count, so ``high`` is never 0
    split = int(value.bit_length() * _LOG10_2) // 2
    high, low = divmod(value, 10**split)
    return _int_to_digits(high) + _int_to_digits(low).rjust(split, b"0")


def format_decimal(value: int) -> bytes:
    """Format an ``int`` of any size as ASCII decimal."""
    if value < 0:
        return b"-" + _int_to_digits(-value)
    return _int_to_digits(value)


def format_int(value: int) -> bytes:
    return b"i%se" % format_decimal(value)


def format_bytes(data: bytes | bytearray | memoryview) -> bytes:
    return b"%d:%s" % (len(data), bytes(data))


def is_visible(name: str) -> bool:
    """Report whether a record field is part of the public surface."""
    return not name.startswith("_")


def is_empty(value: Any) -> bool:
    """Report whether ``value`` counts as empty for ``omitempty``.

    Lists and dicts are only empty when absent (``None``); tuples are empty
    when every element is, and records when every visible field is.
    """
    if value is None:
        return True
    if isinstance(value, int):
        return value == 0
    if isinstance(value, (str, bytes, bytearray, memoryview)):
        return len(value) == 0
    if isinstance(value, tuple):
        return all(is_empty(item) for item in value)
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return all(
            is_empty(getattr(value, f.name))
            for f in dataclasses.fields(value)
            if is_visible(f.name)
        )
    return False
