"""ccBencode - typed bencode encoding and decoding."""

from __future__ import annotations

__version__ = "0.1.0"

from ccbencode.core.bencode import (
    BencodeDecoder,
    BencodeEncoder,
    decode,
    encode,
    marshal,
    unmarshal,
)
from ccbencode.core.fields import bencode_field
from ccbencode.core.hooks import Marshaler, Unmarshaler
from ccbencode.core.values import (
    ByteArray,
    Int,
    Int8,
    Int16,
    Int32,
    Int64,
    UInt,
    UInt8,
    UInt16,
    UInt32,
    UInt64,
)
from ccbencode.utils.exceptions import (
    BencodeDecodeError,
    BencodeDuplicateKey,
    BencodeEncodeError,
    BencodeError,
    BencodeInvalidTarget,
    BencodeMalformedInteger,
    BencodeMarshalerError,
    BencodeMissingValue,
    BencodeSyntaxError,
    BencodeTypeMismatch,
    BencodeUnknownKey,
    BencodeUnknownValueType,
    BencodeUnmarshalerError,
    BencodeUnsupportedShape,
)

__all__ = [
    "BencodeDecodeError",
    "BencodeDecoder",
    "BencodeDuplicateKey",
    "BencodeEncodeError",
    "BencodeEncoder",
    "BencodeError",
    "BencodeInvalidTarget",
    "BencodeMalformedInteger",
    "BencodeMarshalerError",
    "BencodeMissingValue",
    "BencodeSyntaxError",
    "BencodeTypeMismatch",
    "BencodeUnknownKey",
    "BencodeUnknownValueType",
    "BencodeUnmarshalerError",
    "BencodeUnsupportedShape",
    "ByteArray",
    "Int",
    "Int8",
    "Int16",
    "Int32",
    "Int64",
    "Marshaler",
    "UInt",
    "UInt8",
    "UInt16",
    "UInt32",
    "UInt64",
    "Unmarshaler",
    "__version__",
    "bencode_field",
    "decode",
    "encode",
    "marshal",
    "unmarshal",
]
