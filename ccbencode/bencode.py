"""Bencoding module.

This module provides a convenient interface to the core bencode functionality.
"""

from __future__ import annotations

from ccbencode.core.bencode import (
    BencodeDecoder,
    BencodeEncoder,
    decode,
    encode,
    marshal,
    unmarshal,
)
from ccbencode.utils.exceptions import BencodeDecodeError, BencodeEncodeError

__all__ = [
    "BencodeDecodeError",
    "BencodeDecoder",
    "BencodeEncodeError",
    "BencodeEncoder",
    "decode",
    "encode",
    "marshal",
    "unmarshal",
]
