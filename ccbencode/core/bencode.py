"""Public bencode entry points.

``marshal``/``encode`` turn a value into canonical bencode, ``decode`` builds a
new value of the requested shape, and ``unmarshal`` fills an existing record,
list, mapping or self-unmarshaling object in place::

    @dataclass
    class Announce:
        interval: int
        peers: list[str] = bencode_field("peers,omitempty", default=None)

    data = marshal(Announce(1800))              # b"d8:intervali1800ee"
    decode(data, Announce)                      # Announce(interval=1800, peers=None)

Defaults for nesting depth and trailing-data handling come from the ``codec``
configuration section unless given explicitly.
"""

from __future__ import annotations

import collections.abc
import dataclasses
from typing import Any

from ccbencode.config.config import get_codec_config
from ccbencode.core.decoder import decode_document
from ccbencode.core.encoder import EncodeState
from ccbencode.core.hooks import implements_unmarshaler
from ccbencode.utils.exceptions import BencodeInvalidTarget


def _max_depth(max_depth: int | None) -> int:
    return get_codec_config().max_depth if max_depth is None else max_depth


def _reject_trailing(reject_trailing_data: bool | None) -> bool:
    if reject_trailing_data is None:
        return get_codec_config().reject_trailing_data
    return reject_trailing_data


class BencodeEncoder:
    """Encoder bound to a fixed set of options."""

    def __init__(self, max_depth: int | None = None):
        self.max_depth = _max_depth(max_depth)

    def encode(self, value: Any, shape: Any = Any) -> bytes:
        """Encode ``value`` as ``shape`` (its runtime type by default).

        Raises:
            BencodeEncodeError: If the value cannot be encoded

        """
        state = EncodeState(self.max_depth)
        state.encode(value, shape)
        return state.getvalue()


class BencodeDecoder:
    """Decoder for one document."""

    def __init__(
        self,
        data: bytes | bytearray | memoryview,
        shape: Any = Any,
        *,
        max_depth: int | None = None,
        reject_trailing_data: bool | None = None,
    ):
        self.data = data
        self.shape = shape
        self.max_depth = _max_depth(max_depth)
        self.reject_trailing_data = _reject_trailing(reject_trailing_data)

    def decode(self, current: Any = None) -> Any:
        """Decode the document.

        Args:
            current: Existing value to fill where the shape allows it

        Raises:
            BencodeDecodeError: If the data is malformed or does not fit the shape

        """
        return decode_document(
            self.data,
            self.shape,
            current,
            max_depth=self.max_depth,
            reject_trailing_data=self.reject_trailing_data,
        )


def marshal(value: Any, shape: Any = Any, *, max_depth: int | None = None) -> bytes:
    """Encode ``value`` to canonical bencode."""
    return BencodeEncoder(max_depth).encode(value, shape)


encode = marshal


def decode(
    data: bytes | bytearray | memoryview,
    shape: Any = Any,
    *,
    max_depth: int | None = None,
    reject_trailing_data: bool | None = None,
) -> Any:
    """Decode a complete document into a new value of ``shape``.

    With the default dynamic shape, byte strings come back as ``str``,
    integers as ``int``, lists as ``list`` and dicts as ``dict[str, Any]``.
    """
    return BencodeDecoder(
        data,
        shape,
        max_depth=max_depth,
        reject_trailing_data=reject_trailing_data,
    ).decode()


def _fillable(target: Any) -> bool:
    return (
        (dataclasses.is_dataclass(target) and not isinstance(target, type))
        or isinstance(target, collections.abc.MutableSequence)
        or isinstance(target, collections.abc.MutableMapping)
        or implements_unmarshaler(type(target))
    )


def unmarshal(
    data: bytes | bytearray | memoryview,
    target: Any,
    shape: Any = None,
    *,
    max_depth: int | None = None,
    reject_trailing_data: bool | None = None,
) -> None:
    """Decode a complete document into ``target`` in place.

    ``shape`` defaults to ``type(target)``; pass e.g. ``list[int]`` to type the
    elements of a list target. On failure ``target`` is left partially filled.

    Raises:
        BencodeInvalidTarget: If ``target`` cannot be filled in place
        BencodeDecodeError: If the data is malformed or does not fit the shape

    """
    if not _fillable(target):
        msg = (
            f"bencode: cannot unmarshal into {type(target).__name__}; "
            "pass a dataclass instance, list, dict or unmarshal_bencode object"
        )
        raise BencodeInvalidTarget(msg)

    result = BencodeDecoder(
        data,
        type(target) if shape is None else shape,
        max_depth=max_depth,
        reject_trailing_data=reject_trailing_data,
    ).decode(target)

    if result is target:
        return
    if isinstance(target, collections.abc.MutableSequence):
        target[:] = result
        return
    msg = f"bencode: decoded value cannot be stored in {type(target).__name__} in place"
    raise BencodeInvalidTarget(msg)
