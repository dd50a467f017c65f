"""Field metadata for record (dataclass) shapes.

Record fields are tagged through dataclass field metadata under the
``"bencode"`` key, using a comma-separated directive::

    @dataclass
    class File:
        length: int
        md5sum: str = bencode_field("md5sum,omitempty", default="")
        path: list[str] = bencode_field("path", default_factory=list)
        local_path: str = bencode_field("-", default="")

The first token is ``-`` (skip the field) or the wire key (empty keeps the
field name); the remaining tokens are options. ``omitempty`` drops the field
from encoded output when its value is empty, ``ignore_unmarshal_type_error``
leaves the field untouched when the wire value does not fit it. Unknown
options are ignored.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from typing import Any

from ccbencode.core.cache import MemoTable
from ccbencode.core.shapes import type_hints
from ccbencode.core.values import is_visible, text_to_bytes
from ccbencode.utils.exceptions import BencodeDuplicateKey

TAG_KEY = "bencode"

OMIT_EMPTY = "omitempty"
IGNORE_UNMARSHAL_TYPE_ERROR = "ignore_unmarshal_type_error"


@dataclass(frozen=True)
class Tag:
    """Parsed field directive."""

    key: str = ""
    options: tuple[str, ...] = ()

    @classmethod
    def parse(cls, raw: str) -> Tag:
        key, *options = raw.split(",")
        return cls(key, tuple(options))

    @property
    def ignore(self) -> bool:
        return self.key == "-"

    def has_option(self, option: str) -> bool:
        return option in self.options

    @property
    def omit_empty(self) -> bool:
        return self.has_option(OMIT_EMPTY)

    @property
    def ignore_type_error(self) -> bool:
        return self.has_option(IGNORE_UNMARSHAL_TYPE_ERROR)


@dataclass(frozen=True)
class FieldDescriptor:
    """One serializable slot of a record shape."""

    owner: type
    name: str
    index: int
    key: str
    key_bytes: bytes
    annotation: Any
    omit_empty: bool
    ignore_type_error: bool
    visible: bool
    tag: Tag


def bencode_field(tag: str = "", **kwargs: Any) -> Any:
    """Declare a dataclass field carrying a bencode directive.

    Keyword arguments are passed on to :func:`dataclasses.field`.
    """
    metadata = dict(kwargs.pop("metadata", None) or {})
    metadata[TAG_KEY] = tag
    return dataclasses.field(metadata=metadata, **kwargs)


def _field_tag(f: dataclasses.Field) -> Tag:
    return Tag.parse(f.metadata.get(TAG_KEY, ""))


def _describe_fields(cls: type) -> list[FieldDescriptor]:
    """Describe every non-ignored field in declaration order."""
    hints = type_hints(cls)
    described = []
    for index, f in enumerate(dataclasses.fields(cls)):
        tag = _field_tag(f)
        if tag.ignore:
            continue
        key = tag.key or f.name
        described.append(
            FieldDescriptor(
                owner=cls,
                name=f.name,
                index=index,
                key=key,
                key_bytes=text_to_bytes(key),
                annotation=hints.get(f.name, Any),
                omit_empty=tag.omit_empty,
                ignore_type_error=tag.ignore_type_error,
                visible=is_visible(f.name),
                tag=tag,
            )
        )
    return described


def encode_fields(cls: type) -> tuple[FieldDescriptor, ...]:
    """Visible fields sorted by wire key, which makes record output canonical.

    Raises:
        BencodeDuplicateKey: If two visible fields share a wire key

    """
    visible = sorted(
        (fd for fd in _describe_fields(cls) if fd.visible),
        key=lambda fd: fd.key_bytes,
    )
    for previous, fd in zip(visible, visible[1:]):
        if previous.key_bytes == fd.key_bytes:
            raise BencodeDuplicateKey(fd.key_bytes)
    return tuple(visible)


def decode_fields(cls: type) -> dict[str, FieldDescriptor]:
    """Map wire keys to fields; for a repeated key the first declared field wins."""
    by_key: dict[str, FieldDescriptor] = {}
    for fd in _describe_fields(cls):
        by_key.setdefault(fd.key, fd)
    return by_key


_encode_cache: MemoTable[type, tuple[FieldDescriptor, ...]] = MemoTable(encode_fields)
_decode_cache: MemoTable[type, dict[str, FieldDescriptor]] = MemoTable(decode_fields)


def fields_for_encoding(cls: type) -> tuple[FieldDescriptor, ...]:
    return _encode_cache.get(cls)


def field_for_decoding(cls: type, key: str) -> FieldDescriptor | None:
    return _decode_cache.get(cls).get(key)
