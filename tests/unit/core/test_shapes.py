"""Tests for shape descriptors and zero values."""

from __future__ import annotations

import collections.abc
import typing
from dataclasses import dataclass, field
from typing import Any, Optional, Union

import pytest

from ccbencode.core.shapes import ShapeKind, describe, new_record, zero_value
from ccbencode.core.values import ByteArray, Int32, IntWidth, UInt16

pytestmark = [pytest.mark.unit, pytest.mark.core]


@dataclass
class Node:
    value: int
    next: Optional[Node] = None


@dataclass(frozen=True)
class Frozen:
    name: str
    size: int = 4


@dataclass
class Defaults:
    count: int
    label: str = "x"
    tags: list[str] = field(default_factory=lambda: ["a"])
    pair: tuple[int, bytes] = (0, b"")
    nested: Frozen = field(default_factory=lambda: Frozen("n"))


class TestDescribe:
    """Test annotation classification."""

    @pytest.mark.parametrize(
        ("annotation", "kind"),
        [
            (int, ShapeKind.BIG_INT),
            (bool, ShapeKind.BOOL),
            (Int32, ShapeKind.INT),
            (str, ShapeKind.TEXT),
            (bytes, ShapeKind.BYTES),
            (bytearray, ShapeKind.BYTES),
            (ByteArray(4), ShapeKind.BYTE_ARRAY),
            (Any, ShapeKind.DYNAMIC),
            (object, ShapeKind.DYNAMIC),
            (list[int], ShapeKind.SEQUENCE),
            (typing.List[int], ShapeKind.SEQUENCE),
            (collections.abc.Sequence[str], ShapeKind.SEQUENCE),
            (tuple[int, ...], ShapeKind.SEQUENCE),
            (tuple, ShapeKind.SEQUENCE),
            (tuple[int, str], ShapeKind.ARRAY),
            (dict[str, int], ShapeKind.MAPPING),
            (typing.Mapping[bytes, Any], ShapeKind.MAPPING),
            (Optional[int], ShapeKind.OPTIONAL),
            (int | None, ShapeKind.OPTIONAL),
            (Node, ShapeKind.RECORD),
            (float, ShapeKind.UNSUPPORTED),
            (set[int], ShapeKind.UNSUPPORTED),
            (Union[int, str], ShapeKind.UNSUPPORTED),
            (type(None), ShapeKind.UNSUPPORTED),
        ],
    )
    def test_kind(self, annotation, kind):
        """Test each annotation lands in the expected category."""
        assert describe(annotation).kind is kind

    def test_fixed_width_details(self):
        """Test width markers are carried on the shape."""
        shape = describe(UInt16)
        assert shape.width == IntWidth(16, signed=False)
        assert shape.origin is int
        assert shape.annotation == UInt16

    def test_byte_array_size(self):
        """Test fixed-size byte arrays record their size."""
        assert describe(ByteArray(20)).size == 20

    def test_abstract_containers_build_concrete_values(self):
        """Test abstract annotations pick list and dict as origins."""
        assert describe(collections.abc.Sequence[int]).origin is list
        assert describe(collections.abc.Mapping[str, int]).origin is dict
        assert describe(tuple[int, ...]).origin is tuple

    def test_element_annotations(self):
        """Test args hold element annotations."""
        assert describe(list[str]).args == (str,)
        assert describe(dict[bytes, int]).args == (bytes, int)
        assert describe(dict).args == (Any, Any)
        assert describe(tuple[int, str]).args == (int, str)
        assert describe(tuple[()]).args == ()
        assert describe(Optional[str]).args == (str,)

    def test_bytearray_origin(self):
        """Test bytearray keeps its own origin."""
        assert describe(bytearray).origin is bytearray
        assert describe(bytes).origin is bytes

    def test_descriptions_are_cached(self):
        """Test the same annotation yields the same descriptor object."""
        assert describe(list[int]) is describe(list[int])

    def test_annotated_without_known_marker(self):
        """Test unrelated metadata falls through to the base type."""
        shape = describe(typing.Annotated[str, "doc"])
        assert shape.kind is ShapeKind.TEXT

    def test_width_marker_on_non_int(self):
        """Test a width marker on another type is unsupported."""
        assert describe(typing.Annotated[str, IntWidth(8)]).kind is ShapeKind.UNSUPPORTED


class TestZeroValue:
    """Test the zero value of each shape."""

    @pytest.mark.parametrize(
        ("annotation", "expected"),
        [
            (int, 0),
            (Int32, 0),
            (bool, False),
            (str, ""),
            (bytes, b""),
            (ByteArray(3), b"\x00\x00\x00"),
            (list[int], None),
            (dict[str, int], None),
            (Optional[int], None),
            (Any, None),
            (tuple[int, str, bool], (0, "", False)),
        ],
    )
    def test_zero(self, annotation, expected):
        """Test per-shape zero values."""
        assert zero_value(annotation) == expected

    def test_bytearray_zero_is_fresh(self):
        """Test bytearray zeros are distinct objects."""
        first = zero_value(bytearray)
        assert first == bytearray()
        assert first is not zero_value(bytearray)

    def test_record_zero_uses_defaults(self):
        """Test record zero values take declared defaults."""
        record = zero_value(Defaults)
        assert record.count == 0
        assert record.label == "x"
        assert record.tags == ["a"]
        assert record.pair == (0, b"")
        assert record.nested == Frozen("n")

    def test_default_factory_runs_per_record(self):
        """Test default factories are not shared between records."""
        assert new_record(Defaults).tags is not new_record(Defaults).tags

    def test_frozen_record(self):
        """Test records can be built for frozen dataclasses."""
        record = new_record(Frozen)
        assert record == Frozen("", 4)

    def test_self_referencing_record(self):
        """Test forward references resolve and optional links start empty."""
        record = new_record(Node)
        assert record.value == 0
        assert record.next is None
