"""Tests for the type-directed encoder."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

import pytest

from ccbencode import ByteArray, Int8, UInt8, UInt32, bencode_field, marshal
from ccbencode.core.encoder import EncodeState, new_type_encoder, type_encoder
from ccbencode.utils.exceptions import (
    BencodeDuplicateKey,
    BencodeEncodeError,
    BencodeTypeMismatch,
    BencodeUnsupportedShape,
)

pytestmark = [pytest.mark.unit, pytest.mark.core]


@dataclass
class Ordered:
    zeta: int = 1
    alpha: str = "a"


@dataclass
class Tagged:
    length: int = bencode_field("piece length", default=0)
    local: str = bencode_field("-", default="local")
    _secret: int = 99


@dataclass
class Inner:
    count: int = 0
    name: str = ""


@dataclass
class Outer:
    inner: Inner = bencode_field("inner,omitempty", default_factory=Inner)
    tags: list[str] = bencode_field("tags,omitempty", default=None)
    meta: dict[str, int] = bencode_field("meta,omitempty", default=None)
    pair: tuple[int, str] = bencode_field("pair,omitempty", default=(0, ""))
    flag: bool = bencode_field("flag,omitempty", default=False)


@dataclass
class Containers:
    items: list[int] = None
    table: dict[str, int] = None
    link: Optional[Inner] = None
    count: Optional[int] = None


@dataclass
class FileEntry:
    length: UInt32 = 0


@dataclass
class Info:
    files: list[FileEntry] = field(default_factory=list)


class TestScalars:
    """Test scalar strategies."""

    def test_integers(self):
        """Test arbitrary precision and booleans."""
        assert marshal(42) == b"i42e"
        assert marshal(-(2**100)) == b"i-1267650600228229401496703205376e"
        assert marshal(True) == b"i1e"
        assert marshal(False) == b"i0e"

    def test_fixed_width_in_range(self):
        """Test values inside the declared width."""
        assert marshal(-128, Int8) == b"i-128e"
        assert marshal(255, UInt8) == b"i255e"

    @pytest.mark.parametrize(("value", "shape"), [(128, Int8), (-1, UInt8), (256, UInt8)])
    def test_fixed_width_overflow(self, value, shape):
        """Test values outside the declared width."""
        with pytest.raises(BencodeTypeMismatch):
            marshal(value, shape)

    def test_text_length_is_in_bytes(self):
        """Test the prefix counts UTF-8 bytes, not characters."""
        assert marshal("é") == b"2:\xc3\xa9"

    def test_lone_surrogate(self):
        """Test text with no UTF-8 form is refused."""
        with pytest.raises(BencodeTypeMismatch):
            marshal("\ud800")

    def test_byte_types(self):
        """Test every bytes-like type encodes as a byte string."""
        assert marshal(b"ab") == b"2:ab"
        assert marshal(bytearray(b"ab")) == b"2:ab"
        assert marshal(memoryview(b"ab")) == b"2:ab"

    def test_byte_array(self):
        """Test fixed-size byte arrays check their length."""
        assert marshal(b"abcd", ByteArray(4)) == b"4:abcd"
        with pytest.raises(BencodeTypeMismatch):
            marshal(b"abc", ByteArray(4))

    def test_wrong_runtime_type(self):
        """Test values that do not match the requested shape."""
        with pytest.raises(BencodeTypeMismatch):
            marshal("1", int)
        with pytest.raises(BencodeTypeMismatch):
            marshal(1, str)
        with pytest.raises(BencodeTypeMismatch):
            marshal("ab", bytes)

    def test_unsupported(self):
        """Test values with no strategy."""
        with pytest.raises(BencodeUnsupportedShape):
            marshal(1.5)
        with pytest.raises(BencodeUnsupportedShape):
            marshal({1, 2})
        with pytest.raises(BencodeUnsupportedShape):
            marshal(None)
        with pytest.raises(BencodeUnsupportedShape):
            marshal(1, float)


class TestRecords:
    """Test dataclass encoding."""

    def test_fields_sorted_by_key(self):
        """Test output order follows wire keys, not declaration order."""
        assert marshal(Ordered()) == b"d5:alpha1:a4:zetai1ee"

    def test_renamed_skipped_and_private(self):
        """Test tags rename and skip, and private fields never appear."""
        assert marshal(Tagged(length=5)) == b"d12:piece lengthi5ee"

    def test_omitempty_cascades(self):
        """Test empty nested values are all omitted."""
        assert marshal(Outer()) == b"de"

    def test_omitempty_keeps_present_values(self):
        """Test present but empty containers are still written."""
        assert marshal(Outer(tags=[], meta={})) == b"d4:metade4:tagslee"
        assert marshal(Outer(inner=Inner(count=1))) == b"d5:innerd5:counti1e4:name0:ee"
        assert marshal(Outer(pair=(0, "x"))) == b"d4:pairli0e1:xee"
        assert marshal(Outer(flag=True)) == b"d4:flagi1ee"

    def test_absent_containers_and_optionals(self):
        """Test None containers become empty and None optionals their zero."""
        assert marshal(Containers()) == (
            b"d5:counti0e5:itemsle4:linkd5:counti0e4:name0:e5:tabledee"
        )

    def test_wrong_record_type(self):
        """Test a record shape refuses other objects."""
        with pytest.raises(BencodeTypeMismatch):
            marshal(Inner(), Ordered)

    def test_error_path(self):
        """Test errors name the nested location that failed."""
        info = Info([FileEntry(1), FileEntry(-1)])
        with pytest.raises(BencodeTypeMismatch) as exc_info:
            marshal(info)
        assert exc_info.value.path == ["files", 1, "length"]
        assert exc_info.value.location == "files[1].length"
        assert "at files[1].length" in str(exc_info.value)


class TestMappings:
    """Test mapping encoding."""

    def test_keys_sorted_by_raw_bytes(self):
        """Test canonical key order."""
        assert marshal({"b": 1, "a": 2, "ab": 3}) == b"d1:ai2e2:abi3e1:bi1ee"

    def test_bytes_keys(self):
        """Test byte string keys."""
        assert marshal({b"\xff": 1, b"\x00": 2}) == b"d1:\x00i2e1:\xffi1ee"

    def test_typed_values(self):
        """Test values use the declared value shape."""
        assert marshal({"a": 1}, dict[str, UInt8]) == b"d1:ai1ee"
        with pytest.raises(BencodeTypeMismatch):
            marshal({"a": 300}, dict[str, UInt8])

    def test_duplicate_raw_keys(self):
        """Test text and bytes keys that collide."""
        with pytest.raises(BencodeDuplicateKey):
            marshal({"a": 1, b"a": 2})

    def test_record_fields_sharing_a_key(self):
        """Test a record whose fields collide on the wire is refused."""

        @dataclass
        class Twice:
            first: int = bencode_field("n", default=1)
            second: int = bencode_field("n", default=2)

        with pytest.raises(BencodeDuplicateKey):
            marshal(Twice())

    def test_unsupported_key_shape(self):
        """Test mappings keyed by other types."""
        with pytest.raises(BencodeUnsupportedShape):
            marshal({1: 2}, dict[int, int])
        with pytest.raises(BencodeUnsupportedShape):
            marshal({1: 2})

    def test_not_a_mapping(self):
        """Test a mapping shape refuses other values."""
        with pytest.raises(BencodeTypeMismatch):
            marshal([1], dict[str, int])


class TestSequences:
    """Test list and tuple encoding."""

    def test_typed_list(self):
        """Test element shapes apply to each element."""
        assert marshal([1, 2], list[UInt8]) == b"li1ei2ee"
        assert marshal(None, list[int]) == b"le"

    def test_tuple_as_sequence(self):
        """Test tuples encode as lists."""
        assert marshal((1, "a")) == b"li1e1:ae"
        assert marshal((1, 2), tuple[int, ...]) == b"li1ei2ee"

    def test_fixed_array(self):
        """Test fixed-size tuples need exactly their length."""
        assert marshal((1, "a"), tuple[int, str]) == b"li1e1:ae"
        with pytest.raises(BencodeTypeMismatch):
            marshal((1,), tuple[int, str])

    def test_strings_are_not_sequences(self):
        """Test a string is refused by a list shape."""
        with pytest.raises(BencodeTypeMismatch):
            marshal("abc", list[str])

    def test_element_error_path(self):
        """Test failing elements are located by index."""
        with pytest.raises(BencodeTypeMismatch) as exc_info:
            marshal([1, 2, 300], list[UInt8])
        assert exc_info.value.path == [2]


class TestEncodeState:
    """Test the per-call encoder state."""

    def test_depth_limit(self):
        """Test deeply nested values are cut off."""
        value: list[Any] = []
        for _ in range(10):
            value = [value]
        assert marshal(value, max_depth=11) == b"l" * 11 + b"e" * 11
        with pytest.raises(BencodeEncodeError, match="nesting depth"):
            marshal(value, max_depth=10)

    def test_self_reference(self):
        """Test a list containing itself fails instead of recursing forever."""
        value: list[Any] = []
        value.append(value)
        with pytest.raises(BencodeEncodeError):
            marshal(value, max_depth=32)

    def test_state_collects_output(self):
        """Test a state can encode several values in sequence."""
        state = EncodeState()
        state.encode(1)
        state.encode("a", str)
        assert state.getvalue() == b"i1e1:a"

    def test_encoders_are_cached(self):
        """Test the same shape returns the same encoder."""
        assert type_encoder(list[int]) is type_encoder(list[int])
        assert new_type_encoder(list[int]) is not type_encoder(list[int])
