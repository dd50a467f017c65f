"""Shape descriptors: what a type annotation means to the codec.

A shape is a Python type annotation (``int``, ``list[str]``, a dataclass,
``dict[str, Any]``, ...). :func:`describe` reduces an annotation to a
:class:`Shape` once and caches it for the rest of the process.
"""

from __future__ import annotations

import collections.abc
import dataclasses
import inspect
import types
import typing
from dataclasses import dataclass
from enum import Enum
from typing import Annotated, Any, Union

from ccbencode.core.cache import MemoTable
from ccbencode.core.values import FixedSize, IntWidth


class ShapeKind(str, Enum):
    """Structural categories the encoder and decoder dispatch on."""

    BIG_INT = "big_int"
    BOOL = "bool"
    INT = "int"
    TEXT = "text"
    BYTES = "bytes"
    BYTE_ARRAY = "byte_array"
    DYNAMIC = "dynamic"
    RECORD = "record"
    MAPPING = "mapping"
    SEQUENCE = "sequence"
    ARRAY = "array"
    OPTIONAL = "optional"
    UNSUPPORTED = "unsupported"


@dataclass(frozen=True)
class Shape:
    """Read-only description of one annotation.

    Attributes:
        kind: Structural category
        annotation: The annotation this shape was derived from
        origin: Concrete class used to build values of this shape
        args: Element annotations (sequence element, mapping key and value,
            fixed tuple slots, optional payload)
        width: Integer range for ``INT`` shapes
        size: Byte count for ``BYTE_ARRAY`` shapes

    """

    kind: ShapeKind
    annotation: Any
    origin: Any = None
    args: tuple[Any, ...] = ()
    width: IntWidth | None = None
    size: int | None = None


_ABSTRACT_DEFAULTS = {
    ShapeKind.MAPPING: dict,
    ShapeKind.SEQUENCE: list,
}


def _concrete(kind: ShapeKind, container: type) -> type:
    if inspect.isabstract(container) or container in (
        collections.abc.Mapping,
        collections.abc.MutableMapping,
        collections.abc.Sequence,
        collections.abc.MutableSequence,
    ):
        return _ABSTRACT_DEFAULTS[kind]
    return container


def _describe_annotated(annotation: Any, base: Any, metadata: tuple[Any, ...]) -> Shape:
    for marker in metadata:
        if isinstance(marker, IntWidth):
            if base is int:
                return Shape(ShapeKind.INT, annotation, int, width=marker)
            return Shape(ShapeKind.UNSUPPORTED, annotation)
        if isinstance(marker, FixedSize):
            if base is bytes:
                return Shape(ShapeKind.BYTE_ARRAY, annotation, bytes, size=marker.size)
            return Shape(ShapeKind.UNSUPPORTED, annotation)
    return dataclasses.replace(describe(base), annotation=annotation)


def _describe_tuple(annotation: Any, container: type, args: tuple[Any, ...], bare: bool) -> Shape:
    if bare:
        return Shape(ShapeKind.SEQUENCE, annotation, container, (Any,))
    if args in ((), ((),)):
        return Shape(ShapeKind.ARRAY, annotation, container, ())
    if len(args) == 2 and args[1] is Ellipsis:
        return Shape(ShapeKind.SEQUENCE, annotation, container, (args[0],))
    return Shape(ShapeKind.ARRAY, annotation, container, args)


def _describe(annotation: Any) -> Shape:
    if annotation is Any or annotation is object:
        return Shape(ShapeKind.DYNAMIC, annotation)

    origin = typing.get_origin(annotation)
    args = typing.get_args(annotation)

    if origin is Annotated:
        return _describe_annotated(annotation, args[0], args[1:])

    if origin is Union or origin is types.UnionType:
        present = tuple(arg for arg in args if arg is not type(None))
        if len(present) == 1 and len(present) < len(args):
            return Shape(ShapeKind.OPTIONAL, annotation, args=present)
        return Shape(ShapeKind.UNSUPPORTED, annotation)

    container = annotation if origin is None else origin
    if not isinstance(container, type) or container is type(None):
        return Shape(ShapeKind.UNSUPPORTED, annotation)

    if dataclasses.is_dataclass(container):
        return Shape(ShapeKind.RECORD, annotation, container)
    if issubclass(container, bool):
        return Shape(ShapeKind.BOOL, annotation, container)
    if issubclass(container, int):
        return Shape(ShapeKind.BIG_INT, annotation, container)
    if issubclass(container, str):
        return Shape(ShapeKind.TEXT, annotation, container)
    if issubclass(container, bytearray):
        return Shape(ShapeKind.BYTES, annotation, bytearray)
    if issubclass(container, (bytes, memoryview)):
        return Shape(ShapeKind.BYTES, annotation, bytes)
    if issubclass(container, tuple):
        return _describe_tuple(annotation, container, args, bare=origin is None)
    if issubclass(container, collections.abc.Mapping):
        key, value = args if len(args) == 2 else (Any, Any)
        return Shape(
            ShapeKind.MAPPING,
            annotation,
            _concrete(ShapeKind.MAPPING, container),
            (key, value),
        )
    if issubclass(container, collections.abc.Sequence):
        element = args[0] if args else Any
        return Shape(
            ShapeKind.SEQUENCE,
            annotation,
            _concrete(ShapeKind.SEQUENCE, container),
            (element,),
        )
    return Shape(ShapeKind.UNSUPPORTED, annotation)


_shapes: MemoTable[Any, Shape] = MemoTable(_describe)


def describe(annotation: Any) -> Shape:
    """Return the cached :class:`Shape` for ``annotation``."""
    if isinstance(annotation, Shape):
        return annotation
    try:
        return _shapes.get(annotation)
    except TypeError:
        # Annotated[...] carrying unhashable metadata
        return _describe(annotation)


_hints: MemoTable[type, dict[str, Any]] = MemoTable(
    lambda cls: typing.get_type_hints(cls, include_extras=True)
)


def type_hints(cls: type) -> dict[str, Any]:
    """Resolved field annotations of a record class, forward references included."""
    return _hints.get(cls)


def zero_value(annotation: Any) -> Any:
    """Return the value an absent slot of this shape starts out with.

    Records come back as fresh instances built without calling ``__init__``:
    fields with a declared default or default factory take it, the rest take
    their own shape's zero value.
    """
    shape = describe(annotation)
    kind = shape.kind
    if kind in (ShapeKind.BIG_INT, ShapeKind.INT):
        return 0
    if kind is ShapeKind.BOOL:
        return False
    if kind is ShapeKind.TEXT:
        return ""
    if kind is ShapeKind.BYTES:
        return shape.origin()
    if kind is ShapeKind.BYTE_ARRAY:
        return bytes(shape.size or 0)
    if kind is ShapeKind.ARRAY:
        return tuple(zero_value(arg) for arg in shape.args)
    if kind is ShapeKind.RECORD:
        return new_record(shape.origin)
    return None


def new_record(cls: type) -> Any:
    """Build a record instance holding default or zero field values."""
    record = cls.__new__(cls)
    hints = type_hints(cls)
    for f in dataclasses.fields(cls):
        if f.default is not dataclasses.MISSING:
            value = f.default
        elif f.default_factory is not dataclasses.MISSING:
            value = f.default_factory()
        else:
            value = zero_value(hints.get(f.name, Any))
        object.__setattr__(record, f.name, value)
    return record
