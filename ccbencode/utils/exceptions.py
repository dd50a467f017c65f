"""Exception hierarchy for ccBencode.

Every error raised by the codec derives from :class:`BencodeError`, so callers
can catch the whole family at once or pick out the precise failure.
"""

from __future__ import annotations

from typing import Any


class CCBencodeError(Exception):
    """Base exception for all ccBencode errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        """Initialize ccBencode error."""
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Return string representation of the error."""
        if self.details:
            return f"{self.message} (Details: {self.details})"
        return self.message


class ValidationError(CCBencodeError):
    """Data validation errors."""


class ConfigurationError(ValidationError):
    """Configuration validation errors."""


class BencodeError(ValidationError):
    """Bencode encoding/decoding errors.

    ``path`` lists the dict keys and list indices leading from the top-level
    value down to the value that failed, outermost first.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        """Initialize bencode error."""
        super().__init__(message, details)
        self.path: list[str | int] = []

    def add_path(self, segment: str | int) -> None:
        """Record that the failure happened below ``segment``."""
        self.path.insert(0, segment)

    @property
    def location(self) -> str:
        """Render ``path`` as ``info.files[2].length``."""
        out = ""
        for segment in self.path:
            if isinstance(segment, int):
                out += f"[{segment}]"
            elif out:
                out += f".{segment}"
            else:
                out = segment
        return out

    def __str__(self) -> str:
        """Return string representation including the failing location."""
        text = super().__str__()
        if self.path:
            return f"{text} at {self.location}"
        return text


class BencodeEncodeError(BencodeError):
    """Encoding errors."""


class BencodeDecodeError(BencodeError):
    """Decoding errors."""


class BencodeUnsupportedShape(BencodeEncodeError):
    """No encoding strategy exists for the requested shape."""

    def __init__(self, shape: Any, reason: str | None = None):
        """Initialize unsupported shape error."""
        msg = f"bencode: unsupported type: {shape!r}"
        if reason:
            msg = f"{msg} ({reason})"
        super().__init__(msg)
        self.shape = shape


class BencodeDuplicateKey(BencodeEncodeError):
    """Two mapping keys encode to the same byte string."""

    def __init__(self, key: bytes):
        """Initialize duplicate key error."""
        super().__init__(f"bencode: duplicate dict key {key!r}")
        self.key = key


class BencodeMarshalerError(BencodeEncodeError):
    """A ``marshal_bencode`` hook failed."""


def _describe_value(value: Any) -> str:
    # Huge ints would trip the interpreter's int-to-str digit limit
    if isinstance(value, int) and value.bit_length() > 1024:
        return f"{value.bit_length()}-bit integer"
    return str(value)


class BencodeTypeMismatch(BencodeEncodeError, BencodeDecodeError):
    """A value is incompatible with its target shape, or overflows it."""

    def __init__(self, value: Any, target: Any, offset: int | None = None):
        """Initialize type mismatch error."""
        msg = f"bencode: cannot convert {_describe_value(value)} into {target!r}"
        if offset is not None:
            msg = f"{msg} (Offset: {offset})"
        super().__init__(msg)
        self.value = value
        self.target = target
        self.offset = offset


class BencodeSyntaxError(BencodeDecodeError):
    """The byte stream is malformed at ``offset``."""

    def __init__(self, offset: int, cause: str):
        """Initialize syntax error."""
        super().__init__(f"bencode: syntax error (Offset: {offset}): {cause}")
        self.offset = offset
        self.cause = cause


class BencodeUnknownValueType(BencodeSyntaxError):
    """A value starts with a byte other than ``d``, ``l``, ``i`` or a digit."""

    def __init__(self, offset: int, byte: int):
        """Initialize unknown value type error."""
        super().__init__(offset, f"unknown value type {bytes([byte])!r}")
        self.byte = byte


class BencodeMalformedInteger(BencodeDecodeError):
    """An integer payload is empty or not a decimal number."""

    def __init__(self, payload: bytes, offset: int | None = None):
        """Initialize malformed integer error."""
        msg = f"bencode: malformed integer {payload!r}"
        if offset is not None:
            msg = f"{msg} (Offset: {offset})"
        super().__init__(msg)
        self.payload = payload
        self.offset = offset


class BencodeUnknownKey(BencodeDecodeError):
    """A dict key has no matching field in the target record."""

    def __init__(self, key: str, target: Any = None):
        """Initialize unknown key error."""
        msg = f"bencode: unknown key {key!r}"
        if target is not None:
            msg = f"{msg} for {getattr(target, '__name__', target)}"
        super().__init__(msg)
        self.key = key
        self.target = target


class BencodeMissingValue(BencodeDecodeError):
    """A dict ended right after a key."""

    def __init__(self, key: str):
        """Initialize missing value error."""
        super().__init__(f"bencode: missing value for key {key!r}")
        self.key = key


class BencodeInvalidTarget(BencodeDecodeError):
    """``unmarshal`` was given a target it cannot fill in place."""


class BencodeUnmarshalerError(BencodeDecodeError):
    """An ``unmarshal_bencode`` hook failed."""
