"""
Field element codec.

Field elements are plain ints in [0, FIELD_MODULUS). At every external
boundary (witness files, calldata, public input files) they travel as
32-byte big-endian values, rendered as 0x-prefixed 64-digit hex.
"""

from __future__ import annotations

from typing import Iterable, List, Union

from .config import FIELD_BYTES, FIELD_HEX_DIGITS, FIELD_MODULUS
from .exceptions import ValidationError

FieldLike = Union[int, bytes, bytearray, str]


def to_field(value: FieldLike, label: str = "value") -> int:
    """
    Decode a field element.

    Args:
        value: int, big-endian bytes (at most 32), or hex string (0x optional)
        label: Name used in error messages

    Returns:
        Field element as int

    Raises:
        ValidationError: If the value is negative, too wide, or >= the modulus

    Example:
        >>> to_field("0x01")
        1
    """
    if isinstance(value, bool):
        raise ValidationError(f"{label} must be a field element, got bool")

    if isinstance(value, int):
        number = value
    elif isinstance(value, (bytes, bytearray)):
        if len(value) > FIELD_BYTES:
            raise ValidationError(f"{label} must be at most {FIELD_BYTES} bytes")
        number = int.from_bytes(bytes(value), "big")
    elif isinstance(value, str):
        text = value.strip()
        if text[:2].lower() == "0x":
            text = text[2:]
        if not text:
            raise ValidationError(f"{label} cannot be empty")
        if len(text) > FIELD_HEX_DIGITS:
            raise ValidationError(f"{label} must be at most {FIELD_HEX_DIGITS} hex digits")
        try:
            number = int(text, 16)
        except ValueError as exc:
            raise ValidationError(f"{label} is not valid hex: {value!r}") from exc
    else:
        raise ValidationError(
            f"{label} must be int, bytes, or hex str, got {type(value).__name__}"
        )

    if number < 0:
        raise ValidationError(f"{label} must be non-negative")
    if number >= FIELD_MODULUS:
        raise ValidationError(f"{label} is not reduced modulo the field")
    return number


def to_hex(value: int) -> str:
    """Render a field element as 0x + 64 lowercase hex digits."""
    return f"0x{to_field(value):0{FIELD_HEX_DIGITS}x}"


def to_bytes32(value: int) -> bytes:
    return to_field(value).to_bytes(FIELD_BYTES, "big")


def from_bytes32(data: bytes) -> int:
    if len(data) != FIELD_BYTES:
        raise ValidationError(f"expected {FIELD_BYTES} bytes, got {len(data)}")
    return to_field(data)


def pack_fields(values: Iterable[int]) -> bytes:
    """Concatenate field elements as 32-byte big-endian words."""
    return b"".join(to_bytes32(value) for value in values)


def unpack_fields(data: bytes) -> List[int]:
    if len(data) % FIELD_BYTES:
        raise ValidationError(
            f"packed field data must be a multiple of {FIELD_BYTES} bytes, got {len(data)}"
        )
    return [
        from_bytes32(data[offset:offset + FIELD_BYTES])
        for offset in range(0, len(data), FIELD_BYTES)
    ]


def index_bits(index: int, depth: int) -> List[int]:
    """
    Decompose a leaf index into `depth` little-endian bits.

    Bit i is the left/right selector at tree level i (0 = tracked node is
    the left operand). The accumulator and both circuits use this one
    function so the orderings cannot drift apart.

    Raises:
        ValidationError: If index is outside [0, 2**depth)
    """
    if isinstance(index, bool) or not isinstance(index, int):
        raise ValidationError(f"index must be int, got {type(index).__name__}")
    if depth < 1:
        raise ValidationError(f"depth must be positive, got {depth}")
    if not 0 <= index < (1 << depth):
        raise ValidationError(f"index {index} out of range [0, {1 << depth})")
    return [(index >> level) & 1 for level in range(depth)]
