"""Sized numeric annotations for configuration fields.

Python integers and floats have no fixed width. Fields that must fit a
fixed-width type (a port in ``Uint16``, a byte in ``Uint8``) declare it with
one of the ``Annotated`` aliases below, and the coercion engine rejects
values outside the range.

Example:
    >>> @dataclass
    ... class Server:
    ...     port: Uint16 = env_field("PORT", env_default="8080", default=0)
    ...     ratio: Float32 = env_field("RATIO", default=0.0)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Annotated


@dataclass(frozen=True, slots=True)
class IntBits:
    """Bit width and signedness of an integer field."""

    bits: int
    signed: bool = True

    @property
    def min_value(self) -> int:
        return -(1 << (self.bits - 1)) if self.signed else 0

    @property
    def max_value(self) -> int:
        return (1 << (self.bits - 1)) - 1 if self.signed else (1 << self.bits) - 1

    def __contains__(self, value: int) -> bool:
        return self.min_value <= value <= self.max_value

    @property
    def type_name(self) -> str:
        return f"{'int' if self.signed else 'uint'}{self.bits}"


@dataclass(frozen=True, slots=True)
class FloatBits:
    """Bit width of a floating point field (32 or 64)."""

    bits: int

    @property
    def max_value(self) -> float:
        # largest finite IEEE 754 value of the width
        return 3.4028234663852886e38 if self.bits == 32 else 1.7976931348623157e308

    @property
    def type_name(self) -> str:
        return f"float{self.bits}"


Int8 = Annotated[int, IntBits(8)]
Int16 = Annotated[int, IntBits(16)]
Int32 = Annotated[int, IntBits(32)]
Int64 = Annotated[int, IntBits(64)]
Uint8 = Annotated[int, IntBits(8, signed=False)]
Uint16 = Annotated[int, IntBits(16, signed=False)]
Uint32 = Annotated[int, IntBits(32, signed=False)]
Uint64 = Annotated[int, IntBits(64, signed=False)]
Float32 = Annotated[float, FloatBits(32)]
Float64 = Annotated[float, FloatBits(64)]
