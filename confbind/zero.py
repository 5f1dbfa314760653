"""Zero-state detection for configuration values.

A slot is "zero" when it holds its type's empty value: ``None``, ``False``,
``0``, ``0.0``, an empty string/bytes/container, ``timedelta(0)``, or a
dataclass instance whose fields are all zero. The resolver consults this
twice: to decide whether a default applies and whether a required field is
missing. A field explicitly initialised to its zero value is therefore
indistinguishable from one that was never set.
"""

from __future__ import annotations

import dataclasses
import math
from collections.abc import Mapping, Sequence, Set
from datetime import timedelta
from typing import Any

from confbind.exceptions import UnsupportedTypeError


def is_zero(value: Any) -> bool:
    """Return True if ``value`` is in its type's zero state.

    Floats and complex numbers follow bit-level semantics: ``-0.0`` has a
    sign bit set and is not zero.

    Raises:
        UnsupportedTypeError: If the value's emptiness cannot be decided.
    """
    if value is None:
        return True
    if isinstance(value, bool):
        return not value
    if isinstance(value, int):
        return value == 0
    if isinstance(value, float):
        return value == 0.0 and math.copysign(1.0, value) > 0
    if isinstance(value, complex):
        return is_zero(value.real) and is_zero(value.imag)
    if isinstance(value, (str, bytes, bytearray)):
        return len(value) == 0
    if isinstance(value, timedelta):
        return value == timedelta(0)
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return all(is_zero(getattr(value, f.name)) for f in dataclasses.fields(value))
    if isinstance(value, (Sequence, Set, Mapping)):
        return len(value) == 0

    # Anything else (datetimes, custom setter types) is zero only if it says so.
    try:
        return not value
    except (TypeError, ValueError) as e:
        raise UnsupportedTypeError(type(value).__name__, details={"reason": str(e)}) from e
