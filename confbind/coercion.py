"""Value coercion engine.

Converts one raw string into a typed value according to a declared type
hint. All per-type dispatch lives in ``parse_value``; sequences and mappings
recurse into it for their element types.

Dispatch order (first match wins, ``Optional[T]`` is unwrapped to ``T``):
    1. Types exposing ``set_value(raw)`` (see ``ValueSetter``)
    2. ``str``
    3. ``bool``
    4. ``timedelta`` (duration literals) and ``int`` (sized via ``confbind.types``)
    5. ``float``
    6. ``bytes`` / ``bytearray``
    7. Sequences: ``list``, ``tuple``, ``set``, ``frozenset``, ``Sequence``...
    8. Mappings: ``dict``, ``Mapping``...
    9. ``datetime`` and ``date``
    10. Anything else: ``UnsupportedTypeError``

Example:
    >>> parse_value("a,b,c", list[str])
    ['a', 'b', 'c']
    >>> parse_value("k1:1;k2:2", dict[str, int], separator=";")
    {'k1': 1, 'k2': 2}
    >>> parse_value("1h30m", timedelta)
    datetime.timedelta(seconds=5400)
"""

from __future__ import annotations

import collections.abc
import re
import struct
import types
from datetime import date, datetime, timedelta
from decimal import Decimal, InvalidOperation
from typing import Annotated, Any, Protocol, Union, get_args, get_origin, runtime_checkable

from confbind.exceptions import CoercionError, InvalidMapEntryError, UnsupportedTypeError
from confbind.types import FloatBits, IntBits


# =============================================================================
# Constants
# =============================================================================

DEFAULT_SEPARATOR = ","

TRUE_VALUES = frozenset({"1", "t", "true", "yes", "on"})
FALSE_VALUES = frozenset({"0", "f", "false", "no", "off"})

SEQUENCE_ORIGINS: dict[Any, type] = {
    list: list,
    collections.abc.Sequence: list,
    collections.abc.MutableSequence: list,
    collections.abc.Iterable: list,
    collections.abc.Collection: list,
    set: set,
    collections.abc.Set: set,
    collections.abc.MutableSet: set,
    frozenset: frozenset,
    tuple: tuple,
}

MAPPING_ORIGINS = frozenset({
    dict,
    collections.abc.Mapping,
    collections.abc.MutableMapping,
})

_NANOS_PER_UNIT: dict[str, int] = {
    "ns": 1,
    "us": 1_000,
    "µs": 1_000,  # U+00B5 micro sign
    "μs": 1_000,  # U+03BC greek mu
    "ms": 1_000_000,
    "s": 1_000_000_000,
    "m": 60 * 1_000_000_000,
    "h": 3600 * 1_000_000_000,
}

_DURATION_COMPONENT = r"(?:\d+(?:\.\d*)?|\.\d+)(?:ns|us|µs|μs|ms|s|m|h)"
_DURATION_RE = re.compile(rf"[+-]?(?:{_DURATION_COMPONENT})+", re.ASCII)
_COMPONENT_RE = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|μs|ms|s|m|h)", re.ASCII)

# C-style octal such as file modes ("0755")
_LEGACY_OCTAL_RE = re.compile(r"[+-]?0[0-7]+", re.ASCII)


# =============================================================================
# Custom Setter Capability
# =============================================================================


@runtime_checkable
class ValueSetter(Protocol):
    """Capability for types that parse their own raw string.

    When a field's type (or its current value) provides ``set_value``, the
    engine delegates to it entirely. Raising any exception signals failure;
    it is wrapped in ``CoercionError`` with the original as ``cause``.

    An instance already in the slot (from ``default_factory``) is never
    zero unless the type defines ``__bool__``, so ``env_default`` and
    ``required`` do not apply to it. Declare such fields as
    ``SetterType | None = None`` to get both: the engine instantiates the
    type with no arguments before calling ``set_value``.

    Example:
        >>> class LogLevelName:
        ...     def __init__(self) -> None:
        ...         self.name = "INFO"
        ...
        ...     def set_value(self, raw: str) -> None:
        ...         if raw.upper() not in {"DEBUG", "INFO", "WARNING"}:
        ...             raise ValueError(f"unknown level {raw!r}")
        ...         self.name = raw.upper()
    """

    def set_value(self, raw: str) -> None: ...


# =============================================================================
# Type Introspection
# =============================================================================


def unwrap_optional(tp: Any) -> tuple[Any, bool]:
    """Strip ``None`` from ``Optional[T]`` / ``T | None``.

    Returns:
        The inner type and whether it was optional. Unions of several
        non-None members are returned unchanged.
    """
    origin = get_origin(tp)
    if origin is Union or origin is types.UnionType:
        members = [arg for arg in get_args(tp) if arg is not type(None)]
        if len(members) == 1 and len(members) != len(get_args(tp)):
            return members[0], True
    return tp, False


def strip_annotated(tp: Any) -> tuple[Any, tuple[Any, ...]]:
    """Split ``Annotated[T, ...]`` into ``T`` and its metadata."""
    if get_origin(tp) is Annotated:
        base, *extras = get_args(tp)
        return base, tuple(extras)
    return tp, ()


def type_name(tp: Any) -> str:
    """Return a short human-readable name for a type hint."""
    inner, optional = unwrap_optional(tp)
    base, extras = strip_annotated(inner)
    name: str | None = None
    for extra in extras:
        if isinstance(extra, (IntBits, FloatBits)):
            name = extra.type_name
    if name is None:
        if isinstance(base, type) and not get_args(base):
            name = base.__name__
        else:
            name = repr(base).replace("typing.", "").replace("collections.abc.", "")
    return f"{name} | None" if optional else name


# =============================================================================
# Scalar Parsers
# =============================================================================


def parse_bool(raw: str) -> bool:
    """Parse a boolean literal (``1/0``, ``t/f``, ``true/false``, ``yes/no``, ``on/off``)."""
    lower = raw.lower()
    if lower in TRUE_VALUES:
        return True
    if lower in FALSE_VALUES:
        return False
    raise ValueError(f"invalid boolean literal {raw!r}")


def parse_duration(raw: str) -> timedelta:
    """Parse a duration literal such as ``"300ms"``, ``"5s"`` or ``"-1h30m"``.

    Every number needs a unit (``ns``, ``us``/``µs``, ``ms``, ``s``, ``m``,
    ``h``); the only unit-less literal accepted is ``"0"``. Precision below
    one microsecond is truncated.

    Raises:
        ValueError: If the literal is malformed or out of range.
    """
    if raw in ("0", "+0", "-0"):
        return timedelta(0)
    if not _DURATION_RE.fullmatch(raw):
        raise ValueError(f"invalid duration {raw!r}")

    negative = raw.startswith("-")
    total = Decimal(0)
    try:
        for number, unit in _COMPONENT_RE.findall(raw):
            total += Decimal(number) * _NANOS_PER_UNIT[unit]
    except InvalidOperation as e:
        raise ValueError(f"invalid duration {raw!r}") from e

    micros = int(total / 1000)
    try:
        result = timedelta(microseconds=micros)
    except OverflowError as e:
        raise ValueError(f"duration out of range {raw!r}") from e
    return -result if negative else result


def _check_literal(raw: str) -> None:
    # int() and float() tolerate surrounding whitespace and non-ASCII digits
    if not raw.isascii() or raw != raw.strip():
        raise ValueError(f"invalid numeric literal {raw!r}")


def _parse_int(raw: str, bits: IntBits | None) -> int:
    _check_literal(raw)
    if _LEGACY_OCTAL_RE.fullmatch(raw):
        value = int(raw, 8)
    else:
        value = int(raw, 0)
    if bits is not None and value not in bits:
        raise ValueError(
            f"value {value} out of range for {bits.type_name} "
            f"[{bits.min_value}, {bits.max_value}]"
        )
    return value


def _parse_float(raw: str, bits: FloatBits | None) -> float:
    _check_literal(raw)
    value = float(raw)
    if bits is not None and bits.bits == 32:
        # round to the nearest float32; finite values rounding to infinity overflow
        try:
            (value,) = struct.unpack("f", struct.pack("f", value))
        except OverflowError as e:
            raise ValueError(f"value {raw} out of range for {bits.type_name}") from e
    return value


def _parse_timestamp(raw: str, layout: str | None, tp: type) -> datetime | date:
    if layout:
        parsed = datetime.strptime(raw, layout)
        return parsed if tp is datetime else parsed.date()
    if tp is datetime:
        return datetime.fromisoformat(raw)
    return date.fromisoformat(raw)


# =============================================================================
# Dispatch
# =============================================================================


_NO_SETTER = object()


def _setter_result(raw: str, base: Any, current: Any) -> Any:
    if current is not None and callable(getattr(current, "set_value", None)):
        target = current
    elif isinstance(base, type) and callable(getattr(base, "set_value", None)):
        target = None
    else:
        return _NO_SETTER

    try:
        if target is None:
            target = base()
        target.set_value(raw)
    except CoercionError:
        raise
    except Exception as e:
        raise CoercionError(
            str(e) or f"set_value rejected {raw!r}",
            raw_value=raw,
            target_type=type_name(base),
            cause=e,
        ) from e
    return target


def parse_value(
    raw: str,
    tp: Any,
    separator: str = DEFAULT_SEPARATOR,
    layout: str | None = None,
    current: Any = None,
) -> Any:
    """Convert ``raw`` into a value of type ``tp``.

    Args:
        raw: Raw string from the environment, a default or a file.
        tp: Target type hint.
        separator: Separator for sequence elements and mapping entries.
        layout: ``strptime`` layout for timestamps (ISO 8601 when None).
        current: The slot's present value, consulted for ``set_value``.

    Returns:
        The converted value.

    Raises:
        CoercionError: If the string cannot be converted.
        InvalidMapEntryError: If a mapping entry has no ``:``.
        UnsupportedTypeError: If no rule matches ``tp``.
    """
    inner, _ = unwrap_optional(tp)
    base, extras = strip_annotated(inner)

    result = _setter_result(raw, base, current)
    if result is not _NO_SETTER:
        return result

    if base is str:
        return raw

    try:
        if base is bool:
            return parse_bool(raw)
        if base is timedelta:
            return parse_duration(raw)
        if base is int:
            bits = next((e for e in extras if isinstance(e, IntBits)), None)
            return _parse_int(raw, bits)
        if base is float:
            fbits = next((e for e in extras if isinstance(e, FloatBits)), None)
            return _parse_float(raw, fbits)
    except ValueError as e:
        raise CoercionError(
            f"Cannot parse {raw!r} as {type_name(inner)}: {e}",
            raw_value=raw,
            target_type=type_name(inner),
            cause=e,
        ) from e

    if base is bytes or base is bytearray:
        return base(raw.encode("utf-8"))

    origin = get_origin(base) or base
    if origin in SEQUENCE_ORIGINS:
        return _parse_sequence(raw, base, origin, separator, layout)
    if origin in MAPPING_ORIGINS:
        return _parse_mapping(raw, base, separator, layout)

    if base is datetime or base is date:
        try:
            return _parse_timestamp(raw, layout, base)
        except ValueError as e:
            raise CoercionError(
                f"Cannot parse {raw!r} as {base.__name__}"
                + (f" with layout {layout!r}" if layout else "")
                + f": {e}",
                raw_value=raw,
                target_type=base.__name__,
                cause=e,
            ) from e

    raise UnsupportedTypeError(type_name(tp), raw_value=raw)


def _parse_sequence(
    raw: str,
    tp: Any,
    origin: Any,
    separator: str,
    layout: str | None,
) -> Any:
    container = SEQUENCE_ORIGINS[origin]
    args = get_args(tp)

    if not raw.strip():
        return container()

    parts = raw.split(separator)

    if container is tuple and args and args[-1] is not Ellipsis:
        # fixed-length tuple[A, B, ...]
        if len(parts) != len(args):
            raise CoercionError(
                f"Expected {len(args)} elements for {type_name(tp)}, got {len(parts)}",
                raw_value=raw,
                target_type=type_name(tp),
            )
        return tuple(
            parse_value(part, arg, separator, layout) for part, arg in zip(parts, args, strict=True)
        )

    element_type = args[0] if args else str
    return container(parse_value(part, element_type, separator, layout) for part in parts)


def _parse_mapping(raw: str, tp: Any, separator: str, layout: str | None) -> dict[Any, Any]:
    args = get_args(tp)
    key_type, value_type = args if len(args) == 2 else (str, str)

    result: dict[Any, Any] = {}
    if not raw.strip():
        return result

    for token in raw.split(separator):
        key, sep, value = token.partition(":")
        if not sep:
            raise InvalidMapEntryError(token)
        result[parse_value(key, key_type, separator, layout)] = parse_value(
            value, value_type, separator, layout
        )
    return result
