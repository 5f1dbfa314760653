"""Structural decoding of parsed configuration files onto dataclasses.

Format parsers turn a file into plain Python data (dicts, lists, scalars).
``apply_mapping`` assigns that data onto an existing dataclass instance,
field by field, so that a later ``resolve`` pass sees file-sourced values as
pre-populated slots.

Key matching, per field:
    1. the field's ``key`` binding rule, if declared
    2. the exact field name
    3. the field name compared case-insensitively

Keys that match no field are ignored. Strings destined for non-string
fields go through the coercion engine, so ``timeout: "30s"`` fills a
``timedelta`` and ``tags: "a,b"`` fills a ``list[str]``.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Mapping
from datetime import date, datetime, timedelta
from typing import Any, get_args, get_origin

from confbind.coercion import (
    DEFAULT_SEPARATOR,
    MAPPING_ORIGINS,
    SEQUENCE_ORIGINS,
    parse_value,
    strip_annotated,
    type_name,
    unwrap_optional,
)
from confbind.exceptions import CoercionError, DecodeError, UnsupportedShapeError
from confbind.fields import ENV_LAYOUT, ENV_SEPARATOR, FILE_KEY, is_frozen, type_hints
from confbind.logging import get_logger


logger = get_logger(__name__)

_LIST_LIKE = (list, tuple, set, frozenset)


def _find_key(f: dataclasses.Field[Any], data: Mapping[str, Any]) -> str | None:
    alias = f.metadata.get(FILE_KEY)
    if alias is not None and alias in data:
        return alias
    if f.name in data:
        return f.name
    lowered = f.name.lower()
    for key in data:
        if isinstance(key, str) and key.lower() == lowered:
            return key
    return None


def apply_mapping(target: Any, data: Mapping[str, Any], *, source: str | None = None) -> None:
    """Assign decoded file content onto a dataclass instance in place.

    Args:
        target: Mutable dataclass instance.
        data: Decoded mapping (from YAML, JSON, TOML...).
        source: Description of where ``data`` came from, used in errors.

    Raises:
        UnsupportedShapeError: If ``target`` is not a mutable dataclass instance.
        DecodeError: If a value cannot be converted to its field's type.
    """
    if not dataclasses.is_dataclass(target) or isinstance(target, type):
        raise UnsupportedShapeError(type(target).__name__)
    if is_frozen(target):
        raise UnsupportedShapeError(
            type(target).__name__,
            reason="frozen dataclass instances cannot be populated in place",
        )
    if not isinstance(data, Mapping):
        raise DecodeError(
            f"Expected a mapping at the top level, got {type(data).__name__}",
            source=source,
        )
    _apply(target, data, "", source)
    logger.debug("Applied mapping", target=type(target).__name__, source=source, keys=len(data))


def _apply(target: Any, data: Mapping[str, Any], path: str, source: str | None) -> None:
    hints = type_hints(type(target))
    for f in dataclasses.fields(target):
        if f.name.startswith("_"):
            continue
        key = _find_key(f, data)
        if key is None:
            continue

        name = f"{path}.{f.name}" if path else f.name
        tp = hints.get(f.name, f.type)
        current = getattr(target, f.name)
        value = convert(
            data[key],
            tp,
            current=current,
            separator=f.metadata.get(ENV_SEPARATOR) or DEFAULT_SEPARATOR,
            layout=f.metadata.get(ENV_LAYOUT),
            path=name,
            source=source,
        )
        if value is not current:
            setattr(target, f.name, value)


def convert(
    value: Any,
    tp: Any,
    *,
    current: Any = None,
    separator: str = DEFAULT_SEPARATOR,
    layout: str | None = None,
    path: str = "",
    source: str | None = None,
) -> Any:
    """Convert one decoded value into the declared type ``tp``.

    Raises:
        DecodeError: If the value does not fit the type.
    """
    if value is None:
        return None

    inner, _ = unwrap_optional(tp)
    base, _ = strip_annotated(inner)

    def mismatch() -> DecodeError:
        return DecodeError(
            f"Cannot decode {path or 'value'}: expected {type_name(tp)}, "
            f"got {type(value).__name__}",
            source=source,
            field_name=path or None,
        )

    if base is Any or base is object:
        return value

    if isinstance(value, str) and base is not str:
        return _coerce(value, inner, current, separator, layout, path, source)

    if isinstance(base, type) and callable(getattr(base, "set_value", None)):
        if isinstance(value, (Mapping, list)):
            raise mismatch()
        return _coerce(str(value), inner, current, separator, layout, path, source)

    if isinstance(base, type) and dataclasses.is_dataclass(base):
        if not isinstance(value, Mapping):
            raise mismatch()
        if isinstance(current, base):
            if is_frozen(current):
                # same as the schema walker: frozen nested records are left alone
                return current
            record = current
        elif is_frozen(base):
            raise DecodeError(
                f"Cannot decode {path or 'value'}: {base.__name__} is frozen and cannot be populated",
                source=source,
                field_name=path or None,
            )
        else:
            try:
                record = base()
            except TypeError as e:
                raise DecodeError(
                    f"Cannot decode {path or 'value'}: {base.__name__} has no default instance ({e})",
                    source=source,
                    field_name=path or None,
                    cause=e,
                ) from e
        _apply(record, value, path, source)
        return record

    if base is str:
        if isinstance(value, (Mapping, list)):
            raise mismatch()
        return str(value)
    if base is bool:
        if not isinstance(value, bool):
            raise mismatch()
        return value
    if base is int:
        if isinstance(value, bool) or not isinstance(value, int):
            raise mismatch()
        try:
            text = str(value)
        except ValueError as e:
            # beyond sys.get_int_max_str_digits
            raise mismatch() from e
        # re-parse to apply the range check of sized aliases
        return _coerce(text, inner, None, separator, layout, path, source)
    if base is float:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise mismatch()
        try:
            number = float(value)
        except OverflowError as e:
            raise mismatch() from e
        return _coerce(repr(number), inner, None, separator, layout, path, source)
    if base is timedelta:
        # bare numbers are ambiguous between seconds and nanoseconds
        if not isinstance(value, timedelta):
            raise mismatch()
        return value
    if base is datetime:
        if not isinstance(value, datetime):
            raise mismatch()
        return value
    if base is date:
        if isinstance(value, datetime):
            return value.date()
        if not isinstance(value, date):
            raise mismatch()
        return value
    if base is bytes or base is bytearray:
        if not isinstance(value, (bytes, bytearray)):
            raise mismatch()
        return base(value)

    origin = get_origin(base) or base
    args = get_args(base)

    if origin in SEQUENCE_ORIGINS:
        if not isinstance(value, _LIST_LIKE):
            raise mismatch()
        container = SEQUENCE_ORIGINS[origin]
        items = list(value)
        if container is tuple and args and args[-1] is not Ellipsis:
            if len(items) != len(args):
                raise mismatch()
            element_types = list(args)
        else:
            element_types = [args[0] if args else Any] * len(items)
        return container(
            convert(item, item_type, separator=separator, layout=layout,
                    path=f"{path}[{i}]", source=source)
            for i, (item, item_type) in enumerate(zip(items, element_types, strict=True))
        )

    if origin in MAPPING_ORIGINS:
        if not isinstance(value, Mapping):
            raise mismatch()
        key_type, value_type = args if len(args) == 2 else (Any, Any)
        return {
            convert(k, key_type, path=f"{path}<key>", source=source): convert(
                v, value_type, separator=separator, layout=layout,
                path=f"{path}.{k}", source=source,
            )
            for k, v in value.items()
        }

    raise DecodeError(
        f"Cannot decode {path or 'value'}: unsupported type {type_name(tp)}",
        source=source,
        field_name=path or None,
    )


def _coerce(
    raw: str,
    tp: Any,
    current: Any,
    separator: str,
    layout: str | None,
    path: str,
    source: str | None,
) -> Any:
    try:
        return parse_value(raw, tp, separator=separator, layout=layout, current=current)
    except CoercionError as e:
        raise DecodeError(
            f"Cannot decode {path or 'value'}: {e.message}",
            source=source,
            field_name=path or None,
            cause=e,
        ) from e
