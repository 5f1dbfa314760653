"""Resolution driver.

Binds environment variables onto a configuration object in place. For each
field descriptor, in order:

    1. The first candidate name (with ``prefix`` prepended) present in the
       environment snapshot supplies the raw value.
    2. Otherwise, a required field whose slot is zero fails.
    3. Otherwise, a zero slot takes the field's raw default, if any.
    4. With no raw value the field is left untouched.
    5. The raw value is coerced and assigned.

Precedence is therefore "environment variable > pre-populated slot >
static default". A slot filled by an earlier stage (a config file) is never
overwritten by a default, but an environment variable always wins.

Example:
    >>> config = AppConfig()
    >>> resolve(config, prefix="APP_", environ={"APP_PORT": "9090"})
    >>> config.server.port
    9090
"""

from __future__ import annotations

import os
from typing import TYPE_CHECKING, Any

from confbind.coercion import parse_value
from confbind.exceptions import CoercionError, RequiredFieldMissingError
from confbind.fields import FieldDescriptor, read_fields
from confbind.logging import LogContext, LogLevel, get_logger


if TYPE_CHECKING:
    from collections.abc import Mapping


logger = get_logger(__name__)


def lookup_env(
    descriptor: FieldDescriptor,
    prefix: str,
    environ: Mapping[str, str],
) -> tuple[str, str] | None:
    """Return ``(variable name, value)`` for the first candidate that is set."""
    for name in descriptor.env_names:
        key = f"{prefix}{name}"
        if key in environ:
            return key, environ[key]
    return None


def resolve_field(
    descriptor: FieldDescriptor,
    prefix: str,
    environ: Mapping[str, str],
) -> bool:
    """Resolve one descriptor against the environment snapshot.

    Returns:
        True if the field was assigned, False if it was left untouched.

    Raises:
        RequiredFieldMissingError: If a required field resolves to nothing.
        CoercionError: If the raw value cannot be converted.
    """
    found = lookup_env(descriptor, prefix, environ)

    if found is None:
        if not descriptor.slot.is_zero():
            return False
        if descriptor.required:
            raise RequiredFieldMissingError(
                descriptor.name,
                env_names=tuple(f"{prefix}{name}" for name in descriptor.env_names),
            )
        if descriptor.default is None:
            return False
        variable, source, raw = None, "default", descriptor.default
    else:
        (variable, raw), source = found, "environment"

    try:
        value = parse_value(
            raw,
            descriptor.type_hint,
            separator=descriptor.separator,
            layout=descriptor.layout,
            current=descriptor.slot.get(),
        )
    except CoercionError as e:
        e.annotate(field_name=descriptor.name, raw_value=raw)
        raise

    descriptor.slot.set(value)

    if logger.is_enabled_for(LogLevel.DEBUG):
        shown = logger.masker.mask_env_value(variable or descriptor.name, raw)
        logger.debug(
            "Bound field",
            field=descriptor.name,
            variable=variable,
            source=source,
            value=shown,
        )
    return True


def resolve(
    target: Any,
    prefix: str = "",
    environ: Mapping[str, str] | None = None,
) -> None:
    """Populate ``target`` from environment variables, defaults and required rules.

    Args:
        target: Mutable dataclass instance (or a ``FieldSlot`` holding one).
        prefix: String prepended to every candidate variable name.
        environ: Environment snapshot; a copy of ``os.environ`` taken now
            when omitted.

    Raises:
        UnsupportedShapeError: If ``target`` is not a mutable dataclass instance.
        RequiredFieldMissingError: On the first required field with no value.
        CoercionError: On the first value that fails to convert.
    """
    snapshot = dict(os.environ) if environ is None else environ
    descriptors = read_fields(target)

    with LogContext(operation="resolve", target=type(target).__name__):
        bound = 0
        for descriptor in descriptors:
            if resolve_field(descriptor, prefix, snapshot):
                bound += 1
        logger.debug("Resolution finished", fields=len(descriptors), bound=bound, prefix=prefix)
