"""Field descriptors and the schema walker.

A configuration schema is a dataclass. Binding rules are attached to each
field through ``dataclasses.field(metadata=...)``; ``env_field`` builds that
metadata. ``read_fields`` walks a dataclass instance depth-first in
declaration order and returns one ``FieldDescriptor`` per bindable leaf,
flattening nested dataclasses into the same list.

Binding Rules (metadata keys):
    env: Candidate environment variable names, comma-separated string or
        sequence. First name present in the environment wins.
    env_default: Raw default, applied when no variable is set and the
        field is still zero.
    env_separator: Separator for list and dict values (default ",").
    env_layout: ``strptime`` layout for timestamp fields.
    env_required: Presence marks the field required, whatever its value.
    env_description: Human text for usage output.
    key: File key used by the structural decoder instead of the field name.

Example:
    >>> @dataclass
    ... class Database:
    ...     host: str = env_field("DB_HOST,DATABASE_HOST", env_default="localhost", default="")
    ...     password: str = env_field("DB_PASSWORD", required=True, default="")
    ...
    >>> @dataclass
    ... class AppConfig:
    ...     db: Database = field(default_factory=Database)
    ...
    >>> [d.name for d in read_fields(AppConfig())]
    ['db.host', 'db.password']
"""

from __future__ import annotations

import dataclasses
import typing
from collections.abc import Sequence
from datetime import date, datetime
from typing import Any

from confbind.coercion import DEFAULT_SEPARATOR, strip_annotated, unwrap_optional
from confbind.exceptions import UnsupportedShapeError
from confbind.zero import is_zero


# =============================================================================
# Constants
# =============================================================================

ENV = "env"
ENV_DEFAULT = "env_default"
ENV_SEPARATOR = "env_separator"
ENV_LAYOUT = "env_layout"
ENV_REQUIRED = "env_required"
ENV_DESCRIPTION = "env_description"
FILE_KEY = "key"

# Leaf types that are never walked into even if they look like records.
TIMESTAMP_TYPES: tuple[type, ...] = (datetime, date)


# =============================================================================
# Binding Rule Helpers
# =============================================================================


def binding(
    env: str | Sequence[str] | None = None,
    *,
    env_default: str | None = None,
    separator: str | None = None,
    layout: str | None = None,
    required: bool = False,
    description: str | None = None,
    key: str | None = None,
) -> dict[str, Any]:
    """Build the metadata mapping that carries a field's binding rules.

    Only rules that were given are included, so ``required=False`` leaves no
    ``env_required`` key behind.
    """
    metadata: dict[str, Any] = {}
    if env is not None:
        metadata[ENV] = env
    if env_default is not None:
        metadata[ENV_DEFAULT] = env_default
    if separator is not None:
        metadata[ENV_SEPARATOR] = separator
    if layout is not None:
        metadata[ENV_LAYOUT] = layout
    if required:
        metadata[ENV_REQUIRED] = True
    if description is not None:
        metadata[ENV_DESCRIPTION] = description
    if key is not None:
        metadata[FILE_KEY] = key
    return metadata


def env_field(
    env: str | Sequence[str] | None = None,
    *,
    env_default: str | None = None,
    separator: str | None = None,
    layout: str | None = None,
    required: bool = False,
    description: str | None = None,
    key: str | None = None,
    metadata: dict[str, Any] | None = None,
    **field_kwargs: Any,
) -> Any:
    """Declare a dataclass field with binding rules.

    ``default`` and ``default_factory`` in ``field_kwargs`` set the field's
    initial Python value; ``env_default`` is the raw string applied during
    resolution.

    Example:
        >>> @dataclass
        ... class Server:
        ...     port: int = env_field("PORT", env_default="8080", default=0)
        ...     tags: list[str] = env_field("TAGS", separator=";", default_factory=list)
    """
    rules = binding(
        env,
        env_default=env_default,
        separator=separator,
        layout=layout,
        required=required,
        description=description,
        key=key,
    )
    return dataclasses.field(metadata={**(metadata or {}), **rules}, **field_kwargs)


# =============================================================================
# Slots and Descriptors
# =============================================================================


@dataclasses.dataclass(frozen=True, slots=True)
class FieldSlot:
    """Mutable reference to one attribute of a caller-owned object.

    Attributes:
        owner: The dataclass instance holding the attribute.
        attr: Attribute name.
        type_hint: Declared type of the attribute.
    """

    owner: Any
    attr: str
    type_hint: Any = Any

    def get(self) -> Any:
        return getattr(self.owner, self.attr)

    def set(self, value: Any) -> None:
        setattr(self.owner, self.attr, value)

    def is_zero(self) -> bool:
        return is_zero(self.get())


@dataclasses.dataclass(frozen=True, slots=True)
class FieldDescriptor:
    """Binding rules of one field paired with the slot they populate.

    Attributes:
        name: Dotted path from the root object (``"server.port"``).
        env_names: Candidate environment variable names, in lookup order.
        slot: Reference to the field being populated.
        default: Raw default value, if any.
        separator: Separator for composite values.
        layout: Timestamp layout, if any.
        required: Whether the field must resolve to a non-zero value.
        description: Human text for usage output.
    """

    name: str
    env_names: tuple[str, ...]
    slot: FieldSlot
    default: str | None = None
    separator: str = DEFAULT_SEPARATOR
    layout: str | None = None
    required: bool = False
    description: str | None = None

    @property
    def type_hint(self) -> Any:
        return self.slot.type_hint

    @property
    def env_bindable(self) -> bool:
        return bool(self.env_names)


# =============================================================================
# Schema Walker
# =============================================================================


def is_frozen(obj: Any) -> bool:
    params = getattr(type(obj), "__dataclass_params__", None)
    return bool(params and params.frozen)


def _is_record_type(tp: Any) -> bool:
    return (
        isinstance(tp, type)
        and dataclasses.is_dataclass(tp)
        and not issubclass(tp, TIMESTAMP_TYPES)
    )


def type_hints(cls: type) -> dict[str, Any]:
    try:
        return typing.get_type_hints(cls, include_extras=True)
    except NameError as e:
        raise UnsupportedShapeError(
            cls.__name__,
            reason=f"cannot resolve type hints ({e})",
        ) from e


def _env_names(raw: Any) -> tuple[str, ...]:
    if raw is None:
        return ()
    if isinstance(raw, str):
        return tuple(name.strip() for name in raw.split(DEFAULT_SEPARATOR) if name.strip())
    return tuple(raw)


def _describe(f: dataclasses.Field[Any], slot: FieldSlot, name: str) -> FieldDescriptor:
    meta = f.metadata
    return FieldDescriptor(
        name=name,
        env_names=_env_names(meta.get(ENV)),
        slot=slot,
        default=meta.get(ENV_DEFAULT),
        separator=meta.get(ENV_SEPARATOR) or DEFAULT_SEPARATOR,
        layout=meta.get(ENV_LAYOUT),
        required=ENV_REQUIRED in meta,
        description=meta.get(ENV_DESCRIPTION),
    )


def _walk(obj: Any, path: str, out: list[FieldDescriptor]) -> None:
    hints = type_hints(type(obj))
    for f in dataclasses.fields(obj):
        if f.name.startswith("_"):
            continue

        name = f"{path}.{f.name}" if path else f.name
        slot = FieldSlot(obj, f.name, hints.get(f.name, f.type))
        inner, _ = unwrap_optional(slot.type_hint)
        base, _ = strip_annotated(inner)
        value = slot.get()

        if _is_record_type(base) and isinstance(value, base):
            if not is_frozen(value):
                _walk(value, name, out)
            continue

        out.append(_describe(f, slot, name))


def read_fields(target: Any) -> list[FieldDescriptor]:
    """Return the descriptors of every bindable field of ``target``.

    Args:
        target: A mutable dataclass instance, or a ``FieldSlot`` holding one.

    Returns:
        Descriptors in depth-first declaration order.

    Raises:
        UnsupportedShapeError: If ``target`` is not a mutable dataclass instance.
    """
    root = target.get() if isinstance(target, FieldSlot) else target

    if isinstance(root, type):
        raise UnsupportedShapeError(root.__name__, reason="expected an instance, got a class")
    if not dataclasses.is_dataclass(root):
        raise UnsupportedShapeError(type(root).__name__)
    if is_frozen(root):
        raise UnsupportedShapeError(
            type(root).__name__,
            reason="frozen dataclass instances cannot be populated in place",
        )

    descriptors: list[FieldDescriptor] = []
    _walk(root, "", descriptors)
    return descriptors
