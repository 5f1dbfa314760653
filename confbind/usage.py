"""Usage text for the environment variables of a configuration schema.

Output format, one entry per env-bindable field:

    Environment variables:
      APP_PORT uint16
        	HTTP listen port (default "8080")
      APP_DB_PASSWORD str (alternatives: APP_DATABASE_PASSWORD)
        	Database password (required)
"""

from __future__ import annotations

import sys
from dataclasses import dataclass
from typing import IO, Any

from confbind.coercion import type_name
from confbind.fields import read_fields


DEFAULT_HEADER = "Environment variables:"


@dataclass(frozen=True, slots=True)
class FieldDoc:
    """Documentation of one env-bindable field.

    Attributes:
        field: Dotted path of the field.
        env_names: Candidate variable names, prefix applied.
        type_name: Short name of the declared type.
        description: Human text, possibly empty.
        default: Raw default, if any.
        required: Whether the field must be set.
    """

    field: str
    env_names: tuple[str, ...]
    type_name: str
    description: str = ""
    default: str | None = None
    required: bool = False

    @property
    def name(self) -> str:
        return self.env_names[0]

    @property
    def alternatives(self) -> tuple[str, ...]:
        return self.env_names[1:]

    def format(self) -> str:
        head = f"  {self.name} {self.type_name}"
        if self.alternatives:
            head += f" (alternatives: {', '.join(self.alternatives)})"
        body = self.description
        if self.default is not None:
            body += f' (default "{self.default}")'
        if self.required:
            body += " (required)"
        return f"{head}\n    \t{body.strip()}"


def describe(target: Any, prefix: str = "") -> list[FieldDoc]:
    """Return a ``FieldDoc`` for every env-bindable field of ``target``.

    Raises:
        UnsupportedShapeError: If ``target`` is not a mutable dataclass instance.
    """
    return [
        FieldDoc(
            field=d.name,
            env_names=tuple(f"{prefix}{name}" for name in d.env_names),
            type_name=type_name(d.type_hint),
            description=d.description or "",
            default=d.default,
            required=d.required,
        )
        for d in read_fields(target)
        if d.env_bindable
    ]


def usage_text(target: Any, prefix: str = "", header: str | None = None) -> str:
    lines = [header if header is not None else DEFAULT_HEADER]
    lines.extend(doc.format() for doc in describe(target, prefix))
    return "\n".join(lines)


def print_usage(
    target: Any,
    prefix: str = "",
    file: IO[str] | None = None,
    header: str | None = None,
) -> None:
    """Write the usage text of ``target`` to ``file`` (stderr by default)."""
    print(usage_text(target, prefix, header), file=file or sys.stderr)
