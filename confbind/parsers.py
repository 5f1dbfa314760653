"""Configuration file parsers.

Each parser reads one file format from a text or binary stream and applies
the decoded content onto a dataclass instance through ``apply_mapping``.
The dotenv parser is the exception: it does not touch the target and
writes every variable it reads into an environment mapping instead, so that
a following ``resolve`` pass picks the values up.

Supported formats:
    - YAML (``yaml``, ``yml``) via PyYAML
    - JSON (``json``)
    - TOML (``toml``) via ``tomllib``
    - dotenv (``env``) via python-dotenv

Example:
    >>> parser = new_parser("yaml")
    >>> with open("config/test.yaml") as f:
    ...     parser.parse(f, config)
"""

from __future__ import annotations

import io
import json
import os
import tomllib
from typing import IO, TYPE_CHECKING, Any, Protocol, runtime_checkable

import yaml
from dotenv import dotenv_values

from confbind.decoding import apply_mapping
from confbind.exceptions import DecodeError, UnsupportedFormatError, wrap_exception
from confbind.logging import get_logger


if TYPE_CHECKING:
    from collections.abc import MutableMapping


logger = get_logger(__name__)


# =============================================================================
# Protocols
# =============================================================================


@runtime_checkable
class Parser(Protocol):
    """Reads a stream and populates a target with the decoded values."""

    def parse(self, source: IO[Any], target: Any) -> None:
        """Parse ``source`` into ``target``.

        Raises:
            DecodeError: If the stream is malformed or a value does not fit.
        """
        ...


# =============================================================================
# Helpers
# =============================================================================


def _source_name(source: IO[Any]) -> str | None:
    name = getattr(source, "name", None)
    return str(name) if name is not None else None


def _read_text(source: IO[Any], label: str) -> str:
    name = _source_name(source)
    try:
        content = source.read()
        if isinstance(content, bytes):
            content = content.decode("utf-8")
    except UnicodeDecodeError as e:
        raise wrap_exception(
            e,
            DecodeError,
            f"Failed to read {label} configuration as UTF-8: {name or '<stream>'}",
            source=name,
        ) from e
    return content


# =============================================================================
# Parsers
# =============================================================================


class YAMLParser:
    """Parses YAML documents with ``yaml.safe_load``."""

    format = "yaml"

    def parse(self, source: IO[Any], target: Any) -> None:
        name = _source_name(source)
        try:
            data = yaml.safe_load(source)
        except yaml.YAMLError as e:
            raise wrap_exception(
                e,
                DecodeError,
                f"Failed to parse YAML configuration: {name or '<stream>'}",
                source=name,
            ) from e
        # an empty document decodes to None
        apply_mapping(target, data if data is not None else {}, source=name)


class JSONParser:
    """Parses JSON documents."""

    format = "json"

    def parse(self, source: IO[Any], target: Any) -> None:
        name = _source_name(source)
        try:
            data = json.loads(_read_text(source, "JSON"))
        except json.JSONDecodeError as e:
            raise wrap_exception(
                e,
                DecodeError,
                f"Failed to parse JSON configuration: {name or '<stream>'}",
                source=name,
            ) from e
        apply_mapping(target, data, source=name)


class TOMLParser:
    """Parses TOML documents with ``tomllib``."""

    format = "toml"

    def parse(self, source: IO[Any], target: Any) -> None:
        name = _source_name(source)
        try:
            data = tomllib.loads(_read_text(source, "TOML"))
        except tomllib.TOMLDecodeError as e:
            raise wrap_exception(
                e,
                DecodeError,
                f"Failed to parse TOML configuration: {name or '<stream>'}",
                source=name,
            ) from e
        apply_mapping(target, data, source=name)


class EnvParser:
    """Parses dotenv files into an environment mapping.

    Side effect: every variable read is written into ``environ``
    (``os.environ`` unless another mapping is given), overriding values
    already present. The target object is left untouched.

    Variables declared without a value (a bare ``NAME`` line) are skipped.
    """

    format = "env"

    def __init__(self, environ: MutableMapping[str, str] | None = None) -> None:
        self.environ = os.environ if environ is None else environ

    def parse(self, source: IO[Any], target: Any) -> None:
        name = _source_name(source)
        values = dotenv_values(stream=io.StringIO(_read_text(source, "dotenv")))
        written = 0
        for key, value in values.items():
            if value is None:
                continue
            self.environ[key] = value
            written += 1
        logger.debug("Loaded dotenv variables", source=name, variables=written)


# =============================================================================
# Factory
# =============================================================================


_PARSERS: dict[str, type[YAMLParser | JSONParser | TOMLParser | EnvParser]] = {
    "yaml": YAMLParser,
    "yml": YAMLParser,
    "json": JSONParser,
    "toml": TOMLParser,
    "env": EnvParser,
}


def supported_formats() -> tuple[str, ...]:
    """Return the format names accepted by ``new_parser``."""
    return tuple(_PARSERS)


def new_parser(fmt: str, *, environ: MutableMapping[str, str] | None = None) -> Parser:
    """Return a parser for a configuration format.

    Args:
        fmt: Format name or file extension, with or without a leading dot
            (``"yaml"``, ``".yml"``, ``"json"``, ``"toml"``, ``"env"``).
        environ: Environment mapping written by the dotenv parser.

    Raises:
        UnsupportedFormatError: If no parser handles ``fmt``.
    """
    key = fmt[1:] if fmt.startswith(".") else fmt
    parser_class = _PARSERS.get(key)
    if parser_class is None:
        raise UnsupportedFormatError(fmt)
    if parser_class is EnvParser:
        return EnvParser(environ)
    return parser_class()
