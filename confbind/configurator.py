"""Configurator: file discovery, parsing and environment binding in one place.

The Configurator combines the pieces of the library into the usual loading
sequence:

    1. Pick the environment name from a variable (``ENV`` by default).
    2. Find ``{file_prefix}{env}.{format}`` in the search paths.
    3. Parse the file onto the target with the format's parser.
    4. Bind environment variables onto the target with ``resolve``.

Environment variables therefore override file values, and file values
suppress ``env_default`` rules (a non-zero slot never takes a default).

The Configurator is immutable; every ``with_*`` method returns a new one.

Example:
    >>> @dataclass
    ... class Service:
    ...     group: str = ""
    ...     name: str = env_field("SVC_NAME", default="")
    ...
    >>> @dataclass
    ... class Config:
    ...     service: Service = field(default_factory=Service)
    ...
    >>> config = Config()
    >>> new_configurator_for("yaml").with_search_paths("config").load(config)
"""

from __future__ import annotations

import dataclasses
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import IO, TYPE_CHECKING, Any, Self

from confbind.exceptions import ConfigFileNotFoundError
from confbind.logging import LogContext, get_logger
from confbind.parsers import Parser, new_parser
from confbind.resolver import resolve
from confbind.usage import usage_text


if TYPE_CHECKING:
    from collections.abc import MutableMapping


logger = get_logger(__name__)


# =============================================================================
# Constants
# =============================================================================

DEFAULT_FORMAT = "yaml"
DEFAULT_ENV_KEY = "ENV"
DEFAULT_ENV = "development"
DEFAULT_SEARCH_PATHS: tuple[str, ...] = ("config", ".")


# =============================================================================
# Configurator
# =============================================================================


@dataclass(frozen=True, slots=True)
class Configurator:
    """Builder for loading configuration files and environment variables.

    Attributes:
        format: Configuration file format (``yaml``, ``yml``, ``json``,
            ``toml``, ``env``).
        search_paths: Directories searched in order for the config file.
        file_prefix: Prefix of the config file name.
        env_key: Variable holding the environment name.
        default_env: Environment name used when ``env_key`` is unset.
        env_prefix: Prefix prepended to every bound variable name.
        environ: Environment mapping; ``os.environ`` when None. The dotenv
            parser writes into it and ``resolve`` reads a snapshot of it.
    """

    format: str = DEFAULT_FORMAT
    search_paths: tuple[str, ...] = DEFAULT_SEARCH_PATHS
    file_prefix: str = ""
    env_key: str = DEFAULT_ENV_KEY
    default_env: str = DEFAULT_ENV
    env_prefix: str = ""
    environ: MutableMapping[str, str] | None = field(default=None, compare=False, repr=False)

    # -------------------------------------------------------------------------
    # Builder
    # -------------------------------------------------------------------------

    def with_format(self, fmt: str) -> Self:
        return dataclasses.replace(self, format=fmt.lstrip("."))

    def with_search_paths(self, *paths: str | Path) -> Self:
        return dataclasses.replace(self, search_paths=tuple(str(p) for p in paths))

    def with_file_prefix(self, prefix: str) -> Self:
        return dataclasses.replace(self, file_prefix=prefix)

    def with_env_key(self, key: str) -> Self:
        return dataclasses.replace(self, env_key=key)

    def with_default_env(self, env: str) -> Self:
        return dataclasses.replace(self, default_env=env)

    def with_env_prefix(self, prefix: str) -> Self:
        return dataclasses.replace(self, env_prefix=prefix)

    def with_environ(self, environ: MutableMapping[str, str]) -> Self:
        return dataclasses.replace(self, environ=environ)

    # -------------------------------------------------------------------------
    # Accessors
    # -------------------------------------------------------------------------

    @property
    def env(self) -> MutableMapping[str, str]:
        """The environment mapping in use."""
        return os.environ if self.environ is None else self.environ

    def parser(self, fmt: str | None = None) -> Parser:
        """Return the parser for ``fmt`` (the configured format by default).

        Raises:
            UnsupportedFormatError: If the format has no parser.
        """
        return new_parser(fmt or self.format, environ=self.env)

    def environment_name(self) -> str:
        return self.env.get(self.env_key) or self.default_env

    def config_file_name(self) -> str:
        """Return the file name for the current environment (``test.yaml``)."""
        return f"{self.file_prefix}{self.environment_name()}.{self.format}"

    def find_config_file(self) -> Path | None:
        """Search the configured paths, in order, for the config file.

        Returns:
            Path to the first match, or None if no search path has it.
        """
        name = self.config_file_name()
        for directory in self.search_paths:
            candidate = Path(directory) / name
            if candidate.is_file():
                return candidate
        return None

    # -------------------------------------------------------------------------
    # Loading
    # -------------------------------------------------------------------------

    def load(self, target: Any) -> None:
        """Load the environment's config file, then bind environment variables.

        Raises:
            ConfigFileNotFoundError: If no search path holds the config file.
            DecodeError: If the file cannot be decoded onto ``target``.
            ConfigurationError: If environment binding fails.
        """
        path = self.find_config_file()
        if path is None:
            raise ConfigFileNotFoundError(self.config_file_name(), self.search_paths)

        with LogContext(operation="load", target=type(target).__name__, source=str(path)):
            self.load_file(path, target)
            self.load_env(target)
            logger.info("Configuration loaded", path=str(path), env=self.environment_name())

    def load_file(self, path: str | Path, target: Any) -> None:
        """Parse one file onto ``target``.

        The parser is chosen by the file's extension, falling back to the
        configured format for files without one.

        Raises:
            ConfigFileNotFoundError: If ``path`` does not exist.
            UnsupportedFormatError: If the extension has no parser.
            DecodeError: If the file cannot be decoded onto ``target``.
        """
        file_path = Path(path)
        if not file_path.is_file():
            raise ConfigFileNotFoundError(file_path.name, (str(file_path.parent),))

        parser = self.parser(file_path.suffix or None)
        with file_path.open("rb") as f:
            parser.parse(f, target)
        logger.debug("Parsed configuration file", path=str(file_path))

    def load_stream(self, source: IO[Any], target: Any) -> None:
        """Parse an open stream in the configured format onto ``target``."""
        self.parser().parse(source, target)

    def load_env(self, target: Any) -> None:
        """Bind environment variables onto ``target``.

        Raises:
            ConfigurationError: If a field is missing or fails to convert.
        """
        resolve(target, prefix=self.env_prefix, environ=dict(self.env))

    def usage(self, target: Any, header: str | None = None) -> str:
        """Return the usage text of ``target``'s environment variables."""
        return usage_text(target, prefix=self.env_prefix, header=header)


def new_configurator_for(fmt: str) -> Configurator:
    """Return a Configurator for a file format.

    Raises:
        UnsupportedFormatError: If the format has no parser.
    """
    configurator = Configurator().with_format(fmt)
    # fail early on unknown formats
    new_parser(configurator.format)
    return configurator
