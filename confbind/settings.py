"""Settings of the library itself, bound from ``CONFBIND_*`` variables.

Environment Variables:
    CONFBIND_LOG_LEVEL: Log level of the library loggers (default: WARNING)
    CONFBIND_LOG_FORMAT: Log output format, ``text`` or ``json`` (default: text)
    CONFBIND_MASK_VALUES: Mask secret values in debug logs (default: true)

Example:
    >>> configure_from_env({"CONFBIND_LOG_LEVEL": "DEBUG"})
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from confbind.exceptions import ConfigurationError
from confbind.fields import env_field
from confbind.logging import LogLevel, configure_logging, configure_masker
from confbind.resolver import resolve


if TYPE_CHECKING:
    from collections.abc import Mapping


LOG_FORMATS = ("text", "json")


@dataclass(slots=True)
class BindSettings:
    """Library settings.

    Attributes:
        log_level: Level name of the library loggers.
        log_format: ``text`` or ``json``.
        mask_values: Whether secret values are masked in logs.
    """

    log_level: str = env_field(
        "CONFBIND_LOG_LEVEL",
        env_default="WARNING",
        description="Log level of the library loggers",
        default="",
    )
    log_format: str = env_field(
        "CONFBIND_LOG_FORMAT",
        env_default="text",
        description="Log output format (text or json)",
        default="",
    )
    mask_values: bool = env_field(
        "CONFBIND_MASK_VALUES",
        env_default="true",
        description="Mask secret values in debug logs",
        default=False,
    )

    def validate(self) -> None:
        """Check the level and format names.

        Raises:
            ConfigurationError: If either name is unknown.
        """
        if self.log_level.upper() not in LogLevel.__members__:
            raise ConfigurationError(
                f"Unknown log level '{self.log_level}'",
                field_name="log_level",
                details={"allowed": list(LogLevel.__members__)},
            )
        if self.log_format.lower() not in LOG_FORMATS:
            raise ConfigurationError(
                f"Unknown log format '{self.log_format}'",
                field_name="log_format",
                details={"allowed": list(LOG_FORMATS)},
            )


def load_settings(environ: Mapping[str, str] | None = None) -> BindSettings:
    """Bind and validate the library settings.

    Raises:
        ConfigurationError: If a variable is malformed.
    """
    settings = BindSettings()
    resolve(settings, environ=environ)
    settings.validate()
    return settings


def configure_from_env(environ: Mapping[str, str] | None = None) -> BindSettings:
    """Apply the library settings to the logging registry and masker."""
    settings = load_settings(environ)
    configure_masker(enabled=settings.mask_values)
    configure_logging(
        level=LogLevel.from_string(settings.log_level),
        format=settings.log_format.lower(),
    )
    return settings
