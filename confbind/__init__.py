"""Confbind: environment variable binding for dataclass configuration.

Declare a configuration schema as dataclasses, attach binding rules to the
fields, and populate an instance in place from environment variables,
configuration files and static defaults.

Quick Start:
    >>> from dataclasses import dataclass, field
    >>> from confbind import env_field, resolve
    >>> @dataclass
    ... class Server:
    ...     host: str = env_field("HOST", env_default="0.0.0.0", default="")
    ...     port: int = env_field("PORT", env_default="8080", default=0)
    ...
    >>> @dataclass
    ... class AppConfig:
    ...     server: Server = field(default_factory=Server)
    ...     token: str = env_field("TOKEN", required=True, default="")
    ...
    >>> config = AppConfig()
    >>> resolve(config, prefix="APP_", environ={"APP_PORT": "9090", "APP_TOKEN": "x"})
    >>> config.server.port
    9090

Configuration Files:
    >>> from confbind import new_configurator_for
    >>> configurator = new_configurator_for("yaml").with_search_paths("config")
    >>> configurator.load(config)  # reads config/$ENV.yaml, then the environment

Usage Text:
    >>> from confbind import print_usage
    >>> print_usage(AppConfig(), prefix="APP_")

Logging:
    >>> from confbind import configure_logging
    >>> configure_logging(level="DEBUG", format="json")

Public API:
    - Binding: env_field, binding, resolve, read_fields, FieldDescriptor, FieldSlot
    - Coercion: parse_value, parse_duration, parse_bool, ValueSetter, is_zero
    - Sized Types: Int8 ... Int64, Uint8 ... Uint64, Float32, Float64
    - Files: Configurator, new_configurator_for, new_parser, apply_mapping, Parser
    - Usage: describe, usage_text, print_usage, FieldDoc
    - Settings: BindSettings, load_settings, configure_from_env
    - Exceptions: ConfbindError and subclasses
    - Logging: get_logger, configure_logging, LogContext, LogLevel
"""

__version__ = "0.1.0"

# =============================================================================
# Exceptions
# =============================================================================
from confbind.exceptions import (
    CoercionError,
    ConfbindError,
    ConfigFileNotFoundError,
    ConfigurationError,
    DecodeError,
    InvalidMapEntryError,
    RequiredFieldMissingError,
    SourceError,
    UnsupportedFormatError,
    UnsupportedShapeError,
    UnsupportedTypeError,
    wrap_exception,
)

# =============================================================================
# Logging
# =============================================================================
from confbind.logging import (
    BindLogger,
    LogContext,
    LogLevel,
    SensitiveDataMasker,
    configure_logging,
    get_logger,
)

# =============================================================================
# Sized Types
# =============================================================================
from confbind.types import (
    Float32,
    Float64,
    FloatBits,
    Int8,
    Int16,
    Int32,
    Int64,
    IntBits,
    Uint8,
    Uint16,
    Uint32,
    Uint64,
)

# =============================================================================
# Binding Engine
# =============================================================================
from confbind.zero import is_zero
from confbind.coercion import ValueSetter, parse_bool, parse_duration, parse_value
from confbind.fields import FieldDescriptor, FieldSlot, binding, env_field, read_fields
from confbind.resolver import resolve

# =============================================================================
# Files and Usage
# =============================================================================
from confbind.decoding import apply_mapping
from confbind.parsers import EnvParser, JSONParser, Parser, TOMLParser, YAMLParser, new_parser
from confbind.usage import FieldDoc, describe, print_usage, usage_text
from confbind.configurator import Configurator, new_configurator_for

# =============================================================================
# Settings
# =============================================================================
from confbind.settings import BindSettings, configure_from_env, load_settings


# =============================================================================
# Public API
# =============================================================================

__all__ = [
    # Version
    "__version__",
    # Exceptions
    "CoercionError",
    "ConfbindError",
    "ConfigFileNotFoundError",
    "ConfigurationError",
    "DecodeError",
    "InvalidMapEntryError",
    "RequiredFieldMissingError",
    "SourceError",
    "UnsupportedFormatError",
    "UnsupportedShapeError",
    "UnsupportedTypeError",
    "wrap_exception",
    # Logging
    "BindLogger",
    "LogContext",
    "LogLevel",
    "SensitiveDataMasker",
    "configure_logging",
    "get_logger",
    # Sized Types
    "Float32",
    "Float64",
    "FloatBits",
    "Int8",
    "Int16",
    "Int32",
    "Int64",
    "IntBits",
    "Uint8",
    "Uint16",
    "Uint32",
    "Uint64",
    # Binding Engine
    "FieldDescriptor",
    "FieldSlot",
    "ValueSetter",
    "binding",
    "env_field",
    "is_zero",
    "parse_bool",
    "parse_duration",
    "parse_value",
    "read_fields",
    "resolve",
    # Files and Usage
    "Configurator",
    "EnvParser",
    "FieldDoc",
    "JSONParser",
    "Parser",
    "TOMLParser",
    "YAMLParser",
    "apply_mapping",
    "describe",
    "new_configurator_for",
    "new_parser",
    "print_usage",
    "usage_text",
    # Settings
    "BindSettings",
    "configure_from_env",
    "load_settings",
]
