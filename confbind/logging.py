"""Structured logging for confbind.

Binding code logs through ``get_logger(__name__)``. Records carry structured
fields and the ambient ``LogContext`` (the operation, the configuration type
being populated, the file or environment being read). Configuration values
are frequently secrets, so every record passes through a
``SensitiveDataMasker`` before reaching a handler.

The library is quiet by default: loggers start at WARNING with no handlers
until ``configure_logging`` is called, directly or through
``confbind.settings.configure_from_env``.

Example:
    >>> from confbind.logging import get_logger, LogContext
    >>> logger = get_logger(__name__)
    >>> with LogContext(operation="resolve", target="AppConfig"):
    ...     logger.debug("Bound field", field="server.port", source="environment")
"""

from __future__ import annotations

import json
import logging
import re
import sys
from contextvars import ContextVar
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import IO, TYPE_CHECKING, Any, ClassVar, Protocol, Self, runtime_checkable


if TYPE_CHECKING:
    from collections.abc import Callable, Mapping


# =============================================================================
# Levels
# =============================================================================


class LogLevel(Enum):
    """Severity levels, numerically aligned with the standard library."""

    DEBUG = logging.DEBUG
    INFO = logging.INFO
    WARNING = logging.WARNING
    ERROR = logging.ERROR
    CRITICAL = logging.CRITICAL

    def to_stdlib(self) -> int:
        return self.value

    @classmethod
    def from_stdlib(cls, level: int) -> LogLevel:
        """Map a standard library level number, INFO when unknown."""
        return cls._value2member_map_.get(level, cls.INFO)  # type: ignore[return-value]

    @classmethod
    def from_string(cls, level: str) -> LogLevel:
        """Map a level name case-insensitively, INFO when unknown."""
        return cls.__members__.get(level.strip().upper(), cls.INFO)


# =============================================================================
# Masking
# =============================================================================

MASK = "***MASKED***"

# (pattern, replacement) pairs applied to free text.
DEFAULT_INLINE_SECRETS: tuple[tuple[str, str], ...] = (
    (r"\b(password|passwd|pwd|secret|token|api_key)=[^&\s;]+", rf"\1={MASK}"),
    # credentials embedded in URLs
    (r"(://[^:/@\s]+:)[^@\s]+(@)", rf"\1{MASK}\2"),
)

# Structured field names whose values are always masked.
DEFAULT_SENSITIVE_KEYS: frozenset[str] = frozenset({
    "password",
    "passwd",
    "pwd",
    "secret",
    "token",
    "api_key",
    "apikey",
    "access_token",
    "refresh_token",
    "private_key",
    "secret_key",
    "credentials",
    "connection_string",
})

# Upper-case fragments marking a variable or field name as secret.
DEFAULT_SECRET_NAME_FRAGMENTS: tuple[str, ...] = (
    "PASSWORD",
    "PASSWD",
    "SECRET",
    "TOKEN",
    "API_KEY",
    "APIKEY",
    "PRIVATE_KEY",
    "CREDENTIAL",
)


class SensitiveDataMasker:
    """Hides secret values in log messages and structured fields.

    Example:
        >>> masker = SensitiveDataMasker()
        >>> masker.mask_text("password=hunter2")
        'password=***MASKED***'
        >>> masker.mask_env_value("APP_DB_PASSWORD", "hunter2")
        '***MASKED***'
        >>> masker.mask_fields({"token": "abc", "port": 8080})
        {'token': '***MASKED***', 'port': 8080}
    """

    MASK_VALUE: ClassVar[str] = MASK

    def __init__(
        self,
        patterns: tuple[tuple[str, str], ...] | None = None,
        sensitive_keys: frozenset[str] | None = None,
        name_fragments: tuple[str, ...] | None = None,
        enabled: bool = True,
    ) -> None:
        self.enabled = enabled
        self._rules = [
            (re.compile(pattern, re.IGNORECASE), replacement)
            for pattern, replacement in (patterns or DEFAULT_INLINE_SECRETS)
        ]
        self._keys = sensitive_keys or DEFAULT_SENSITIVE_KEYS
        self._fragments = name_fragments or DEFAULT_SECRET_NAME_FRAGMENTS

    def is_sensitive_name(self, name: str) -> bool:
        """Return True if a variable or field name looks like it holds a secret."""
        if name.lower() in self._keys:
            return True
        upper = name.upper()
        return any(fragment in upper for fragment in self._fragments)

    def mask_text(self, text: str) -> str:
        if not self.enabled:
            return text
        for rule, replacement in self._rules:
            text = rule.sub(replacement, text)
        return text

    def mask_env_value(self, name: str, value: str) -> str:
        """Mask a raw value entirely when the name it was read from looks secret."""
        if self.enabled and self.is_sensitive_name(name):
            return MASK
        return self.mask_text(value)

    def mask_fields(self, data: Mapping[str, Any]) -> dict[str, Any]:
        """Return a copy of ``data`` with secret keys and inline secrets masked."""
        if not self.enabled:
            return dict(data)
        return {key: self._mask_field(key, value) for key, value in data.items()}

    def _mask_field(self, key: str, value: Any) -> Any:
        if key.lower() in self._keys:
            return MASK
        if isinstance(value, str):
            return self.mask_text(value)
        if isinstance(value, dict):
            return self.mask_fields(value)
        if isinstance(value, (list, tuple)):
            return type(value)(self._mask_field("", item) for item in value)
        return value

    def add_sensitive_key(self, key: str) -> None:
        self._keys = self._keys | {key.lower()}


_default_masker = SensitiveDataMasker()


def get_masker() -> SensitiveDataMasker:
    return _default_masker


def configure_masker(
    *,
    patterns: tuple[tuple[str, str], ...] | None = None,
    sensitive_keys: frozenset[str] | None = None,
    name_fragments: tuple[str, ...] | None = None,
    enabled: bool = True,
) -> SensitiveDataMasker:
    """Install a new default masker on every registered logger."""
    global _default_masker
    _default_masker = SensitiveDataMasker(
        patterns=patterns,
        sensitive_keys=sensitive_keys,
        name_fragments=name_fragments,
        enabled=enabled,
    )
    _registry.set_masker(_default_masker)
    return _default_masker


# =============================================================================
# Context
# =============================================================================


@dataclass(frozen=True, slots=True)
class LogContextData:
    """Ambient fields attached to every record logged inside a ``LogContext``.

    Attributes:
        operation: What is running (``resolve``, ``load``).
        target: Name of the configuration type being populated.
        source: Where values come from (a file path, ``environment``).
        extra: Any other fields.
    """

    operation: str | None = None
    target: str | None = None
    source: str | None = None
    extra: Mapping[str, Any] = field(default_factory=dict)

    def merge(self, other: LogContextData) -> LogContextData:
        """Overlay ``other`` on this context; its set fields win."""
        return LogContextData(
            operation=other.operation or self.operation,
            target=other.target or self.target,
            source=other.source or self.source,
            extra={**self.extra, **other.extra},
        )

    def to_dict(self) -> dict[str, Any]:
        named = {"operation": self.operation, "target": self.target, "source": self.source}
        return {**{k: v for k, v in named.items() if v}, **self.extra}


_EMPTY_CONTEXT = LogContextData()
_current_context: ContextVar[LogContextData] = ContextVar(
    "confbind_log_context", default=_EMPTY_CONTEXT
)


def get_current_context() -> LogContextData:
    return _current_context.get()


class LogContext:
    """Context manager adding fields to every record logged inside it.

    Nested contexts merge, inner values winning.

    Example:
        >>> with LogContext(operation="load", source="config/dev.yaml"):
        ...     with LogContext(target="AppConfig"):
        ...         logger.info("Applying values")  # carries all three fields
    """

    def __init__(
        self,
        *,
        operation: str | None = None,
        target: str | None = None,
        source: str | None = None,
        **extra: Any,
    ) -> None:
        self._layer = LogContextData(operation, target, source, extra)
        self._tokens: list[Any] = []

    def __enter__(self) -> Self:
        merged = get_current_context().merge(self._layer)
        self._tokens.append(_current_context.set(merged))
        return self

    def __exit__(self, *args: Any) -> None:
        _current_context.reset(self._tokens.pop())


# =============================================================================
# Records and Protocols
# =============================================================================


@dataclass(slots=True)
class LogRecord:
    """One structured log event.

    Attributes:
        level: Severity.
        message: Message text, already masked.
        logger_name: Name of the emitting logger.
        timestamp: Creation time (UTC).
        context: Ambient context at emission time.
        extra: Structured fields, already masked.
        exc_info: Exception being reported, if any.
    """

    level: LogLevel
    message: str
    logger_name: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))
    context: LogContextData = _EMPTY_CONTEXT
    extra: dict[str, Any] = field(default_factory=dict)
    exc_info: BaseException | None = None

    def fields(self) -> dict[str, Any]:
        """Context and extra fields merged, extra winning."""
        return {**self.context.to_dict(), **self.extra}

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "timestamp": self.timestamp.isoformat(),
            "level": self.level.name,
            "logger": self.logger_name,
            "message": self.message,
            **self.fields(),
        }
        if self.exc_info is not None:
            data["exception_type"] = type(self.exc_info).__name__
            data["exception"] = str(self.exc_info)
        return data


@runtime_checkable
class LogHandler(Protocol):
    def handle(self, record: LogRecord) -> None: ...

    def flush(self) -> None: ...

    def close(self) -> None: ...


@runtime_checkable
class LogFormatter(Protocol):
    def format(self, record: LogRecord) -> str: ...


@runtime_checkable
class LogFilter(Protocol):
    def filter(self, record: LogRecord) -> bool: ...


# =============================================================================
# Formatters
# =============================================================================


class TextFormatter:
    """Single-line text output.

    Example output:
        2024-01-15T10:30:45+00:00 [DEBUG] confbind.resolver: Bound field | operation=resolve field=port
    """

    def __init__(self, timestamp_format: str | None = None) -> None:
        self.timestamp_format = timestamp_format

    def format(self, record: LogRecord) -> str:
        if self.timestamp_format:
            stamp = record.timestamp.strftime(self.timestamp_format)
        else:
            stamp = record.timestamp.isoformat()
        line = f"{stamp} [{record.level.name}] {record.logger_name}: {record.message}"

        fields = record.fields()
        if fields:
            line += " | " + " ".join(f"{key}={value}" for key, value in fields.items())
        if record.exc_info is not None:
            line += f" | exception={record.exc_info!r}"
        return line


class JSONFormatter:
    """One JSON object per record, masked again at output time."""

    def __init__(self, masker: SensitiveDataMasker | None = None, indent: int | None = None) -> None:
        self._masker = masker
        self._indent = indent

    def format(self, record: LogRecord) -> str:
        masker = self._masker or _default_masker
        return json.dumps(masker.mask_fields(record.to_dict()), indent=self._indent, default=str)


# =============================================================================
# Handlers
# =============================================================================


class StreamHandler:
    """Writes formatted records to a text stream (stderr by default)."""

    def __init__(
        self,
        stream: IO[str] | None = None,
        formatter: LogFormatter | None = None,
        level: LogLevel = LogLevel.DEBUG,
    ) -> None:
        self.stream = stream or sys.stderr
        self.formatter = formatter or TextFormatter()
        self.level = level

    def handle(self, record: LogRecord) -> None:
        if record.level.value >= self.level.value:
            self.stream.write(self.formatter.format(record) + "\n")

    def flush(self) -> None:
        self.stream.flush()

    def close(self) -> None:
        self.flush()


class BufferingHandler:
    """Keeps records in memory, handing them to a callback when full or flushed."""

    def __init__(
        self,
        capacity: int = 100,
        flush_callback: Callable[[list[LogRecord]], None] | None = None,
    ) -> None:
        self.capacity = capacity
        self._callback = flush_callback
        self._buffer: list[LogRecord] = []

    @property
    def records(self) -> list[LogRecord]:
        return list(self._buffer)

    def handle(self, record: LogRecord) -> None:
        self._buffer.append(record)
        if len(self._buffer) >= self.capacity:
            self.flush()

    def flush(self) -> None:
        batch, self._buffer = self._buffer, []
        if batch and self._callback is not None:
            self._callback(batch)

    def close(self) -> None:
        self.flush()


class NullHandler:
    """Discards records."""

    def handle(self, record: LogRecord) -> None:
        return None

    def flush(self) -> None:
        return None

    def close(self) -> None:
        return None


class StdlibLoggerAdapter:
    """Forwards records to a standard library logger (``confbind`` by default).

    Structured fields are masked and flattened into the message as
    ``key=value`` pairs.
    """

    def __init__(
        self,
        stdlib_logger: logging.Logger | None = None,
        masker: SensitiveDataMasker | None = None,
    ) -> None:
        self.target = stdlib_logger or logging.getLogger("confbind")
        self._masker = masker

    def handle(self, record: LogRecord) -> None:
        message = record.message
        fields = (self._masker or _default_masker).mask_fields(record.fields())
        if fields:
            message += " | " + " ".join(f"{key}={value}" for key, value in fields.items())
        self.target.log(record.level.to_stdlib(), message, exc_info=record.exc_info)

    def flush(self) -> None:
        for handler in self.target.handlers:
            handler.flush()

    def close(self) -> None:
        return None


# =============================================================================
# Filters
# =============================================================================


class LevelFilter:
    """Passes records at or above ``min_level``."""

    def __init__(self, min_level: LogLevel) -> None:
        self.min_level = min_level

    def filter(self, record: LogRecord) -> bool:
        return record.level.value >= self.min_level.value


# =============================================================================
# Logger
# =============================================================================


class BindLogger:
    """Named logger with masking, filters and parent propagation.

    Records emitted by ``confbind.resolver`` also reach the handlers of a
    ``confbind`` logger, if one was created first.
    """

    def __init__(
        self,
        name: str,
        level: LogLevel = LogLevel.DEBUG,
        handlers: list[LogHandler] | None = None,
        masker: SensitiveDataMasker | None = None,
    ) -> None:
        self.name = name
        self.level = level
        self.handlers: list[LogHandler] = list(handlers or [])
        self.filters: list[LogFilter] = []
        self.parent: BindLogger | None = None
        self.disabled = False
        self._masker = masker

    @property
    def masker(self) -> SensitiveDataMasker:
        return self._masker or _default_masker

    def add_handler(self, handler: LogHandler) -> None:
        if handler not in self.handlers:
            self.handlers.append(handler)

    def remove_handler(self, handler: LogHandler) -> None:
        if handler in self.handlers:
            self.handlers.remove(handler)

    def add_filter(self, log_filter: LogFilter) -> None:
        self.filters.append(log_filter)

    def is_enabled_for(self, level: LogLevel) -> bool:
        return not self.disabled and level.value >= self.level.value

    def log(
        self,
        level: LogLevel,
        message: str,
        exc_info: BaseException | None = None,
        **fields: Any,
    ) -> None:
        if not self.is_enabled_for(level):
            return
        masker = self.masker
        record = LogRecord(
            level=level,
            message=masker.mask_text(message),
            logger_name=self.name,
            context=get_current_context(),
            extra=masker.mask_fields(fields),
            exc_info=exc_info,
        )
        logger: BindLogger | None = self
        while logger is not None:
            logger._emit(record)
            logger = logger.parent

    def _emit(self, record: LogRecord) -> None:
        if self.disabled or not all(f.filter(record) for f in self.filters):
            return
        for handler in self.handlers:
            try:
                handler.handle(record)
            except Exception:  # noqa: BLE001
                # a broken handler must not break binding
                continue

    def debug(self, message: str, **fields: Any) -> None:
        self.log(LogLevel.DEBUG, message, **fields)

    def info(self, message: str, **fields: Any) -> None:
        self.log(LogLevel.INFO, message, **fields)

    def warning(self, message: str, **fields: Any) -> None:
        self.log(LogLevel.WARNING, message, **fields)

    def error(self, message: str, exc_info: BaseException | None = None, **fields: Any) -> None:
        self.log(LogLevel.ERROR, message, exc_info=exc_info, **fields)

    def exception(self, message: str, **fields: Any) -> None:
        """Log at ERROR with the exception currently being handled."""
        self.log(LogLevel.ERROR, message, exc_info=sys.exc_info()[1], **fields)


# =============================================================================
# Registry
# =============================================================================


class LoggerRegistry:
    """Creates loggers by dotted name and applies global configuration."""

    def __init__(self) -> None:
        self._loggers: dict[str, BindLogger] = {}
        self._level = LogLevel.WARNING
        self._handlers: list[LogHandler] = []

    def get_logger(self, name: str, level: LogLevel | None = None) -> BindLogger:
        if name in self._loggers:
            return self._loggers[name]

        logger = BindLogger(name, level=level or self._level)
        parent_name = name.rpartition(".")[0]
        if parent_name in self._loggers:
            # records reach the root handlers through the parent
            logger.parent = self._loggers[parent_name]
        else:
            logger.handlers = list(self._handlers)
        self._loggers[name] = logger
        return logger

    def configure(
        self,
        level: LogLevel = LogLevel.INFO,
        handlers: list[LogHandler] | None = None,
        format: str = "text",
    ) -> None:
        """Set the level and handlers of every current and future logger.

        Args:
            level: Level for all loggers.
            handlers: Handlers for top-level loggers. When None, a stderr
                handler with a ``format`` formatter is created.
            format: ``text`` or ``json``.
        """
        if handlers is None:
            formatter: LogFormatter = JSONFormatter() if format == "json" else TextFormatter()
            handlers = [StreamHandler(formatter=formatter, level=level)]
        self._level = level
        self._handlers = handlers

        for logger in self._loggers.values():
            logger.level = level
            logger.handlers = [] if logger.parent else list(handlers)

    def set_masker(self, masker: SensitiveDataMasker) -> None:
        for logger in self._loggers.values():
            logger._masker = masker

    def disable(self) -> None:
        for logger in self._loggers.values():
            logger.disabled = True

    def enable(self) -> None:
        for logger in self._loggers.values():
            logger.disabled = False


_registry = LoggerRegistry()


def get_logger(name: str, level: LogLevel | None = None) -> BindLogger:
    """Return the logger registered under ``name``, creating it if needed.

    Example:
        >>> logger = get_logger(__name__)
        >>> logger.debug("Walking schema", target="AppConfig")
    """
    return _registry.get_logger(name, level)


def configure_logging(
    level: LogLevel | str = LogLevel.INFO,
    handlers: list[LogHandler] | None = None,
    format: str = "text",
) -> None:
    """Configure every confbind logger.

    Example:
        >>> configure_logging(level="DEBUG", format="json")
    """
    if isinstance(level, str):
        level = LogLevel.from_string(level)
    _registry.configure(level=level, handlers=handlers, format=format)
