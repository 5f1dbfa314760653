"""Errors raised by confbind.

Everything derives from ``ConfbindError``, so callers that only care whether
configuration could be loaded need a single ``except`` clause. Two branches
sit below it: ``ConfigurationError`` for problems binding values onto a
dataclass, and ``SourceError`` for problems finding or reading a file.

Exception Hierarchy:
    ConfbindError (base)
    ├── ConfigurationError
    │   ├── UnsupportedShapeError
    │   ├── RequiredFieldMissingError
    │   └── CoercionError
    │       ├── InvalidMapEntryError
    │       └── UnsupportedTypeError
    └── SourceError
        ├── UnsupportedFormatError
        ├── ConfigFileNotFoundError
        └── DecodeError

Example:
    >>> try:
    ...     resolve(config, prefix="APP_")
    ... except RequiredFieldMissingError as e:
    ...     logger.error(f"Missing setting: {e.field_name}")
    ... except ConfbindError as e:
    ...     logger.error(f"Configuration error: {e}")
"""

from __future__ import annotations

from typing import Any, Self


class ConfbindError(Exception):
    """Root of the confbind error hierarchy.

    Attributes:
        message: What went wrong.
        details: Structured context (field, variable, source, ...).
        cause: The lower-level exception this one was raised from, if any.

    Example:
        >>> error = ConfbindError("Cannot read config", details={"path": "config/dev.yaml"})
        >>> str(error)
        "Cannot read config | Details: {'path': 'config/dev.yaml'}"
    """

    def __init__(
        self,
        message: str,
        *,
        details: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.cause = cause

    def __str__(self) -> str:
        if not self.details:
            return self.message
        return f"{self.message} | Details: {self.details}"

    def __repr__(self) -> str:
        name = type(self).__name__
        return f"{name}(message={self.message!r}, details={self.details!r}, cause={self.cause!r})"


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigurationError(ConfbindError):
    """A value could not be bound onto a configuration object.

    Attributes:
        field_name: Dotted path of the field involved, when known.
    """

    def __init__(
        self,
        message: str,
        *,
        field_name: str | None = None,
        details: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        details = details or {}
        if field_name:
            details["field"] = field_name
        super().__init__(message, details=details, cause=cause)
        self.field_name = field_name


class UnsupportedShapeError(ConfigurationError):
    """Raised when the binding target is not a mutable dataclass instance.

    Attributes:
        target_type: Name of the type that was passed in.
    """

    def __init__(
        self,
        target_type: str,
        *,
        reason: str = "expected a dataclass instance",
        details: dict[str, Any] | None = None,
    ) -> None:
        details = details or {}
        details["target_type"] = target_type
        super().__init__(
            f"Cannot bind configuration onto {target_type}: {reason}",
            details=details,
        )
        self.target_type = target_type
        self.reason = reason


class RequiredFieldMissingError(ConfigurationError):
    """Raised when a required field resolves to no value.

    Attributes:
        field_name: Dotted path of the missing field.
        env_names: Environment variable names that were consulted.
    """

    def __init__(
        self,
        field_name: str,
        *,
        env_names: tuple[str, ...] = (),
        details: dict[str, Any] | None = None,
    ) -> None:
        details = details or {}
        if env_names:
            details["env"] = list(env_names)
        message = f"Required field '{field_name}' is missing"
        if env_names:
            message = f"{message} (set one of: {', '.join(env_names)})"
        super().__init__(message, field_name=field_name, details=details)
        self.env_names = env_names


class CoercionError(ConfigurationError):
    """Raised when a raw string cannot be converted into a field value.

    The coercion engine raises it without field context; the resolver
    attaches the field name and raw value through ``annotate`` before
    re-raising, so subclasses keep their identity.

    Attributes:
        raw_value: The raw string that failed to convert.
        target_type: Name of the type the value was converted to.
    """

    def __init__(
        self,
        message: str,
        *,
        raw_value: str | None = None,
        target_type: str | None = None,
        field_name: str | None = None,
        details: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        details = details or {}
        if raw_value is not None:
            details["value"] = raw_value
        if target_type:
            details["target_type"] = target_type
        super().__init__(message, field_name=field_name, details=details, cause=cause)
        self.raw_value = raw_value
        self.target_type = target_type

    def annotate(self, *, field_name: str, raw_value: str) -> Self:
        """Attach the field being resolved and the raw value that was read.

        Args:
            field_name: Dotted path of the field.
            raw_value: Raw string handed to the coercion engine.

        Returns:
            The same exception, for re-raising.
        """
        self.field_name = field_name
        self.details["field"] = field_name
        if self.raw_value is None:
            self.raw_value = raw_value
            self.details["value"] = raw_value
        elif self.raw_value != raw_value:
            # element-level failure inside a composite value
            self.details["field_value"] = raw_value
        return self


class InvalidMapEntryError(CoercionError):
    """Raised when a mapping token has no ``key:value`` separator."""

    def __init__(self, token: str, *, details: dict[str, Any] | None = None) -> None:
        super().__init__(
            f"Invalid map entry {token!r}: expected 'key:value'",
            raw_value=token,
            details=details,
        )
        self.token = token


class UnsupportedTypeError(CoercionError):
    """Raised when no coercion rule matches the target type."""

    def __init__(
        self,
        target_type: str,
        *,
        raw_value: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            f"Unsupported type: {target_type}",
            raw_value=raw_value,
            target_type=target_type,
            details=details,
        )


# =============================================================================
# Source Errors
# =============================================================================


class SourceError(ConfbindError):
    """A configuration file or other source could not be found or read.

    Attributes:
        source: Description of the source (file path, format name).
    """

    def __init__(
        self,
        message: str,
        *,
        source: str | None = None,
        details: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        details = details or {}
        if source:
            details["source"] = source
        super().__init__(message, details=details, cause=cause)
        self.source = source


class UnsupportedFormatError(SourceError):
    """Raised when no parser exists for a configuration format."""

    def __init__(self, fmt: str) -> None:
        super().__init__(f"'{fmt}' file format not supported", source=fmt)
        self.format = fmt


class ConfigFileNotFoundError(SourceError):
    """Raised when no configuration file exists in any search path.

    Attributes:
        file_name: File name that was searched for.
        search_paths: Directories that were searched.
    """

    def __init__(self, file_name: str, search_paths: tuple[str, ...]) -> None:
        super().__init__(
            f"Configuration file not found: {file_name}",
            source=file_name,
            details={"search_paths": list(search_paths)},
        )
        self.file_name = file_name
        self.search_paths = search_paths


class DecodeError(SourceError):
    """Raised when decoded file content cannot be applied to a dataclass.

    Attributes:
        field_name: Dotted path of the field that failed, when known.
    """

    def __init__(
        self,
        message: str,
        *,
        source: str | None = None,
        field_name: str | None = None,
        details: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        details = details or {}
        if field_name:
            details["field"] = field_name
        super().__init__(message, source=source, details=details, cause=cause)
        self.field_name = field_name


# =============================================================================
# Utility Functions
# =============================================================================


def wrap_exception(
    exception: Exception,
    wrapper_class: type[ConfbindError] = ConfbindError,
    message: str | None = None,
    **kwargs: Any,
) -> ConfbindError:
    """Build a confbind error around a third-party or builtin exception.

    Args:
        exception: Exception raised by a parser or the standard library.
        wrapper_class: Confbind error type to build.
        message: Message to use instead of ``str(exception)``.
        **kwargs: Extra keyword arguments for ``wrapper_class``.

    Returns:
        The new error, with ``cause`` set to ``exception``.

    Example:
        >>> try:
        ...     yaml.safe_load(stream)
        ... except yaml.YAMLError as e:
        ...     raise wrap_exception(e, DecodeError, source="config/dev.yaml") from e
    """
    if message is None:
        message = str(exception)
    return wrapper_class(message, cause=exception, **kwargs)
