"""
Exception hierarchy for groveconf.

Purpose
-------
Define the structured exceptions raised by the option registry, the group
tree, the update protocol and the source loading pipeline.

Design Notes
------------
- All exceptions inherit from `GroveConfError`.
- Each exception carries:
  - `message`: human-readable description
  - `details`: additional structured context (dict)
  - `severity`: `ErrorSeverity` value for logging decisions
  - `error_code`: short, stable identifier for programmatic use
- Data-path failures (parse, validation, lookup) never mutate state.
- Structural failures (`StructuralError`) indicate programmer errors and are
  expected to propagate loudly.

Exception Hierarchy
-------------------
GroveConfError (base)
├── ParseError
├── ValidationError
├── NoSuchOptionError
├── NoSuchGroupError
├── OptionValueError
├── OptionTypeError
├── DuplicateOptionError
├── RequiredOptionMissingError
├── StructuralError
│   ├── ParsedError
│   └── NotParsedError
├── SourceError
└── DecoderNotFoundError
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional, Sequence


class ErrorSeverity(Enum):
    """Error severity levels for logging."""

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class GroveConfError(Exception):
    """
    Base exception for all groveconf errors.

    Args:
        message: Human-readable error message
        details: Additional structured data about the error
        severity: Error severity level for logging handlers
        error_code: Optional code for programmatic handling

    Example:
        >>> raise GroveConfError("option registry failure", {"group": "db"})
    """

    DEFAULT_SEVERITY: ErrorSeverity = ErrorSeverity.ERROR
    DEFAULT_CODE: str = "GROVECONF_ERROR"

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        severity: Optional[ErrorSeverity] = None,
        error_code: Optional[str] = None,
    ) -> None:
        self.message: str = message
        self.details: Dict[str, Any] = details or {}
        self.severity: ErrorSeverity = severity or self.DEFAULT_SEVERITY
        self.error_code: str = error_code or self.DEFAULT_CODE
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
            "severity": self.severity.value,
        }

    def __str__(self) -> str:
        details_str = f" | Details: {self.details}" if self.details else ""
        return f"[{self.error_code}] {self.message}{details_str}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"details={self.details!r}, "
            f"severity={self.severity.value!r}"
            ")"
        )


def _location(group: str, option: str) -> str:
    return f"{group}:{option}" if group else option


# ============================================================================
# Data-path errors
# ============================================================================


class ParseError(GroveConfError):
    """
    Raised when a raw value cannot be converted to the option's type.

    Args:
        option: Name of the option being parsed
        value: The offending raw value
        reason: Why the conversion failed
        group: Full path of the group owning the option
    """

    DEFAULT_SEVERITY = ErrorSeverity.WARNING
    DEFAULT_CODE = "PARSE_ERROR"

    def __init__(self, option: str, value: Any, reason: str, group: str = "") -> None:
        self.group = group
        self.option = option
        self.value = value
        self.reason = reason
        super().__init__(
            f"cannot parse {value!r} for option '{_location(group, option)}': {reason}",
            details={"group": group, "option": option, "value": repr(value)},
        )


class ValidationError(GroveConfError):
    """
    Raised when a parsed value is rejected by a validator.

    The message is the validator's message, unchanged. Validators may raise
    this directly with only a message; the group fills in `group`, `option`
    and `value` before the error leaves the update path.
    """

    DEFAULT_SEVERITY = ErrorSeverity.WARNING
    DEFAULT_CODE = "VALIDATION_ERROR"

    def __init__(
        self,
        message: str,
        *,
        group: str = "",
        option: str = "",
        value: Any = None,
    ) -> None:
        self.group = group
        self.option = option
        self.value = value
        super().__init__(message)
        self.bind(group, option, value)

    def bind(self, group: str, option: str, value: Any) -> "ValidationError":
        """Attach the option location to the error."""
        self.group = group
        self.option = option
        self.value = value
        if option:
            self.details = {"group": group, "option": option, "value": repr(value)}
        return self


class NoSuchOptionError(GroveConfError):
    """Raised when a path does not resolve to a registered option."""

    DEFAULT_SEVERITY = ErrorSeverity.INFO
    DEFAULT_CODE = "NO_SUCH_OPTION"

    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"no option '{path}'", details={"path": path})


class NoSuchGroupError(GroveConfError):
    """Raised when a path does not resolve to an existing group."""

    DEFAULT_SEVERITY = ErrorSeverity.INFO
    DEFAULT_CODE = "NO_SUCH_GROUP"

    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"no group '{path}'", details={"path": path})


class OptionValueError(GroveConfError):
    """Raised when reading an option that has no value."""

    DEFAULT_SEVERITY = ErrorSeverity.INFO
    DEFAULT_CODE = "OPTION_HAS_NO_VALUE"

    def __init__(self, group: str, option: str) -> None:
        self.group = group
        self.option = option
        super().__init__(
            f"the option '{_location(group, option)}' has no value",
            details={"group": group, "option": option},
        )


class OptionTypeError(GroveConfError):
    """Raised when a typed accessor does not match the option's type."""

    DEFAULT_SEVERITY = ErrorSeverity.WARNING
    DEFAULT_CODE = "OPTION_TYPE_MISMATCH"

    def __init__(self, group: str, option: str, expected: str, actual: str) -> None:
        self.group = group
        self.option = option
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"the option '{_location(group, option)}' is of type '{actual}', not '{expected}'",
            details={"group": group, "option": option, "expected": expected, "actual": actual},
        )


class DuplicateOptionError(GroveConfError):
    """Raised when an option name is registered twice into the same group."""

    DEFAULT_SEVERITY = ErrorSeverity.CRITICAL
    DEFAULT_CODE = "DUPLICATE_OPTION"

    def __init__(self, group: str, option: str) -> None:
        self.group = group
        self.option = option
        super().__init__(
            f"the option '{option}' has been registered into the group '{group}'",
            details={"group": group, "option": option},
        )


class RequiredOptionMissingError(GroveConfError):
    """
    Raised after a load pass when required options still have no value.

    Attributes
    ----------
    missing:
        Full paths of every required option without a value, sorted.
    """

    DEFAULT_SEVERITY = ErrorSeverity.ERROR
    DEFAULT_CODE = "REQUIRED_OPTION_MISSING"

    def __init__(self, missing: Sequence[str]) -> None:
        self.missing: List[str] = sorted(missing)
        super().__init__(
            "missing value for required options: " + ", ".join(self.missing),
            details={"missing": self.missing},
        )


# ============================================================================
# Structural (programmer) errors
# ============================================================================


class StructuralError(GroveConfError):
    """Raised when the configuration structure is mutated in the wrong phase."""

    DEFAULT_SEVERITY = ErrorSeverity.CRITICAL
    DEFAULT_CODE = "STRUCTURAL_ERROR"


class ParsedError(StructuralError):
    """Raised on structural mutation after the registry has been parsed."""

    DEFAULT_CODE = "ALREADY_PARSED"

    def __init__(self, operation: str = "") -> None:
        message = "the config registry has been parsed"
        if operation:
            message = f"{message}: cannot {operation}"
        super().__init__(message, details={"operation": operation} if operation else None)


class NotParsedError(StructuralError):
    """Raised when an operation requires a parsed registry."""

    DEFAULT_CODE = "NOT_PARSED"

    def __init__(self, operation: str = "") -> None:
        message = "the config registry has not been parsed"
        if operation:
            message = f"{message}: cannot {operation}"
        super().__init__(message, details={"operation": operation} if operation else None)


# ============================================================================
# Source errors
# ============================================================================


class SourceError(GroveConfError):
    """
    Raised when a source cannot be read or its data cannot be decoded.

    Args:
        source: Identifier of the source, e.g. ``file:/etc/app.ini``
        error: The underlying exception
        format: Declared data format, if known
    """

    DEFAULT_SEVERITY = ErrorSeverity.ERROR
    DEFAULT_CODE = "SOURCE_ERROR"

    def __init__(self, source: str, error: BaseException, format: str = "") -> None:
        self.source = source
        self.format = format
        self.original_error = error
        super().__init__(
            f"source[{source}]: {error}",
            details={
                "source": source,
                "format": format,
                "error_type": type(error).__name__,
            },
        )


class DecoderNotFoundError(GroveConfError):
    """Raised when no decoder is registered for a data format."""

    DEFAULT_SEVERITY = ErrorSeverity.ERROR
    DEFAULT_CODE = "NO_DECODER"

    def __init__(self, format: str) -> None:
        self.format = format
        super().__init__(f"no decoder for the format '{format}'", details={"format": format})


__all__ = [
    "ErrorSeverity",
    "GroveConfError",
    "ParseError",
    "ValidationError",
    "NoSuchOptionError",
    "NoSuchGroupError",
    "OptionValueError",
    "OptionTypeError",
    "DuplicateOptionError",
    "RequiredOptionMissingError",
    "StructuralError",
    "ParsedError",
    "NotParsedError",
    "SourceError",
    "DecoderNotFoundError",
]
