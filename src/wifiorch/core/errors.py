"""Exception hierarchy for the WiFi orchestration engine.

Provides structured error handling with severity levels, retry hints
and context that event payloads and the CLI can serialize.
"""

from enum import Enum
from typing import Any


class ErrorSeverity(Enum):
    """Error severity levels for monitoring and logging."""

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class WiFiError(Exception):
    """Base exception for all engine errors.

    Attributes:
        message: Human-readable error message
        details: Additional context as key-value pairs
        severity: Error severity level
        retryable: Whether the connection retry policy may retry the operation
        code: Stable identifier used in event payloads
    """

    severity: ErrorSeverity = ErrorSeverity.ERROR
    retryable: bool = False
    code: str = "WiFiError"

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.cause = cause

    def __str__(self) -> str:
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({detail_str})"
        return self.message

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to a dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
            "severity": self.severity.value,
            "retryable": self.retryable,
            "details": self.details,
        }


class ConfigurationError(WiFiError):
    """Configuration validation or loading error."""

    code = "ConfigurationError"


class StorageError(WiFiError):
    """Key-value store read or write failure."""

    code = "StorageError"


# =============================================================================
# Platform / Process Errors
# =============================================================================


class CommandError(WiFiError):
    """A native WiFi tool exited with an error.

    Raised when:
    - The tool returns a non-zero exit code
    - Output cannot be decoded
    """

    code = "CommandError"


class CommandNotFoundError(CommandError):
    """The native tool binary is not installed on this host."""

    code = "CommandNotFound"


class CommandTimeoutError(CommandError):
    """The native tool did not finish within its timeout."""

    code = "CommandTimeout"


class AdapterUnavailableError(WiFiError):
    """No WiFi hardware or tooling was detected.

    Non-fatal: read operations degrade to empty results, write
    operations report failure.
    """

    severity = ErrorSeverity.WARNING
    code = "AdapterUnavailable"


class NetworkEnumerationError(WiFiError):
    """Networks could not be enumerated (as opposed to "no networks")."""

    code = "NetworkEnumerationFailed"


class PermissionDeniedError(WiFiError):
    """The platform refused the operation for lack of privileges.

    Never retried automatically since retrying won't help.
    """

    code = "PermissionDenied"


# =============================================================================
# Scan / Connection Errors
# =============================================================================


class ScanInProgressError(WiFiError):
    """A scan is already running on this manager."""

    severity = ErrorSeverity.WARNING
    code = "ScanInProgress"


class ScanTimeoutError(WiFiError):
    """The scan did not complete within the configured scan timeout."""

    code = "ScanTimeout"


class ConnectionInProgressError(WiFiError):
    """A connection attempt is already in flight on this manager."""

    severity = ErrorSeverity.WARNING
    code = "ConnectionInProgress"


class PasswordRequiredError(WiFiError):
    """The network is secured and no password or stored credential exists."""

    severity = ErrorSeverity.WARNING
    code = "PasswordRequired"


class ConnectionTimeoutError(WiFiError):
    """The connection attempt exceeded the configured timeout."""

    retryable = True
    code = "ConnectionTimeout"


class ConnectionFailedError(WiFiError):
    """The platform reported that association failed."""

    retryable = True
    code = "ConnectionFailed"


class AuthenticationFailedError(WiFiError):
    """Enterprise authentication did not complete."""

    retryable = True
    code = "AuthenticationFailed"


# =============================================================================
# Credential Errors
# =============================================================================


class CredentialsNotFoundError(WiFiError):
    """No stored credentials exist for the requested network."""

    severity = ErrorSeverity.WARNING
    code = "CredentialsNotFound"


class CredentialsError(WiFiError):
    """A stored credential could not be encrypted or decrypted."""

    code = "CredentialsError"
