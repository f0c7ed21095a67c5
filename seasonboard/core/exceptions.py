"""
Exception hierarchy for the seasonboard leaderboard cache.

Purpose
-------
Define the structured exceptions raised by the cache store, the backup
codec, blob storage, the upstream stats client and the leaderboard service.
The HTTP layer translates these into status codes; nothing below it turns
one into a return value.

Design Notes
------------
- All exceptions inherit from `SeasonboardError`.
- Each exception carries:
  - `message`: human-readable description
  - `details`: additional structured context (dict)
  - `severity`: `ErrorSeverity` value for logging/alerting
  - `is_retryable`: whether the caller may retry the operation
  - `error_code`: short, stable identifier for programmatic use
- `CacheMiss` is the only error the service recovers from (by fetching
  fresh data upstream). Everything else is passed upward unchanged.

Exception Hierarchy
-------------------
SeasonboardError (base)
├── CacheMiss
├── EncodeError
├── DecodeError
│   └── MalformedRecord
├── BackendUnreachable
├── BackendWriteError
├── StorageReadError
├── StorageWriteError
├── UpstreamUnavailable
├── NothingToBackup
└── Canceled
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional


class ErrorSeverity(Enum):
    """Error severity levels for logging and alerting."""

    DEBUG = "debug"  # Expected, not concerning (e.g., cache misses)
    INFO = "info"  # Normal operation (e.g., caller precondition failures)
    WARNING = "warning"  # Concerning but handled (e.g., retryable errors)
    ERROR = "error"  # Unexpected errors requiring attention
    CRITICAL = "critical"  # System-level failures requiring immediate action


class SeasonboardError(Exception):
    """
    Base exception for all seasonboard errors.

    Args:
        message: Human-readable error message
        details: Additional structured data about the error
        severity: Error severity level for logging handlers
        is_retryable: Whether the operation can be retried
        error_code: Optional code for programmatic handling

    Example:
        >>> raise SeasonboardError(
        ...     "Redis transaction failed",
        ...     {"key": "leaderboard"}
        ... )
    """

    DEFAULT_SEVERITY: ErrorSeverity = ErrorSeverity.ERROR
    DEFAULT_RETRYABLE: bool = False
    DEFAULT_CODE: Optional[str] = None

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        severity: Optional[ErrorSeverity] = None,
        is_retryable: Optional[bool] = None,
        error_code: Optional[str] = None,
    ) -> None:
        self.message: str = message
        self.details: Dict[str, Any] = details or {}
        self.severity: ErrorSeverity = severity or self.DEFAULT_SEVERITY
        self.is_retryable: bool = (
            is_retryable if is_retryable is not None else self.DEFAULT_RETRYABLE
        )
        self.error_code: str = error_code or self.DEFAULT_CODE or self.__class__.__name__
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
            "severity": self.severity.value,
            "is_retryable": self.is_retryable,
        }

    def __str__(self) -> str:
        details_str = f" | Details: {self.details}" if self.details else ""
        return f"[{self.error_code}] {self.message}{details_str}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"details={self.details!r}, "
            f"severity={self.severity.value!r}, "
            f"is_retryable={self.is_retryable!r}"
            ")"
        )


class CacheMiss(SeasonboardError):
    """
    Raised when a cached entity is absent or has expired.

    Args:
        key: The cache key that was looked up
    """

    DEFAULT_SEVERITY = ErrorSeverity.DEBUG
    DEFAULT_CODE = "CACHE_MISS"

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f"No cached value for '{key}'", details={"key": key})


class EncodeError(SeasonboardError):
    """Raised when a record cannot be serialized. Never retried."""

    DEFAULT_CODE = "ENCODE_ERROR"


class DecodeError(SeasonboardError):
    """Raised when stored or downloaded bytes do not parse. Never retried."""

    DEFAULT_CODE = "DECODE_ERROR"


class MalformedRecord(DecodeError):
    """
    Raised when a payload does not match the expected record schema.

    Args:
        record: Name of the record type being decoded
        reason: What was wrong with the payload
    """

    DEFAULT_CODE = "MALFORMED_RECORD"

    def __init__(self, record: str, reason: str) -> None:
        self.record = record
        self.reason = reason
        super().__init__(
            f"Malformed {record}: {reason}",
            details={"record": record, "reason": reason},
        )


class BackendUnreachable(SeasonboardError):
    """Raised when no key-value backend node answers."""

    DEFAULT_RETRYABLE = True
    DEFAULT_CODE = "BACKEND_UNREACHABLE"


class BackendWriteError(SeasonboardError):
    """Raised when a write or transaction against the key-value backend fails."""

    DEFAULT_RETRYABLE = True
    DEFAULT_CODE = "BACKEND_WRITE_ERROR"


class StorageReadError(SeasonboardError):
    """Raised when a blob cannot be read (missing or unreadable)."""

    DEFAULT_CODE = "STORAGE_READ_ERROR"


class StorageWriteError(SeasonboardError):
    """Raised when a blob cannot be written."""

    DEFAULT_RETRYABLE = True
    DEFAULT_CODE = "STORAGE_WRITE_ERROR"


class UpstreamUnavailable(SeasonboardError):
    """
    Raised when the upstream stats provider cannot supply data.

    Args:
        operation: Provider call that failed
        reason: Description of the failure
    """

    DEFAULT_RETRYABLE = True
    DEFAULT_CODE = "UPSTREAM_UNAVAILABLE"

    def __init__(self, operation: str, reason: str) -> None:
        self.operation = operation
        super().__init__(
            f"Upstream {operation} failed: {reason}",
            details={"operation": operation, "reason": reason},
        )


class NothingToBackup(SeasonboardError):
    """Raised when a backup is requested but no leaderboard is cached."""

    DEFAULT_SEVERITY = ErrorSeverity.INFO
    DEFAULT_CODE = "NOTHING_TO_BACKUP"

    def __init__(self) -> None:
        super().__init__("No cached leaderboard snapshot to back up")


class Canceled(SeasonboardError):
    """
    Raised when an operation exceeds the caller's deadline.

    Args:
        operation: Service operation that was abandoned
        timeout: Deadline in seconds that was exceeded
    """

    DEFAULT_SEVERITY = ErrorSeverity.WARNING
    DEFAULT_CODE = "CANCELED"

    def __init__(self, operation: str, timeout: Optional[float]) -> None:
        self.operation = operation
        self.timeout = timeout
        super().__init__(
            f"{operation} canceled after {timeout}s deadline",
            details={"operation": operation, "timeout": timeout},
        )


# Utility functions for exception handling patterns


def is_transient_error(exc: Exception) -> bool:
    """
    Check if an exception represents a transient error that can be retried.

    Args:
        exc: Exception to check

    Returns:
        True if error is retryable, False otherwise.
    """
    if isinstance(exc, SeasonboardError):
        return exc.is_retryable
    return False


def get_error_severity(exc: Exception) -> ErrorSeverity:
    """
    Get the severity level of an exception for logging.

    Args:
        exc: Exception to check

    Returns:
        ErrorSeverity level.
    """
    if isinstance(exc, SeasonboardError):
        return exc.severity
    return ErrorSeverity.ERROR


__all__ = [
    "ErrorSeverity",
    "SeasonboardError",
    "CacheMiss",
    "EncodeError",
    "DecodeError",
    "MalformedRecord",
    "BackendUnreachable",
    "BackendWriteError",
    "StorageReadError",
    "StorageWriteError",
    "UpstreamUnavailable",
    "NothingToBackup",
    "Canceled",
    "is_transient_error",
    "get_error_severity",
]
