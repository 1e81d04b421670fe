"""
Cache exceptions for lexicache.

Purpose
-------
Define the structured exception hierarchy for the translation cache:
configuration and input validation, persistence failures and
(de)serialization failures.

Design Notes
------------
- All cache exceptions inherit from `CacheError`.
- Each exception carries:
  - `message`: human-readable description
  - `code`: short, stable identifier for programmatic use
  - `details`: additional structured context (dict)
  - `severity`: `ErrorSeverity` value for logging decisions
- Validation errors are raised to callers. Storage and serialization errors
  are normally caught inside the store, logged via `to_dict()`, and degrade
  to in-memory behaviour.

Exception Hierarchy
-------------------
CacheError (base)
├── CacheValidationError (bad config, bad key, bad item shape)
├── CacheStorageError (persistence read/write failure)
└── CacheSerializationError (serialize/deserialize failure)
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional


class ErrorSeverity(Enum):
    """Error severity levels for logging and alerting."""

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"  # Concerning but handled (e.g. persistence offline)
    ERROR = "error"
    CRITICAL = "critical"


class CacheError(Exception):
    """
    Base exception for all cache errors.

    Args:
        message: Human-readable error message
        code: Stable error code (defaults to the class's DEFAULT_CODE)
        details: Additional structured data about the error
        severity: Error severity level for logging handlers

    Example:
        >>> raise CacheError("Loader failed", code="CACHE_LOAD_ERROR",
        ...                  details={"locale": "en"})
    """

    DEFAULT_CODE: str = "CACHE_ERROR"
    DEFAULT_SEVERITY: ErrorSeverity = ErrorSeverity.ERROR

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        severity: Optional[ErrorSeverity] = None,
    ) -> None:
        self.message: str = message
        self.code: str = code or self.DEFAULT_CODE
        self.details: Dict[str, Any] = details or {}
        self.severity: ErrorSeverity = severity or self.DEFAULT_SEVERITY
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.code,
            "message": self.message,
            "details": self.details,
            "severity": self.severity.value,
        }

    def __str__(self) -> str:
        details_str = f" | Details: {self.details}" if self.details else ""
        return f"[{self.code}] {self.message}{details_str}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"code={self.code!r}, "
            f"details={self.details!r}"
            ")"
        )


class CacheValidationError(CacheError):
    """
    Raised when a configuration, key or item fails validation.

    Surfaced synchronously to the caller; nothing is partially applied.
    """

    DEFAULT_CODE = "CACHE_VALIDATION_ERROR"
    DEFAULT_SEVERITY = ErrorSeverity.INFO

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, details=details)


class CacheStorageError(CacheError):
    """Raised when the persistence backend cannot be read or written."""

    DEFAULT_CODE = "CACHE_STORAGE_ERROR"
    DEFAULT_SEVERITY = ErrorSeverity.WARNING

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, details=details)


class CacheSerializationError(CacheError):
    """Raised when the entry set cannot be serialized or a blob cannot be decoded."""

    DEFAULT_CODE = "CACHE_SERIALIZATION_ERROR"
    DEFAULT_SEVERITY = ErrorSeverity.WARNING

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, details=details)


__all__ = [
    "ErrorSeverity",
    "CacheError",
    "CacheValidationError",
    "CacheStorageError",
    "CacheSerializationError",
]
