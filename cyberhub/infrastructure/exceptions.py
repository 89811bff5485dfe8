"""
Custom Exceptions for CyberHub

Hierarchical exception classes for proper error handling across layers.
"""

from typing import Optional, Dict, Any


class CyberHubError(Exception):
    """Base exception for all CyberHub errors."""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        original_error: Optional[Exception] = None
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.original_error = original_error

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "details": self.details
        }


class ValidationError(CyberHubError):
    """Raised when input validation fails."""
    pass


class AccessDeniedError(CyberHubError):
    """Raised when the caller's entitlements do not cover an operation."""

    def __init__(
        self,
        message: str = "Upgrade required to access this feature",
        capability: Optional[str] = None,
        original_error: Optional[Exception] = None
    ):
        details = {}
        if capability:
            details["capability"] = capability
        super().__init__(message, details, original_error)


class DatabaseError(CyberHubError):
    """Raised when database operations fail."""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        table: Optional[str] = None,
        original_error: Optional[Exception] = None
    ):
        details = {}
        if operation:
            details["operation"] = operation
        if table:
            details["table"] = table
        super().__init__(message, details, original_error)


class NotFoundError(DatabaseError):
    """Raised when a requested resource is not found."""
    pass


class DuplicateError(DatabaseError):
    """Raised when attempting to create a duplicate resource."""
    pass


class ConcurrentUpdateError(DatabaseError):
    """Raised when a compare-and-set update finds a newer row version."""

    def __init__(
        self,
        message: str,
        expected_version: Optional[int] = None,
        table: Optional[str] = None,
        original_error: Optional[Exception] = None
    ):
        super().__init__(message, operation="update", table=table, original_error=original_error)
        if expected_version is not None:
            self.details["expected_version"] = expected_version


class ConfigurationError(CyberHubError):
    """Raised when configuration is missing or invalid."""

    def __init__(
        self,
        message: str,
        missing_keys: Optional[list] = None,
        original_error: Optional[Exception] = None
    ):
        details = {}
        if missing_keys:
            details["missing_keys"] = missing_keys
        super().__init__(message, details, original_error)
