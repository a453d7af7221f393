"""Service layer exceptions.

Domain-specific exceptions for business logic errors. These exceptions
are independent of JSON-RPC protocol errors and represent business rule
violations or domain-level failures.
"""

from __future__ import annotations

from typing import Any


class ServiceError(Exception):
    """Base exception for service layer errors.

    Attributes:
        message: Human-readable error message
        details: Additional error context

    Example:
        >>> raise ServiceError("Operation failed", details={"reason": "timeout"})
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationError(ServiceError):
    """Raised when parameter validation fails.

    Example:
        >>> raise ValidationError("Message text cannot be empty")
    """

    pass


class OperationError(ServiceError):
    """Raised when operation fails.

    Generic error for failed operations that don't fit other categories.

    Example:
        >>> raise OperationError("Failed to create resource")
    """

    pass
