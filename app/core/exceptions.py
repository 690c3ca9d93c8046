"""
Base exception classes for application-wide error handling.

Every domain error in the project derives from BaseApplicationError so that
API views, celery tasks and admin actions can report failures uniformly.

Exception Hierarchy:
    BaseApplicationError (base)
    ├── ValidationError - Malformed input, rejected before any write
    ├── NotFoundError - Resource not found
    ├── PermissionDeniedError - Business rule forbids the operation
    ├── ConflictError - State conflicts (duplicates, invalid transitions)
    └── ExternalServiceError - Third-party service failures

Usage:
    from core.exceptions import ValidationError

    raise ValidationError(
        "Amount must be numeric",
        error_code="INVALID_AMOUNT",
        details={"amount": "abc"},
    )

    # In a view
    except BaseApplicationError as e:
        return Response(e.to_dict(), status=e.status_code)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import Any


class BaseApplicationError(Exception):
    """
    Base exception for all application-specific errors.

    Attributes:
        message: Human-readable error description
        error_code: Machine-readable code for client-side handling
        details: Additional error context (identifiers, amounts, etc.)
        status_code: HTTP status used when the error reaches an API view
    """

    default_error_code: str = "APPLICATION_ERROR"
    status_code: int = 400

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.error_code = error_code or self.default_error_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """
        Convert exception to dictionary for API response.

        Example:
            {
                "error": "Insufficient balance",
                "error_code": "INSUFFICIENT_BALANCE",
                "details": {"required": "1000", "available": "400"}
            }
        """
        result: dict[str, Any] = {
            "error": self.message,
            "error_code": self.error_code,
        }
        if self.details:
            result["details"] = self.details
        return result

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code!r}, "
            f"details={self.details!r})"
        )


class ValidationError(BaseApplicationError):
    """
    Raised when input validation fails.

    Use for service-layer validation (non-numeric amounts, unknown
    currencies, malformed payee addresses). DRF serializer validation
    stays in the serializers.
    """

    default_error_code: str = "VALIDATION_ERROR"


class NotFoundError(BaseApplicationError):
    """Raised when a requested resource is not found."""

    default_error_code: str = "NOT_FOUND"
    status_code: int = 404


class PermissionDeniedError(BaseApplicationError):
    """
    Raised when a business rule forbids the operation for this caller.

    Authentication failures stay with DRF's AuthenticationFailed.
    """

    default_error_code: str = "PERMISSION_DENIED"
    status_code: int = 403


class ConflictError(BaseApplicationError):
    """
    Raised when an operation conflicts with current resource state.

    Use for unique constraint violations and invalid state transitions.
    HTTP 409 Conflict is the matching status.
    """

    default_error_code: str = "CONFLICT"
    status_code: int = 409


class ExternalServiceError(BaseApplicationError):
    """
    Raised when an external service call fails.

    Log the original error for debugging but don't expose provider
    internals to clients.
    """

    default_error_code: str = "EXTERNAL_SERVICE_ERROR"
    status_code: int = 502
