"""
Base exception classes for application-wide error handling.

Every domain error carries a human-readable message, a machine-readable
error code, optional details and the HTTP status a view should answer with.

Exception Hierarchy:
    BaseApplicationError (base, 400)
    ├── ValidationError - Malformed input or broken business rule (400)
    ├── PermissionDeniedError - Role or ownership mismatch (403)
    ├── NotFoundError - Entity, order or request absent (404)
    ├── ConflictError - Entity already in a terminal/incompatible state (409)
    ├── RateLimitError - Rate limit exceeded (429)
    ├── ExternalServiceError - Third-party call failed (502)
    └── InternalError - Unexpected failure, transaction rolled back (500)

Usage:
    from core.exceptions import ValidationError, NotFoundError

    raise ValidationError("Amount must be positive", error_code="INVALID_AMOUNT")

    try:
        ...
    except BaseApplicationError as e:
        return Response(e.to_dict(), status=e.http_status)
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
        details: Additional error context (field errors, amounts, ids)
        http_status: Status code used when the error reaches a view
    """

    default_error_code: str = "APPLICATION_ERROR"
    http_status: int = 400

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
                "error": "Withdrawal request not found",
                "error_code": "WITHDRAWAL_NOT_FOUND",
                "details": {"withdrawal_id": "..."}
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
    Raised when input validation fails before any mutation is attempted.

    Note:
        For DRF serializer validation, use DRF's built-in validation.
        Use this for service-layer validation logic.
    """

    default_error_code: str = "VALIDATION_ERROR"
    http_status: int = 400


class NotFoundError(BaseApplicationError):
    """Raised when a requested resource is not found."""

    default_error_code: str = "NOT_FOUND"
    http_status: int = 404


class PermissionDeniedError(BaseApplicationError):
    """
    Raised when the caller's role or ownership does not allow an operation.

    Example:
        if not user.is_staff:
            raise PermissionDeniedError(
                "Admin access required",
                error_code="ADMIN_REQUIRED",
            )

    Note:
        For authentication failures (missing/invalid token), use DRF's
        AuthenticationFailed. Use this for authorization failures.
    """

    default_error_code: str = "PERMISSION_DENIED"
    http_status: int = 403


class ConflictError(BaseApplicationError):
    """
    Raised when an operation conflicts with current resource state.

    Use for:
    - Entities already in a terminal state
    - Invalid state transitions
    - Duplicate submissions

    Example:
        if order.status in TERMINAL_ORDER_STATUSES:
            raise ConflictError(
                f"Order is already {order.status}",
                error_code="ORDER_TERMINAL",
                details={"current_status": order.status},
            )
    """

    default_error_code: str = "CONFLICT"
    http_status: int = 409


class RateLimitError(BaseApplicationError):
    """Raised when rate limit is exceeded."""

    default_error_code: str = "RATE_LIMIT_EXCEEDED"
    http_status: int = 429


class ExternalServiceError(BaseApplicationError):
    """
    Raised when an external service call fails.

    Example:
        try:
            response = requests.post(url, json=payload, timeout=10)
            response.raise_for_status()
        except requests.RequestException as e:
            raise ExternalServiceError(
                "Payment provider unavailable",
                error_code="PROVIDER_UNAVAILABLE",
                details={"provider": "payd", "error": str(e)},
            )
    """

    default_error_code: str = "EXTERNAL_SERVICE_ERROR"
    http_status: int = 502


class InternalError(BaseApplicationError):
    """
    Raised for unexpected failures that must abort the current operation.

    The surrounding transaction is rolled back; callers never observe a
    partially applied mutation.
    """

    default_error_code: str = "INTERNAL_ERROR"
    http_status: int = 500


__all__ = [
    "BaseApplicationError",
    "ConflictError",
    "ExternalServiceError",
    "InternalError",
    "NotFoundError",
    "PermissionDeniedError",
    "RateLimitError",
    "ValidationError",
]
