"""
Payment-specific exceptions.

Exception Hierarchy:
    ValidationError (core, 400)
    └── InsufficientFundsError - Debit larger than the locked balance
    ExternalServiceError (core, 502)
    └── ExternalProviderError - Payment provider call failed
        └── ProviderRejectedError - Provider answered but refused the request
    InternalError (core, 500)
    └── CompensationFailedError - Re-crediting a failed withdrawal failed
    ConflictError (core, 409)
    ├── LockAcquisitionError - Distributed lock timeout
    └── AlreadyProcessedError - Entity already terminal (400)

Usage:
    from payments.exceptions import InsufficientFundsError

    if amount > balance:
        raise InsufficientFundsError(required=amount, available=balance)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.exceptions import (
    ConflictError,
    ExternalServiceError,
    InternalError,
    ValidationError,
)

if TYPE_CHECKING:
    from decimal import Decimal
    from typing import Any


class InsufficientFundsError(ValidationError):
    """
    Raised when a balance cannot cover a debit.

    Raised before any mutation, so the balance is unchanged.

    Attributes:
        required: Amount that would have been deducted
        available: Balance at the time of the check
    """

    default_error_code: str = "INSUFFICIENT_FUNDS"

    def __init__(
        self,
        required: Decimal,
        available: Decimal,
        message: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.required = required
        self.available = available
        merged = {"required": str(required), "available": str(available)}
        merged.update(details or {})
        super().__init__(
            message or f"Insufficient balance: required {required}, available {available}",
            details=merged,
        )


class ExternalProviderError(ExternalServiceError):
    """
    Raised when a payment provider call fails.

    Transport failures and 5xx answers are retryable; 4xx answers are not.

    Attributes:
        provider: Provider name (payd, pesapal, intasend)
        is_retryable: Whether retrying the same call may succeed
        raw_response: Decoded provider answer, when there was one
    """

    default_error_code: str = "PROVIDER_ERROR"

    def __init__(
        self,
        message: str,
        provider: str = "",
        is_retryable: bool = False,
        raw_response: Any = None,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.provider = provider
        self.is_retryable = is_retryable
        self.raw_response = raw_response
        merged = {"provider": provider, "retryable": is_retryable}
        merged.update(details or {})
        super().__init__(message, error_code=error_code, details=merged)


class ProviderRejectedError(ExternalProviderError):
    """Provider accepted the call but refused the payment or payout."""

    default_error_code: str = "PROVIDER_REJECTED"


class CompensationFailedError(InternalError):
    """
    Raised when a failed withdrawal could not be re-credited.

    The debit stands until the compensate_withdrawal task succeeds or an
    operator intervenes.
    """

    default_error_code: str = "COMPENSATION_FAILED"


class LockAcquisitionError(ConflictError):
    """Raised when a distributed lock cannot be acquired in time."""

    default_error_code: str = "LOCK_ACQUISITION_FAILED"


class AlreadyProcessedError(ConflictError):
    """
    Raised when an admin action targets an already-terminal entity.

    Answered with 400, like any other rejected admin input.
    """

    default_error_code: str = "ALREADY_PROCESSED"
    http_status: int = 400


__all__ = [
    "AlreadyProcessedError",
    "CompensationFailedError",
    "ExternalProviderError",
    "InsufficientFundsError",
    "LockAcquisitionError",
    "ProviderRejectedError",
]
