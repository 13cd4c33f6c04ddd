"""
Payment services for coordinating money movement.

This module provides:
- PaymentService: Checkout initiation against a provider
- WithdrawalService: Balance payouts with compensation on failure
- RefundRequestService: Buyer refund requests confirmed by admins

Usage:
    from payments.services import WithdrawalService

    result = WithdrawalService.create_withdrawal(
        user,
        entity_type="seller",
        amount=Decimal("500.00"),
        payout_number="0712345678",
        payout_name="Jane Doe",
    )

    # Confirm a refund request
    from payments.services import RefundRequestService

    result = RefundRequestService.confirm(request_id, admin, notes="Paid via M-Pesa")
"""

from payments.services.payment_service import CheckoutResult, PaymentService
from payments.services.refund_request_service import RefundRequestService
from payments.services.withdrawal_service import WithdrawalService

__all__ = [
    "CheckoutResult",
    "PaymentService",
    "RefundRequestService",
    "WithdrawalService",
]
