"""
State machine enums and helpers for payment models.

This module defines the state enums used by payment models with django-fsm.
"""

from payments.state_machines.states import (
    TERMINAL_PAYMENT_STATUSES,
    TERMINAL_WITHDRAWAL_STATUSES,
    PaymentProvider,
    PaymentStatus,
    RefundRequestStatus,
    WebhookEventStatus,
    WithdrawalStatus,
)

__all__ = [
    "TERMINAL_PAYMENT_STATUSES",
    "TERMINAL_WITHDRAWAL_STATUSES",
    "PaymentProvider",
    "PaymentStatus",
    "RefundRequestStatus",
    "WebhookEventStatus",
    "WithdrawalStatus",
]
