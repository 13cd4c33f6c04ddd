"""
State enums for payment models.

Canonical, provider-independent vocabularies. Raw provider strings are
translated into PaymentStatus only by payments.normalizer.

State Machines Overview:

WithdrawalRequest:
    pending → processing → completed
    pending/processing → failed
    pending/processing → rejected

RefundRequest:
    pending → completed (balance debited on admin confirmation)
    pending → rejected (balance untouched)
"""

from django.db import models


class PaymentStatus(models.TextChoices):
    """
    Canonical payment status shared by orders and the payment index.

    Terminal states: COMPLETED, FAILED, CANCELLED, REFUNDED
    """

    PENDING = "pending", "Pending"
    PROCESSING = "processing", "Processing"
    COMPLETED = "completed", "Completed"
    FAILED = "failed", "Failed"
    CANCELLED = "cancelled", "Cancelled"
    REFUNDED = "refunded", "Refunded"


TERMINAL_PAYMENT_STATUSES = frozenset(
    {
        PaymentStatus.COMPLETED,
        PaymentStatus.FAILED,
        PaymentStatus.CANCELLED,
        PaymentStatus.REFUNDED,
    }
)


class WithdrawalStatus(models.TextChoices):
    """
    States for the WithdrawalRequest lifecycle.

    Terminal states: COMPLETED, FAILED, REJECTED
    """

    PENDING = "pending", "Pending"
    PROCESSING = "processing", "Processing"
    COMPLETED = "completed", "Completed"
    FAILED = "failed", "Failed"
    REJECTED = "rejected", "Rejected"


TERMINAL_WITHDRAWAL_STATUSES = frozenset(
    {
        WithdrawalStatus.COMPLETED,
        WithdrawalStatus.FAILED,
        WithdrawalStatus.REJECTED,
    }
)


class RefundRequestStatus(models.TextChoices):
    """States for the buyer RefundRequest lifecycle."""

    PENDING = "pending", "Pending"
    COMPLETED = "completed", "Completed"
    REJECTED = "rejected", "Rejected"


class WebhookEventStatus(models.TextChoices):
    """
    Processing status for inbound webhook records.

    PENDING: Recorded, not yet processed
    PROCESSED: Applied to an order or withdrawal
    IGNORED: Irrelevant (non-final status, already processed entity)
    FAILED: Processing raised; kept for manual reconciliation
    """

    PENDING = "pending", "Pending"
    PROCESSED = "processed", "Processed"
    IGNORED = "ignored", "Ignored"
    FAILED = "failed", "Failed"


class PaymentProvider(models.TextChoices):
    """External collection/payout providers."""

    PAYD = "payd", "Payd"
    PESAPAL = "pesapal", "Pesapal"
    INTASEND = "intasend", "IntaSend"
