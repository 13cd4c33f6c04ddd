"""
Event names emitted by the reconciliation engine.
"""

from django.db import models


class NotificationEvent(models.TextChoices):
    ORDER_STATUS_CHANGED = "order.status_changed", "Order status changed"
    PAYMENT_RECEIVED = "payment.received", "Payment received"
    PAYMENT_FAILED = "payment.failed", "Payment failed"
    ESCROW_RELEASED = "escrow.released", "Escrow released"
    WITHDRAWAL_REQUESTED = "withdrawal.requested", "Withdrawal requested"
    WITHDRAWAL_COMPLETED = "withdrawal.completed", "Withdrawal completed"
    WITHDRAWAL_FAILED = "withdrawal.failed", "Withdrawal failed"
    WITHDRAWAL_COMPENSATION_FAILED = (
        "withdrawal.compensation_failed",
        "Withdrawal compensation failed",
    )
    REFUND_REQUESTED = "refund.requested", "Refund requested"
    REFUND_COMPLETED = "refund.completed", "Refund completed"
    REFUND_REJECTED = "refund.rejected", "Refund rejected"
