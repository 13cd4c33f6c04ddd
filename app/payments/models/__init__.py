"""
Payment domain models.

- Payment: checkout attempt and index of provider identifiers
- WithdrawalRequest: payout of a seller/organizer/event balance
- RefundRequest: buyer cash-out of the refunds balance
- WebhookEvent: durable record of inbound provider webhooks
- BalanceEntry: append-only balance audit row (payments.ledger)
"""

from payments.ledger.models import BalanceEntry
from payments.models.payment import Payment
from payments.models.refund_request import RefundRequest
from payments.models.webhook_event import WebhookEvent
from payments.models.withdrawal_request import WithdrawalRequest

__all__ = [
    "BalanceEntry",
    "Payment",
    "RefundRequest",
    "WebhookEvent",
    "WithdrawalRequest",
]
