"""
Provider status normalisation.

The only place raw provider status strings are interpreted. Everything
downstream branches on PaymentStatus.

Usage:
    from payments.normalizer import normalize

    normalize("SUCCESS")      # PaymentStatus.COMPLETED
    normalize(" declined ")   # PaymentStatus.FAILED
    normalize(None)           # PaymentStatus.PENDING
"""

from __future__ import annotations

from payments.state_machines import TERMINAL_PAYMENT_STATUSES, PaymentStatus

_STATUS_GROUPS = {
    PaymentStatus.COMPLETED: ("SUCCESS", "SUCCESSFUL", "COMPLETED", "COMPLETE", "SETTLED", "PAID", "0"),
    PaymentStatus.PROCESSING: ("PROCESSING", "IN_PROGRESS", "RUNNING"),
    PaymentStatus.FAILED: ("FAILED", "FAILURE", "ERROR", "DECLINED", "REJECTED", "INVALID"),
    PaymentStatus.CANCELLED: ("CANCELLED", "CANCELED", "EXPIRED", "TIMEOUT"),
    PaymentStatus.REFUNDED: ("REVERSED", "REFUNDED"),
    PaymentStatus.PENDING: ("PENDING", "NEW", "QUEUED"),
}

_STATUS_TABLE: dict[str, PaymentStatus] = {
    raw: status for status, raw_values in _STATUS_GROUPS.items() for raw in raw_values
}


def normalize(provider_status) -> PaymentStatus:
    """
    Map a raw provider status to a canonical PaymentStatus.

    Unknown, empty and None inputs map to PENDING; the function never
    raises.
    """
    if provider_status is None:
        return PaymentStatus.PENDING
    key = str(provider_status).strip().upper()
    return _STATUS_TABLE.get(key, PaymentStatus.PENDING)


def is_terminal(status) -> bool:
    return status in TERMINAL_PAYMENT_STATUSES
