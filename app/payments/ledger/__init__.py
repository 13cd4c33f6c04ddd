"""
Balance ledger for marketplace funds.

Balances are columns on the holder rows (Seller, Organizer, Event, Buyer);
this package owns every mutation of them and the BalanceEntry audit trail.

Public API:
    ledger - Singleton instance of LedgerService
    LedgerService - lock_holder(), credit(), debit()
    BalanceEntry - Append-only audit row
    EntryType - credit / debit

Usage:
    from payments.ledger import ledger

    with transaction.atomic():
        event = ledger.lock_holder("event", event_id, owner=organizer)
        ledger.credit(event, net, reason="escrow_release",
                      idempotency_key=f"escrow:{order.id}")
"""

from .models import BalanceEntry, EntryType
from .services import HOLDER_MODELS, LedgerService, ledger

__all__ = [
    "BalanceEntry",
    "EntryType",
    "HOLDER_MODELS",
    "LedgerService",
    "ledger",
]
