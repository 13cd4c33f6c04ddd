"""
Payments app: money movement for the marketplace.

This app handles:
- Balance ledger (locked, audited balance mutations)
- Payment provider adapters (Payd, Pesapal, IntaSend)
- Webhook and redirect callback ingestion, order matching, reconciliation
- Escrow release on order completion
- Withdrawal requests with compensation on payout failure
- Buyer refund requests

Related apps:
    - accounts: balance holders
    - orders: order state machine
    - notifications: after-commit event delivery
"""
