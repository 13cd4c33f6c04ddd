"""
Payment provider adapters (Payd, Pesapal, IntaSend).
"""

from .base import (
    CallbackIdentifiers,
    Customer,
    InboundRequest,
    InitiationRequest,
    InitiationResult,
    PayoutRequest,
    PayoutResult,
    ProviderAdapter,
    StatusResult,
)
from .registry import get_adapter, get_payout_adapter, register_adapter, reset_adapters

__all__ = [
    "CallbackIdentifiers",
    "Customer",
    "InboundRequest",
    "InitiationRequest",
    "InitiationResult",
    "PayoutRequest",
    "PayoutResult",
    "ProviderAdapter",
    "StatusResult",
    "get_adapter",
    "get_payout_adapter",
    "register_adapter",
    "reset_adapters",
]
