"""
Adapter registry.

Adapters are created lazily, one per provider per process. Tests replace
them with register_adapter() and clear them with reset_adapters().

Usage:
    from payments.providers import get_adapter, register_adapter

    adapter = get_adapter("pesapal")
    register_adapter("pesapal", mock_adapter)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from django.conf import settings

from core.exceptions import NotFoundError
from payments.state_machines import PaymentProvider

from .intasend import IntaSendAdapter
from .payd import PaydAdapter
from .pesapal import PesapalAdapter

if TYPE_CHECKING:
    from .base import ProviderAdapter

ADAPTER_CLASSES: dict[str, type[ProviderAdapter]] = {
    PaymentProvider.PAYD: PaydAdapter,
    PaymentProvider.PESAPAL: PesapalAdapter,
    PaymentProvider.INTASEND: IntaSendAdapter,
}

_adapters: dict[str, ProviderAdapter] = {}


def get_adapter(name: str) -> ProviderAdapter:
    """
    Adapter for a provider name.

    Raises:
        NotFoundError: Unknown provider
    """
    key = str(name or "").strip().lower()
    adapter = _adapters.get(key)
    if adapter is not None:
        return adapter

    adapter_class = ADAPTER_CLASSES.get(key)
    if adapter_class is None:
        raise NotFoundError(
            f"Unknown payment provider: {name}",
            error_code="PROVIDER_NOT_FOUND",
            details={"provider": str(name)},
        )
    adapter = _adapters[key] = adapter_class()
    return adapter


def get_payout_adapter() -> ProviderAdapter:
    """Adapter configured in PAYOUT_PROVIDER; must implement initiate_payout()."""
    return get_adapter(settings.PAYOUT_PROVIDER)


def register_adapter(name: str, adapter: ProviderAdapter) -> None:
    _adapters[str(name).lower()] = adapter


def reset_adapters() -> None:
    _adapters.clear()
