"""
Pytest fixtures for payment tests.

Balance holders come funded, and provider adapters are replaced by mocks
so no test talks to a real provider.

Usage:
    def test_withdraw(funded_seller, payout_adapter, mock_redis):
        result = WithdrawalService.create_withdrawal(funded_seller.user, ...)
        payout_adapter.initiate_payout.assert_called_once()
"""

from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from accounts.tests.factories import BuyerFactory, EventFactory, OrganizerFactory, SellerFactory
from authentication.tests.factories import AdminUserFactory
from orders.tests.factories import EventOrderFactory, OrderFactory
from payments.normalizer import normalize
from payments.providers import PayoutResult, StatusResult, register_adapter
from payments.services import WithdrawalService
from payments.state_machines import PaymentProvider
from payments.tests.factories import PaymentFactory


# =============================================================================
# Balance Holder Fixtures
# =============================================================================


@pytest.fixture
def funded_seller(db):
    return SellerFactory(balance=Decimal("1000.00"))


@pytest.fixture
def organizer(db):
    return OrganizerFactory(balance=Decimal("300.00"))


@pytest.fixture
def funded_event(db, organizer):
    return EventFactory(organizer=organizer, balance=Decimal("1000.00"))


@pytest.fixture
def buyer_with_refunds(db):
    return BuyerFactory(refunds=Decimal("1000.00"))


@pytest.fixture
def admin_user(db):
    return AdminUserFactory()


# =============================================================================
# Order Fixtures
# =============================================================================


@pytest.fixture
def checkout_order(db):
    """PENDING order with an IntaSend checkout in flight."""
    order = OrderFactory(
        provider=PaymentProvider.INTASEND,
        metadata={
            "items": [{"name": "Kikoy", "product_type": "physical", "quantity": 1, "unit_price": "1000.00"}],
            "checkout_id": "CHK-ABC123",
            "invoice_id": "INV-ABC123",
        },
    )
    PaymentFactory(
        order=order,
        provider=PaymentProvider.INTASEND,
        provider_reference="CHK-ABC123",
        invoice_id="INV-ABC123",
    )
    return order


@pytest.fixture
def event_checkout_order(db):
    order = EventOrderFactory(
        provider=PaymentProvider.INTASEND,
        metadata={
            "items": [{"name": "Early bird", "product_type": "ticket", "quantity": 2, "unit_price": "500.00"}],
            "checkout_id": "CHK-EVT001",
        },
    )
    PaymentFactory(order=order, provider=PaymentProvider.INTASEND, provider_reference="CHK-EVT001")
    return order


# =============================================================================
# Provider Adapter Fixtures
# =============================================================================


@pytest.fixture
def payout_adapter():
    """
    Payout adapter double accepting every payout.

    Injected into WithdrawalService for the duration of the test.
    """
    adapter = MagicMock()
    adapter.name = PaymentProvider.PAYD
    adapter.verify_signature.return_value = True
    adapter.initiate_payout.return_value = PayoutResult(
        provider_reference="COR-0001",
        raw_status="PENDING",
        message="Payout queued",
        raw_response={"correlator_id": "COR-0001", "status": "PENDING"},
    )
    WithdrawalService.set_payout_adapter(adapter)
    yield adapter
    WithdrawalService.set_payout_adapter(None)


@pytest.fixture
def status_adapter():
    """
    Factory registering a provider double whose check_status answers raw_status.

    Usage:
        adapter = status_adapter("pesapal", "Completed", trusts_webhook_status=False)
    """

    def _adapter(name, raw_status, trusts_webhook_status=True):
        adapter = MagicMock()
        adapter.name = name
        adapter.trusts_webhook_status = trusts_webhook_status
        adapter.status_reference.return_value = "REF-1"
        adapter.webhook_ack.return_value = {}
        adapter.check_status.return_value = StatusResult(
            raw_status=raw_status,
            canonical=normalize(raw_status),
            reference="REF-1",
            raw={"status": raw_status},
        )
        register_adapter(name, adapter)
        return adapter

    return _adapter
