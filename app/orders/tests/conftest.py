"""
Pytest fixtures for order tests.
"""

from decimal import Decimal

import pytest

from authentication.tests.factories import AdminUserFactory
from orders.states import OrderStatus
from orders.tests.factories import EventOrderFactory, OrderFactory
from payments.state_machines import PaymentStatus


@pytest.fixture
def order(db):
    return OrderFactory()


@pytest.fixture
def paid_order(db):
    """Physical order waiting for delivery, payment confirmed."""
    return OrderFactory(
        status=OrderStatus.DELIVERY_PENDING,
        payment_status=PaymentStatus.COMPLETED,
    )


@pytest.fixture
def delivered_order(db):
    return OrderFactory(
        status=OrderStatus.DELIVERY_COMPLETE,
        payment_status=PaymentStatus.COMPLETED,
        total_amount=Decimal("1000.00"),
    )


@pytest.fixture
def event_order(db):
    return EventOrderFactory(total_amount=Decimal("1000.00"))


@pytest.fixture
def admin_user(db):
    return AdminUserFactory()
