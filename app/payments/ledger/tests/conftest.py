"""
Pytest fixtures for ledger tests.
"""

from decimal import Decimal

import pytest

from accounts.tests.factories import BuyerFactory, EventFactory, SellerFactory


@pytest.fixture
def seller(db):
    return SellerFactory(balance=Decimal("500.00"))


@pytest.fixture
def event(db):
    return EventFactory(balance=Decimal("940.00"))


@pytest.fixture
def buyer(db):
    return BuyerFactory(refunds=Decimal("200.00"))
