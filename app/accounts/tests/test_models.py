"""
Tests for balance holder models.
"""

from decimal import Decimal

import pytest
from django.db import IntegrityError, transaction

from accounts.models import EntityType
from accounts.tests.factories import BuyerFactory, EventFactory, SellerFactory
from authentication.tests.factories import UserFactory


@pytest.mark.django_db
class TestBalanceHolders:
    def test_seller_has_shop_only_with_pickup_address(self):
        assert SellerFactory(physical_address="Moi Avenue, Nairobi").has_shop is True
        assert SellerFactory(physical_address="  ").has_shop is False

    def test_event_is_owned_by_its_organizer_user(self):
        event = EventFactory()

        assert event.owned_by(event.organizer.user) is True
        assert event.owned_by(UserFactory()) is False

    def test_entity_types(self):
        assert SellerFactory().entity_type == EntityType.SELLER
        assert EventFactory().entity_type == EntityType.EVENT

    def test_buyer_balance_is_refunds_column(self):
        buyer = BuyerFactory(refunds=Decimal("120.00"))

        assert buyer.get_balance() == Decimal("120.00")

    def test_negative_balance_is_rejected_by_database(self):
        seller = SellerFactory()
        seller.balance = Decimal("-1.00")

        with pytest.raises(IntegrityError):
            with transaction.atomic():
                seller.save()
