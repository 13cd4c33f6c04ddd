"""
Tests for order matching strategies.
"""

import pytest

from orders.tests.factories import OrderFactory
from payments.matching import ApiRefMatcher, PrimaryIdMatcher, match_order
from payments.providers import CallbackIdentifiers
from payments.tests.factories import PaymentFactory


@pytest.mark.django_db
class TestMatchOrder:
    def test_checkout_id_alone_finds_order(self, checkout_order):
        order_id, matcher = match_order(CallbackIdentifiers(primary_id="CHK-ABC123"), "intasend")

        assert order_id == checkout_order.pk
        assert matcher == PrimaryIdMatcher.name

    def test_primary_id_falls_back_to_payment_rows(self):
        order = OrderFactory()
        PaymentFactory(order=order, provider="pesapal", provider_reference="TRK-77")

        order_id, _ = match_order(CallbackIdentifiers(primary_id="TRK-77"), "pesapal")

        assert order_id == order.pk

    def test_payment_lookup_respects_provider(self):
        order = OrderFactory()
        PaymentFactory(order=order, provider="pesapal", provider_reference="TRK-78")

        order_id, matcher = match_order(CallbackIdentifiers(primary_id="TRK-78"), "payd")

        assert order_id is None
        assert matcher == ""

    def test_order_number(self):
        order = OrderFactory()

        order_id, matcher = match_order(CallbackIdentifiers(order_number=order.order_number))

        assert order_id == order.pk
        assert matcher == "order_number"

    def test_invoice_id_from_metadata(self, checkout_order):
        order_id, matcher = match_order(CallbackIdentifiers(invoice_id="INV-ABC123"), "intasend")

        assert order_id == checkout_order.pk
        assert matcher == "invoice_id"

    def test_api_ref_resolves_order_uuid(self):
        order = OrderFactory()

        assert ApiRefMatcher().match(CallbackIdentifiers(api_ref=order.api_ref)) == order.pk

    def test_api_ref_for_missing_order_is_not_guessed(self, db):
        identifiers = CallbackIdentifiers(api_ref="ORD-00000000-0000-0000-0000-000000000000")

        assert match_order(identifiers) == (None, "")

    def test_first_matcher_wins(self, checkout_order):
        other = OrderFactory()
        identifiers = CallbackIdentifiers(primary_id="CHK-ABC123", order_number=other.order_number)

        order_id, matcher = match_order(identifiers, "intasend")

        assert order_id == checkout_order.pk
        assert matcher == "primary_id"

    def test_no_identifiers_matches_nothing(self, db):
        assert match_order(CallbackIdentifiers()) == (None, "")
