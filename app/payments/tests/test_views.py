"""
Tests for withdrawal and refund request API views.
"""

from decimal import Decimal
from uuid import uuid4

import pytest
from django.urls import reverse

from accounts.models import Buyer, Event, Seller
from authentication.tests.factories import UserFactory
from payments.exceptions import ExternalProviderError
from payments.models import RefundRequest, WithdrawalRequest
from payments.state_machines import RefundRequestStatus, WithdrawalStatus
from payments.tests.factories import RefundRequestFactory, WithdrawalRequestFactory


@pytest.mark.django_db
class TestWithdrawalCreateView:
    @property
    def url(self):
        return reverse("payments:withdrawal-create")

    def test_seller_withdrawal(self, authenticated_client, funded_seller, payout_adapter, mock_redis):
        response = authenticated_client(funded_seller.user).post(
            self.url,
            {"amount": "400.00", "payout_number": "0712345678", "payout_name": "Jane", "entity_type": "seller"},
            format="json",
        )

        assert response.status_code == 201
        assert response.data["status"] == WithdrawalStatus.PROCESSING
        assert response.data["provider_reference"] == "COR-0001"
        assert response.data["reference"].startswith("WDR-")
        assert Seller.objects.get(pk=funded_seller.pk).balance == Decimal("600.00")

    def test_event_withdrawal(self, authenticated_client, funded_event, payout_adapter, mock_redis):
        response = authenticated_client(funded_event.organizer.user).post(
            self.url,
            {
                "amount": "940.00",
                "payout_number": "0712345678",
                "payout_name": "Jazz Nights",
                "entity_type": "event",
                "entity_id": str(funded_event.pk),
            },
            format="json",
        )

        assert response.status_code == 201
        assert Event.objects.get(pk=funded_event.pk).balance == Decimal("0.00")

    def test_provider_failure_returns_failed_request(self, authenticated_client, funded_seller, payout_adapter, mock_redis):
        payout_adapter.initiate_payout.side_effect = ExternalProviderError("timeout", provider="payd", is_retryable=True)

        response = authenticated_client(funded_seller.user).post(
            self.url,
            {"amount": "400.00", "payout_number": "0712345678", "payout_name": "Jane", "entity_type": "seller"},
            format="json",
        )

        assert response.status_code == 201
        assert response.data["status"] == WithdrawalStatus.FAILED
        assert Seller.objects.get(pk=funded_seller.pk).balance == Decimal("1000.00")

    def test_insufficient_funds(self, authenticated_client, funded_seller, payout_adapter):
        response = authenticated_client(funded_seller.user).post(
            self.url,
            {"amount": "5000.00", "payout_number": "0712345678", "payout_name": "Jane", "entity_type": "seller"},
            format="json",
        )

        assert response.status_code == 400
        assert response.data["error_code"] == "INSUFFICIENT_FUNDS"
        assert not WithdrawalRequest.objects.exists()

    def test_invalid_entity_type(self, authenticated_client, funded_seller):
        response = authenticated_client(funded_seller.user).post(
            self.url,
            {"amount": "100.00", "payout_number": "0712345678", "payout_name": "Jane", "entity_type": "bank"},
            format="json",
        )

        assert response.status_code == 400

    def test_requires_authentication(self, api_client):
        assert api_client.post(self.url, {}, format="json").status_code == 401


@pytest.mark.django_db
class TestWithdrawalOverrideView:
    def test_admin_fails_withdrawal(self, authenticated_client, admin_user, funded_seller):
        withdrawal = WithdrawalRequestFactory(seller=funded_seller, amount=Decimal("200.00"))

        response = authenticated_client(admin_user).patch(
            reverse("payments:withdrawal-override", args=[withdrawal.pk]),
            {"status": "failed", "reason": "Wrong number"},
            format="json",
        )

        assert response.status_code == 200
        assert response.data["status"] == WithdrawalStatus.FAILED
        assert Seller.objects.get(pk=funded_seller.pk).balance == Decimal("1200.00")

    def test_terminal_withdrawal_is_rejected(self, authenticated_client, admin_user, funded_seller):
        withdrawal = WithdrawalRequestFactory(seller=funded_seller, status=WithdrawalStatus.FAILED)

        response = authenticated_client(admin_user).patch(
            reverse("payments:withdrawal-override", args=[withdrawal.pk]),
            {"status": "completed"},
            format="json",
        )

        assert response.status_code == 400
        assert response.data["error_code"] == "ALREADY_PROCESSED"

    def test_missing_withdrawal(self, authenticated_client, admin_user):
        response = authenticated_client(admin_user).patch(
            reverse("payments:withdrawal-override", args=[uuid4()]),
            {"status": "completed"},
            format="json",
        )

        assert response.status_code == 404

    def test_non_admin_is_forbidden(self, authenticated_client, funded_seller):
        withdrawal = WithdrawalRequestFactory(seller=funded_seller)

        response = authenticated_client(funded_seller.user).patch(
            reverse("payments:withdrawal-override", args=[withdrawal.pk]),
            {"status": "completed"},
            format="json",
        )

        assert response.status_code == 403


@pytest.mark.django_db
class TestRefundRequestViews:
    def test_buyer_creates_request(self, authenticated_client, buyer_with_refunds):
        response = authenticated_client(buyer_with_refunds.user).post(
            reverse("payments:refund-request-create"),
            {"amount": "250.00", "payout_number": "0712345678", "payout_name": "Amina"},
            format="json",
        )

        assert response.status_code == 201
        assert response.data["status"] == RefundRequestStatus.PENDING
        assert RefundRequest.objects.filter(buyer=buyer_with_refunds).count() == 1

    def test_non_buyer_is_forbidden(self, authenticated_client):
        response = authenticated_client(UserFactory()).post(
            reverse("payments:refund-request-create"),
            {"amount": "250.00", "payout_number": "0712345678", "payout_name": "Amina"},
            format="json",
        )

        assert response.status_code == 403

    def test_admin_confirms(self, authenticated_client, admin_user, buyer_with_refunds):
        request = RefundRequestFactory(buyer=buyer_with_refunds, amount=Decimal("250.00"))

        response = authenticated_client(admin_user).post(
            reverse("payments:refund-request-confirm", args=[request.pk]),
            {"notes": "Paid"},
            format="json",
        )

        assert response.status_code == 200
        assert response.data["status"] == RefundRequestStatus.COMPLETED
        assert Buyer.objects.get(pk=buyer_with_refunds.pk).refunds == Decimal("750.00")

    def test_admin_rejects(self, authenticated_client, admin_user, buyer_with_refunds):
        request = RefundRequestFactory(buyer=buyer_with_refunds)

        response = authenticated_client(admin_user).post(
            reverse("payments:refund-request-reject", args=[request.pk]), {}, format="json"
        )

        assert response.status_code == 200
        assert response.data["status"] == RefundRequestStatus.REJECTED
        assert Buyer.objects.get(pk=buyer_with_refunds.pk).refunds == Decimal("1000.00")

    def test_decision_on_processed_request_is_conflict(self, authenticated_client, admin_user, buyer_with_refunds):
        request = RefundRequestFactory(buyer=buyer_with_refunds, status=RefundRequestStatus.REJECTED)

        response = authenticated_client(admin_user).post(
            reverse("payments:refund-request-confirm", args=[request.pk]), {}, format="json"
        )

        assert response.status_code == 409

    def test_buyer_cannot_confirm(self, authenticated_client, buyer_with_refunds):
        request = RefundRequestFactory(buyer=buyer_with_refunds)

        response = authenticated_client(buyer_with_refunds.user).post(
            reverse("payments:refund-request-confirm", args=[request.pk]), {}, format="json"
        )

        assert response.status_code == 403
