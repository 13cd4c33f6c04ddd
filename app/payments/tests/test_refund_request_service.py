"""
Tests for RefundRequestService.
"""

from decimal import Decimal

import pytest

from accounts.models import Buyer
from accounts.tests.factories import SellerFactory
from payments.ledger import BalanceEntry
from payments.models import RefundRequest
from payments.services import RefundRequestService
from payments.state_machines import RefundRequestStatus
from payments.tests.factories import RefundRequestFactory


@pytest.mark.django_db
class TestCreateRequest:
    def test_creates_pending_request_without_debit(self, buyer_with_refunds):
        result = RefundRequestService.create_request(buyer_with_refunds.user, "400", "254712345678", "Amina Otieno")

        assert result.success
        request = result.data
        assert request.status == RefundRequestStatus.PENDING
        assert request.payout_number == "0712345678"
        assert Buyer.objects.get(pk=buyer_with_refunds.pk).refunds == Decimal("1000.00")
        assert not BalanceEntry.objects.exists()

    def test_amount_above_refunds_is_rejected(self, buyer_with_refunds):
        result = RefundRequestService.create_request(buyer_with_refunds.user, "1000.01", "0712345678", "Amina")

        assert result.status_code == 400
        assert result.error_code == "INSUFFICIENT_FUNDS"

    def test_non_positive_amount(self, buyer_with_refunds):
        result = RefundRequestService.create_request(buyer_with_refunds.user, "0", "0712345678", "Amina")

        assert result.error_code == "INVALID_AMOUNT"

    def test_only_one_pending_request(self, buyer_with_refunds):
        RefundRequestService.create_request(buyer_with_refunds.user, "100", "0712345678", "Amina")

        second = RefundRequestService.create_request(buyer_with_refunds.user, "100", "0712345678", "Amina")

        assert second.status_code == 409
        assert second.error_code == "PENDING_REFUND_EXISTS"
        assert RefundRequest.objects.count() == 1

    def test_non_buyer_is_forbidden(self):
        result = RefundRequestService.create_request(SellerFactory().user, "100", "0712345678", "Shop")

        assert result.status_code == 403
        assert result.error_code == "NOT_A_BUYER"


@pytest.mark.django_db
class TestDecisions:
    def test_confirm_debits_refunds(self, buyer_with_refunds, admin_user):
        request = RefundRequestFactory(buyer=buyer_with_refunds, amount=Decimal("400.00"))

        result = RefundRequestService.confirm(request.pk, admin_user, notes="Sent via M-Pesa")

        assert result.success
        refreshed = RefundRequest.objects.get(pk=request.pk)
        assert refreshed.status == RefundRequestStatus.COMPLETED
        assert refreshed.processed_by == admin_user
        assert refreshed.admin_notes == "Sent via M-Pesa"
        assert Buyer.objects.get(pk=buyer_with_refunds.pk).refunds == Decimal("600.00")
        entry = BalanceEntry.objects.get(idempotency_key=f"refund-request:{request.pk}")
        assert entry.balance_after == Decimal("600.00")

    def test_confirm_rechecks_balance(self, buyer_with_refunds, admin_user):
        request = RefundRequestFactory(buyer=buyer_with_refunds, amount=Decimal("800.00"))
        Buyer.objects.filter(pk=buyer_with_refunds.pk).update(refunds=Decimal("500.00"))

        result = RefundRequestService.confirm(request.pk, admin_user)

        assert result.error_code == "INSUFFICIENT_FUNDS"
        assert RefundRequest.objects.get(pk=request.pk).status == RefundRequestStatus.PENDING
        assert Buyer.objects.get(pk=buyer_with_refunds.pk).refunds == Decimal("500.00")

    def test_reject_leaves_balance(self, buyer_with_refunds, admin_user):
        request = RefundRequestFactory(buyer=buyer_with_refunds)

        result = RefundRequestService.reject(request.pk, admin_user, notes="Duplicate")

        assert result.success
        assert RefundRequest.objects.get(pk=request.pk).status == RefundRequestStatus.REJECTED
        assert Buyer.objects.get(pk=buyer_with_refunds.pk).refunds == Decimal("1000.00")

    def test_processed_request_is_conflict(self, buyer_with_refunds, admin_user):
        request = RefundRequestFactory(buyer=buyer_with_refunds)
        RefundRequestService.confirm(request.pk, admin_user)

        again = RefundRequestService.confirm(request.pk, admin_user)

        assert again.status_code == 409
        assert again.error_code == "REFUND_REQUEST_PROCESSED"
        assert Buyer.objects.get(pk=buyer_with_refunds.pk).refunds == Decimal("600.00")

    def test_missing_request(self, admin_user):
        result = RefundRequestService.reject("not-a-uuid", admin_user)

        assert result.status_code == 404
        assert result.error_code == "REFUND_REQUEST_NOT_FOUND"
