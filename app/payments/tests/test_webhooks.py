"""
Tests for webhook, redirect and payout callback handling.

IntaSend webhooks are signed with a test secret and go through the real
adapter; Pesapal and redirect callbacks poll a patched check_status().
"""

import json
from decimal import Decimal
from urllib.parse import parse_qs, urlparse

import pytest
from django.urls import reverse

from accounts.models import Event, Seller
from orders.models import Order, OrderStatusHistory
from orders.states import OrderStatus
from orders.tests.factories import OrderFactory
from payments.exceptions import ExternalProviderError
from payments.ledger import BalanceEntry
from payments.models import WebhookEvent, WithdrawalRequest
from payments.normalizer import normalize
from payments.providers import InboundRequest, StatusResult
from payments.providers.intasend import IntaSendAdapter, sign
from payments.providers.pesapal import PesapalAdapter
from payments.state_machines import PaymentStatus, WebhookEventStatus, WithdrawalStatus
from payments.tests.factories import PaymentFactory, WithdrawalRequestFactory
from payments.webhooks import handle_payment_webhook, handle_payout_callback, handle_redirect_callback

WEBHOOK_SECRET = "test-webhook-secret"


@pytest.fixture(autouse=True)
def _webhook_settings(settings):
    settings.INTASEND_WEBHOOK_SECRET = WEBHOOK_SECRET
    settings.FRONTEND_URL = "https://shop.example.com"


def _signed(payload):
    body = json.dumps(payload).encode()
    return InboundRequest(body=body, headers={"X-IntaSend-Signature": sign(body, WEBHOOK_SECRET)})


def _status(raw_status, reference="REF"):
    return StatusResult(raw_status=raw_status, canonical=normalize(raw_status), reference=reference, raw={"status": raw_status})


def _query(url):
    return {key: values[0] for key, values in parse_qs(urlparse(url).query).items()}


# =============================================================================
# Payment webhooks
# =============================================================================


@pytest.mark.django_db
class TestHandlePaymentWebhook:
    def test_completed_webhook_is_applied(self, checkout_order):
        response = handle_payment_webhook("intasend", _signed({"checkout_id": "CHK-ABC123", "state": "COMPLETE"}))

        assert response.status_code == 200
        assert response.body["status"] == "processed"
        order = Order.objects.get(pk=checkout_order.pk)
        assert order.payment_status == PaymentStatus.COMPLETED
        assert order.status == OrderStatus.DELIVERY_PENDING
        event = WebhookEvent.objects.get()
        assert event.status == WebhookEventStatus.PROCESSED
        assert event.outcome == "processed"

    def test_duplicate_delivery_is_already_processed(self, event_checkout_order):
        inbound = _signed({"checkout_id": "CHK-EVT001", "state": "COMPLETE"})

        handle_payment_webhook("intasend", inbound)
        replay = handle_payment_webhook("intasend", inbound)

        assert replay.status_code == 200
        assert replay.body == {"status": "already_processed"}
        assert WebhookEvent.objects.count() == 1
        assert OrderStatusHistory.objects.filter(order_id=event_checkout_order.pk).count() == 1
        assert BalanceEntry.objects.filter(reference_id=str(event_checkout_order.pk)).count() == 1
        assert Event.objects.get(pk=event_checkout_order.event_id).balance == Decimal("940.00")

    def test_second_notification_for_paid_order_is_ignored(self, checkout_order):
        handle_payment_webhook("intasend", _signed({"checkout_id": "CHK-ABC123", "state": "COMPLETE"}))

        response = handle_payment_webhook(
            "intasend", _signed({"invoice_id": "INV-ABC123", "state": "FAILED"})
        )

        assert response.body["status"] == "already_processed"
        assert WebhookEvent.objects.filter(status=WebhookEventStatus.IGNORED).count() == 1
        assert Order.objects.get(pk=checkout_order.pk).payment_status == PaymentStatus.COMPLETED

    def test_bad_signature_is_rejected_before_recording(self, checkout_order):
        body = json.dumps({"checkout_id": "CHK-ABC123", "state": "COMPLETE"}).encode()
        inbound = InboundRequest(body=body, headers={"X-IntaSend-Signature": sign(body, "wrong-secret")})

        response = handle_payment_webhook("intasend", inbound)

        assert response.status_code == 400
        assert not WebhookEvent.objects.exists()
        assert Order.objects.get(pk=checkout_order.pk).payment_status == PaymentStatus.PENDING

    def test_unknown_provider(self, db):
        assert handle_payment_webhook("stripe", InboundRequest(body=b"{}")).status_code == 404

    def test_non_object_body(self, db):
        response = handle_payment_webhook("intasend", _signed(["not", "an", "object"]))

        assert response.status_code == 400
        assert response.body["message"] == "Invalid payload"

    def test_missing_reference(self, db):
        response = handle_payment_webhook("intasend", _signed({"state": "COMPLETE"}))

        assert response.status_code == 400
        assert WebhookEvent.objects.get().status == WebhookEventStatus.FAILED

    def test_unmatched_order_is_kept_for_reconciliation(self, db):
        response = handle_payment_webhook("intasend", _signed({"checkout_id": "CHK-UNKNOWN", "state": "COMPLETE"}))

        assert response.status_code == 404
        event = WebhookEvent.objects.get()
        assert event.status == WebhookEventStatus.FAILED
        assert event.outcome == "not_found"

    def test_failed_event_can_be_redelivered(self, checkout_order, mocker):
        inbound = _signed({"checkout_id": "CHK-ABC123", "state": "COMPLETE"})
        mocker.patch("payments.webhooks.handlers.PaymentReconciler.apply", side_effect=RuntimeError("boom"))

        first = handle_payment_webhook("intasend", inbound)
        mocker.stopall()
        second = handle_payment_webhook("intasend", inbound)

        assert first.status_code == 500
        assert second.status_code == 200
        assert WebhookEvent.objects.get().status == WebhookEventStatus.PROCESSED

    def test_pesapal_ipn_polls_status_and_acknowledges(self, mocker):
        order = OrderFactory()
        PaymentFactory(order=order, provider="pesapal", provider_reference="TRK-9")
        check_status = mocker.patch.object(PesapalAdapter, "check_status", return_value=_status("Completed", "TRK-9"))
        body = json.dumps(
            {"OrderNotificationType": "IPNCHANGE", "OrderTrackingId": "TRK-9", "OrderMerchantReference": order.api_ref}
        ).encode()

        response = handle_payment_webhook("pesapal", InboundRequest(body=body))

        assert response.status_code == 200
        assert response.body["orderNotificationType"] == "IPNCHANGE"
        assert response.body["orderTrackingId"] == "TRK-9"
        check_status.assert_called_once_with("TRK-9")
        assert Order.objects.get(pk=order.pk).payment_status == PaymentStatus.COMPLETED


# =============================================================================
# Redirect callbacks
# =============================================================================


@pytest.mark.django_db
class TestHandleRedirectCallback:
    def test_success_redirect_polls_provider(self, checkout_order, mocker):
        check_status = mocker.patch.object(IntaSendAdapter, "check_status", return_value=_status("COMPLETE"))

        url = handle_redirect_callback("intasend", {"checkout_id": "CHK-ABC123", "state": "FAILED"})

        assert url.startswith("https://shop.example.com/checkout?")
        assert _query(url) == {"status": "success", "reference": checkout_order.order_number}
        check_status.assert_called_once_with("INV-ABC123")

    def test_pending_payment(self, checkout_order, mocker):
        mocker.patch.object(IntaSendAdapter, "check_status", return_value=_status("PENDING"))

        url = handle_redirect_callback("intasend", {"checkout_id": "CHK-ABC123"})

        assert _query(url)["status"] == "pending"

    def test_provider_failure_redirects_with_error(self, checkout_order, mocker):
        mocker.patch.object(
            IntaSendAdapter, "check_status", side_effect=ExternalProviderError("down", provider="intasend")
        )

        url = handle_redirect_callback("intasend", {"checkout_id": "CHK-ABC123"})

        assert _query(url)["status"] == "error"
        assert Order.objects.get(pk=checkout_order.pk).payment_status == PaymentStatus.PENDING

    def test_missing_reference(self, db):
        assert _query(handle_redirect_callback("intasend", {}))["status"] == "error"


# =============================================================================
# Payout callbacks
# =============================================================================


@pytest.mark.django_db
class TestHandlePayoutCallback:
    def test_completes_withdrawal(self, funded_seller, payout_adapter):
        withdrawal = WithdrawalRequestFactory(seller=funded_seller, provider_reference="COR-5")
        body = json.dumps({"correlator_id": "COR-5", "status": "SUCCESS"}).encode()

        response = handle_payout_callback(InboundRequest(body=body, remote_addr="34.89.1.1"))

        assert response.status_code == 200
        assert response.body == {"status": "processed"}
        assert WithdrawalRequest.objects.get(pk=withdrawal.pk).status == WithdrawalStatus.COMPLETED

    def test_unverified_callback_is_rejected(self, funded_seller, payout_adapter):
        payout_adapter.verify_signature.return_value = False
        withdrawal = WithdrawalRequestFactory(seller=funded_seller, provider_reference="COR-6")
        body = json.dumps({"correlator_id": "COR-6", "status": "SUCCESS"}).encode()

        response = handle_payout_callback(InboundRequest(body=body, remote_addr="10.0.0.1"))

        assert response.status_code == 400
        assert WithdrawalRequest.objects.get(pk=withdrawal.pk).status == WithdrawalStatus.PROCESSING

    def test_result_wrapped_in_data_object(self, funded_seller, payout_adapter):
        withdrawal = WithdrawalRequestFactory(seller=funded_seller, provider_reference="COR-8")
        body = json.dumps({"data": {"correlator_id": "COR-8", "status": "SUCCESS"}}).encode()

        response = handle_payout_callback(InboundRequest(body=body, remote_addr="34.89.1.1"))

        assert response.status_code == 200
        assert response.body == {"status": "processed"}
        assert WithdrawalRequest.objects.get(pk=withdrawal.pk).status == WithdrawalStatus.COMPLETED

    def test_non_object_body(self, db, payout_adapter):
        response = handle_payout_callback(InboundRequest(body=b"[1, 2]"))

        assert response.status_code == 400

    def test_unknown_withdrawal(self, db, payout_adapter):
        body = json.dumps({"correlator_id": "NOPE", "status": "SUCCESS"}).encode()

        response = handle_payout_callback(InboundRequest(body=body))

        assert response.status_code == 404
        assert response.body["error_code"] == "WITHDRAWAL_NOT_FOUND"


# =============================================================================
# HTTP endpoints
# =============================================================================


@pytest.mark.django_db
class TestWebhookEndpoints:
    def test_signed_webhook_over_http(self, client, checkout_order):
        body = json.dumps({"checkout_id": "CHK-ABC123", "state": "COMPLETE"}).encode()

        response = client.post(
            reverse("payments:payment-webhook", args=["intasend"]),
            data=body,
            content_type="application/json",
            HTTP_X_INTASEND_SIGNATURE=sign(body, WEBHOOK_SECRET),
        )

        assert response.status_code == 200
        assert response.json()["status"] == "processed"

    def test_webhook_rejects_get(self, client):
        response = client.get(reverse("payments:payment-webhook", args=["intasend"]))

        assert response.status_code == 405

    def test_unknown_provider_over_http(self, client):
        response = client.post(
            reverse("payments:payment-webhook", args=["unknown"]), data=b"{}", content_type="application/json"
        )

        assert response.status_code == 404

    def test_redirect_callback_over_http(self, client, checkout_order, mocker):
        mocker.patch.object(IntaSendAdapter, "check_status", return_value=_status("COMPLETE"))

        response = client.get(reverse("payments:payment-callback", args=["intasend"]), {"checkout_id": "CHK-ABC123"})

        assert response.status_code == 302
        assert _query(response["Location"])["status"] == "success"

    def test_payout_callback_over_http(self, client, funded_seller, payout_adapter):
        withdrawal = WithdrawalRequestFactory(seller=funded_seller, provider_reference="COR-7")

        response = client.post(
            reverse("payments:payout-callback"),
            data=json.dumps({"correlator_id": "COR-7", "status": "FAILED", "message": "Timeout"}),
            content_type="application/json",
        )

        assert response.status_code == 200
        assert WithdrawalRequest.objects.get(pk=withdrawal.pk).status == WithdrawalStatus.FAILED
        assert Seller.objects.get(pk=funded_seller.pk).balance == Decimal("1500.00")
